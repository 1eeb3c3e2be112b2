from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum

from algosdk.atomic_transaction_composer import TransactionSigner


class ArtifactStatus(IntEnum):
    """Lifecycle status as stored on-chain (uint8)."""

    PENDING = 0
    APPROVED = 1
    REJECTED = 2

    @property
    def label(self) -> str:
        return self.name.capitalize()


@dataclass(frozen=True)
class Artifact:
    """Local view of a ledger-owned artifact record."""

    id: int
    content_id: str
    uploader: str
    initial_token_id: int
    verified_token_id: int
    status: ArtifactStatus
    uploaded_at: datetime
    rejection_reason: str = ""

    @classmethod
    def from_ledger_tuple(cls, artifact_id: int, values: list | tuple) -> Artifact:
        """Build from the decoded ``get_artifact`` return tuple."""
        content_id, uploader, initial_token_id, verified_token_id, status, uploaded_at, reason = values
        return cls(
            id=artifact_id,
            content_id=content_id,
            uploader=uploader,
            initial_token_id=int(initial_token_id),
            verified_token_id=int(verified_token_id),
            status=ArtifactStatus(int(status)),
            uploaded_at=datetime.fromtimestamp(int(uploaded_at), tz=timezone.utc),
            rejection_reason=reason,
        )

    @property
    def is_pending(self) -> bool:
        return self.status is ArtifactStatus.PENDING

    @property
    def is_terminal(self) -> bool:
        return not self.is_pending

    def consistency_violations(self) -> list[str]:
        problems = []
        if (self.verified_token_id != 0) != (self.status is ArtifactStatus.APPROVED):
            problems.append(
                f"verified token {self.verified_token_id} with status {self.status.label}"
            )
        if bool(self.rejection_reason) != (self.status is ArtifactStatus.REJECTED):
            problems.append(
                f"rejection reason {self.rejection_reason!r} with status {self.status.label}"
            )
        return problems

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "contentId": self.content_id,
            "uploader": self.uploader,
            "initialTokenId": self.initial_token_id,
            "verifiedTokenId": self.verified_token_id,
            "status": self.status.label,
            "uploadedAt": self.uploaded_at.isoformat(),
            "rejectionReason": self.rejection_reason,
        }


@dataclass(frozen=True)
class SubmissionIntent:
    """Signed intent for one upload attempt. Never persisted."""

    message: str
    signature: str
    address: str


@dataclass(frozen=True)
class ArtifactPayload:
    filename: str
    content_type: str
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class StoredContent:
    content_id: str
    retrieval_url: str


@dataclass(frozen=True)
class Session:
    """Connected wallet for one flow.

    ``is_manager`` is the role cache, derived from the ledger when the session
    is opened. A new address means a new session.
    """

    address: str
    signer: TransactionSigner = field(repr=False)
    is_manager: bool = False


@dataclass(frozen=True)
class TransactionReceipt:
    tx_id: str
    confirmed_round: int
    logs: list[bytes] = field(default_factory=list, repr=False)


@dataclass(frozen=True)
class SubmissionResult:
    artifact_id: int
    initial_token_id: int
    content_id: str
    uploader: str
    tx_id: str
    confirmed_round: int


@dataclass(frozen=True)
class ApprovalResult:
    artifact_id: int
    verified_token_id: int
    tx_id: str
    confirmed_round: int


@dataclass(frozen=True)
class RejectionResult:
    artifact_id: int
    reason: str
    tx_id: str
    confirmed_round: int
