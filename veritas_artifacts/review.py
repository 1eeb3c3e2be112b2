"""Review orchestrator: manager-gated approve/reject plus public reads.

Per artifact the lifecycle is ``Pending -> Approved`` or
``Pending -> Rejected``, both terminal. The ledger enforces this; the
orchestrator mirrors the role and state checks so that obviously invalid
calls never leave the client.
"""

import asyncio
import logging

from veritas_artifacts.errors import InvalidInputError, InvalidStateError, UnauthorizedError
from veritas_artifacts.events import ArtifactApproved, ArtifactRejected, find_event
from veritas_artifacts.ledger import Ledger
from veritas_artifacts.models import ApprovalResult, Artifact, ArtifactStatus, RejectionResult, Session

logger = logging.getLogger(__name__)


def _check_artifact_id(artifact_id: int) -> None:
    if artifact_id <= 0:
        raise InvalidInputError(f"Artifact id must be positive, got {artifact_id}")


class ReviewOrchestrator:
    def __init__(self, ledger: Ledger) -> None:
        self.ledger = ledger

    # ── Gated writes ──────────────────────────────────────────────────────────
    async def approve(self, session: Session, artifact_id: int) -> ApprovalResult:
        _check_artifact_id(artifact_id)
        await self._ensure_reviewable(session, artifact_id, "approve")

        receipt = await self.ledger.approve(session.address, session.signer, artifact_id)
        event = find_event(receipt.logs, ArtifactApproved, tx_id=receipt.tx_id)
        logger.info("[REVIEW] Artifact %d approved, verified token %d", artifact_id, event.verified_token_id)
        return ApprovalResult(
            artifact_id=event.artifact_id,
            verified_token_id=event.verified_token_id,
            tx_id=receipt.tx_id,
            confirmed_round=receipt.confirmed_round,
        )

    async def reject(self, session: Session, artifact_id: int, reason: str) -> RejectionResult:
        if not reason or not reason.strip():
            raise InvalidInputError("Rejection reason must not be empty")
        _check_artifact_id(artifact_id)
        await self._ensure_reviewable(session, artifact_id, "reject")

        receipt = await self.ledger.reject(session.address, session.signer, artifact_id, reason)
        event = find_event(receipt.logs, ArtifactRejected, tx_id=receipt.tx_id)
        logger.info("[REVIEW] Artifact %d rejected: %s", artifact_id, event.reason)
        return RejectionResult(
            artifact_id=event.artifact_id,
            reason=event.reason,
            tx_id=receipt.tx_id,
            confirmed_round=receipt.confirmed_round,
        )

    async def _ensure_reviewable(self, session: Session, artifact_id: int, action: str) -> None:
        if not session.is_manager:
            raise UnauthorizedError(f"{session.address} is not a manager and cannot {action} artifacts")
        artifact = await self.ledger.get_artifact(artifact_id)
        if not artifact.is_pending:
            raise InvalidStateError(
                f"Cannot {action} artifact {artifact_id}: status is {artifact.status.label}"
            )

    # ── Public reads ──────────────────────────────────────────────────────────
    async def get_artifact(self, artifact_id: int) -> Artifact:
        _check_artifact_id(artifact_id)
        artifact = await self.ledger.get_artifact(artifact_id)
        for problem in artifact.consistency_violations():
            logger.warning("[REVIEW] Artifact %d is inconsistent: %s", artifact_id, problem)
        return artifact

    async def total_count(self) -> int:
        return await self.ledger.get_total_count()

    async def list_pending(self) -> list[Artifact]:
        return await self._load(await self.ledger.get_pending())

    async def list_approved(self) -> list[Artifact]:
        return await self._load(await self.ledger.get_approved())

    async def list_rejected(self) -> list[Artifact]:
        return await self._load(await self.ledger.get_rejected())

    async def list_all(self) -> list[Artifact]:
        total = await self.ledger.get_total_count()
        return await self._load(range(1, total + 1))

    async def list_by_status(self, status: ArtifactStatus | None) -> list[Artifact]:
        if status is None:
            return await self.list_all()
        loaders = {
            ArtifactStatus.PENDING: self.list_pending,
            ArtifactStatus.APPROVED: self.list_approved,
            ArtifactStatus.REJECTED: self.list_rejected,
        }
        return await loaders[status]()

    # ── Ownership tokens ──────────────────────────────────────────────────────
    async def token_owner(self, token_id: int) -> str:
        if token_id <= 0:
            raise InvalidInputError(f"Token id must be positive, got {token_id}")
        return await self.ledger.token_owner(token_id)

    async def token_balance(self, address: str) -> int:
        return await self.ledger.token_balance(address)

    async def treasury(self) -> str:
        return await self.ledger.treasury()

    async def ownership_violations(self, artifact_id: int) -> list[str]:
        """Tokens minted for an artifact that its uploader does not hold."""
        artifact = await self.get_artifact(artifact_id)
        token_ids = [artifact.initial_token_id]
        if artifact.status is ArtifactStatus.APPROVED:
            token_ids.append(artifact.verified_token_id)
        owners = await asyncio.gather(*(self.ledger.token_owner(t) for t in token_ids))
        return [
            f"token {token_id} is held by {owner}, not uploader {artifact.uploader}"
            for token_id, owner in zip(token_ids, owners)
            if owner != artifact.uploader
        ]

    async def _load(self, artifact_ids) -> list[Artifact]:
        # One lookup per id; the registry has no batch read.
        return list(await asyncio.gather(*(self.get_artifact(i) for i in artifact_ids)))
