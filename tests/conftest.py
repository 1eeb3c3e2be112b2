"""Shared fixtures: an in-memory registry, a stub content store, wallets."""

from __future__ import annotations

import hashlib
import io
from dataclasses import replace
from datetime import datetime, timezone

import pytest
from algosdk import account
from algosdk.atomic_transaction_composer import AccountTransactionSigner
from PIL import Image

from veritas_artifacts.errors import (
    ArtifactNotFoundError,
    DuplicateContentError,
    InsufficientFeeError,
    InvalidInputError,
    InvalidStateError,
    StoreUnavailableError,
    UnauthorizedError,
)
from veritas_artifacts.events import ArtifactApproved, ArtifactCreated, ArtifactRejected, encode_event
from veritas_artifacts.ledger import Ledger
from veritas_artifacts.models import Artifact, ArtifactStatus, Session, StoredContent, TransactionReceipt

FEE = 1_000_000
ABI_RETURN_PREFIX = bytes.fromhex("151f7c75")
UPLOADED_AT = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


class FakeLedger(Ledger):
    """Registry double enforcing the same rules as the on-chain app.

    Results are only reported through ARC-28 encoded logs, mixed with an
    ABI return log, so callers have to scan like they would on-chain.
    """

    def __init__(self, fee: int = FEE, managers: tuple[str, ...] = (), treasury_address: str = "") -> None:
        self.fee = fee
        self.managers = set(managers)
        self.treasury_address = treasury_address
        self.token_owners: dict[int, str] = {}
        self.artifacts: dict[int, Artifact] = {}
        self.content_ids: set[str] = set()
        self.next_token_id = 1
        self.round = 1000
        self.calls: list[str] = []
        self.drop_events = False
        self.fail_with: Exception | None = None
        self.paid: list[int] = []

    def _receipt(self, logs: list[bytes]) -> TransactionReceipt:
        self.round += 1
        if self.drop_events:
            logs = [entry for entry in logs if entry.startswith(ABI_RETURN_PREFIX)]
        return TransactionReceipt(tx_id=f"TX{self.round}", confirmed_round=self.round, logs=logs)

    def _mint(self, owner: str) -> int:
        token_id = self.next_token_id
        self.next_token_id += 1
        self.token_owners[token_id] = owner
        return token_id

    def _require(self, artifact_id: int) -> Artifact:
        if artifact_id not in self.artifacts:
            raise ArtifactNotFoundError(f"unknown artifact {artifact_id}")
        return self.artifacts[artifact_id]

    async def submit(self, sender, signer, content_id, fee):
        self.calls.append("submit")
        if self.fail_with is not None:
            raise self.fail_with
        if not content_id:
            raise InvalidInputError("empty content id")
        if fee < self.fee:
            raise InsufficientFeeError("insufficient fee")
        if content_id in self.content_ids:
            raise DuplicateContentError("content id already registered")

        self.paid.append(fee)
        artifact_id = len(self.artifacts) + 1
        token_id = self._mint(sender)
        self.content_ids.add(content_id)
        self.artifacts[artifact_id] = Artifact(
            id=artifact_id,
            content_id=content_id,
            uploader=sender,
            initial_token_id=token_id,
            verified_token_id=0,
            status=ArtifactStatus.PENDING,
            uploaded_at=UPLOADED_AT,
        )
        event = ArtifactCreated(artifact_id, sender, content_id, token_id)
        return self._receipt([encode_event(event), ABI_RETURN_PREFIX + artifact_id.to_bytes(8, "big")])

    async def approve(self, sender, signer, artifact_id):
        self.calls.append("approve")
        if sender not in self.managers:
            raise UnauthorizedError("not a manager")
        artifact = self._require(artifact_id)
        if not artifact.is_pending:
            raise InvalidStateError("artifact not pending")
        token_id = self._mint(artifact.uploader)
        self.artifacts[artifact_id] = replace(artifact, status=ArtifactStatus.APPROVED, verified_token_id=token_id)
        return self._receipt([
            ABI_RETURN_PREFIX + token_id.to_bytes(8, "big"),
            encode_event(ArtifactApproved(artifact_id, token_id)),
        ])

    async def reject(self, sender, signer, artifact_id, reason):
        self.calls.append("reject")
        if sender not in self.managers:
            raise UnauthorizedError("not a manager")
        artifact = self._require(artifact_id)
        if not artifact.is_pending:
            raise InvalidStateError("artifact not pending")
        self.artifacts[artifact_id] = replace(artifact, status=ArtifactStatus.REJECTED, rejection_reason=reason)
        return self._receipt([encode_event(ArtifactRejected(artifact_id, reason))])

    async def get_artifact(self, artifact_id):
        self.calls.append("get_artifact")
        return self._require(artifact_id)

    def _ids(self, status: ArtifactStatus) -> list[int]:
        return [i for i, a in self.artifacts.items() if a.status is status]

    async def get_pending(self):
        return self._ids(ArtifactStatus.PENDING)

    async def get_approved(self):
        return self._ids(ArtifactStatus.APPROVED)

    async def get_rejected(self):
        return self._ids(ArtifactStatus.REJECTED)

    async def get_total_count(self):
        return len(self.artifacts)

    async def is_manager(self, address):
        self.calls.append("is_manager")
        return address in self.managers

    async def get_fee(self):
        self.calls.append("get_fee")
        return self.fee

    async def token_owner(self, token_id):
        if token_id not in self.token_owners:
            raise InvalidInputError(f"unknown token {token_id}")
        return self.token_owners[token_id]

    async def token_balance(self, address):
        return sum(1 for owner in self.token_owners.values() if owner == address)

    async def treasury(self):
        return self.treasury_address


class StubContentStore:
    """Content-addressed store double; identical bytes give identical ids."""

    def __init__(self) -> None:
        self.stored: list[tuple[str, dict]] = []
        self.fail = False

    async def store(self, payload, metadata):
        if self.fail:
            raise StoreUnavailableError("store is down")
        content_id = "Qm" + hashlib.sha256(payload.data).hexdigest()[:20]
        self.stored.append((content_id, metadata))
        return StoredContent(content_id=content_id, retrieval_url=f"https://gateway.test/ipfs/{content_id}")


class Wallet:
    def __init__(self) -> None:
        self.private_key, self.address = account.generate_account()
        self.signer = AccountTransactionSigner(self.private_key)

    def session(self, is_manager: bool = False) -> Session:
        return Session(address=self.address, signer=self.signer, is_manager=is_manager)


def png_bytes(color: tuple[int, int, int] = (200, 30, 30), size: tuple[int, int] = (32, 32)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def uploader_wallet() -> Wallet:
    return Wallet()


@pytest.fixture
def manager_wallet() -> Wallet:
    return Wallet()


@pytest.fixture
def ledger(manager_wallet: Wallet) -> FakeLedger:
    return FakeLedger(managers=(manager_wallet.address,), treasury_address=manager_wallet.address)


@pytest.fixture
def store() -> StubContentStore:
    return StubContentStore()


@pytest.fixture
def uploader_session(uploader_wallet: Wallet) -> Session:
    return uploader_wallet.session()


@pytest.fixture
def manager_session(manager_wallet: Wallet) -> Session:
    return manager_wallet.session(is_manager=True)
