import logging

from veritas_artifacts.errors import InvalidInputError
from veritas_artifacts.events import ArtifactCreated, find_event
from veritas_artifacts.ledger import Ledger
from veritas_artifacts.models import Session, SubmissionResult

logger = logging.getLogger(__name__)


class SubmissionOrchestrator:
    """Pays the upload fee and registers a content identifier on the ledger."""

    def __init__(self, ledger: Ledger) -> None:
        self.ledger = ledger

    async def current_fee(self) -> int:
        return await self.ledger.get_fee()

    async def submit(self, session: Session, content_id: str, fee: int) -> SubmissionResult:
        """Register ``content_id`` paying ``fee`` microAlgos.

        ``fee`` should be the ledger's currently published fee. Underpayment,
        duplicates and transport failures come back from the ledger as
        their own error types. Duplicates are not pre-checked here.
        """
        if not content_id or not content_id.strip():
            raise InvalidInputError("Content identifier must not be empty")
        if fee < 0:
            raise InvalidInputError(f"Fee must not be negative, got {fee}")

        logger.info("[SUBMIT] %s... registering %s (fee=%d)", session.address[:8], content_id, fee)
        receipt = await self.ledger.submit(session.address, session.signer, content_id, fee)

        event = find_event(receipt.logs, ArtifactCreated, tx_id=receipt.tx_id)
        logger.info(
            "[SUBMIT] Artifact %d created, initial token %d (tx %s)",
            event.artifact_id,
            event.initial_token_id,
            receipt.tx_id,
        )
        return SubmissionResult(
            artifact_id=event.artifact_id,
            initial_token_id=event.initial_token_id,
            content_id=event.content_id,
            uploader=event.uploader,
            tx_id=receipt.tx_id,
            confirmed_round=receipt.confirmed_round,
        )
