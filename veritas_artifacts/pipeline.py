"""End-to-end submission flow: verify, upload, pay, register.

A failed flow returns to its first step. The selected file survives, the
signature does not: every restart must sign a fresh intent message.
"""

import enum
import logging

from veritas_artifacts.auth import build_intent_message, verify_intent
from veritas_artifacts.errors import AuthenticationError, InvalidInputError
from veritas_artifacts.models import ArtifactPayload, Session, StoredContent, SubmissionIntent, SubmissionResult
from veritas_artifacts.submission import SubmissionOrchestrator
from veritas_artifacts.uploader import ContentUploader

logger = logging.getLogger(__name__)


class FlowStep(str, enum.Enum):
    IDLE = "idle"
    VERIFYING = "verifying"
    UPLOADING = "uploading"
    REGISTERING = "registering"
    DONE = "done"


class SubmissionFlow:
    def __init__(self, uploader: ContentUploader, submissions: SubmissionOrchestrator) -> None:
        self.uploader = uploader
        self.submissions = submissions
        self.step = FlowStep.IDLE
        self.payload: ArtifactPayload | None = None
        self.intent: SubmissionIntent | None = None
        self.stored: StoredContent | None = None
        self.last_error: Exception | None = None

    def select_file(self, payload: ArtifactPayload) -> None:
        self.payload = payload

    def intent_message(self) -> str:
        """The message the wallet must sign for the next attempt."""
        return build_intent_message()

    def attach_signature(self, intent: SubmissionIntent) -> None:
        self.intent = intent

    async def run(self, session: Session) -> SubmissionResult:
        if self.payload is None:
            raise InvalidInputError("No file selected")
        if self.intent is None:
            raise AuthenticationError("No signed intent attached; sign a fresh intent message first")

        intent, self.intent = self.intent, None
        self.stored = None
        self.last_error = None
        try:
            self.step = FlowStep.VERIFYING
            signer_address = verify_intent(intent)
            if signer_address != session.address:
                raise AuthenticationError("Intent was signed by a different wallet than the session's")

            self.step = FlowStep.UPLOADING
            self.stored = await self.uploader.upload(self.payload, signer_address)

            self.step = FlowStep.REGISTERING
            fee = await self.submissions.current_fee()
            result = await self.submissions.submit(session, self.stored.content_id, fee)
        except Exception as exc:
            logger.warning("[FLOW] Submission failed during %s: %s", self.step.value, exc)
            self.last_error = exc
            self.step = FlowStep.IDLE
            raise

        self.step = FlowStep.DONE
        self.payload = None
        return result
