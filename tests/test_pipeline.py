"""End-to-end scenarios across submission, upload and review."""

import pytest

from veritas_artifacts.auth import sign_intent
from veritas_artifacts.errors import (
    AuthenticationError,
    DuplicateContentError,
    InvalidInputError,
    StoreUnavailableError,
    TransportError,
)
from veritas_artifacts.models import ArtifactPayload, ArtifactStatus, SubmissionIntent
from veritas_artifacts.pipeline import FlowStep, SubmissionFlow
from veritas_artifacts.review import ReviewOrchestrator
from veritas_artifacts.submission import SubmissionOrchestrator
from veritas_artifacts.uploader import ContentUploader

from conftest import FEE, Wallet, png_bytes


@pytest.fixture
def submissions(ledger) -> SubmissionOrchestrator:
    return SubmissionOrchestrator(ledger)


@pytest.fixture
def review(ledger) -> ReviewOrchestrator:
    return ReviewOrchestrator(ledger)


@pytest.fixture
def flow(store, submissions) -> SubmissionFlow:
    return SubmissionFlow(ContentUploader(store), submissions)


def signed(flow: SubmissionFlow, wallet: Wallet) -> SubmissionIntent:
    message = flow.intent_message()
    return SubmissionIntent(message=message, signature=sign_intent(message, wallet.private_key), address=wallet.address)


def photo() -> ArtifactPayload:
    return ArtifactPayload(filename="photo.png", content_type="image/png", data=png_bytes())


async def test_submit_then_approve(submissions, review, uploader_session, manager_session) -> None:
    submitted = await submissions.submit(uploader_session, "Qm111", FEE)
    assert (submitted.artifact_id, submitted.initial_token_id) == (1, 1)

    approved = await review.approve(manager_session, 1)
    assert approved.verified_token_id == 2
    assert (await review.get_artifact(1)).status is ArtifactStatus.APPROVED


async def test_submit_then_reject(submissions, review, uploader_session, manager_session) -> None:
    await submissions.submit(uploader_session, "Qm111", FEE)
    submitted = await submissions.submit(uploader_session, "Qm222", FEE)
    assert submitted.artifact_id == 2

    await review.reject(manager_session, 2, "spam")
    artifact = await review.get_artifact(2)
    assert artifact.status is ArtifactStatus.REJECTED
    assert artifact.rejection_reason == "spam"
    assert artifact.verified_token_id == 0


async def test_resubmitting_leaves_total_unchanged(submissions, review, uploader_session) -> None:
    await submissions.submit(uploader_session, "Qm111", FEE)
    total = await review.total_count()

    with pytest.raises(DuplicateContentError):
        await submissions.submit(uploader_session, "Qm111", FEE)
    assert await review.total_count() == total


async def test_empty_content_id_charges_no_fee(submissions, ledger, uploader_session) -> None:
    with pytest.raises(InvalidInputError):
        await submissions.submit(uploader_session, "", FEE)
    assert ledger.paid == []


async def test_flow_verifies_uploads_and_registers(flow, ledger, store, uploader_wallet) -> None:
    flow.select_file(photo())
    flow.attach_signature(signed(flow, uploader_wallet))

    result = await flow.run(uploader_wallet.session())

    assert flow.step is FlowStep.DONE
    assert result.artifact_id == 1
    content_id, metadata = store.stored[0]
    assert result.content_id == content_id
    assert metadata["uploader"] == uploader_wallet.address
    assert "phash" in metadata
    assert ledger.paid == [FEE]
    assert flow.intent is None


async def test_flow_failure_keeps_file_and_drops_signature(flow, store, ledger, uploader_wallet) -> None:
    payload = photo()
    flow.select_file(payload)
    flow.attach_signature(signed(flow, uploader_wallet))
    store.fail = True

    with pytest.raises(StoreUnavailableError):
        await flow.run(uploader_wallet.session())

    assert flow.step is FlowStep.IDLE
    assert flow.payload is payload
    assert flow.intent is None
    assert isinstance(flow.last_error, StoreUnavailableError)
    assert ledger.calls == []

    # Restarting without re-signing is refused; with a fresh signature it succeeds.
    store.fail = False
    with pytest.raises(AuthenticationError):
        await flow.run(uploader_wallet.session())
    flow.attach_signature(signed(flow, uploader_wallet))
    result = await flow.run(uploader_wallet.session())
    assert result.artifact_id == 1


async def test_flow_rejects_signature_from_other_wallet(flow, store, uploader_wallet, manager_wallet) -> None:
    flow.select_file(photo())
    flow.attach_signature(signed(flow, manager_wallet))

    with pytest.raises(AuthenticationError):
        await flow.run(uploader_wallet.session())
    assert store.stored == []


async def test_flow_duplicate_file_fails_at_ledger(flow, store, uploader_wallet) -> None:
    session = uploader_wallet.session()
    flow.select_file(photo())
    flow.attach_signature(signed(flow, uploader_wallet))
    await flow.run(session)

    flow.select_file(photo())
    flow.attach_signature(signed(flow, uploader_wallet))
    with pytest.raises(DuplicateContentError):
        await flow.run(session)

    # Identical bytes reached the store twice; only the ledger refused them.
    assert len(store.stored) == 2
    assert flow.step is FlowStep.IDLE


async def test_flow_requires_selected_file(flow, uploader_wallet) -> None:
    with pytest.raises(InvalidInputError):
        await flow.run(uploader_wallet.session())


@pytest.mark.parametrize(
    "failure",
    [
        TransportError("submit_artifact outcome unknown: not confirmed within 4 rounds (tx TX1)"),
        RuntimeError("connection reset during confirmation"),
    ],
)
async def test_flow_returns_to_start_on_any_ledger_failure(flow, ledger, uploader_wallet, failure) -> None:
    payload = photo()
    flow.select_file(payload)
    flow.attach_signature(signed(flow, uploader_wallet))
    ledger.fail_with = failure

    with pytest.raises(type(failure)):
        await flow.run(uploader_wallet.session())

    assert flow.step is FlowStep.IDLE
    assert flow.last_error is failure
    assert flow.payload is payload
    assert flow.intent is None
