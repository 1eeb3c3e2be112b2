"""
Walk the submission and review pipeline against a deployed registry on Testnet.
Usage:
    UPLOADER_MNEMONIC="word1 ..." MANAGER_MNEMONIC="word1 ..." VERITAS_APP_ID=123 \
        python3 scripts/smoke_testnet.py

The manager account must already be registered as a manager in the app.
Every step pays the real upload fee from the uploader account.
"""
import asyncio
import os
import sys
import time

from algosdk import account, mnemonic
from algosdk.atomic_transaction_composer import AccountTransactionSigner

from veritas_artifacts.config import Settings
from veritas_artifacts.errors import VeritasError
from veritas_artifacts.ledger import AlgorandLedger
from veritas_artifacts.logging_setup import configure_logging
from veritas_artifacts.review import ReviewOrchestrator
from veritas_artifacts.session import open_session
from veritas_artifacts.submission import SubmissionOrchestrator


def load_signer(env_name: str) -> tuple[str, AccountTransactionSigner]:
    raw_mnemonic = os.environ.get(env_name, "").strip()
    if not raw_mnemonic:
        print(f"ERROR: Set {env_name} env var to a 25-word mnemonic.")
        sys.exit(1)
    private_key = mnemonic.to_private_key(raw_mnemonic)
    return account.address_from_private_key(private_key), AccountTransactionSigner(private_key)


async def expect_failure(label: str, coro) -> None:
    try:
        await coro
    except VeritasError as e:
        print(f"  ✅ {label}: {type(e).__name__} - {e}")
        return
    print(f"  ❌ {label}: call succeeded")
    raise SystemExit(1)


async def run() -> None:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    if not settings.app_id:
        print("ERROR: Set VERITAS_APP_ID to the deployed registry's App ID.")
        sys.exit(1)

    ledger = AlgorandLedger.from_settings(settings)
    submissions = SubmissionOrchestrator(ledger)
    review = ReviewOrchestrator(ledger)

    uploader_address, uploader_signer = load_signer("UPLOADER_MNEMONIC")
    manager_address, manager_signer = load_signer("MANAGER_MNEMONIC")
    uploader = await open_session(ledger, uploader_address, uploader_signer)
    manager = await open_session(ledger, manager_address, manager_signer)

    print(f"App ID   : {settings.app_id}")
    print(f"Uploader : {uploader.address}")
    print(f"Manager  : {manager.address} (manager={manager.is_manager})")

    # ── Step 1: Read registry state ──────────────────────────────────────────
    fee = await submissions.current_fee()
    total_before = await review.total_count()
    balance_before = await review.token_balance(uploader.address)
    print(f"\nStep 1 - fee {fee / 1_000_000} ALGO, {total_before} artifact(s) registered")
    print(f"  Treasury: {await review.treasury()}")
    print(f"  Uploader tokens: {balance_before}")

    # ── Step 2: Submit two artifacts ─────────────────────────────────────────
    stamp = int(time.time())
    keep_id = f"QmSmokeKeep{stamp}"
    spam_id = f"QmSmokeSpam{stamp}"
    kept = await submissions.submit(uploader, keep_id, fee)
    spam = await submissions.submit(uploader, spam_id, fee)
    print(f"\nStep 2 - artifact {kept.artifact_id} (token {kept.initial_token_id}), "
          f"artifact {spam.artifact_id} (token {spam.initial_token_id})")

    # ── Step 3: Approve one, reject the other ────────────────────────────────
    approved = await review.approve(manager, kept.artifact_id)
    rejected = await review.reject(manager, spam.artifact_id, "Not historically relevant - spam content")
    print(f"\nStep 3 - verified token {approved.verified_token_id}; rejected with {rejected.reason!r}")

    for artifact in (await review.get_artifact(kept.artifact_id), await review.get_artifact(spam.artifact_id)):
        print(f"  Artifact {artifact.id}: {artifact.content_id} - {artifact.status.label}"
              f" (verified token {artifact.verified_token_id}, reason {artifact.rejection_reason!r})")
        for problem in await review.ownership_violations(artifact.id):
            print(f"  ❌ {problem}")
            raise SystemExit(1)
    print(f"  Verified token owner: {await review.token_owner(approved.verified_token_id)}")

    # ── Step 4: Guard rails ──────────────────────────────────────────────────
    print("\nStep 4 - guard rails")
    await expect_failure("Duplicate content id", submissions.submit(uploader, keep_id, fee))
    await expect_failure("Insufficient fee", submissions.submit(uploader, f"QmSmokeCheap{stamp}", fee // 10))
    await expect_failure("Non-manager approval", review.approve(uploader, spam.artifact_id))
    await expect_failure("Double approval", review.approve(manager, kept.artifact_id))
    await expect_failure("Double rejection", review.reject(manager, spam.artifact_id, "Another reason"))
    await expect_failure("Empty content id", submissions.submit(uploader, "", fee))

    total_after = await review.total_count()
    print()
    print("=" * 55)
    print(f"  ✅  Smoke run complete: {total_after - total_before} new artifact(s)")
    print(f"      Pending : {len(await ledger.get_pending())}")
    print(f"      Approved: {len(await ledger.get_approved())}")
    print(f"      Rejected: {len(await ledger.get_rejected())}")
    print(f"      Uploader tokens: {await review.token_balance(uploader.address) - balance_before} new (expect 3)")
    print("=" * 55)


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
