"""Ledger port and its Algorand implementation.

The pipeline only calls the registry's documented ABI methods and reads its
events. Fee accounting, role storage, duplicate checks and token issuance
all live in the application; this module translates its rejections into
the pipeline's error taxonomy.
"""

from __future__ import annotations

import abc
import asyncio
import base64
import copy
import json
import logging
import re
from pathlib import Path

from algosdk import abi, logic, transaction
from algosdk.atomic_transaction_composer import (
    AtomicTransactionComposer,
    EmptySigner,
    TransactionSigner,
    TransactionWithSigner,
)
from algosdk.error import AlgodHTTPError, ConfirmationTimeoutError, TransactionRejectedError
from algosdk.v2client import algod
from algosdk.v2client.models import SimulateRequest

from veritas_artifacts.errors import (
    ArtifactNotFoundError,
    DuplicateContentError,
    InsufficientFeeError,
    InvalidInputError,
    InvalidStateError,
    TransportError,
    UnauthorizedError,
    VeritasError,
)
from veritas_artifacts.models import Artifact, TransactionReceipt

logger = logging.getLogger(__name__)


class Ledger(abc.ABC):
    """Operations the pipeline consumes from the on-chain registry."""

    @abc.abstractmethod
    async def submit(self, sender: str, signer: TransactionSigner, content_id: str, fee: int) -> TransactionReceipt:
        ...

    @abc.abstractmethod
    async def approve(self, sender: str, signer: TransactionSigner, artifact_id: int) -> TransactionReceipt:
        ...

    @abc.abstractmethod
    async def reject(self, sender: str, signer: TransactionSigner, artifact_id: int, reason: str) -> TransactionReceipt:
        ...

    @abc.abstractmethod
    async def get_artifact(self, artifact_id: int) -> Artifact:
        ...

    @abc.abstractmethod
    async def get_pending(self) -> list[int]:
        ...

    @abc.abstractmethod
    async def get_approved(self) -> list[int]:
        ...

    @abc.abstractmethod
    async def get_rejected(self) -> list[int]:
        ...

    @abc.abstractmethod
    async def get_total_count(self) -> int:
        ...

    @abc.abstractmethod
    async def is_manager(self, address: str) -> bool:
        ...

    @abc.abstractmethod
    async def get_fee(self) -> int:
        ...

    @abc.abstractmethod
    async def token_owner(self, token_id: int) -> str:
        ...

    @abc.abstractmethod
    async def token_balance(self, address: str) -> int:
        ...

    @abc.abstractmethod
    async def treasury(self) -> str:
        ...


# ── Registry ABI ──────────────────────────────────────────────────────────────
SUBMIT = abi.Method.from_signature("submit_artifact(pay,string)uint64")
APPROVE = abi.Method.from_signature("approve_artifact(uint64)uint64")
REJECT = abi.Method.from_signature("reject_artifact(uint64,string)void")
GET_ARTIFACT = abi.Method.from_signature(
    "get_artifact(uint64)(string,address,uint64,uint64,uint8,uint64,string)"
)
GET_PENDING = abi.Method.from_signature("get_pending_artifacts()uint64[]")
GET_APPROVED = abi.Method.from_signature("get_approved_artifacts()uint64[]")
GET_REJECTED = abi.Method.from_signature("get_rejected_artifacts()uint64[]")
GET_TOTAL = abi.Method.from_signature("get_total_artifacts()uint64")
IS_MANAGER = abi.Method.from_signature("is_manager(address)bool")
UPLOAD_FEE = abi.Method.from_signature("upload_fee()uint64")
OWNER_OF = abi.Method.from_signature("owner_of(uint64)address")
BALANCE_OF = abi.Method.from_signature("balance_of(address)uint64")
TREASURY = abi.Method.from_signature("treasury()address")

# Box keys: b"art_" + itob(id), b"cid_" + arc4(content id), plus one box per status list.
ARTIFACT_BOX_PREFIX = b"art_"
CONTENT_BOX_PREFIX = b"cid_"
PENDING_BOX = b"pending"
APPROVED_BOX = b"approved"
REJECTED_BOX = b"rejected"

# Outer fee covers the call itself plus the inner mint and transfer.
MINT_FEE_MULTIPLIER = 3

# Foreign references (boxes included) one app call may declare.
MAX_CALL_REFERENCES = 8

# Assertion messages in the registry, matched against algod rejection text.
ERROR_MARKERS: list[tuple[str, type[VeritasError]]] = [
    ("already registered", DuplicateContentError),
    ("insufficient fee", InsufficientFeeError),
    ("not a manager", UnauthorizedError),
    ("not pending", InvalidStateError),
    ("unknown artifact", ArtifactNotFoundError),
    ("empty content id", InvalidInputError),
    ("empty reason", InvalidInputError),
    ("unknown token", InvalidInputError),
]

_PC_RE = re.compile(r"pc=(\d+)")


def artifact_box(artifact_id: int) -> bytes:
    return ARTIFACT_BOX_PREFIX + artifact_id.to_bytes(8, "big")


def content_box(content_id: str) -> bytes:
    return CONTENT_BOX_PREFIX + abi.StringType().encode(content_id)


def reserve_artifact_boxes(known: list[bytes], touched: list[bytes]) -> list[bytes]:
    """Declare the boxes a dry run touched, then the artifact ids after it.

    Every submission that lands between the dry run and the real call
    shifts the new artifact's id by one. Free reference slots go to those
    following ids.
    """
    boxes = list(dict.fromkeys([*known, *touched]))
    ids = [
        int.from_bytes(name[len(ARTIFACT_BOX_PREFIX):], "big")
        for name in boxes
        if name.startswith(ARTIFACT_BOX_PREFIX)
    ]
    if not ids:
        return boxes
    next_id = max(ids) + 1
    while len(boxes) < MAX_CALL_REFERENCES:
        boxes.append(artifact_box(next_id))
        next_id += 1
    return boxes


def load_arc56_error_map(path: Path) -> dict[int, str]:
    """Map program counters to assertion messages from an ARC-56 app spec."""
    arc56 = json.loads(Path(path).read_text())
    entries = arc56.get("sourceInfo", {}).get("approval", {}).get("sourceInfo", [])
    error_map: dict[int, str] = {}
    for entry in entries:
        message = entry.get("errorMessage")
        if not message:
            continue
        for pc in entry.get("pc", []):
            error_map[int(pc)] = message
    return error_map


def translate_rejection(text: str, error_map: dict[int, str] | None = None) -> VeritasError:
    """Turn an algod rejection into the matching pipeline error."""
    message = text
    match = _PC_RE.search(text)
    if match and error_map:
        message = error_map.get(int(match.group(1)), text)
    lowered = message.lower()
    for marker, error_type in ERROR_MARKERS:
        if marker in lowered:
            return error_type(message)
    return TransportError(message)


class AlgorandLedger(Ledger):
    """Registry client over algod.

    Writes go through an ``AtomicTransactionComposer`` and wait for
    confirmation; reads are simulated with empty signatures so they cost
    nothing and need no wallet.
    """

    def __init__(
        self,
        client: algod.AlgodClient,
        app_id: int,
        wait_rounds: int = 4,
        reader_address: str | None = None,
        error_map: dict[int, str] | None = None,
    ) -> None:
        self.client = client
        self.app_id = app_id
        self.app_address = logic.get_application_address(app_id)
        self.wait_rounds = wait_rounds
        self.reader_address = reader_address or self.app_address
        self.error_map = error_map or {}

    @classmethod
    def from_settings(cls, settings) -> AlgorandLedger:
        client = algod.AlgodClient(settings.algod_token, settings.algod_url)
        error_map = load_arc56_error_map(settings.arc56_path) if settings.arc56_path else None
        return cls(
            client,
            settings.app_id,
            wait_rounds=settings.wait_rounds,
            reader_address=settings.reader_address or None,
            error_map=error_map,
        )

    # ── Writes ────────────────────────────────────────────────────────────────
    async def submit(self, sender, signer, content_id, fee):
        return await asyncio.to_thread(self._submit, sender, signer, content_id, fee)

    async def approve(self, sender, signer, artifact_id):
        return await asyncio.to_thread(
            self._call,
            APPROVE,
            sender,
            signer,
            [artifact_id],
            [artifact_box(artifact_id), PENDING_BOX, APPROVED_BOX],
            True,
        )

    async def reject(self, sender, signer, artifact_id, reason):
        return await asyncio.to_thread(
            self._call,
            REJECT,
            sender,
            signer,
            [artifact_id, reason],
            [artifact_box(artifact_id), PENDING_BOX, REJECTED_BOX],
            False,
        )

    def _submit(self, sender, signer, content_id, fee) -> TransactionReceipt:
        sp = self._params()

        def compose(group_signer: TransactionSigner, boxes: list[bytes]) -> AtomicTransactionComposer:
            payment = TransactionWithSigner(
                transaction.PaymentTxn(sender=sender, sp=sp, receiver=self.app_address, amt=fee),
                group_signer,
            )
            return self._compose(SUBMIT, sender, group_signer, [payment, content_id], boxes, sp, True)

        known = [content_box(content_id), PENDING_BOX]
        # The artifact id is assigned on-chain, so a dry run of the same group names its box.
        touched = self._touched_boxes(compose(EmptySigner(), known))
        return self._execute(SUBMIT, sender, compose(signer, reserve_artifact_boxes(known, touched)))

    def _call(self, method, sender, signer, args, boxes, mints) -> TransactionReceipt:
        atc = self._compose(method, sender, signer, args, boxes, self._params(), mints)
        return self._execute(method, sender, atc)

    def _compose(self, method, sender, signer, args, boxes, sp, mints) -> AtomicTransactionComposer:
        if mints:
            sp = copy.copy(sp)
            sp.flat_fee = True
            sp.fee = sp.min_fee * MINT_FEE_MULTIPLIER

        atc = AtomicTransactionComposer()
        atc.add_method_call(
            app_id=self.app_id,
            method=method,
            sender=sender,
            sp=sp,
            signer=signer,
            method_args=args,
            boxes=[(0, name) for name in boxes],
        )
        return atc

    def _execute(self, method, sender, atc: AtomicTransactionComposer) -> TransactionReceipt:
        logger.info("[CHAIN] Sending %s from %s...", method.name, sender[:8])
        try:
            response = atc.execute(self.client, self.wait_rounds)
        except (AlgodHTTPError, TransactionRejectedError) as exc:
            raise translate_rejection(str(exc), self.error_map) from exc
        except ConfirmationTimeoutError as exc:
            tx_ids = ", ".join(atc.tx_ids) or "unknown"
            raise TransportError(
                f"{method.name} outcome unknown: not confirmed within {self.wait_rounds} rounds (tx {tx_ids})"
            ) from exc
        except OSError as exc:
            raise TransportError(f"algod unreachable: {exc}") from exc

        result = response.abi_results[0]
        logs = [base64.b64decode(entry) for entry in result.tx_info.get("logs", [])]
        logger.info(
            "[CHAIN] %s confirmed in round %s (tx %s)",
            method.name,
            response.confirmed_round,
            result.tx_id,
        )
        return TransactionReceipt(tx_id=result.tx_id, confirmed_round=response.confirmed_round, logs=logs)

    def _params(self):
        try:
            return self.client.suggested_params()
        except AlgodHTTPError as exc:
            raise TransportError(f"Could not fetch suggested params: {exc}") from exc
        except OSError as exc:
            raise TransportError(f"algod unreachable: {exc}") from exc

    # ── Reads ─────────────────────────────────────────────────────────────────
    async def get_artifact(self, artifact_id):
        values = await asyncio.to_thread(self._read, GET_ARTIFACT, [artifact_id])
        return Artifact.from_ledger_tuple(artifact_id, values)

    async def get_pending(self):
        return [int(i) for i in await asyncio.to_thread(self._read, GET_PENDING, [])]

    async def get_approved(self):
        return [int(i) for i in await asyncio.to_thread(self._read, GET_APPROVED, [])]

    async def get_rejected(self):
        return [int(i) for i in await asyncio.to_thread(self._read, GET_REJECTED, [])]

    async def get_total_count(self):
        return int(await asyncio.to_thread(self._read, GET_TOTAL, []))

    async def is_manager(self, address):
        return bool(await asyncio.to_thread(self._read, IS_MANAGER, [address]))

    async def get_fee(self):
        return int(await asyncio.to_thread(self._read, UPLOAD_FEE, []))

    async def token_owner(self, token_id):
        return str(await asyncio.to_thread(self._read, OWNER_OF, [token_id]))

    async def token_balance(self, address):
        return int(await asyncio.to_thread(self._read, BALANCE_OF, [address]))

    async def treasury(self):
        return str(await asyncio.to_thread(self._read, TREASURY, []))

    def _read(self, method, args):
        atc = AtomicTransactionComposer()
        atc.add_method_call(
            app_id=self.app_id,
            method=method,
            sender=self.reader_address,
            sp=self._params(),
            signer=EmptySigner(),
            method_args=args,
        )
        result = self._simulate(atc).abi_results[0]
        if result.decode_error:
            raise TransportError(f"{method.name} returned an undecodable value: {result.decode_error}")
        return result.return_value

    def _touched_boxes(self, atc: AtomicTransactionComposer) -> list[bytes]:
        """Box names a simulated group accessed without declaring them."""
        names: list[bytes] = []
        for group in self._simulate(atc).simulate_response.get("txn-groups", []):
            sections = [group.get("unnamed-resources-accessed") or {}]
            sections += [txn.get("unnamed-resources-accessed") or {} for txn in group.get("txn-results", [])]
            for section in sections:
                names.extend(base64.b64decode(box["name"]) for box in section.get("boxes", []))
        return names

    def _simulate(self, atc: AtomicTransactionComposer):
        request = SimulateRequest(txn_groups=[], allow_empty_signatures=True, allow_unnamed_resources=True)
        try:
            response = atc.simulate(self.client, request)
        except AlgodHTTPError as exc:
            raise translate_rejection(str(exc), self.error_map) from exc
        except OSError as exc:
            raise TransportError(f"algod unreachable: {exc}") from exc

        if response.failure_message:
            raise translate_rejection(response.failure_message, self.error_map)
        return response
