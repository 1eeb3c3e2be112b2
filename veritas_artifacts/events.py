"""ARC-28 lifecycle events emitted by the registry application.

The registry reports submission and approval results only through log
entries on the confirmed transaction. Each entry is a 4-byte selector
(first bytes of ``sha512_256("Name(types)")``) followed by the ARC-4
encoding of the event arguments. Every event kind has its own tagged
dataclass; anything that does not decode cleanly is treated as no match.
"""

from __future__ import annotations

import logging
from dataclasses import astuple, dataclass
from typing import ClassVar, Iterable, TypeVar, Union

from algosdk import abi, encoding
from algosdk.error import ABIEncodingError

from veritas_artifacts.errors import EventNotFoundError

logger = logging.getLogger(__name__)


def event_selector(signature: str) -> bytes:
    return encoding.checksum(signature.encode("utf-8"))[:4]


@dataclass(frozen=True)
class ArtifactCreated:
    NAME: ClassVar[str] = "ArtifactCreated"
    ARGS: ClassVar[str] = "(uint64,address,string,uint64)"

    artifact_id: int
    uploader: str
    content_id: str
    initial_token_id: int


@dataclass(frozen=True)
class ArtifactApproved:
    NAME: ClassVar[str] = "ArtifactApproved"
    ARGS: ClassVar[str] = "(uint64,uint64)"

    artifact_id: int
    verified_token_id: int


@dataclass(frozen=True)
class ArtifactRejected:
    NAME: ClassVar[str] = "ArtifactRejected"
    ARGS: ClassVar[str] = "(uint64,string)"

    artifact_id: int
    reason: str


LedgerEvent = Union[ArtifactCreated, ArtifactApproved, ArtifactRejected]
EVENT_TYPES: tuple[type, ...] = (ArtifactCreated, ArtifactApproved, ArtifactRejected)

E = TypeVar("E", ArtifactCreated, ArtifactApproved, ArtifactRejected)


def signature_of(event_type: type) -> str:
    return event_type.NAME + event_type.ARGS


_SCHEMAS = [
    (event_selector(signature_of(t)), abi.ABIType.from_string(t.ARGS), t)
    for t in EVENT_TYPES
]


def encode_event(event: LedgerEvent) -> bytes:
    """Encode ``event`` as the log entry the registry would emit."""
    for selector, codec, event_type in _SCHEMAS:
        if isinstance(event, event_type):
            return selector + codec.encode(list(astuple(event)))
    raise TypeError(f"Not a ledger event: {event!r}")


def decode_log(entry: bytes) -> LedgerEvent | None:
    """Try every event schema against one log entry; ``None`` if none fits."""
    for selector, codec, event_type in _SCHEMAS:
        if entry[:4] != selector:
            continue
        try:
            values = codec.decode(entry[4:])
            return event_type(*values)
        except (ABIEncodingError, ValueError, IndexError, TypeError) as exc:
            logger.debug("[CHAIN] %s selector matched but payload did not decode: %s", event_type.NAME, exc)
    return None


def find_event(logs: Iterable[bytes], event_type: type[E], tx_id: str | None = None) -> E:
    """Return the first log entry that decodes as ``event_type``.

    Raises ``EventNotFoundError`` when the transaction confirmed but no
    entry matches; callers must not read that as success.
    """
    for entry in logs:
        event = decode_log(entry)
        if isinstance(event, event_type):
            return event
    raise EventNotFoundError(
        f"Transaction {tx_id or '<unknown>'} confirmed but no {event_type.NAME} event was found",
        tx_id=tx_id,
    )
