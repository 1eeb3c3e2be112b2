"""Authentication gateway: binds an intent message to a wallet signature.

Wallets sign the intent with Algorand data signing (``"MX"`` prefix +
message bytes, ed25519). Verification checks the signature against the key
encoded in the claimed address, which is the Algorand equivalent of
recovering the signer and comparing it to the claim.
"""

import logging
import re
from datetime import datetime, timezone

from algosdk import encoding, util

from veritas_artifacts.errors import AuthenticationError
from veritas_artifacts.models import SubmissionIntent

logger = logging.getLogger(__name__)

INTENT_PREFIX = "I am uploading an artifact to Veritas at "
_INTENT_RE = re.compile(re.escape(INTENT_PREFIX) + r"(\S+)")


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_intent_message(now: datetime | None = None) -> str:
    return INTENT_PREFIX + format_timestamp(now or datetime.now(timezone.utc))


def parse_intent_timestamp(message: str) -> datetime:
    match = _INTENT_RE.fullmatch(message)
    if match is None:
        raise AuthenticationError("Signed message does not match the intent format")
    raw = match.group(1)
    try:
        moment = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        raise AuthenticationError(f"Signed message carries an invalid timestamp: {raw!r}") from None
    if moment.tzinfo is None:
        raise AuthenticationError("Signed message timestamp has no timezone")
    return moment


def normalize_address(address: str) -> str:
    return address.strip().upper()


def sign_intent(message: str, private_key: str) -> str:
    """Sign ``message`` the way a wallet does for arbitrary data (base64)."""
    return util.sign_bytes(message.encode("utf-8"), private_key)


def verify_intent(intent: SubmissionIntent) -> str:
    """Verify that ``intent.signature`` was made by ``intent.address``.

    Returns the normalized signer address. Raises ``AuthenticationError`` on
    any mismatch or malformed input; there is no partial success.
    """
    address = normalize_address(intent.address)
    if not encoding.is_valid_address(address):
        raise AuthenticationError(f"Claimed address is not a valid Algorand address: {intent.address!r}")
    if not intent.signature:
        raise AuthenticationError("Signature is empty")

    parse_intent_timestamp(intent.message)

    try:
        valid = util.verify_bytes(intent.message.encode("utf-8"), intent.signature, address)
    except Exception as exc:
        raise AuthenticationError("Signature verification failed") from exc

    if not valid:
        logger.info("[AUTH] Signature rejected for %s...", address[:8])
        raise AuthenticationError("Invalid signature")

    logger.debug("[AUTH] Verified intent for %s...", address[:8])
    return address
