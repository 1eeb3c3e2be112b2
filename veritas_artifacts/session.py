import logging

from algosdk.atomic_transaction_composer import TransactionSigner

from veritas_artifacts.auth import normalize_address
from veritas_artifacts.ledger import Ledger
from veritas_artifacts.models import Session

logger = logging.getLogger(__name__)


async def open_session(ledger: Ledger, address: str, signer: TransactionSigner) -> Session:
    """Build a session for a newly connected (or switched) wallet.

    The manager role is queried from the ledger every time; call this again
    whenever the connected address changes.
    """
    address = normalize_address(address)
    is_manager = await ledger.is_manager(address)
    logger.info("[SESSION] %s... connected (manager=%s)", address[:8], is_manager)
    return Session(address=address, signer=signer, is_manager=is_manager)
