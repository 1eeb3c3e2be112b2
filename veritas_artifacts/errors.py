"""Error taxonomy for the submission and review pipeline.

Every failure surfaced to a caller is one of these classes. Each carries a
machine-readable ``code`` and the HTTP status the API boundary answers with.
"""


class VeritasError(Exception):
    code = "veritas_error"
    http_status = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthenticationError(VeritasError):
    """Signature does not recover to the claimed address, or is malformed."""

    code = "authentication_failed"
    http_status = 401


class InvalidInputError(VeritasError):
    """Empty content id, empty rejection reason, malformed file, bad id."""

    code = "invalid_input"
    http_status = 400


class ArtifactNotFoundError(InvalidInputError):
    code = "artifact_not_found"
    http_status = 404


class InsufficientFeeError(VeritasError):
    code = "insufficient_fee"
    http_status = 400


class DuplicateContentError(VeritasError):
    """The content identifier is already registered on the ledger."""

    code = "duplicate_content"
    http_status = 409


class UnauthorizedError(VeritasError):
    """A non-manager address called a manager-only operation."""

    code = "unauthorized"
    http_status = 403


class InvalidStateError(VeritasError):
    """The operation is not valid for the artifact's current status."""

    code = "invalid_state"
    http_status = 409


class StoreUnavailableError(VeritasError):
    code = "store_unavailable"
    http_status = 500


class EventNotFoundError(VeritasError):
    """The transaction confirmed but the expected event could not be decoded.

    Ledger state may have changed without the caller learning the new
    identifiers, so this is never reported as success or as a plain
    transaction failure.
    """

    code = "event_not_found"
    http_status = 500

    def __init__(self, message: str, tx_id: str | None = None) -> None:
        super().__init__(message)
        self.tx_id = tx_id


class TransportError(VeritasError):
    """Network or RPC failure of unspecified cause."""

    code = "transport_error"
    http_status = 500
