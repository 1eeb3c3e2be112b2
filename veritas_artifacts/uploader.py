import io
import logging
from datetime import datetime, timezone

import imagehash
from PIL import Image, ImageFilter, UnidentifiedImageError

from veritas_artifacts.auth import format_timestamp
from veritas_artifacts.config import MAX_UPLOAD_BYTES
from veritas_artifacts.content_store import ContentStore
from veritas_artifacts.errors import InvalidInputError
from veritas_artifacts.models import ArtifactPayload, StoredContent

logger = logging.getLogger(__name__)

ALLOWED_TYPE_PREFIXES = ("image/", "video/")
ALLOWED_TYPES = ("application/pdf",)


def denoise(img: Image.Image) -> Image.Image:
    """3×3 median blur to strip adversarial high-frequency noise."""
    return img.convert("RGB").filter(ImageFilter.MedianFilter(size=3))


def perceptual_hash(data: bytes) -> str | None:
    """Denoise then pHash.

    Returns ``None`` for formats Pillow cannot identify (SVG, HEIC without
    a plugin); those still upload, just without a hash. A recognised format
    that fails to decode raises ``InvalidInputError``.
    """
    try:
        with Image.open(io.BytesIO(data)) as unverified:
            unverified.verify()
        # verify() leaves the image unusable; reopen for pixel access.
        with Image.open(io.BytesIO(data)) as img:
            return str(imagehash.phash(denoise(img)))
    except UnidentifiedImageError:
        logger.debug("[STORE] Unrecognised image format; skipping pHash")
        return None
    except Image.DecompressionBombError as exc:
        raise InvalidInputError(f"Image dimensions too large: {exc}") from exc
    except (OSError, SyntaxError, ValueError) as exc:
        raise InvalidInputError(f"Malformed image file: {exc}") from exc


def validate_payload(payload: ArtifactPayload, max_bytes: int = MAX_UPLOAD_BYTES) -> None:
    if not payload.filename:
        raise InvalidInputError("File has no name")
    if payload.size == 0:
        raise InvalidInputError("File is empty")
    if payload.size > max_bytes:
        raise InvalidInputError(f"File is {payload.size} bytes; the limit is {max_bytes}")
    content_type = (payload.content_type or "").lower()
    if not (content_type.startswith(ALLOWED_TYPE_PREFIXES) or content_type in ALLOWED_TYPES):
        raise InvalidInputError(f"Unsupported content type: {payload.content_type!r}")


class ContentUploader:
    """Pushes a verified payload to the content store.

    Failures are terminal for the attempt. The caller restarts the whole
    flow, since a restart needs a fresh signature.
    """

    def __init__(self, store: ContentStore, max_bytes: int = MAX_UPLOAD_BYTES) -> None:
        self.store = store
        self.max_bytes = max_bytes

    def build_metadata(self, payload: ArtifactPayload, uploader: str) -> dict[str, str]:
        # Advisory only; the ledger record is authoritative.
        metadata = {
            "uploader": uploader,
            "uploadedAt": format_timestamp(datetime.now(timezone.utc)),
        }
        if payload.content_type.lower().startswith("image/"):
            phash = perceptual_hash(payload.data)
            if phash is not None:
                metadata["phash"] = phash
        return metadata

    async def upload(self, payload: ArtifactPayload, uploader: str) -> StoredContent:
        validate_payload(payload, self.max_bytes)
        metadata = self.build_metadata(payload, uploader)
        logger.info("[STORE] Uploading %s (%d bytes) for %s...", payload.filename, payload.size, uploader[:8])
        return await self.store.store(payload, metadata)
