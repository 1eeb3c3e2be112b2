"""Content store backends.

Both backends return a stable, content-derived identifier. Neither
deduplicates: the ledger's content-id uniqueness check is the only
duplicate guard.
"""

import abc
import asyncio
import hashlib
import io
import json
import logging

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
import requests

from veritas_artifacts.config import PINATA_API_URL, PINATA_GATEWAY, Settings
from veritas_artifacts.errors import StoreUnavailableError
from veritas_artifacts.models import ArtifactPayload, StoredContent

logger = logging.getLogger(__name__)


class ContentStore(abc.ABC):
    @abc.abstractmethod
    async def store(self, payload: ArtifactPayload, metadata: dict[str, str]) -> StoredContent:
        """Persist ``payload`` and return its content identifier."""


class PinataContentStore(ContentStore):
    """IPFS pinning through Pinata's ``pinFileToIPFS`` endpoint."""

    def __init__(
        self,
        api_key: str,
        secret_key: str,
        api_url: str = PINATA_API_URL,
        gateway: str = PINATA_GATEWAY,
        timeout: float = 60.0,
        http: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key
        self.secret_key = secret_key
        self.api_url = api_url.rstrip("/")
        self.gateway = gateway.rstrip("/")
        self.timeout = timeout
        self.http = http or requests.Session()

    async def store(self, payload, metadata):
        return await asyncio.to_thread(self._pin, payload, metadata)

    def _pin(self, payload: ArtifactPayload, metadata: dict[str, str]) -> StoredContent:
        if not self.api_key or not self.secret_key:
            raise StoreUnavailableError("Pinata credentials are not configured")

        pinata_metadata = json.dumps({"name": payload.filename, "keyvalues": metadata})
        try:
            resp = self.http.post(
                f"{self.api_url}/pinning/pinFileToIPFS",
                headers={
                    "pinata_api_key": self.api_key,
                    "pinata_secret_api_key": self.secret_key,
                },
                files={"file": (payload.filename, payload.data, payload.content_type)},
                data={"pinataMetadata": pinata_metadata},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise StoreUnavailableError(f"Pinata unreachable: {exc}") from exc

        if not resp.ok:
            logger.warning("[STORE] Pinata answered %s: %s", resp.status_code, resp.text[:200])
            raise StoreUnavailableError(f"Pinata upload failed with status {resp.status_code}")

        try:
            ipfs_hash = resp.json()["IpfsHash"]
        except (ValueError, KeyError, TypeError) as exc:
            raise StoreUnavailableError("Pinata response carried no IpfsHash") from exc

        logger.info("[STORE] Pinned %s as %s", payload.filename, ipfs_hash)
        return StoredContent(content_id=ipfs_hash, retrieval_url=f"{self.gateway}/ipfs/{ipfs_hash}")


class CloudinaryContentStore(ContentStore):
    """Cloudinary uploads keyed by the payload's SHA-256 digest."""

    def __init__(self, cloudinary_url: str, folder: str = "veritas") -> None:
        if cloudinary_url:
            cloudinary.config(cloudinary_url=cloudinary_url)
        self.configured = bool(cloudinary_url)
        self.folder = folder

    async def store(self, payload, metadata):
        return await asyncio.to_thread(self._upload, payload, metadata)

    def _upload(self, payload: ArtifactPayload, metadata: dict[str, str]) -> StoredContent:
        if not self.configured:
            raise StoreUnavailableError("CLOUDINARY_URL is not configured")

        digest = hashlib.sha256(payload.data).hexdigest()
        try:
            result = cloudinary.uploader.upload(
                io.BytesIO(payload.data),
                folder=self.folder,
                public_id=f"artifact_{digest}",
                resource_type="auto",
                overwrite=False,
                context=metadata,
            )
        except cloudinary.exceptions.Error as exc:
            raise StoreUnavailableError(f"Cloudinary upload failed: {exc}") from exc

        url = result.get("secure_url", "")
        if not url:
            raise StoreUnavailableError("Cloudinary response carried no secure_url")
        logger.info("[STORE] Uploaded %s to Cloudinary: %s", payload.filename, url)
        return StoredContent(content_id=digest, retrieval_url=url)


def build_content_store(settings: Settings) -> ContentStore:
    if settings.content_store == "cloudinary":
        return CloudinaryContentStore(settings.cloudinary_url, folder=settings.cloudinary_folder)
    return PinataContentStore(
        settings.pinata_api_key,
        settings.pinata_secret_key,
        api_url=settings.pinata_api_url,
        gateway=settings.pinata_gateway,
        timeout=settings.store_timeout,
    )
