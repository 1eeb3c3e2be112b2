import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# ── Testnet defaults ──────────────────────────────────────────────────────────
ALGOD_URL = "https://testnet-api.algonode.cloud"
PINATA_API_URL = "https://api.pinata.cloud"
PINATA_GATEWAY = "https://gateway.pinata.cloud"
MAX_UPLOAD_BYTES = 100 * 1024 * 1024


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    algod_url: str = ALGOD_URL
    algod_token: str = ""
    app_id: int = 0
    wait_rounds: int = 4
    content_store: str = "pinata"
    pinata_api_key: str = ""
    pinata_secret_key: str = ""
    pinata_api_url: str = PINATA_API_URL
    pinata_gateway: str = PINATA_GATEWAY
    cloudinary_url: str = ""
    cloudinary_folder: str = "veritas"
    max_upload_bytes: int = MAX_UPLOAD_BYTES
    store_timeout: float = 60.0
    log_level: str = "INFO"
    arc56_path: Path | None = None
    reader_address: str = ""

    @classmethod
    def from_env(cls, env_file: Path | None = None) -> "Settings":
        """Read settings from the process environment.

        A ``.env`` file (the given one, or one in the working directory) is
        loaded first; variables already set in the environment win.
        """
        load_dotenv(env_file or Path.cwd() / ".env")

        content_store = os.getenv("VERITAS_CONTENT_STORE", "pinata").strip().lower()
        if content_store not in ("pinata", "cloudinary"):
            raise ValueError(
                f"VERITAS_CONTENT_STORE must be 'pinata' or 'cloudinary', got {content_store!r}"
            )
        arc56_path = os.getenv("VERITAS_ARC56_PATH", "").strip()

        return cls(
            algod_url=os.getenv("VERITAS_ALGOD_URL", ALGOD_URL),
            algod_token=os.getenv("VERITAS_ALGOD_TOKEN", ""),
            app_id=_int_env("VERITAS_APP_ID", 0),
            wait_rounds=_int_env("VERITAS_WAIT_ROUNDS", 4),
            content_store=content_store,
            pinata_api_key=os.getenv("PINATA_API_KEY", ""),
            pinata_secret_key=os.getenv("PINATA_SECRET_KEY", ""),
            pinata_api_url=os.getenv("VERITAS_PINATA_API_URL", PINATA_API_URL),
            pinata_gateway=os.getenv("VERITAS_PINATA_GATEWAY", PINATA_GATEWAY),
            cloudinary_url=os.getenv("CLOUDINARY_URL", ""),
            cloudinary_folder=os.getenv("VERITAS_CLOUDINARY_FOLDER", "veritas"),
            max_upload_bytes=_int_env("VERITAS_MAX_UPLOAD_BYTES", MAX_UPLOAD_BYTES),
            store_timeout=_float_env("VERITAS_STORE_TIMEOUT", 60.0),
            log_level=os.getenv("VERITAS_LOG_LEVEL", "INFO").upper(),
            arc56_path=Path(arc56_path) if arc56_path else None,
            reader_address=os.getenv("VERITAS_READER_ADDRESS", "").strip(),
        )
