"""Tests for environment-driven settings."""

import pytest

from veritas_artifacts.config import ALGOD_URL, Settings

ENV_NAMES = (
    "VERITAS_APP_ID",
    "VERITAS_CONTENT_STORE",
    "VERITAS_WAIT_ROUNDS",
    "VERITAS_STORE_TIMEOUT",
    "VERITAS_ALGOD_URL",
    "PINATA_API_KEY",
    "VERITAS_ARC56_PATH",
    "VERITAS_READER_ADDRESS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    # setenv first so monkeypatch also removes whatever load_dotenv sets.
    for name in ENV_NAMES:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)


def test_defaults(tmp_path) -> None:
    settings = Settings.from_env(tmp_path / "missing.env")
    assert settings.algod_url == ALGOD_URL
    assert settings.app_id == 0
    assert settings.content_store == "pinata"


def test_environment_overrides(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("VERITAS_APP_ID", "755806101")
    monkeypatch.setenv("VERITAS_CONTENT_STORE", "Cloudinary")
    monkeypatch.setenv("VERITAS_STORE_TIMEOUT", "12.5")

    settings = Settings.from_env(tmp_path / "missing.env")

    assert settings.app_id == 755806101
    assert settings.content_store == "cloudinary"
    assert settings.store_timeout == 12.5


def test_dotenv_file_is_loaded(tmp_path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("PINATA_API_KEY=from-file\nVERITAS_WAIT_ROUNDS=8\n")

    settings = Settings.from_env(env_file)

    assert settings.pinata_api_key == "from-file"
    assert settings.wait_rounds == 8


@pytest.mark.parametrize(
    "name, value",
    [("VERITAS_APP_ID", "abc"), ("VERITAS_CONTENT_STORE", "s3"), ("VERITAS_STORE_TIMEOUT", "soon")],
)
def test_invalid_values_fail_at_load(monkeypatch, tmp_path, name, value) -> None:
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError):
        Settings.from_env(tmp_path / "missing.env")


def test_registry_client_options(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("VERITAS_ARC56_PATH", str(tmp_path / "Registry.arc56.json"))
    monkeypatch.setenv("VERITAS_READER_ADDRESS", " READER ")

    settings = Settings.from_env(tmp_path / "missing.env")

    assert settings.arc56_path == tmp_path / "Registry.arc56.json"
    assert settings.reader_address == "READER"
    assert Settings().arc56_path is None
