from __future__ import annotations

from pathlib import Path

import pytest

from securestore.backends import JsonFileBackend, S3Backend
from securestore.cipher import Keyring
from securestore.config import StoreSettings, build_backend
from securestore.store import EncryptedDataStore


_ALL_VARS = (
    "SECURESTORE_KEY",
    "SECURESTORE_KEY_ALIAS",
    "SECURESTORE_PATH",
    "SECURESTORE_NAME",
    "SECURESTORE_BUCKET",
    "SECURESTORE_OBJECT_KEY",
    "SECURESTORE_REGION",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ALL_VARS:
        monkeypatch.delenv(name, raising=False)


def test_from_env_missing_key_raises():
    with pytest.raises(RuntimeError, match="SECURESTORE_KEY"):
        StoreSettings.from_env()


def test_from_env_defaults(monkeypatch):
    monkeypatch.setenv("SECURESTORE_KEY", "k")
    settings = StoreSettings.from_env()

    assert settings.key_alias == "data-store"
    assert settings.file_path == Path(".securestore") / "default.json"
    assert settings.bucket is None


def test_from_env_reads_everything(monkeypatch, tmp_path):
    monkeypatch.setenv("SECURESTORE_KEY", "k")
    monkeypatch.setenv("SECURESTORE_KEY_ALIAS", "prefs")
    monkeypatch.setenv("SECURESTORE_PATH", str(tmp_path / "p.json"))
    monkeypatch.setenv("SECURESTORE_BUCKET", "bucket")
    monkeypatch.setenv("SECURESTORE_OBJECT_KEY", "obj.json")
    monkeypatch.setenv("SECURESTORE_REGION", "eu-west-1")
    settings = StoreSettings.from_env()

    assert settings.key_alias == "prefs"
    assert settings.file_path == tmp_path / "p.json"
    assert (settings.bucket, settings.object_key, settings.region_name) == (
        "bucket",
        "obj.json",
        "eu-west-1",
    )


def test_build_backend_picks_file_without_bucket(tmp_path):
    backend = build_backend(StoreSettings(key="k", name="session", path=None))
    assert isinstance(backend, JsonFileBackend)
    assert backend.path == Path(".securestore") / "session.json"


def test_build_backend_picks_s3_with_bucket():
    backend = build_backend(StoreSettings(key="k", name="session", bucket="b"), s3=object())
    assert isinstance(backend, S3Backend)
    assert backend._obj.key == "session.json"


@pytest.mark.asyncio
async def test_from_env_builds_working_store(monkeypatch, tmp_path):
    monkeypatch.setenv("SECURESTORE_KEY", Keyring.generate_key())
    monkeypatch.setenv("SECURESTORE_PATH", str(tmp_path / "store.json"))

    secure = EncryptedDataStore.from_env()
    await secure.store_value("token", "abc123")

    assert (tmp_path / "store.json").exists()
    assert await secure.read_once("token", str) == "abc123"


def test_from_env_empty_values_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("SECURESTORE_KEY", "k")
    monkeypatch.setenv("SECURESTORE_KEY_ALIAS", "")
    monkeypatch.setenv("SECURESTORE_NAME", "")
    settings = StoreSettings.from_env()

    assert settings.key_alias == "data-store"
    assert settings.name == "default"
