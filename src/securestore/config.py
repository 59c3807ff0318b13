from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .backends import JsonFileBackend, S3Backend, StorageBackend


# Environment variable names for convenience configuration
ENV_KEY = "SECURESTORE_KEY"
ENV_KEY_ALIAS = "SECURESTORE_KEY_ALIAS"
ENV_PATH = "SECURESTORE_PATH"
ENV_NAME = "SECURESTORE_NAME"
ENV_BUCKET = "SECURESTORE_BUCKET"
ENV_OBJECT_KEY = "SECURESTORE_OBJECT_KEY"
ENV_REGION = "SECURESTORE_REGION"

DEFAULT_KEY_ALIAS = "data-store"
DEFAULT_NAME = "default"
DEFAULT_DIR = Path(".securestore")


def _getenv(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.environ.get(name)
    return val if val not in (None, "") else default


@dataclass(frozen=True)
class StoreSettings:
    """
    Settings for building an `EncryptedDataStore`.

    - `key` is the url-safe base64 AES-256 key registered under `key_alias`.
    - With `bucket` set the store lives in one S3 object; otherwise in a JSON
      file at `path`, defaulting to `.securestore/<name>.json`.
    """

    key: str
    key_alias: str = DEFAULT_KEY_ALIAS
    name: str = DEFAULT_NAME
    path: Optional[Path] = None
    bucket: Optional[str] = None
    object_key: Optional[str] = None
    region_name: Optional[str] = None

    @classmethod
    def from_env(cls) -> "StoreSettings":
        key = _getenv(ENV_KEY)
        if not key:
            raise RuntimeError(
                f"Missing required environment variables for secure store: {ENV_KEY}"
            )
        path = _getenv(ENV_PATH)
        return cls(
            key=key,
            key_alias=_getenv(ENV_KEY_ALIAS, DEFAULT_KEY_ALIAS),
            name=_getenv(ENV_NAME, DEFAULT_NAME),
            path=Path(path) if path else None,
            bucket=_getenv(ENV_BUCKET),
            object_key=_getenv(ENV_OBJECT_KEY),
            region_name=_getenv(ENV_REGION),
        )

    @property
    def file_path(self) -> Path:
        return self.path or DEFAULT_DIR / f"{self.name}.json"


def build_backend(settings: StoreSettings, *, s3: Optional[object] = None) -> StorageBackend:
    if settings.bucket:
        return S3Backend(
            bucket=settings.bucket,
            key=settings.object_key or f"{settings.name}.json",
            s3=s3,
            region_name=settings.region_name,
        )
    return JsonFileBackend(settings.file_path)
