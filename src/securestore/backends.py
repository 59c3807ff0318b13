from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Protocol, Tuple
from uuid import uuid4

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .errors import OptimisticLockError, StorageIOError


Version = Optional[str]


class StorageBackend(Protocol):
    """Persistence for a whole key-value snapshot.

    `load()` returns the stored mapping and an opaque version token (None when
    nothing is stored yet). `save()` persists a full mapping, conditional on
    `version` where the backend supports it, and returns the new version.
    Backends raise StorageIOError for every I/O failure.
    """

    def load(self) -> Tuple[Dict[str, str], Version]: ...

    def save(self, data: Dict[str, str], version: Version) -> Version: ...


def _dump_snapshot_json(data: Dict[str, str]) -> bytes:
    # Deterministic JSON: stable key order, no extra whitespace
    return json.dumps(data, separators=(",", ":"), sort_keys=True).encode("utf-8")


def _load_snapshot_json(raw: bytes) -> Dict[str, str]:
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as ex:
        raise StorageIOError("stored snapshot is not valid JSON") from ex
    if not isinstance(data, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in data.items()
    ):
        raise StorageIOError("stored snapshot is not a string-to-string object")
    return data


class JsonFileBackend:
    """
    Single JSON file holding the whole store: ``{key: packed_record, ...}``.

    - A missing file is an empty store.
    - Saves write a temp file in the same directory and `os.replace` it over
      the target, so readers never see a half-written file.
    - The version token is unused; edits are serialized in-process.
    """

    def __init__(self, path: os.PathLike[str] | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Tuple[Dict[str, str], Version]:
        try:
            raw = self._path.read_bytes()
        except FileNotFoundError:
            return ({}, None)
        except OSError as ex:
            raise StorageIOError(f"cannot read {self._path}: {ex}") from ex
        return (_load_snapshot_json(raw), None)

    def save(self, data: Dict[str, str], version: Version) -> Version:
        payload = _dump_snapshot_json(data)
        tmp_name: Optional[str] = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self._path.name}.", suffix=".tmp", dir=self._path.parent
            )
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self._path)
            tmp_name = None
        except OSError as ex:
            raise StorageIOError(f"cannot write {self._path}: {ex}") from ex
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
        return None


@dataclass
class S3ObjectRef:
    bucket: str
    key: str


class S3Backend:
    """
    S3-backed persistence: the whole store is one JSON object.

    Usage
    - `load()` returns `(data, etag)`. If the object does not exist it returns
      `({}, None)`.
    - `save(data, etag)` writes the object and returns the new ETag. When
      `etag` is given, uses a copy-based conditional update so the write
      succeeds only if the current object ETag still matches (optimistic
      lock). Without `etag` the object is only created if it does not exist
      yet. Either conflict raises `OptimisticLockError`.

    Records are already encrypted by the time they reach this backend, so the
    object body itself is plain JSON.
    """

    def __init__(
        self,
        *,
        bucket: str,
        key: str,
        s3: Optional[object] = None,
        region_name: Optional[str] = None,
    ) -> None:
        self._s3 = s3 or boto3.client("s3", region_name=region_name)
        self._obj = S3ObjectRef(bucket=bucket, key=key)

    def load(self) -> Tuple[Dict[str, str], Version]:
        try:
            resp = self._s3.get_object(Bucket=self._obj.bucket, Key=self._obj.key)
            body = resp["Body"].read()
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in ("NoSuchKey", "404"):
                return ({}, None)
            raise StorageIOError(f"cannot read {self._describe()}: {code}") from e
        except BotoCoreError as e:
            raise StorageIOError(f"cannot read {self._describe()}: {e}") from e
        return (_load_snapshot_json(body), resp.get("ETag"))

    def save(self, data: Dict[str, str], version: Version) -> Version:
        body = _dump_snapshot_json(data)
        try:
            if version is None:
                # First write: only create the object if nobody else has
                resp = self._s3.put_object(
                    Bucket=self._obj.bucket,
                    Key=self._obj.key,
                    Body=body,
                    ContentType="application/json",
                    IfNoneMatch="*",
                )
                return str(resp.get("ETag"))
            return self._conditional_save(body, version)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in ("PreconditionFailed", "412"):
                raise OptimisticLockError(f"object already exists at {self._describe()}") from e
            raise StorageIOError(f"cannot write {self._describe()}: {code}") from e
        except BotoCoreError as e:
            raise StorageIOError(f"cannot write {self._describe()}: {e}") from e

    def _conditional_save(self, body: bytes, if_match: str) -> Version:
        # S3 PutObject does not support If-Match. Upload to a temporary key,
        # then COPY over the destination with an If-Match precondition.
        temp_key = f"{self._obj.key}.tmp-{uuid4().hex}"
        self._s3.put_object(
            Bucket=self._obj.bucket,
            Key=temp_key,
            Body=body,
            ContentType="application/json",
        )
        try:
            resp = self._s3.copy_object(
                Bucket=self._obj.bucket,
                Key=self._obj.key,
                CopySource={"Bucket": self._obj.bucket, "Key": temp_key},
                IfMatch=if_match,
                MetadataDirective="COPY",
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in ("PreconditionFailed", "412"):
                raise OptimisticLockError(f"ETag mismatch for {self._describe()}") from e
            raise
        finally:
            try:
                self._s3.delete_object(Bucket=self._obj.bucket, Key=temp_key)
            except (ClientError, BotoCoreError):
                pass
        return str(resp.get("ETag"))

    def _describe(self) -> str:
        return f"s3://{self._obj.bucket}/{self._obj.key}"
