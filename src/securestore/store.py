from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict, Optional, Type, TypeVar

from .cipher import AesGcmCipher, Cipher, Keyring
from .config import DEFAULT_KEY_ALIAS, StoreSettings, build_backend
from .containment import contain_storage_errors
from .errors import CryptoError, FormatError, SerializationError
from .packing import decode_record, encode_record
from .preferences import PreferencesStore, Snapshot
from .value_codec import decode_value, serialize


logger = logging.getLogger(__name__)

T = TypeVar("T")

# Failures that only affect one key's value in one emission
_RECORD_ERRORS = (FormatError, CryptoError, SerializationError)


class EncryptedDataStore:
    """
    Encrypted key-value store for typed values.

    Usage
    - `await store.store_value(key, value)` serializes `value` to JSON, encrypts
      it under the configured key alias, packs IV and ciphertext into one text
      record and commits it in a single edit. Failures propagate.
    - `store.read_value(key, type_)` is an async generator yielding the current
      value (or None) first, then again on every store mutation. Malformed,
      tampered or undecodable records yield None and log a warning; storage
      read failures yield None for that emission only.
    - `await store.clear_store()` removes every key.
    """

    def __init__(
        self,
        store: PreferencesStore,
        cipher: Cipher,
        *,
        log: Optional[logging.Logger] = None,
        key_alias: str = DEFAULT_KEY_ALIAS,
    ) -> None:
        self._store = store
        self._cipher = cipher
        self._log = log or logger
        self._alias = key_alias

    # -------- Construction helpers --------
    @classmethod
    def from_settings(
        cls,
        settings: StoreSettings,
        *,
        log: Optional[logging.Logger] = None,
        s3: Optional[object] = None,
    ) -> "EncryptedDataStore":
        keyring = Keyring({settings.key_alias: settings.key})
        return cls(
            PreferencesStore(build_backend(settings, s3=s3)),
            AesGcmCipher(keyring),
            log=log,
            key_alias=settings.key_alias,
        )

    @classmethod
    def from_env(cls, *, log: Optional[logging.Logger] = None) -> "EncryptedDataStore":
        return cls.from_settings(StoreSettings.from_env(), log=log)

    # -------- Core operations --------
    async def store_value(self, key: str, value: Any) -> None:
        plaintext = serialize(value)

        def _apply(data: Dict[str, str]) -> None:
            payload = self._cipher.encrypt(self._alias, plaintext)
            data[key] = encode_record(payload.iv_text, payload.ciphertext)

        await self._store.edit(_apply)
        self._log.debug("store_value: %s: committed", key)

    async def read_value(self, key: str, type_: Type[T]) -> AsyncIterator[Optional[T]]:
        subscription = self._store.subscribe()
        try:
            async for snapshot in contain_storage_errors(
                subscription, logger=self._log, context=f"read_value: {key}"
            ):
                yield self._open_record(snapshot, key, type_)
        finally:
            subscription.close()

    async def read_once(self, key: str, type_: Type[T]) -> Optional[T]:
        """Current value for `key`, or None; same containment rules as `read_value`."""
        stream = self.read_value(key, type_)
        try:
            return await stream.__anext__()
        finally:
            await stream.aclose()

    async def clear_store(self) -> None:
        await self._store.clear_all()
        self._log.debug("clear_store: all keys removed")

    # -------- Read pipeline --------
    def _open_record(self, snapshot: Snapshot, key: str, type_: Type[T]) -> Optional[T]:
        text = snapshot.get(key, "")
        if not text:
            self._log.debug("read_value: %s: no record", key)
            return None
        try:
            payload = decode_record(text)
            plaintext = self._cipher.decrypt(self._alias, payload.ciphertext, payload.iv_text)
            return decode_value(plaintext, type_)
        except _RECORD_ERRORS as ex:
            self._log.warning("read_value: %s: %s: %s", key, type(ex).__name__, ex)
            return None
