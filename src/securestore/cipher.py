from __future__ import annotations

import base64
import binascii
import os
from typing import Dict, Optional, Protocol

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import CryptoError
from .packing import EncryptedPayload


NONCE_SIZE = 12
KEY_SIZE = 32


class Cipher(Protocol):
    def encrypt(self, alias: str, plaintext: str) -> EncryptedPayload: ...

    def decrypt(self, alias: str, ciphertext: bytes, iv_text: str) -> str: ...


def _to_key(key: str | bytes) -> bytes:
    """Normalize user-provided key material to 32 raw bytes.

    Accepts either raw 32-byte keys or url-safe base64 text/bytes encoding
    32 bytes (the format returned by `Keyring.generate_key()`).
    """
    if isinstance(key, bytes) and len(key) == KEY_SIZE:
        return key
    raw = key.encode("utf-8") if isinstance(key, str) else key
    try:
        decoded = base64.urlsafe_b64decode(raw)
    except (binascii.Error, ValueError) as ex:
        raise ValueError("key must be url-safe base64 encoding 32 bytes") from ex
    if len(decoded) != KEY_SIZE:
        raise ValueError(f"key must be {KEY_SIZE} bytes, got {len(decoded)}")
    return decoded


class Keyring:
    """
    Maps key aliases to AES-256 keys.

    Notes
    - Aliases are resolved here and nowhere else; callers of the cipher only
      ever pass alias names.
    - Keys live in memory for the life of the process; there is no rotation.
    """

    def __init__(self, keys: Optional[Dict[str, str | bytes]] = None) -> None:
        self._keys: Dict[str, bytes] = {}
        for alias, key in (keys or {}).items():
            self.add(alias, key)

    @staticmethod
    def generate_key() -> str:
        return base64.urlsafe_b64encode(AESGCM.generate_key(bit_length=256)).decode("ascii")

    def add(self, alias: str, key: str | bytes) -> None:
        if not alias:
            raise ValueError("alias is required")
        self._keys[alias] = _to_key(key)

    def generate(self, alias: str) -> str:
        """Create and register a fresh key for `alias`; returns it encoded."""
        key = self.generate_key()
        self.add(alias, key)
        return key

    def resolve(self, alias: str) -> bytes:
        try:
            return self._keys[alias]
        except KeyError:
            raise CryptoError(f"no key registered for alias {alias!r}") from None

    def __contains__(self, alias: object) -> bool:
        return alias in self._keys


class AesGcmCipher:
    """
    AES-GCM cipher keyed by alias.

    - Every encryption draws a fresh random 12-byte nonce, rendered as
      standard base64 for the IV text.
    - The alias is bound as associated data, so a record encrypted under one
      alias does not decrypt under another even if the keys match.
    """

    def __init__(self, keyring: Keyring) -> None:
        self._keyring = keyring

    def encrypt(self, alias: str, plaintext: str) -> EncryptedPayload:
        key = self._keyring.resolve(alias)
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), alias.encode("utf-8"))
        return EncryptedPayload(
            ciphertext=ciphertext,
            iv_text=base64.b64encode(nonce).decode("ascii"),
        )

    def decrypt(self, alias: str, ciphertext: bytes, iv_text: str) -> str:
        key = self._keyring.resolve(alias)
        try:
            nonce = base64.b64decode(iv_text, validate=True)
        except (binascii.Error, ValueError) as ex:
            raise CryptoError("IV text is not valid base64") from ex
        if len(nonce) != NONCE_SIZE:
            raise CryptoError(f"IV must be {NONCE_SIZE} bytes, got {len(nonce)}")

        try:
            plaintext = AESGCM(key).decrypt(nonce, ciphertext, alias.encode("utf-8"))
        except InvalidTag as ex:
            raise CryptoError("decryption failed: invalid tag") from ex

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as ex:
            raise CryptoError("decrypted payload is not UTF-8 text") from ex
