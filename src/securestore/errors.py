from __future__ import annotations


class SecureStoreError(RuntimeError):
    """Base error for the secure store."""


class StorageIOError(SecureStoreError):
    """The backing store could not be read or written."""


class OptimisticLockError(StorageIOError):
    """Raised when a version precondition fails during a conditional save."""


class FormatError(SecureStoreError):
    """A persisted record does not follow the packed record layout."""


class CryptoError(SecureStoreError):
    """Encryption or decryption failed (bad key, tampered data, unknown alias)."""


class SerializationError(SecureStoreError):
    """Text could not be decoded into the requested type."""
