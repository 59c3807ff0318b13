"""
Encrypted key-value store for typed values.

Values are serialized to JSON, encrypted per write with a fresh IV, packed
into one text record and persisted. Reads are async streams that re-emit on
every store change and never raise for a bad record.

Modules:
- store: EncryptedDataStore facade (store_value, read_value, clear_store)
- packing: text layout for (IV, ciphertext) records
- value_codec: typed value <-> JSON text
- cipher: AES-GCM cipher and alias keyring
- preferences: transactional backing store with change subscriptions
- backends: JSON file and S3 persistence
- containment: storage error containment for read streams
- config: environment-driven settings
"""

from .cipher import AesGcmCipher, Keyring
from .config import StoreSettings
from .errors import (
    CryptoError,
    FormatError,
    OptimisticLockError,
    SecureStoreError,
    SerializationError,
    StorageIOError,
)
from .preferences import PreferencesStore, Subscription
from .store import EncryptedDataStore

__all__ = [
    "AesGcmCipher",
    "CryptoError",
    "EncryptedDataStore",
    "FormatError",
    "Keyring",
    "OptimisticLockError",
    "PreferencesStore",
    "SecureStoreError",
    "SerializationError",
    "StorageIOError",
    "StoreSettings",
    "Subscription",
]
