import os
import sys

import pytest


def pytest_configure():
    # Ensure `src/` is importable as top-level for `securestore.*` imports
    root = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
    src_path = os.path.join(root, "src")
    if src_path not in sys.path:
        sys.path.insert(0, src_path)


@pytest.fixture
def keyring():
    from securestore.cipher import Keyring

    ring = Keyring()
    ring.generate("data-store")
    return ring


@pytest.fixture
def cipher(keyring):
    from securestore.cipher import AesGcmCipher

    return AesGcmCipher(keyring)
