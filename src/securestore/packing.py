from __future__ import annotations

import re
from typing import List, NamedTuple

from .errors import FormatError


# Neither separator can occur in standard base64 IV text or in decimal digits.
IV_SEPARATOR = "]"
BYTE_SEPARATOR = "|"

_BYTE_TOKEN = re.compile(r"[+-]?[0-9]+")


class EncryptedPayload(NamedTuple):
    ciphertext: bytes
    iv_text: str


def _to_signed(b: int) -> int:
    return b - 256 if b > 127 else b


def encode_record(iv_text: str, ciphertext: bytes) -> str:
    """Pack an IV and ciphertext into a single persisted text record.

    Layout: ``<iv_text>]<byte>|<byte>|...`` where each byte is written as a
    signed decimal (-128..127).
    """
    body = BYTE_SEPARATOR.join(str(_to_signed(b)) for b in ciphertext)
    return f"{iv_text}{IV_SEPARATOR}{body}"


def decode_record(text: str) -> EncryptedPayload:
    """Unpack a persisted record into its IV text and ciphertext bytes.

    Raises:
    - FormatError if the IV separator is missing or repeated, or if any byte
      token is non-numeric or outside the signed-byte range.
    """
    segments = text.split(IV_SEPARATOR)
    if len(segments) != 2:
        raise FormatError(
            f"expected exactly one IV separator, found {len(segments) - 1}"
        )
    iv_text, body = segments

    out: List[int] = []
    for token in body.split(BYTE_SEPARATOR):
        if not _BYTE_TOKEN.fullmatch(token):
            raise FormatError(f"byte token is not a number: {token!r}")
        # at most 4 digits; int() refuses very long digit strings
        if len(token.lstrip("+-")) > 4:
            raise FormatError(f"byte token too long: {token[:16]}...")
        value = int(token)
        if value < -128 or value > 127:
            raise FormatError(f"byte token out of range: {value}")
        out.append(value & 0xFF)
    return EncryptedPayload(ciphertext=bytes(out), iv_text=iv_text)
