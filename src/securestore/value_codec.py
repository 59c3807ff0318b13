from __future__ import annotations

from functools import lru_cache
from typing import Any, Optional, Type, TypeVar

from pydantic import TypeAdapter, ValidationError

from .errors import SerializationError


T = TypeVar("T")


@lru_cache(maxsize=None)
def _adapter(type_: Any) -> TypeAdapter:
    return TypeAdapter(type_)


def serialize(value: Any) -> str:
    # Compact JSON; field order follows the model/dict insertion order
    return _adapter(type(value)).dump_json(value).decode("utf-8")


def decode_value(text: str, type_: Type[T]) -> T:
    """Parse JSON text into `type_`, raising SerializationError on failure."""
    try:
        return _adapter(type_).validate_json(text)
    except ValidationError as ex:
        raise SerializationError(
            f"cannot decode {getattr(type_, '__name__', type_)}: {ex.error_count()} error(s)"
        ) from ex


def deserialize(text: str, type_: Type[T]) -> Optional[T]:
    """Parse JSON text into `type_`; returns None when the text does not fit."""
    try:
        return decode_value(text, type_)
    except SerializationError:
        return None
