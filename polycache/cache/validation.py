"""
polycache - Cache Input Validation

Pure, synchronous checks for keys, values and expiry times.
Shared by every backend so all engines accept exactly the same inputs.
"""

import json
from collections.abc import Mapping
from typing import Any

MAX_KEY_BYTES = 250
MAX_VALUE_BYTES = 1024 * 1024


def _is_int(value: Any) -> bool:
    # bool is a subclass of int but never a valid count or lifetime
    return isinstance(value, int) and not isinstance(value, bool)


def serialized_size(value: Any) -> int:
    """
    Return the number of bytes ``value`` occupies once serialized.

    Strings count their UTF-8 bytes, bytes count themselves, anything else
    counts its compact JSON encoding.

    Raises:
        TypeError / ValueError: If the value is not JSON serializable
    """
    if isinstance(value, str):
        return len(value.encode("utf-8"))
    if isinstance(value, (bytes, bytearray)):
        return len(value)
    return len(json.dumps(value, ensure_ascii=False, separators=(",", ":")).encode("utf-8"))


def validate_cache_key(key: Any) -> bool:
    """Key must be a non-empty string of at most 250 bytes without whitespace."""
    if not isinstance(key, str) or not key:
        return False
    if len(key.encode("utf-8")) > MAX_KEY_BYTES:
        return False
    return not any(ch.isspace() for ch in key)


def validate_cache_value(value: Any) -> bool:
    """Value must be present, serializable and at most 1 MB once serialized."""
    if value is None:
        return False
    try:
        return serialized_size(value) <= MAX_VALUE_BYTES
    except (TypeError, ValueError):
        return False


def is_scalar_value(value: Any) -> bool:
    """Scalar values are strings and numbers (booleans excluded)."""
    if isinstance(value, bool):
        return False
    return isinstance(value, (str, int, float))


def is_array_value(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def is_mapping_value(value: Any) -> bool:
    return isinstance(value, Mapping)


def validate_cache_expiry(ttl: Any) -> bool:
    """Expiry must be a non-negative integer number of seconds."""
    return _is_int(ttl) and ttl >= 0


def validate_positive_integer(value: Any) -> bool:
    """Used for increment/decrement amounts."""
    return _is_int(value) and value >= 1 and validate_cache_value(value)
