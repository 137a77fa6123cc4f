"""
polycache - Value Serialization

- JSON text codec used for Redis string values and hash fields.
- A pymemcache serde storing integers as plain ASCII digits, so that the
  server-side incr/decr commands keep working on values written by ``set``.
"""

from __future__ import annotations

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)

FLAG_BYTES = 0
FLAG_INTEGER = 1 << 1
FLAG_TEXT = 1 << 4
FLAG_JSON = 1 << 5


def to_json(value: Any) -> str:
    """Serialize value to a compact JSON string."""
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def from_json(data: str | bytes | None) -> Any | None:
    """
    Deserialize a JSON string. Returns None if data is None.

    Data that is not valid JSON (e.g. written by another client) is returned
    as the raw string.
    """
    if data is None:
        return None
    if isinstance(data, bytes):
        data = data.decode("utf-8")
    try:
        return json.loads(data)
    except ValueError as e:
        logger.warning(
            "Failed to decode JSON from cache, returning raw data: %s",
            e,
            extra={"data_preview": data[:100], "error": str(e)},
        )
        return data


class JsonSerde:
    """pymemcache serializer/deserializer pair."""

    def serialize(self, key: str, value: Any) -> tuple[bytes, int]:
        if isinstance(value, bytes):
            return value, FLAG_BYTES
        if isinstance(value, str):
            return value.encode("utf-8"), FLAG_TEXT
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value).encode("ascii"), FLAG_INTEGER
        return to_json(value).encode("utf-8"), FLAG_JSON

    def deserialize(self, key: str, value: bytes, flags: int) -> Any:
        if flags == FLAG_BYTES:
            return value
        if flags == FLAG_TEXT:
            return value.decode("utf-8")
        if flags == FLAG_INTEGER:
            # incr/decr pad with trailing spaces when the digit count shrinks
            return int(value.strip())
        if flags == FLAG_JSON:
            return from_json(value)
        logger.warning("Unknown memcached flags %s for key '%s', returning raw bytes", flags, key)
        return value
