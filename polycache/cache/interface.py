"""
polycache - Cache Interface

Defines the contract shared by every cache backend.

Public operations live here and do all input validation, TTL fallback and
result construction, so every engine accepts and rejects exactly the same
inputs. Backends implement the underscored engine hooks and override the
policy hooks where their engine needs reconciling with the others.

Per-call errors never raise: each public operation returns a CacheResult.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any, ClassVar

from ..config.schemas import CacheEngine
from ..errors import ApiErrorIdentifier, CacheErrorKind, PolycacheError
from .result import CacheResult
from .validation import (
    is_array_value,
    is_mapping_value,
    is_scalar_value,
    validate_cache_expiry,
    validate_cache_key,
    validate_cache_value,
    validate_positive_integer,
)

logger = logging.getLogger(__name__)


class CacheInterface(ABC):
    """
    Abstract base class for cache backends.

    Subclasses set ``engine`` and ``error_prefix`` and implement the engine
    hooks (``_get``, ``_set``, ...). Hooks may raise any exception; the public
    operation turns it into a BACKEND_ERROR result.
    """

    engine: ClassVar[CacheEngine]
    # Prefix of internal error identifiers, e.g. "c_r" -> "c_r_g_1"
    error_prefix: ClassVar[str]
    # Whether set_object may store a list when consistent behavior is off
    supports_array_objects: ClassVar[bool] = True

    def __init__(self, default_ttl: int = 3600, consistent_behavior: bool = True) -> None:
        """
        Args:
            default_ttl: TTL in seconds applied when set() gets no valid TTL (0 = no expiry)
            consistent_behavior: Reconcile engine quirks so all engines behave alike
        """
        self.default_ttl = max(0, int(default_ttl))
        self.consistent_behavior = consistent_behavior

        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._deletes = 0

    # ------------ Engine hooks ------------

    @abstractmethod
    async def _get(self, key: str) -> Any | None:
        """Return the raw stored value, None when absent."""

    @abstractmethod
    async def _get_object(self, key: str) -> Any | None:
        """Return the stored object, None when absent."""

    @abstractmethod
    async def _set(self, key: str, value: Any, ttl: int) -> None:
        """Store a scalar value. ``ttl`` is a validated non-negative int."""

    @abstractmethod
    async def _set_object(self, key: str, value: Any, ttl: int) -> None:
        """Replace the whole object stored under ``key``."""

    @abstractmethod
    async def _delete(self, key: str) -> None: ...

    @abstractmethod
    async def _multi_get(self, keys: list[str]) -> dict[str, Any]:
        """Fetch several keys in one engine call. Absent keys may be omitted."""

    @abstractmethod
    async def _increment(self, key: str, by_value: int) -> int | None:
        """Return the new value, None when the key is missing."""

    @abstractmethod
    async def _decrement(self, key: str, by_value: int) -> int | None:
        """Return the new value, None when the key is missing."""

    @abstractmethod
    async def _touch(self, key: str, lifetime: int) -> bool:
        """Return False when the key is missing."""

    @abstractmethod
    async def _flush(self) -> None: ...

    @abstractmethod
    async def close(self) -> None:
        """Release the engine client."""

    # ------------ Policy hooks ------------

    def _accepts_set_value(self, value: Any) -> bool:
        """Shape check for set(). Object engines store anything unless consistent."""
        if self.consistent_behavior:
            return is_scalar_value(value)
        return True

    def _accepts_empty_object(self) -> bool:
        return not self.consistent_behavior

    def _normalize_lifetime(self, lifetime: int) -> int:
        """Map a validated touch() lifetime to the engine's native value."""
        return lifetime

    # ------------ Helpers ------------

    def _error_id(self, suffix: str) -> str:
        return f"{self.error_prefix}_{suffix}"

    def _fail(
        self,
        kind: CacheErrorKind,
        suffix: str,
        api_error: ApiErrorIdentifier,
        debug_options: dict[str, Any] | None = None,
    ) -> CacheResult:
        return CacheResult.failure(kind, self._error_id(suffix), api_error, debug_options)

    def _invalid_key(self, suffix: str, key: Any) -> CacheResult:
        return self._fail(
            CacheErrorKind.INVALID_KEY,
            suffix,
            ApiErrorIdentifier.INVALID_CACHE_KEY,
            {"key": key},
        )

    def _invalid_value(self, suffix: str, key: Any) -> CacheResult:
        return self._fail(
            CacheErrorKind.INVALID_VALUE,
            suffix,
            ApiErrorIdentifier.INVALID_CACHE_VALUE,
            {"key": key},
        )

    def _missing_key(self, suffix: str, key: Any) -> CacheResult:
        return self._fail(
            CacheErrorKind.MISSING_KEY,
            suffix,
            ApiErrorIdentifier.MISSING_CACHE_KEY,
            {"key": key},
        )

    def _backend_error(
        self,
        suffix: str,
        operation: str,
        error: Exception,
        api_error: ApiErrorIdentifier = ApiErrorIdentifier.SOMETHING_WENT_WRONG,
        key: Any = None,
    ) -> CacheResult:
        logger.error(
            "Cache %s failed on %s backend: %s",
            operation,
            self.engine.value,
            error,
            extra={"operation": operation, "backend": self.engine.value, "key": key, "error": str(error)},
            exc_info=True,
        )
        debug_options = dict(error.details) if isinstance(error, PolycacheError) else {"error": str(error)}
        return self._fail(CacheErrorKind.BACKEND_ERROR, suffix, api_error, debug_options)

    def _resolve_ttl(self, ttl: Any) -> int:
        # Invalid or omitted TTL silently falls back to the default
        return ttl if validate_cache_expiry(ttl) else self.default_ttl

    # ------------ Public operations ------------

    async def get(self, key: str) -> CacheResult:
        """
        Get the cached scalar value of a key.

        Returns:
            Success with the value, or None when the key is absent
        """
        if not validate_cache_key(key):
            return self._invalid_key("g_1", key)

        try:
            value = await self._get(key)
        except Exception as e:
            return self._backend_error("g_2", "get", e, key=key)

        if value is None:
            self._misses += 1
        else:
            self._hits += 1
        return CacheResult.success(value)

    async def get_object(self, key: str) -> CacheResult:
        """
        Get the object stored with set_object().

        Returns:
            Success with the mapping, or None when the key is absent
        """
        if not validate_cache_key(key):
            return self._invalid_key("go_1", key)

        try:
            value = await self._get_object(key)
        except Exception as e:
            return self._backend_error("go_2", "get_object", e, key=key)

        if value is None:
            self._misses += 1
        else:
            self._hits += 1
        return CacheResult.success(value)

    async def set(self, key: str, value: Any, ttl: int | None = None) -> CacheResult:
        """
        Set a new key value or update the existing key value.

        Args:
            key: Cache key
            value: Scalar value (string or number)
            ttl: Expiry in seconds; invalid or omitted falls back to default_ttl

        Returns:
            Success with True
        """
        if not validate_cache_key(key):
            return self._invalid_key("s_1", key)
        if not self._accepts_set_value(value) or not validate_cache_value(value):
            return self._invalid_value("s_2", key)

        try:
            await self._set(key, value, self._resolve_ttl(ttl))
        except Exception as e:
            return self._backend_error("s_3", "set", e, key=key)

        self._sets += 1
        return CacheResult.success(True)

    async def set_object(self, key: str, value: Mapping[str, Any], ttl: int | None = None) -> CacheResult:
        """
        Cache an object, replacing whatever was stored under the key.

        Lists are refused in consistent mode because not every engine can
        hold them as an object.

        Returns:
            Success with True
        """
        if not validate_cache_key(key):
            return self._invalid_key("so_1", key)

        if is_array_value(value):
            if self.consistent_behavior:
                return self._fail(
                    CacheErrorKind.MISSING_KEY,
                    "so_2",
                    ApiErrorIdentifier.ARRAY_IS_INVALID_CACHE_VALUE,
                    {"key": key},
                )
            if not self.supports_array_objects:
                return self._invalid_value("so_3", key)
        elif not is_mapping_value(value):
            return self._invalid_value("so_3", key)
        elif not value and not self._accepts_empty_object():
            return self._invalid_value("so_3", key)

        if not validate_cache_value(value):
            return self._invalid_value("so_3", key)

        try:
            await self._set_object(key, value, self._resolve_ttl(ttl))
        except Exception as e:
            return self._backend_error("so_4", "set_object", e, key=key)

        self._sets += 1
        return CacheResult.success(True)

    async def delete(self, key: str) -> CacheResult:
        """
        Delete the key from cache.

        Returns:
            Success with True, whether or not the key existed
        """
        if not validate_cache_key(key):
            return self._invalid_key("d_1", key)

        try:
            await self._delete(key)
        except Exception as e:
            return self._backend_error("d_2", "delete", e, key=key)

        self._deletes += 1
        return CacheResult.success(True)

    async def multi_get(self, keys: Sequence[str]) -> CacheResult:
        """
        Get the values of several keys in one engine call.

        Every requested key is present in the response. Absent keys and keys
        holding objects map to None, so a missing key cannot be told apart
        from one holding a non-scalar value.
        """
        if not isinstance(keys, (list, tuple)) or len(keys) == 0:
            return self._fail(
                CacheErrorKind.INVALID_KEY,
                "mg_1",
                ApiErrorIdentifier.CACHE_KEYS_NON_ARRAY,
                {"keys": keys},
            )
        for key in keys:
            if not validate_cache_key(key):
                return self._fail(
                    CacheErrorKind.INVALID_KEY,
                    "mg_2",
                    ApiErrorIdentifier.INVALID_CACHE_KEY,
                    {"invalid_key": key},
                )

        try:
            raw = await self._multi_get(list(keys))
        except Exception as e:
            return self._backend_error("mg_3", "multi_get", e)

        response: dict[str, Any] = {}
        for key in keys:
            value = raw.get(key)
            if is_scalar_value(value):
                response[key] = value
                self._hits += 1
            else:
                response[key] = None
                self._misses += 1
        return CacheResult.success(response)

    async def increment(self, key: str, by_value: int = 1) -> CacheResult:
        """
        Increment the numeric value of an existing key.

        Returns:
            Success with the new value; MISSING_KEY if the key does not exist
        """
        return await self._change_counter("i", "increment", key, by_value)

    async def decrement(self, key: str, by_value: int = 1) -> CacheResult:
        """
        Decrement the numeric value of an existing key. Never goes below zero.

        Returns:
            Success with the new value; MISSING_KEY if the key does not exist
        """
        return await self._change_counter("dc", "decrement", key, by_value)

    async def _change_counter(self, code: str, operation: str, key: str, by_value: int) -> CacheResult:
        if not validate_cache_key(key):
            return self._invalid_key(f"{code}_1", key)
        if not validate_positive_integer(by_value):
            return self._fail(
                CacheErrorKind.INVALID_EXPIRY,
                f"{code}_2",
                ApiErrorIdentifier.NON_INT_CACHE_VALUE,
                {"by_value": by_value},
            )

        hook = self._increment if operation == "increment" else self._decrement
        try:
            value = await hook(key, by_value)
        except Exception as e:
            return self._backend_error(f"{code}_3", operation, e, key=key)

        if value is None:
            return self._missing_key(f"{code}_4", key)
        return CacheResult.success(value)

    async def touch(self, key: str, lifetime: int) -> CacheResult:
        """
        Change the expiry time of an existing key.

        Args:
            key: Cache key
            lifetime: New expiry in seconds; 0 keeps the key forever

        Returns:
            Success with True; MISSING_KEY if the key does not exist
        """
        if not validate_cache_key(key):
            return self._invalid_key("t_1", key)
        if not validate_cache_expiry(lifetime):
            return self._fail(
                CacheErrorKind.INVALID_EXPIRY,
                "t_2",
                ApiErrorIdentifier.CACHE_EXPIRY_NAN,
                {"lifetime": lifetime},
            )

        try:
            touched = await self._touch(key, self._normalize_lifetime(lifetime))
        except Exception as e:
            return self._backend_error("t_3", "touch", e, key=key)

        if not touched:
            return self._missing_key("t_4", key)
        return CacheResult.success(True)

    async def delete_all(self) -> CacheResult:
        """
        Delete every key of the backend namespace.

        Not scoped to any key prefix: the whole database / server pool /
        in-process namespace is flushed.
        """
        try:
            await self._flush()
        except Exception as e:
            return self._backend_error("da_1", "delete_all", e, ApiErrorIdentifier.FLUSH_ALL_KEYS_FAILED)

        logger.info(
            "Flushed %s cache",
            self.engine.value,
            extra={"backend": self.engine.value},
        )
        return CacheResult.success(None)

    async def get_stats(self) -> dict[str, Any]:
        """Get operation counters for this instance."""
        total_requests = self._hits + self._misses
        hit_rate = (self._hits / total_requests * 100) if total_requests > 0 else 0.0
        return {
            "backend": self.engine.value,
            "consistent_behavior": self.consistent_behavior,
            "default_ttl": self.default_ttl,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(hit_rate, 2),
            "sets": self._sets,
            "deletes": self._deletes,
        }
