"""
polycache - Memory Cache Backend

In-process cache following the object-cache engine's semantics:
- values (scalars and objects) are stored as-is
- increment/decrement fail on a missing key, decrement saturates at zero
- a lifetime of 0 keeps the key forever

No eviction: entries leave the store only when they expire, are deleted,
or the namespace is flushed.
"""

import copy
import logging
import threading
import time
from typing import Any

from ...config.schemas import CacheEngine
from ...errors import CacheOperationError
from ..interface import CacheInterface
from ..validation import is_scalar_value

logger = logging.getLogger(__name__)


class MemoryCacheBackend(CacheInterface):
    """
    In-memory cache backend.

    Features:
    - Per-key TTL support with lazy expiry on access
    - threading.Lock around every store access; usable from any thread or event loop
    - Stored objects are deep-copied so callers cannot mutate cached state
    """

    engine = CacheEngine.MEMORY
    error_prefix = "c_i"

    def __init__(
        self,
        namespace: str = "",
        default_ttl: int = 3600,
        consistent_behavior: bool = True,
    ):
        """
        Initialize memory cache backend.

        Args:
            namespace: Name of the in-process store
            default_ttl: Default TTL in seconds (0 = no expiry)
            consistent_behavior: Reconcile engine quirks across backends
        """
        super().__init__(default_ttl=default_ttl, consistent_behavior=consistent_behavior)
        self.namespace = namespace

        # Cache storage: key -> (value, expiry_time)
        self._cache: dict[str, tuple[Any, float | None]] = {}

        # No critical section awaits, so the lock is not tied to an event loop
        self._lock = threading.Lock()

    @staticmethod
    def _expiry_for(ttl: int) -> float | None:
        return time.time() + ttl if ttl > 0 else None

    def _is_expired(self, expiry: float | None) -> bool:
        """Check if entry is expired."""
        if expiry is None:
            return False
        return time.time() >= expiry

    def _lookup(self, key: str) -> tuple[Any, float | None] | None:
        """Return the live entry for key, dropping it if expired. Caller holds the lock."""
        entry = self._cache.get(key)
        if entry is None:
            return None
        if self._is_expired(entry[1]):
            del self._cache[key]
            return None
        return entry

    async def _get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._lookup(key)
        if entry is None:
            return None
        value = entry[0]
        if self.consistent_behavior and not is_scalar_value(value):
            # Objects are only readable through get_object()
            return None
        return copy.deepcopy(value)

    async def _get_object(self, key: str) -> Any | None:
        with self._lock:
            entry = self._lookup(key)
        if entry is None:
            return None
        value = entry[0]
        if self.consistent_behavior and not isinstance(value, dict):
            return None
        return copy.deepcopy(value)

    async def _set(self, key: str, value: Any, ttl: int) -> None:
        with self._lock:
            self._cache[key] = (copy.deepcopy(value), self._expiry_for(ttl))

    async def _set_object(self, key: str, value: Any, ttl: int) -> None:
        value = list(value) if isinstance(value, (list, tuple)) else dict(value)
        with self._lock:
            self._cache[key] = (copy.deepcopy(value), self._expiry_for(ttl))

    async def _delete(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)

    async def _multi_get(self, keys: list[str]) -> dict[str, Any]:
        result: dict[str, Any] = {}
        with self._lock:
            for key in keys:
                entry = self._lookup(key)
                if entry is not None:
                    result[key] = entry[0]
        return result

    async def _change_numeric(self, operation: str, key: str, delta: int) -> int | None:
        with self._lock:
            entry = self._lookup(key)
            if entry is None:
                return None

            value, expiry = entry
            is_text = isinstance(value, str)
            if is_text and value.strip().isdigit():
                value = int(value.strip())
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise CacheOperationError(
                    operation,
                    "cannot increment or decrement non-numeric value",
                    details={"key": key},
                )

            # Same saturation rule as the object-cache engine
            new_value = max(0, value + delta)
            # Text counters stay text, as the object-cache engine keeps their flags
            self._cache[key] = (str(new_value) if is_text else new_value, expiry)
            return new_value

    async def _increment(self, key: str, by_value: int) -> int | None:
        return await self._change_numeric("increment", key, by_value)

    async def _decrement(self, key: str, by_value: int) -> int | None:
        return await self._change_numeric("decrement", key, -by_value)

    async def _touch(self, key: str, lifetime: int) -> bool:
        with self._lock:
            entry = self._lookup(key)
            if entry is None:
                return False
            self._cache[key] = (entry[0], self._expiry_for(lifetime))
            return True

    async def _flush(self) -> None:
        with self._lock:
            size = len(self._cache)
            self._cache.clear()
        logger.debug("Cleared %d entries from memory cache namespace '%s'", size, self.namespace)

    async def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        stats = await super().get_stats()
        with self._lock:
            stats["size"] = len(self._cache)
        stats["namespace"] = self.namespace
        return stats

    async def close(self) -> None:
        """Memory backend holds no external resources."""
        logger.debug("Memory cache backend closed for namespace '%s'", self.namespace)
