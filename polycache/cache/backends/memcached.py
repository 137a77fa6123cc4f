"""
polycache - Memcached Cache Backend

Networked object-cache engine on pymemcache's consistent-hashing client.

Memcached is the reference for the shared contract: its native semantics
(objects stored whole, incr/decr failing on a missing key, decr saturating
at zero, lifetime 0 meaning "never expire") are what the other engines are
reconciled to, so this backend needs little normalization of its own.

pymemcache is a blocking client; every engine call runs in a worker thread
through asyncio.to_thread, one call per operation.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from pymemcache.client.hash import HashClient

from ...config.schemas import CacheEngine
from ...errors import CacheOperationError
from ..interface import CacheInterface
from ..serialization import JsonSerde
from ..validation import is_mapping_value, is_scalar_value

logger = logging.getLogger(__name__)

DEFAULT_MEMCACHED_PORT = 11211

# Memcached reads larger expiry values as an absolute unix timestamp
MAX_RELATIVE_EXPIRY = 60 * 60 * 24 * 30


def native_expiry(ttl: int) -> int:
    """Convert a relative TTL in seconds to the expiry value memcached expects."""
    if ttl > MAX_RELATIVE_EXPIRY:
        return int(time.time()) + ttl
    return ttl


def parse_server(server: str) -> tuple[str, int]:
    """Split "host:port" (port optional) into a pymemcache server tuple."""
    host, sep, port = server.strip().rpartition(":")
    if not sep:
        return server.strip(), DEFAULT_MEMCACHED_PORT
    return host, int(port)


class MemcachedCacheBackend(CacheInterface):
    """
    Memcached cache backend.

    Notes:
    - Keys are distributed over the server list by consistent hashing.
    - Integers are stored as ASCII digits so incr/decr work on them.
    - A failing server is retried ``retries`` times, then marked dead for
      ``dead_timeout`` seconds before reconnecting.
    """

    engine = CacheEngine.MEMCACHED
    error_prefix = "c_m"

    def __init__(
        self,
        servers: list[str],
        default_ttl: int = 3600,
        consistent_behavior: bool = True,
        timeout: float = 0.5,
        retries: int = 1,
        dead_timeout: float = 1.0,
        client: Any | None = None,
    ) -> None:
        """
        Initialize Memcached cache backend.

        Args:
            servers: Server addresses as "host:port"
            default_ttl: Default TTL in seconds (0 => no expiry)
            consistent_behavior: Reconcile engine quirks across backends
            timeout: Connect and per-call timeout in seconds
            retries: Attempts against a failing server before marking it dead
            dead_timeout: Seconds before a dead server is tried again
            client: Pre-built pymemcache-like client (tests, custom hashing)
        """
        if not servers:
            raise ValueError("at least one memcached server is required")

        super().__init__(default_ttl=default_ttl, consistent_behavior=consistent_behavior)
        self.servers = list(servers)

        if client is None:
            client = HashClient(
                servers=[parse_server(server) for server in self.servers],
                serde=JsonSerde(),
                connect_timeout=timeout,
                timeout=timeout,
                retry_attempts=retries,
                dead_timeout=dead_timeout,
                use_pooling=True,
                allow_unicode_keys=True,
                ignore_exc=False,
                default_noreply=False,
            )
        self._client = client

    async def _call(self, func: Any, *args: Any, **kwargs: Any) -> Any:
        return await asyncio.to_thread(func, *args, **kwargs)

    # ------------ Engine hooks ------------

    async def _get(self, key: str) -> Any | None:
        value = await self._call(self._client.get, key)
        if self.consistent_behavior and value is not None and not is_scalar_value(value):
            # Objects are only readable through get_object()
            return None
        return value

    async def _get_object(self, key: str) -> Any | None:
        value = await self._call(self._client.get, key)
        if self.consistent_behavior and value is not None and not is_mapping_value(value):
            return None
        return value

    async def _store(self, operation: str, key: str, value: Any, ttl: int) -> None:
        stored = await self._call(self._client.set, key, value, expire=native_expiry(ttl), noreply=False)
        if not stored:
            raise CacheOperationError(operation, "value not stored", details={"key": key})

    async def _set(self, key: str, value: Any, ttl: int) -> None:
        await self._store("set", key, value, ttl)

    async def _set_object(self, key: str, value: Any, ttl: int) -> None:
        if isinstance(value, tuple):
            value = list(value)
        elif is_mapping_value(value):
            value = dict(value)
        await self._store("set_object", key, value, ttl)

    async def _delete(self, key: str) -> None:
        await self._call(self._client.delete, key, noreply=False)

    async def _multi_get(self, keys: list[str]) -> dict[str, Any]:
        return await self._call(self._client.get_many, keys)

    async def _increment(self, key: str, by_value: int) -> int | None:
        return await self._call(self._client.incr, key, by_value, noreply=False)

    async def _decrement(self, key: str, by_value: int) -> int | None:
        return await self._call(self._client.decr, key, by_value, noreply=False)

    async def _touch(self, key: str, lifetime: int) -> bool:
        return bool(await self._call(self._client.touch, key, expire=native_expiry(lifetime), noreply=False))

    async def _flush(self) -> None:
        await self._call(self._client.flush_all, noreply=False)

    # ------------ Lifecycle ------------

    async def get_stats(self) -> dict[str, Any]:
        """Return cache statistics for this instance."""
        stats = await super().get_stats()
        stats["servers"] = self.servers
        return stats

    async def close(self) -> None:
        """Close all server connections."""
        try:
            await self._call(self._client.close)
            logger.info("Closed Memcached cache backend (%s)", ",".join(self.servers))
        except Exception as e:
            logger.error(
                "Error closing Memcached client: %s",
                e,
                extra={"servers": self.servers, "error": str(e)},
                exc_info=True,
            )
