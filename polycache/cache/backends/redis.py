"""
polycache - Redis Cache Backend

Networked key-value engine on the redis-py asyncio client.

Storage layout:
- scalars are stored as JSON text strings (SET/GET/MGET)
- objects are stored as hashes, one JSON encoded field per mapping entry

Consistent behavior reconciles Redis with the object-cache engine:
- increment/decrement refuse to auto-create a missing key, and decrement
  never goes below zero
- touch with lifetime 0 keeps the key forever instead of expiring it
- reading a key through the wrong accessor yields None instead of WRONGTYPE

Requires: redis>=5.0 with asyncio support
"""

from __future__ import annotations

import logging
from typing import Any

from redis.asyncio import Redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ...config.schemas import CacheEngine
from ..interface import CacheInterface
from ..serialization import from_json, to_json
from ..validation import is_scalar_value

logger = logging.getLogger(__name__)

# Lifetime substituted for 0 in consistent mode; applied with PERSIST
NEVER_EXPIRE = -1


def _is_wrong_type(error: ResponseError) -> bool:
    return str(error).startswith("WRONGTYPE")


class RedisCacheBackend(CacheInterface):
    """
    Redis cache backend.

    Notes:
    - One client (with its own connection pool) per instance, shared by all callers.
    - Connection errors and timeouts are retried by the client with
      exponential backoff; this layer never retries.
    - set_object replaces the hash inside a MULTI/EXEC transaction so readers
      never observe a half-written object.
    """

    engine = CacheEngine.REDIS
    error_prefix = "c_r"
    supports_array_objects = False

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        password: str | None = None,
        tls_enabled: bool = False,
        db: int = 0,
        default_ttl: int = 3600,
        consistent_behavior: bool = True,
        socket_timeout: float = 5.0,
        retries: int = 1,
        client: Any | None = None,
    ) -> None:
        """
        Initialize Redis cache backend.

        Args:
            host: Redis host
            port: Redis port
            password: AUTH password (None or "" = no AUTH)
            tls_enabled: Connect over TLS
            db: Logical database number
            default_ttl: Default TTL in seconds (0 => no expiry)
            consistent_behavior: Reconcile engine quirks across backends
            socket_timeout: Per-call socket timeout in seconds
            retries: Client-level retries on connection errors and timeouts
            client: Pre-built redis.asyncio.Redis-like client (tests, custom pools)
        """
        super().__init__(default_ttl=default_ttl, consistent_behavior=consistent_behavior)
        self.host = host
        self.port = port
        self.db = db
        self.tls_enabled = tls_enabled

        if client is None:
            # Lazy connection; connects on first command
            client = Redis(
                host=host,
                port=port,
                db=db,
                password=password or None,
                ssl=tls_enabled,
                decode_responses=True,
                socket_timeout=socket_timeout,
                socket_connect_timeout=socket_timeout,
                retry=Retry(ExponentialBackoff(), retries),
                retry_on_error=[RedisConnectionError, RedisTimeoutError],
            )
        self._client = client

    # ------------ Policy hooks ------------

    def _accepts_set_value(self, value: Any) -> bool:
        # Plain keys only hold strings; objects go through set_object()
        return is_scalar_value(value)

    def _accepts_empty_object(self) -> bool:
        # HSET needs at least one field
        return False

    def _normalize_lifetime(self, lifetime: int) -> int:
        if lifetime == 0 and self.consistent_behavior:
            return NEVER_EXPIRE
        return lifetime

    # ------------ Engine hooks ------------

    async def _get(self, key: str) -> Any | None:
        try:
            raw = await self._client.get(key)
        except ResponseError as e:
            if self.consistent_behavior and _is_wrong_type(e):
                return None
            raise
        return from_json(raw)

    async def _get_object(self, key: str) -> Any | None:
        try:
            data = await self._client.hgetall(key)
        except ResponseError as e:
            if self.consistent_behavior and _is_wrong_type(e):
                return None
            raise

        if not data:
            # Redis has no empty hashes: an empty reply means the key is absent
            return None
        return {field: from_json(raw) for field, raw in data.items()}

    async def _set(self, key: str, value: Any, ttl: int) -> None:
        # EX must be positive; 0 stores the key without expiry
        await self._client.set(key, to_json(value), ex=ttl if ttl > 0 else None)

    async def _set_object(self, key: str, value: Any, ttl: int) -> None:
        # HSET merges into an existing hash, so the old hash is dropped first
        fields = {str(field): to_json(item) for field, item in value.items()}
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.delete(key)
            pipe.hset(key, mapping=fields)
            if ttl > 0:
                pipe.expire(key, ttl)
            await pipe.execute()

    async def _delete(self, key: str) -> None:
        await self._client.delete(key)

    async def _multi_get(self, keys: list[str]) -> dict[str, Any]:
        # MGET answers nil for keys holding a hash
        values = await self._client.mget(keys)
        return {key: from_json(raw) for key, raw in zip(keys, values, strict=True)}

    async def _current_counter(self, key: str) -> tuple[int, bool] | None:
        """
        Current positive value of key and whether it is stored as text.

        None if absent or not a positive integer. Digit strings count, as on
        the other engines.
        """
        current = await self._get(key)
        is_text = isinstance(current, str)
        if is_text and current.strip().isdigit():
            current = int(current.strip())
        if not isinstance(current, int) or isinstance(current, bool) or current <= 0:
            return None
        return current, is_text

    async def _store_text_counter(self, key: str, value: int) -> int:
        # A JSON string is not an integer to INCRBY; rewrite it keeping its TTL
        await self._client.set(key, to_json(str(value)), keepttl=True)
        return value

    async def _increment(self, key: str, by_value: int) -> int | None:
        if self.consistent_behavior:
            counter = await self._current_counter(key)
            if counter is None:
                # INCRBY would create the key at zero
                return None
            current, is_text = counter
            if is_text:
                return await self._store_text_counter(key, current + by_value)
        return int(await self._client.incrby(key, by_value))

    async def _decrement(self, key: str, by_value: int) -> int | None:
        if self.consistent_behavior:
            counter = await self._current_counter(key)
            if counter is None:
                return None
            current, is_text = counter
            by_value = min(by_value, current)
            if is_text:
                return await self._store_text_counter(key, current - by_value)
        return int(await self._client.decrby(key, by_value))

    async def _touch(self, key: str, lifetime: int) -> bool:
        if lifetime == NEVER_EXPIRE:
            # PERSIST answers 0 both for a missing key and a key without TTL
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.exists(key)
                pipe.persist(key)
                exists, _ = await pipe.execute()
            return bool(exists)
        return bool(await self._client.expire(key, lifetime))

    async def _flush(self) -> None:
        await self._client.flushdb()

    # ------------ Lifecycle ------------

    async def get_stats(self) -> dict[str, Any]:
        """Return cache statistics and basic Redis info."""
        stats = await super().get_stats()
        stats.update({"host": self.host, "port": self.port, "db": self.db, "connected": False})

        try:
            stats["connected"] = bool(await self._client.ping())
            info = await self._client.info(section="server")
            stats["redis_version"] = info.get("redis_version")
            stats["redis_mode"] = info.get("redis_mode")
        except Exception as e:
            # INFO may be restricted; keep minimal stats
            logger.warning("Failed to get Redis INFO (restricted or unavailable): %s", e, extra={"error": str(e)})

        return stats

    async def close(self) -> None:
        """Close the Redis client and release its connection pool."""
        try:
            await self._client.aclose()
            logger.info("Closed Redis cache backend %s:%s", self.host, self.port)
        except Exception as e:
            logger.error(
                "Error closing Redis client: %s",
                e,
                extra={"host": self.host, "port": self.port, "error": str(e)},
                exc_info=True,
            )
