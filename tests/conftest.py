"""
polycache - Test Configuration and Shared Fixtures

Provides in-process stand-ins for the Redis and Memcached clients so the
full contract can be exercised without servers.
"""

import time
from collections.abc import Callable, Generator
from typing import Any

import pytest
from pymemcache.exceptions import MemcacheClientError
from redis.exceptions import ResponseError

from polycache.cache.backends.memcached import MemcachedCacheBackend
from polycache.cache.backends.memory import MemoryCacheBackend
from polycache.cache.backends.redis import RedisCacheBackend
from polycache.cache.interface import CacheInterface
from polycache.cache.serialization import JsonSerde

WRONGTYPE = "WRONGTYPE Operation against a key holding the wrong kind of value"
MEMCACHED_MAX_RELATIVE_EXPIRY = 60 * 60 * 24 * 30


class FakeRedis:
    """In-memory stub of the redis.asyncio.Redis commands used by the backend (decode_responses=True)."""

    def __init__(self) -> None:
        # key -> (value, expiry); value is str for strings, dict for hashes
        self._store: dict[str, tuple[Any, float | None]] = {}
        self.commands: list[tuple[Any, ...]] = []
        self.closed = False

    def _live(self, key: str) -> Any | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        if entry[1] is not None and time.time() >= entry[1]:
            del self._store[key]
            return None
        return entry[0]

    def _expiry(self, key: str) -> float | None:
        return self._store[key][1]

    def ttl_of(self, key: str) -> float | None:
        """Test helper: expiry timestamp of a live key."""
        self._live(key)
        return self._store[key][1] if key in self._store else None

    async def get(self, key: str) -> str | None:
        self.commands.append(("get", key))
        value = self._live(key)
        if isinstance(value, dict):
            raise ResponseError(WRONGTYPE)
        return value

    async def set(self, key: str, value: str, ex: int | None = None, keepttl: bool = False) -> bool:
        self.commands.append(("set", key, value, ex))
        if ex is not None and ex <= 0:
            raise ResponseError("invalid expire time in 'set' command")
        if keepttl and self._live(key) is not None:
            expiry = self._expiry(key)
        else:
            expiry = time.time() + ex if ex else None
        self._store[key] = (value, expiry)
        return True

    async def mget(self, keys: list[str]) -> list[str | None]:
        self.commands.append(("mget", tuple(keys)))
        values = []
        for key in keys:
            value = self._live(key)
            values.append(value if isinstance(value, str) else None)
        return values

    async def hgetall(self, key: str) -> dict[str, str]:
        self.commands.append(("hgetall", key))
        value = self._live(key)
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ResponseError(WRONGTYPE)
        return dict(value)

    async def hset(self, key: str, mapping: dict[str, str]) -> int:
        self.commands.append(("hset", key))
        if not mapping:
            raise ResponseError("wrong number of arguments for 'hset' command")
        value = self._live(key)
        if value is None:
            self._store[key] = ({}, None)
            value = self._store[key][0]
        elif not isinstance(value, dict):
            raise ResponseError(WRONGTYPE)
        value.update(mapping)
        return len(mapping)

    async def delete(self, *keys: str) -> int:
        self.commands.append(("delete", *keys))
        count = 0
        for key in keys:
            if self._live(key) is not None:
                del self._store[key]
                count += 1
        return count

    async def exists(self, *keys: str) -> int:
        return sum(1 for key in keys if self._live(key) is not None)

    async def _change(self, key: str, delta: int) -> int:
        value = self._live(key)
        if value is None:
            value, expiry = "0", None
        else:
            expiry = self._expiry(key)
        if isinstance(value, dict):
            raise ResponseError(WRONGTYPE)
        try:
            current = int(value)
        except ValueError as e:
            raise ResponseError("value is not an integer or out of range") from e
        self._store[key] = (str(current + delta), expiry)
        return current + delta

    async def incrby(self, key: str, amount: int) -> int:
        self.commands.append(("incrby", key, amount))
        return await self._change(key, amount)

    async def decrby(self, key: str, amount: int) -> int:
        self.commands.append(("decrby", key, amount))
        return await self._change(key, -amount)

    async def expire(self, key: str, seconds: int) -> bool:
        self.commands.append(("expire", key, seconds))
        value = self._live(key)
        if value is None:
            return False
        if seconds <= 0:
            del self._store[key]
        else:
            self._store[key] = (value, time.time() + seconds)
        return True

    async def persist(self, key: str) -> bool:
        self.commands.append(("persist", key))
        value = self._live(key)
        if value is None or self._expiry(key) is None:
            return False
        self._store[key] = (value, None)
        return True

    async def flushdb(self) -> bool:
        self.commands.append(("flushdb",))
        self._store.clear()
        return True

    async def ping(self) -> bool:
        return True

    async def info(self, section: str | None = None) -> dict[str, Any]:
        return {"redis_version": "7.2.0-fake", "redis_mode": "standalone"}

    async def aclose(self) -> None:
        self.closed = True

    def pipeline(self, transaction: bool = True) -> "FakePipeline":
        return FakePipeline(self, transaction)


class FakePipeline:
    """Buffers commands and runs them back to back on execute()."""

    def __init__(self, client: FakeRedis, transaction: bool) -> None:
        self._client = client
        self.transaction = transaction
        self._queued: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []

    async def __aenter__(self) -> "FakePipeline":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self._queued.clear()

    def __getattr__(self, name: str) -> Callable[..., "FakePipeline"]:
        def queue(*args: Any, **kwargs: Any) -> "FakePipeline":
            self._queued.append((name, args, kwargs))
            return self

        return queue

    async def execute(self) -> list[Any]:
        self._client.commands.append(("multi", self.transaction))
        results = []
        for name, args, kwargs in self._queued:
            results.append(await getattr(self._client, name)(*args, **kwargs))
        self._client.commands.append(("exec",))
        self._queued.clear()
        return results


class FakeMemcache:
    """In-memory stub of the pymemcache client commands used by the backend."""

    def __init__(self, serde: Any | None = None) -> None:
        self.serde = serde or JsonSerde()
        # key -> (payload bytes, flags, expiry)
        self._store: dict[str, tuple[bytes, int, float | None]] = {}
        self.closed = False

    @staticmethod
    def _expiry(expire: int) -> float | None:
        if not expire:
            return None
        # Like the server: above 30 days the value is an absolute unix time
        if expire > MEMCACHED_MAX_RELATIVE_EXPIRY:
            return float(expire)
        return time.time() + expire

    def _live(self, key: str) -> tuple[bytes, int, float | None] | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        if entry[2] is not None and time.time() >= entry[2]:
            del self._store[key]
            return None
        return entry

    def get(self, key: str, default: Any = None) -> Any:
        entry = self._live(key)
        if entry is None:
            return default
        return self.serde.deserialize(key, entry[0], entry[1])

    def get_many(self, keys: list[str]) -> dict[str, Any]:
        result = {}
        for key in keys:
            entry = self._live(key)
            if entry is not None:
                result[key] = self.serde.deserialize(key, entry[0], entry[1])
        return result

    def set(self, key: str, value: Any, expire: int = 0, noreply: bool | None = None) -> bool:
        payload, flags = self.serde.serialize(key, value)
        self._store[key] = (payload, flags, self._expiry(expire))
        return True

    def delete(self, key: str, noreply: bool | None = None) -> bool:
        return self._store.pop(key, None) is not None

    def _change(self, key: str, delta: int) -> int | None:
        entry = self._live(key)
        if entry is None:
            return None
        payload, flags, expiry = entry
        if not payload.strip().isdigit():
            raise MemcacheClientError(b"cannot increment or decrement non-numeric value")
        value = max(0, int(payload.strip()) + delta)
        self._store[key] = (str(value).encode("ascii"), flags, expiry)
        return value

    def incr(self, key: str, value: int, noreply: bool = False) -> int | None:
        return self._change(key, value)

    def decr(self, key: str, value: int, noreply: bool = False) -> int | None:
        return self._change(key, -value)

    def touch(self, key: str, expire: int = 0, noreply: bool | None = None) -> bool:
        entry = self._live(key)
        if entry is None:
            return False
        self._store[key] = (entry[0], entry[1], self._expiry(expire))
        return True

    def flush_all(self, delay: int = 0, noreply: bool | None = None) -> bool:
        self._store.clear()
        return True

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def fake_memcache() -> FakeMemcache:
    return FakeMemcache()


CacheMaker = Callable[..., CacheInterface]


@pytest.fixture
def make_cache(fake_redis: FakeRedis, fake_memcache: FakeMemcache) -> CacheMaker:
    """Build a backend of the given engine on top of the fake clients."""

    def make(engine: str, consistent_behavior: bool = True, default_ttl: int = 3600) -> CacheInterface:
        if engine == "redis":
            return RedisCacheBackend(
                default_ttl=default_ttl,
                consistent_behavior=consistent_behavior,
                client=fake_redis,
            )
        if engine == "memcached":
            return MemcachedCacheBackend(
                servers=["127.0.0.1:11211"],
                default_ttl=default_ttl,
                consistent_behavior=consistent_behavior,
                client=fake_memcache,
            )
        return MemoryCacheBackend(
            namespace="test",
            default_ttl=default_ttl,
            consistent_behavior=consistent_behavior,
        )

    return make


@pytest.fixture(params=["redis", "memcached", "memory"])
def engine_cache(request: pytest.FixtureRequest, make_cache: CacheMaker) -> CacheInterface:
    """Every engine in consistent-behavior mode."""
    return make_cache(request.param)


@pytest.fixture(autouse=True)
def reset_cache_factory() -> Generator[None, None, None]:
    """Reset cache factory and loaded configuration after each test to prevent state leakage."""
    yield
    from polycache.cache.factory import reset_cache_factory
    from polycache.config import reset_config

    reset_cache_factory()
    reset_config()
