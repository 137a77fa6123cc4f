"""
polycache - Live Engine Tests

Runs a core slice of the shared contract against real Redis and Memcached
servers. Skipped when the servers are not reachable.

Servers are read from TEST_REDIS_HOST/TEST_REDIS_PORT and TEST_MEMCACHE_SERVER
(default localhost). Redis database 15 is used and flushed.
"""

import os
import socket
from collections.abc import AsyncGenerator

import pytest

from polycache.cache import InstanceRegistry, resolve
from polycache.cache.interface import CacheInterface
from polycache.errors import CacheErrorKind

REDIS_HOST = os.environ.get("TEST_REDIS_HOST", "localhost")
REDIS_PORT = int(os.environ.get("TEST_REDIS_PORT", "6379"))
MEMCACHE_SERVER = os.environ.get("TEST_MEMCACHE_SERVER", "localhost:11211")


def is_server_available(host: str, port: int) -> bool:
    """Check if a TCP server is reachable."""
    try:
        with socket.create_connection((host, port), timeout=1):
            return True
    except OSError:
        return False


def _live_config(engine: str) -> dict:
    if engine == "redis":
        return {
            "engine": "redis",
            "redis_host": REDIS_HOST,
            "redis_port": REDIS_PORT,
            "redis_password": os.environ.get("TEST_REDIS_PASSWORD", ""),
            "redis_tls_enabled": False,
            "redis_db": 15,
        }
    return {"engine": "memcached", "memcache_servers": [MEMCACHE_SERVER]}


def _reachable(engine: str) -> bool:
    if engine == "redis":
        return is_server_available(REDIS_HOST, REDIS_PORT)
    host, _, port = MEMCACHE_SERVER.rpartition(":")
    return is_server_available(host, int(port))


@pytest.fixture(params=["redis", "memcached"])
async def live_cache(request: pytest.FixtureRequest) -> AsyncGenerator[CacheInterface, None]:
    if not _reachable(request.param):
        pytest.skip(f"{request.param} server not available")

    registry = InstanceRegistry()
    cache = resolve(_live_config(request.param), registry=registry)
    await cache.delete_all()
    yield cache
    await cache.delete_all()
    await registry.close_all()


class TestLiveEngines:
    async def test_scalar_round_trip(self, live_cache: CacheInterface) -> None:
        assert (await live_cache.set("live:greeting", "hello", ttl=60)).is_success()
        assert (await live_cache.get("live:greeting")).response == "hello"

    async def test_object_round_trip(self, live_cache: CacheInterface) -> None:
        profile = {"name": "Ada", "visits": 3}

        assert (await live_cache.set_object("live:profile", profile)).is_success()
        assert (await live_cache.get_object("live:profile")).response == profile
        assert (await live_cache.get("live:profile")).response is None

    async def test_counters(self, live_cache: CacheInterface) -> None:
        await live_cache.set("live:counter", 4)

        assert (await live_cache.increment("live:counter", 6)).response == 10
        assert (await live_cache.decrement("live:counter", 20)).response == 0
        assert (await live_cache.increment("live:missing")).kind == CacheErrorKind.MISSING_KEY

    async def test_multi_get(self, live_cache: CacheInterface) -> None:
        await live_cache.set("live:a", "alpha")
        await live_cache.set("live:b", 2)

        result = await live_cache.multi_get(["live:a", "live:b", "live:none"])
        assert result.response == {"live:a": "alpha", "live:b": 2, "live:none": None}

    async def test_touch_and_delete(self, live_cache: CacheInterface) -> None:
        await live_cache.set("live:key", "v", ttl=60)

        assert (await live_cache.touch("live:key", 0)).is_success()
        assert (await live_cache.delete("live:key")).is_success()
        assert (await live_cache.touch("live:key", 10)).kind == CacheErrorKind.MISSING_KEY
