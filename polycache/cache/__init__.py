"""
polycache - Cache Module

One cache contract over interchangeable engines.

- factory.py: resolves configurations to pooled backend instances
- registry.py: fingerprint -> instance map
- interface.py: the shared contract every backend implements
- backends/: Redis, Memcached and in-process implementations

Usage:
    from polycache.cache import resolve
    from polycache.config import CacheConfig, CacheEngine

    cache = resolve(CacheConfig(engine=CacheEngine.MEMORY))
    await cache.set("key", "value", ttl=3600)
    result = await cache.get("key")
    if result.is_success():
        print(result.response)
"""

from .factory import (
    close_all_caches,
    create_cache,
    get_default_registry,
    list_cache_instances,
    reset_cache_factory,
    resolve,
)
from .interface import CacheInterface
from .registry import InstanceRegistry, fingerprint
from .result import CacheFailure, CacheResult

__all__ = [
    # Factory functions
    "resolve",
    "create_cache",
    "get_default_registry",
    "close_all_caches",
    "list_cache_instances",
    "reset_cache_factory",
    # Registry
    "InstanceRegistry",
    "fingerprint",
    # Interface and results
    "CacheInterface",
    "CacheResult",
    "CacheFailure",
]
