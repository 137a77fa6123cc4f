"""
polycache - Cache Factory

Canonical factory for obtaining cache instances from configuration.

Key points:
- The engine is picked from a closed dispatch table keyed by CacheEngine.
- Instances are pooled in an InstanceRegistry by configuration fingerprint:
  equal fingerprints share one instance (and one engine connection).
- Unknown engines and missing mandatory connection parameters raise
  ConfigurationError here, before any instance is built.

Examples:
    from polycache.cache import resolve
    from polycache.config import CacheConfig, CacheEngine

    cache = resolve(CacheConfig(engine=CacheEngine.MEMORY, inmemory_namespace="app"))
    result = await cache.set("greeting", "hello", ttl=60)

    # Or from a plain mapping, e.g. parsed from a config file
    cache = resolve({"engine": "redis", "redis_host": "localhost", "redis_port": 6379,
                     "redis_password": "", "redis_tls_enabled": False})
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import ValidationError

from ..config import CacheConfig, CacheEngine, get_config
from ..errors import ConfigurationError
from .backends.memory import MemoryCacheBackend
from .interface import CacheInterface
from .registry import InstanceRegistry, fingerprint

logger = logging.getLogger(__name__)

# Process-wide default registry
_default_registry = InstanceRegistry()


def _create_memory_cache(config: CacheConfig) -> CacheInterface:
    """Internal helper to construct a memory cache backend."""
    return MemoryCacheBackend(
        namespace=config.inmemory_namespace,
        default_ttl=config.default_ttl,
        consistent_behavior=config.consistent_behavior,
    )


def _create_redis_cache(config: CacheConfig) -> CacheInterface:
    """Internal helper to construct a redis cache backend with lazy import."""
    try:
        from .backends.redis import RedisCacheBackend
    except ImportError as e:
        logger.error(
            "Redis engine selected but redis client is not installed",
            extra={"package": "redis>=5.0.0", "error": str(e)},
        )
        raise ConfigurationError(
            "Redis engine selected but redis client is unavailable. Install with: pip install 'redis>=5.0.0'",
            details={"package": "redis>=5.0.0", "error": str(e), "engine": "redis"},
        ) from e

    return RedisCacheBackend(
        host=config.redis_host or "",
        port=config.redis_port or 6379,
        password=config.redis_password,
        tls_enabled=bool(config.redis_tls_enabled),
        db=config.redis_db,
        default_ttl=config.default_ttl,
        consistent_behavior=config.consistent_behavior,
        socket_timeout=config.redis_socket_timeout,
        retries=config.redis_retries,
    )


def _create_memcached_cache(config: CacheConfig) -> CacheInterface:
    """Internal helper to construct a memcached cache backend with lazy import."""
    try:
        from .backends.memcached import MemcachedCacheBackend
    except ImportError as e:
        logger.error(
            "Memcached engine selected but pymemcache is not installed",
            extra={"package": "pymemcache>=4.0.0", "error": str(e)},
        )
        raise ConfigurationError(
            "Memcached engine selected but pymemcache is unavailable. Install with: pip install 'pymemcache>=4.0.0'",
            details={"package": "pymemcache>=4.0.0", "error": str(e), "engine": "memcached"},
        ) from e

    return MemcachedCacheBackend(
        servers=list(config.memcache_servers or []),
        default_ttl=config.default_ttl,
        consistent_behavior=config.consistent_behavior,
        timeout=config.memcache_timeout,
        retries=config.memcache_retries,
        dead_timeout=config.memcache_dead_timeout,
    )


_BUILDERS: dict[CacheEngine, Callable[[CacheConfig], CacheInterface]] = {
    CacheEngine.REDIS: _create_redis_cache,
    CacheEngine.MEMCACHED: _create_memcached_cache,
    CacheEngine.MEMORY: _create_memory_cache,
}

_unmapped = set(CacheEngine) - set(_BUILDERS)
if _unmapped:  # pragma: no cover
    raise RuntimeError(f"No cache builder registered for engine(s): {sorted(e.value for e in _unmapped)}")


def get_default_registry() -> InstanceRegistry:
    """Return the process-wide registry used when none is injected."""
    return _default_registry


def coerce_config(config: CacheConfig | Mapping[str, Any]) -> CacheConfig:
    """
    Validate a mapping into a CacheConfig.

    Raises:
        ConfigurationError: If the mapping is not a valid configuration
    """
    if isinstance(config, CacheConfig):
        return config
    if not isinstance(config, Mapping):
        raise ConfigurationError(
            "Cache configuration must be a CacheConfig or a mapping",
            details={"type": type(config).__name__},
        )
    if not config.get("engine"):
        raise ConfigurationError("Cache engine parameter missing", details={"parameter": "engine"})

    try:
        return CacheConfig(**config)
    except ValidationError as e:
        errors = e.errors(include_url=False)
        if any(err.get("loc") == ("engine",) for err in errors):
            raise ConfigurationError(
                f"Invalid cache engine: {config.get('engine')}",
                details={"engine": str(config.get("engine")), "supported": [engine.value for engine in CacheEngine]},
            ) from e
        raise ConfigurationError(
            "Cache configuration validation failed",
            details={"validation_errors": errors},
        ) from e


def resolve(
    config: CacheConfig | Mapping[str, Any],
    registry: InstanceRegistry | None = None,
) -> CacheInterface:
    """
    Return the cache instance for ``config``, creating it on first use.

    Args:
        config: CacheConfig or a mapping of CacheConfig fields
        registry: Registry to resolve through (default: the process-wide one)

    Returns:
        The backend instance shared by every equal configuration

    Raises:
        ConfigurationError: Unknown engine or missing mandatory connection parameters
    """
    config = coerce_config(config)
    registry = registry if registry is not None else _default_registry

    missing = config.missing_connection_parameters()
    if missing:
        raise ConfigurationError(
            f"{config.engine.value} one or more mandatory connection parameters missing",
            details={"engine": config.engine.value, "missing": missing},
        )

    builder = _BUILDERS.get(config.engine)
    if builder is None:  # pragma: no cover
        raise ConfigurationError(
            f"Unknown cache engine: {config.engine}",
            details={"engine": str(config.engine), "supported": [engine.value for engine in CacheEngine]},
        )

    key = fingerprint(config)

    def build() -> CacheInterface:
        logger.info(
            "Creating cache instance '%s' with engine: %s",
            key,
            config.engine.value,
            extra={"fingerprint": key, "engine": config.engine.value},
        )
        return builder(config)

    return registry.get_or_create(key, build)


def create_cache(
    config: CacheConfig | Mapping[str, Any] | None = None,
    registry: InstanceRegistry | None = None,
) -> CacheInterface:
    """
    Resolve a cache instance, using the environment configuration if none is given.

    Raises:
        ConfigurationError: If cache configuration is invalid
    """
    if config is None:
        config = get_config().cache
    return resolve(config, registry=registry)


async def close_all_caches(registry: InstanceRegistry | None = None) -> None:
    """
    Close all cache instances and release resources.

    Optional: instances live for the whole process. Useful on graceful
    shutdown and between tests.
    """
    await (registry if registry is not None else _default_registry).close_all()


def reset_cache_factory(registry: InstanceRegistry | None = None) -> None:
    """
    Forget all instance references without closing them.

    Warning: Only use this in testing contexts.
    """
    (registry if registry is not None else _default_registry).clear()


def list_cache_instances(registry: InstanceRegistry | None = None) -> list[str]:
    """List the fingerprints of all registered cache instances."""
    return (registry if registry is not None else _default_registry).list_fingerprints()
