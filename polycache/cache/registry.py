"""
polycache - Cache Instance Registry

Maps configuration fingerprints to live backend instances so that every
distinct configuration gets exactly one engine connection per process.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from ..config.schemas import CacheConfig, CacheEngine
from .interface import CacheInterface

logger = logging.getLogger(__name__)


def fingerprint(config: CacheConfig) -> str:
    """
    Derive the registry key of a configuration.

    Built from the engine, the consistent-behavior flag and the parameters
    identifying the endpoint. Credentials and the default TTL are not part of
    it: configurations differing only in those share one instance.
    """
    if config.engine == CacheEngine.REDIS:
        endpoint = f"{(config.redis_host or '').lower()}-{config.redis_port}-{str(config.redis_tls_enabled).lower()}"
    elif config.engine == CacheEngine.MEMCACHED:
        endpoint = ",".join(config.memcache_servers or []).lower()
    else:
        endpoint = f"in-memory-{config.inmemory_namespace}"

    consistent = "true" if config.consistent_behavior else "false"
    return f"{config.engine.value}-{consistent}-{endpoint}"


class InstanceRegistry:
    """
    Process-wide fingerprint -> backend instance map.

    get_or_create() holds a lock across lookup and construction, so two
    concurrent first-time resolutions of one fingerprint build a single
    instance. Entries are never pruned; use clear() or close_all().
    """

    def __init__(self) -> None:
        self._instances: dict[str, CacheInterface] = {}
        self._lock = threading.Lock()

    def get_or_create(self, key: str, builder: Callable[[], CacheInterface]) -> CacheInterface:
        """
        Return the instance registered under ``key``, building it on a miss.

        Exceptions raised by ``builder`` propagate and leave the registry unchanged.
        """
        with self._lock:
            instance = self._instances.get(key)
            if instance is not None:
                logger.debug("Returning existing cache instance: %s", key)
                return instance

            instance = builder()
            self._instances[key] = instance

        logger.info(
            "Cache instance '%s' created successfully",
            key,
            extra={"fingerprint": key, "backend": instance.engine.value},
        )
        return instance

    def get(self, key: str) -> CacheInterface | None:
        with self._lock:
            return self._instances.get(key)

    def list_fingerprints(self) -> list[str]:
        with self._lock:
            return list(self._instances.keys())

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._instances

    def __len__(self) -> int:
        with self._lock:
            return len(self._instances)

    def clear(self) -> int:
        """
        Drop every instance reference without closing it.

        Returns:
            Number of references dropped
        """
        with self._lock:
            count = len(self._instances)
            self._instances.clear()
        logger.debug("Cleared %d cache instance reference(s)", count)
        return count

    async def close_all(self) -> None:
        """Close every registered instance and empty the registry."""
        with self._lock:
            instances = list(self._instances.items())
            self._instances.clear()

        if not instances:
            logger.debug("No cache instances to close")
            return

        logger.info("Closing %d cache instance(s)...", len(instances))
        for key, cache in instances:
            try:
                await cache.close()
            except Exception as e:
                logger.error(
                    "Error closing cache instance '%s': %s",
                    key,
                    e,
                    extra={"fingerprint": key, "error": str(e)},
                    exc_info=True,
                )
        logger.info("All cache instances closed")
