"""
polycache - Backend-agnostic cache layer

Redis, Memcached and an in-process store behind one contract, so that
switching engines is a configuration change.
"""

from .cache import CacheInterface, CacheResult, InstanceRegistry, create_cache, resolve
from .config import CacheConfig, CacheEngine
from .errors import CacheErrorKind, ConfigurationError, PolycacheError

__version__ = "1.0.0"

__all__ = [
    "resolve",
    "create_cache",
    "InstanceRegistry",
    "CacheInterface",
    "CacheResult",
    "CacheConfig",
    "CacheEngine",
    "CacheErrorKind",
    "ConfigurationError",
    "PolycacheError",
    "__version__",
]
