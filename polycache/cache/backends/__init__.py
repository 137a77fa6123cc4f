"""
polycache - Cache Backends

Exports available cache backend implementations.

Redis and Memcached backends are lazy-loaded via factory.py so that a
memory-only deployment never imports their client libraries.
"""

from .memory import MemoryCacheBackend

__all__ = [
    "MemoryCacheBackend",
]
