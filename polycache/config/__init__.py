"""
polycache - Configuration Module

Provides typed configuration loading and validation.
"""

from .loader import get_config, load_config, reload_config, reset_config
from .schemas import CacheConfig, CacheEngine, LogLevel, PolycacheConfig

__all__ = [
    # Loader functions
    "load_config",
    "get_config",
    "reload_config",
    "reset_config",
    # Models
    "PolycacheConfig",
    "CacheConfig",
    # Enums
    "CacheEngine",
    "LogLevel",
]
