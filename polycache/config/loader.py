"""
polycache - Configuration Loader

Loads and validates configuration from environment variables and .env files.
Provides a singleton configuration instance for the runtime.
"""

import logging
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import ValidationError

from ..errors import ConfigurationError
from .schemas import PolycacheConfig

logger = logging.getLogger(__name__)

_config_instance: PolycacheConfig | None = None


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true")


def build_config_dict() -> dict[str, Any]:
    """Collect raw configuration values from the process environment."""
    cache: dict[str, Any] = {
        "engine": os.getenv("CACHE_ENGINE", "memory"),
        # Consistent behavior is on unless explicitly disabled with "0"
        "consistent_behavior": os.getenv("CACHE_CONSISTENT_BEHAVIOR", "1").strip() != "0",
        "default_ttl": os.getenv("CACHE_DEFAULT_TTL", "3600"),
        "redis_host": os.getenv("REDIS_HOST"),
        "redis_port": os.getenv("REDIS_PORT"),
        "redis_password": os.getenv("REDIS_PASSWORD"),
        "redis_db": os.getenv("REDIS_DB", "0"),
        "redis_socket_timeout": os.getenv("REDIS_SOCKET_TIMEOUT", "5"),
        "redis_retries": os.getenv("REDIS_RETRIES", "1"),
        "memcache_servers": os.getenv("MEMCACHE_SERVERS"),
        "memcache_timeout": os.getenv("MEMCACHE_TIMEOUT", "0.5"),
        "memcache_retries": os.getenv("MEMCACHE_RETRIES", "1"),
        "memcache_dead_timeout": os.getenv("MEMCACHE_DEAD_TIMEOUT", "1"),
        "inmemory_namespace": os.getenv("INMEMORY_CACHE_NAMESPACE", ""),
    }
    if os.getenv("REDIS_TLS_ENABLED") is not None:
        cache["redis_tls_enabled"] = _env_flag("REDIS_TLS_ENABLED")

    return {
        "log_level": os.getenv("LOG_LEVEL", "INFO").upper(),
        "cache": cache,
    }


def load_config(
    env_file: str | None = None,
    reload: bool = False,
) -> PolycacheConfig:
    """
    Load configuration from environment variables and .env file.

    Args:
        env_file: Path to .env file (default: .env in current directory)
        reload: Force reload even if config already loaded

    Returns:
        Validated PolycacheConfig instance

    Raises:
        ConfigurationError: If configuration is invalid
    """
    global _config_instance

    if _config_instance is not None and not reload:
        return _config_instance

    env_path = Path(env_file) if env_file else Path.cwd() / ".env"

    if env_path.exists():
        logger.info("Loading environment from %s", env_path)
        try:
            load_dotenv(env_path, override=True)
        except OSError as e:
            logger.error(
                "Failed to load .env file from %s: %s",
                env_path,
                e,
                extra={"path": str(env_path), "error": str(e)},
                exc_info=True,
            )
            raise ConfigurationError(
                f"Failed to load environment file: {e}",
                details={"path": str(env_path), "error": str(e)},
            ) from e
    else:
        logger.debug("No .env file found, using environment variables only")

    config_dict = build_config_dict()

    try:
        _config_instance = PolycacheConfig(**config_dict)
    except ValidationError as e:
        logger.error(
            "Configuration validation failed: %s",
            e,
            extra={"validation_errors": e.errors(include_url=False)},
        )
        raise ConfigurationError(
            "Configuration validation failed. Check your environment variables.",
            details={"validation_errors": e.errors(include_url=False)},
        ) from e

    logger.info(
        "Configuration loaded successfully (cache engine: %s)",
        _config_instance.cache.engine.value,
        extra={"cache_engine": _config_instance.cache.engine.value},
    )
    return _config_instance


def get_config() -> PolycacheConfig:
    """Get the current configuration instance, loading it on first access."""
    if _config_instance is None:
        return load_config()

    return _config_instance


def reload_config(env_file: str | None = None) -> PolycacheConfig:
    """Force reload configuration."""
    return load_config(env_file=env_file, reload=True)


def reset_config() -> None:
    """Drop the cached configuration instance. Intended for tests."""
    global _config_instance
    _config_instance = None
