"""
polycache - Configuration Schemas

Typed configuration models using Pydantic for validation and type safety.
A CacheConfig is immutable once constructed.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CacheEngine(str, Enum):
    """Supported cache engines."""

    REDIS = "redis"
    MEMCACHED = "memcached"
    MEMORY = "memory"


# Legacy engine names still found in deployed configuration
_ENGINE_ALIASES = {
    "none": CacheEngine.MEMORY,
    "in-memory": CacheEngine.MEMORY,
    "inmemory": CacheEngine.MEMORY,
}


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class CacheConfig(BaseModel):
    """Cache configuration for a single logical backend."""

    engine: CacheEngine = Field(..., description="Cache engine to use")
    consistent_behavior: bool = Field(
        default=True,
        description="Force identical observable behavior across all engines",
    )
    default_ttl: int = Field(default=3600, ge=0, description="Default TTL in seconds")

    # Redis-specific settings (mandatory when engine=redis)
    redis_host: str | None = Field(default=None, description="Redis host")
    redis_port: int | None = Field(default=None, ge=1, le=65535, description="Redis port")
    redis_password: str | None = Field(default=None, description="Redis password ('' = no AUTH)")
    redis_tls_enabled: bool | None = Field(default=None, description="Connect to Redis over TLS")
    redis_db: int = Field(default=0, ge=0, description="Redis logical database")
    redis_socket_timeout: float = Field(default=5.0, gt=0, description="Redis per-call socket timeout in seconds")
    redis_retries: int = Field(default=1, ge=0, description="Retries on connection errors and timeouts")

    # Memcached-specific settings (mandatory when engine=memcached)
    memcache_servers: list[str] | None = Field(default=None, description="Memcached servers as host:port")
    memcache_timeout: float = Field(default=0.5, gt=0, description="Memcached per-call timeout in seconds")
    memcache_retries: int = Field(default=1, ge=0, description="Retries against a failing server")
    memcache_dead_timeout: float = Field(
        default=1.0,
        ge=0,
        description="Seconds before a server marked dead is tried again",
    )

    # In-process settings
    inmemory_namespace: str = Field(default="", description="Namespace of the in-process store")

    model_config = ConfigDict(frozen=True)

    @field_validator("engine", mode="before")
    @classmethod
    def normalize_engine(cls, v: Any) -> Any:
        """Accept engine names case-insensitively, including legacy aliases."""
        if isinstance(v, str):
            name = v.strip().lower()
            return _ENGINE_ALIASES.get(name, name)
        return v

    @field_validator("memcache_servers", mode="before")
    @classmethod
    def split_servers(cls, v: Any) -> Any:
        """Accept a comma separated server string and trim every entry."""
        if isinstance(v, str):
            v = v.split(",")
        if isinstance(v, (list, tuple)):
            return [str(server).strip() for server in v if str(server).strip()]
        return v

    def missing_connection_parameters(self) -> list[str]:
        """Return the names of mandatory connection parameters that are unset."""
        if self.engine == CacheEngine.REDIS:
            mandatory = {
                "redis_host": self.redis_host,
                "redis_port": self.redis_port,
                "redis_password": self.redis_password,
                "redis_tls_enabled": self.redis_tls_enabled,
            }
            missing = [name for name, value in mandatory.items() if value is None]
            if self.redis_host is not None and not self.redis_host.strip():
                missing.append("redis_host")
            return missing
        if self.engine == CacheEngine.MEMCACHED:
            return [] if self.memcache_servers else ["memcache_servers"]
        return []


class PolycacheConfig(BaseModel):
    """Root configuration loaded from the environment."""

    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    cache: CacheConfig = Field(default_factory=lambda: CacheConfig(engine=CacheEngine.MEMORY))

    model_config = ConfigDict(frozen=True)
