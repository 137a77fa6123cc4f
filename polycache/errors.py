"""
polycache - Core Error Types

Defines the exception hierarchy and the per-call error taxonomy.

Two kinds of failure exist:
- Fatal configuration problems raise ConfigurationError at resolution time.
- Every per-call problem (bad key, bad value, missing key, engine failure) is
  reported as a failed CacheResult carrying a CacheErrorKind, never raised.
"""

from enum import Enum
from typing import Any


class CacheErrorKind(str, Enum):
    """Machine-readable category of a failed cache operation."""

    INVALID_KEY = "INVALID_KEY"
    INVALID_VALUE = "INVALID_VALUE"
    INVALID_EXPIRY = "INVALID_EXPIRY"
    MISSING_KEY = "MISSING_KEY"
    BACKEND_ERROR = "BACKEND_ERROR"


class ApiErrorIdentifier(str, Enum):
    """Stable identifiers exposed to callers in CacheFailure.api_error_identifier."""

    INVALID_CACHE_KEY = "invalid_cache_key"
    INVALID_CACHE_VALUE = "invalid_cache_value"
    ARRAY_IS_INVALID_CACHE_VALUE = "array_is_invalid_cache_value"
    CACHE_KEYS_NON_ARRAY = "cache_keys_non_array"
    NON_INT_CACHE_VALUE = "non_int_cache_value"
    CACHE_EXPIRY_NAN = "cache_expiry_nan"
    MISSING_CACHE_KEY = "missing_cache_key"
    SOMETHING_WENT_WRONG = "something_went_wrong"
    FLUSH_ALL_KEYS_FAILED = "flush_all_keys_failed"


class PolycacheError(Exception):
    """Base exception for all polycache errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for structured logging."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(PolycacheError):
    """Raised when configuration is invalid or missing mandatory parameters."""


class CacheError(PolycacheError):
    """Base exception for cache-related errors."""


class CacheOperationError(CacheError):
    """
    Raised by an engine adapter when the underlying client call fails.

    Never escapes a public cache operation: the operation boundary turns it
    into a BACKEND_ERROR result.
    """

    def __init__(self, operation: str, reason: BaseException | str, details: dict[str, Any] | None = None):
        error_details = details or {}
        error_details.update({"operation": operation, "error": str(reason)})
        if isinstance(reason, BaseException):
            error_details["error_type"] = type(reason).__name__
        super().__init__(f"Cache operation '{operation}' failed: {reason}", error_details)
        self.operation = operation
        self.reason = reason
