"""
polycache - Cache Result

Tagged success/failure value returned by every cache operation.

Exactly one side is populated: a success carries an operation-specific
``response`` (bool, number, string, mapping, or None for an absent key), a
failure carries a CacheFailure with machine-readable identifiers only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..errors import ApiErrorIdentifier, CacheErrorKind


@dataclass(frozen=True)
class CacheFailure:
    """Error details of a failed cache operation."""

    kind: CacheErrorKind
    internal_error_identifier: str
    api_error_identifier: str
    debug_options: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "internal_error_identifier": self.internal_error_identifier,
            "api_error_identifier": self.api_error_identifier,
            "debug_options": self.debug_options,
        }


@dataclass(frozen=True)
class CacheResult:
    """
    Result of a cache operation.

    Build instances with CacheResult.success() or CacheResult.failure()
    rather than the constructor.
    """

    response: Any = None
    error: CacheFailure | None = None

    @classmethod
    def success(cls, response: Any = None) -> CacheResult:
        """Create a successful result carrying ``response``."""
        return cls(response=response)

    @classmethod
    def failure(
        cls,
        kind: CacheErrorKind,
        internal_error_identifier: str,
        api_error_identifier: ApiErrorIdentifier | str,
        debug_options: dict[str, Any] | None = None,
    ) -> CacheResult:
        """Create a failed result."""
        api_id = (
            api_error_identifier.value
            if isinstance(api_error_identifier, ApiErrorIdentifier)
            else api_error_identifier
        )
        return cls(
            error=CacheFailure(
                kind=kind,
                internal_error_identifier=internal_error_identifier,
                api_error_identifier=api_id,
                debug_options=debug_options or {},
            )
        )

    def is_success(self) -> bool:
        return self.error is None

    def is_failure(self) -> bool:
        return self.error is not None

    @property
    def kind(self) -> CacheErrorKind | None:
        """Error kind of a failed result, None on success."""
        return self.error.kind if self.error is not None else None

    def to_dict(self) -> dict[str, Any]:
        """Convert result to a plain dictionary."""
        if self.error is None:
            return {"success": True, "data": {"response": self.response}}
        return {"success": False, **self.error.to_dict()}
