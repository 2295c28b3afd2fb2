"""Structured exception hierarchy for adapters.

Every failure surfaced to a caller carries a human-readable message and a
machine-readable ``ErrorCode`` so callers can tell a malformed request apart
from an upstream failure without parsing strings.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

__all__ = [
    "ErrorCode",
    "AdapterError",
    "InternalError",
    "InvalidPageRequestError",
    "DatasourceConfigError",
    "EntityConfigError",
    "UpstreamError",
    "http_error",
]


class ErrorCode(str, Enum):
    """Machine-readable error kinds returned alongside every adapter error."""

    INTERNAL = "INTERNAL"
    INVALID_PAGE_REQUEST_CONFIG = "INVALID_PAGE_REQUEST_CONFIG"
    INVALID_DATASOURCE_CONFIG = "INVALID_DATASOURCE_CONFIG"
    INVALID_ENTITY_CONFIG = "INVALID_ENTITY_CONFIG"
    DATASOURCE_FAILED = "DATASOURCE_FAILED"


class AdapterError(Exception):
    """Base exception for all adapter errors.

    Provides structured error information for debugging. ``str(error)`` is
    always the bare message; context lives in attributes and ``to_dict``.
    """

    default_code = ErrorCode.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        code: Optional[ErrorCode] = None,
        entity: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.default_code
        self.entity = entity
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for structured logging and CLI output."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code.value,
            "message": self.message,
            "entity": self.entity,
            "details": self.details,
        }


class InternalError(AdapterError):
    """The adapter or the upstream service broke an internal contract."""

    default_code = ErrorCode.INTERNAL


class InvalidPageRequestError(AdapterError):
    """Malformed cursor, out-of-range index, or unsupported page size.

    Never retried: the same request will always fail the same way.
    """

    default_code = ErrorCode.INVALID_PAGE_REQUEST_CONFIG


class DatasourceConfigError(AdapterError):
    """Invalid datasource configuration (address, auth, filters, version)."""

    default_code = ErrorCode.INVALID_DATASOURCE_CONFIG


class EntityConfigError(AdapterError):
    """Invalid entity configuration (unknown entity, unsupported attribute)."""

    default_code = ErrorCode.INVALID_ENTITY_CONFIG


class UpstreamError(AdapterError):
    """The upstream API answered with a non-success status.

    Keeps the status code and the Retry-After hint so the caller can decide
    whether and when to retry.
    """

    default_code = ErrorCode.DATASOURCE_FAILED

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        retry_after: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        self.status_code = status_code
        self.retry_after = retry_after or None

        details = kwargs.pop("details", {}) or {}
        details["status_code"] = status_code
        if self.retry_after:
            details["retry_after"] = self.retry_after

        super().__init__(message, details=details, **kwargs)


def http_error(
    status_code: int,
    retry_after: Optional[str] = None,
    *,
    entity: Optional[str] = None,
) -> Optional[UpstreamError]:
    """Build an UpstreamError for a non-2xx status, or None on success."""
    if 200 <= status_code < 300:
        return None

    return UpstreamError(
        f"Datasource responded with an error: HTTP status {status_code}.",
        status_code=status_code,
        retry_after=retry_after,
        entity=entity,
    )
