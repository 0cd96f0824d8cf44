"""Typed errors for the sync engine.

Every failure the engine can observe is classified with an ErrorKind so that
callers (and the failure notifier) can react without parsing messages.
Errors are raised to the immediate caller; the orchestrator is the only
component that turns them into per-record results.
"""

from enum import Enum
from typing import Any

__all__ = [
    "ErrorKind",
    "FieldNotFoundError",
    "HttpRequestFailedError",
    "InvalidJsonError",
    "InvalidParameterError",
    "RecordNotFoundError",
    "SyncError",
]


class ErrorKind(str, Enum):
    """Classification of sync failures.

    RATE_LIMIT_EXHAUSTED is never raised: a zero budget is a gating condition
    reported on the pass result, not an exception.
    """

    INVALID_PARAMETER = "invalid_parameter"
    RECORD_NOT_FOUND = "record_not_found"
    FIELD_NOT_FOUND = "field_not_found"
    HTTP_REQUEST_FAILED = "http_request_failed"
    INVALID_JSON = "invalid_json"
    RATE_LIMIT_EXHAUSTED = "rate_limit_exhausted"


class SyncError(Exception):
    """Base class for all sync engine failures.

    Attributes:
        kind: ErrorKind classifying the failure
        context: Extra payload for logging (URL, status code, field name, ...)
    """

    kind: ErrorKind = ErrorKind.INVALID_PARAMETER

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.context: dict[str, Any] = context

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for structured log extras."""
        return {"kind": self.kind.value, "error": str(self), **self.context}


class InvalidParameterError(SyncError):
    """Raised for empty or malformed input (URLs, field schemas)."""

    kind = ErrorKind.INVALID_PARAMETER


class RecordNotFoundError(SyncError):
    """Raised by record stores when the record id is unknown."""

    kind = ErrorKind.RECORD_NOT_FOUND


class FieldNotFoundError(SyncError):
    """Raised when a required field is missing from a record or response."""

    kind = ErrorKind.FIELD_NOT_FOUND


class HttpRequestFailedError(SyncError):
    """Raised on transport errors and on any non-200 response."""

    kind = ErrorKind.HTTP_REQUEST_FAILED


class InvalidJsonError(SyncError):
    """Raised when a response body is not a usable JSON document."""

    kind = ErrorKind.INVALID_JSON
