"""
Shared error handling for the Stock Opname sync layer.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard failure envelope."""

    success: bool = False
    code: str
    message: str
    retryable: bool = False
    details: Dict[str, Any] = {}


class OpnameError(Exception):
    """Base exception for Stock Opname services."""

    retryable = False

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            retryable=self.retryable,
            details=self.details
        )

    def to_result(self) -> Dict[str, Any]:
        """Convert to the `{success: false, ...}` action envelope."""
        return self.to_response().model_dump()


class LockTimeoutError(OpnameError):
    """The store lock could not be acquired within the bounded wait."""

    retryable = True

    def __init__(self, message: str = "Server is busy, please retry", details: Optional[Dict[str, Any]] = None):
        super().__init__("LOCK_TIMEOUT", message, details)


class NotFoundError(OpnameError):
    """The addressed entity is absent."""

    def __init__(self, message: str = "Entry not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class ValidationError(OpnameError):
    """Malformed expression or missing required fields."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class TransientNetworkError(OpnameError):
    """Client-side fetch failure."""

    retryable = True

    def __init__(self, message: str = "Network error", details: Optional[Dict[str, Any]] = None):
        super().__init__("TRANSIENT_NETWORK_ERROR", message, details)


class CacheDecodeError(OpnameError):
    """A persisted cache entry could not be decoded; callers treat it as a miss."""

    def __init__(self, message: str = "Corrupt cache entry", details: Optional[Dict[str, Any]] = None):
        super().__init__("CACHE_DECODE_ERROR", message, details)
