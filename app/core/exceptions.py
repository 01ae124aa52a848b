# app/core/exceptions.py
"""
Service error hierarchy.

Every error carries the HTTP status it maps to, a client-safe message and
an optional context dict. Context is for logs only and is never rendered
into a response body.
"""
from typing import Any, Dict, Optional


class BookingServiceError(Exception):
    status_code: int = 500
    error: str = "internal_error"
    retryable: bool = False

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        body = {"message": self.message, "error": self.error}
        if self.retryable:
            body["retryable"] = True
        return body


class ValidationError(BookingServiceError):
    status_code = 400
    error = "validation_error"


class UnauthorizedError(BookingServiceError):
    status_code = 401
    error = "unauthorized"


class ForbiddenError(BookingServiceError):
    status_code = 403
    error = "forbidden"


class NotFoundError(BookingServiceError):
    status_code = 404
    error = "not_found"


class ConflictError(BookingServiceError):
    status_code = 409
    error = "conflict"


class GuardViolationError(BookingServiceError):
    """A transition that is legal in the table but not allowed yet"""
    status_code = 400
    error = "guard_violation"


class InternalError(BookingServiceError):
    status_code = 500
    error = "internal_error"


class StoreUnavailableError(BookingServiceError):
    """Database or pool timeout; the caller may retry"""
    status_code = 503
    error = "store_unavailable"
    retryable = True
