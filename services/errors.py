"""
Domain exceptions for the booking and billing services.

Services raise these; the Flask error handler in app.py turns them into
JSON responses of the form {"error": ..., "code": ..., "details": {...}}.
"""
from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base class for every business rejection."""

    status_code = 500
    default_code = None

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.code = code or self.default_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code, "details": self.details}


class ValidationError(DomainError):
    """A missing or malformed field. Client-correctable, never retried."""

    status_code = 400
    default_code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None, code: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        details = dict(details or {})
        if field:
            details.setdefault("field", field)
        self.field = field
        super().__init__(message, code=code, details=details)


class NotFoundError(DomainError):
    """Absent, or outside the caller's company."""

    status_code = 404
    default_code = "NOT_FOUND"


class ConflictError(DomainError):
    """Overlapping reservation, duplicate chalan and friends."""

    status_code = 409
    default_code = "CONFLICT"


class StateError(DomainError):
    """The entity's current state does not allow the operation."""

    status_code = 422
    default_code = "INVALID_STATE"


class AuthorizationError(DomainError):
    status_code = 403
    default_code = "FORBIDDEN"
