"""
Application error taxonomy.

Every error raised by services derives from ``AppError`` and carries the HTTP
status the central exception handler answers with.
"""
from typing import Any, Dict, List, Optional


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str = "An unexpected error occurred", errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"


class InvalidReferenceError(ValidationError):
    """A referenced identity exists but has the wrong role, or does not exist."""

    code = "invalid_reference"


class ConflictError(AppError):
    status_code = 400
    code = "conflict"


class UnauthorizedError(AppError):
    status_code = 401
    code = "unauthorized"

    def __init__(self, message: str = "Not authorized", errors=None):
        super().__init__(message, errors)


class ForbiddenError(AppError):
    status_code = 403
    code = "forbidden"

    def __init__(self, message: str = "Access denied", errors=None):
        super().__init__(message, errors)


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"

    def __init__(self, message: str = "Resource not found", errors=None):
        super().__init__(message, errors)


class RateLimitedError(AppError):
    status_code = 429
    code = "rate_limited"

    def __init__(self, message: str = "Too many requests from this IP, please try again later.", errors=None):
        super().__init__(message, errors)


class InternalError(AppError):
    status_code = 500
    code = "internal_error"
