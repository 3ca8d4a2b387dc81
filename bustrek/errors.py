"""
errors.py - BusTrek error taxonomy.

Business logic raises these; the global handlers in main.py turn each one into
the standard error envelope using its status_code and code. Nothing here knows
about HTTP beyond those two attributes.
"""
from typing import Any, Optional


class BusTrekError(Exception):
    """Base class for every error the API reports deliberately."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[list[dict[str, Any]]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or []


class BookingValidationError(BusTrekError, ValueError):
    """Malformed or missing client input."""

    status_code = 400
    code = "VALIDATION_ERROR"


class UnauthenticatedError(BusTrekError):
    """Missing, malformed or unknown session token, or bad credentials."""

    status_code = 401
    code = "UNAUTHORIZED"


class NotFoundError(BusTrekError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(BusTrekError):
    """A unique field (user email) is already taken."""

    status_code = 409
    code = "CONFLICT"


class InternalError(BusTrekError):
    status_code = 500
    code = "INTERNAL_ERROR"


class TransientDatabaseError(BusTrekError):
    """Database stayed unreachable after every retry attempt."""

    status_code = 500
    code = "DATABASE_UNAVAILABLE"

    def __init__(self, message: str, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts
