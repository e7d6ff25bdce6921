"""Domain error taxonomy.

Services raise these; ``main.py`` turns them into the
``{success: false, mensaje, errores}`` envelope with the matching status.
"""

from typing import Any, Optional


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str, errors: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors


class ValidationError(AppError):
    """Missing or malformed input"""

    status_code = 400

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, errors=[{"campo": field, "mensaje": message}])


class AuthenticationError(AppError):
    """Missing, invalid or expired bearer token"""

    status_code = 401


class NotFoundError(AppError):
    status_code = 404


class AuthorizationError(AppError):
    """Role or ownership does not allow the action"""

    status_code = 403


class PreconditionError(AppError):
    """A business rule blocks the action (24h cutoff, past date, wrong state...)"""

    status_code = 400


class ConflictError(AppError):
    """Slot already taken, or another writer changed the appointment first"""

    status_code = 409
