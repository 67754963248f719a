"""
Domain error taxonomy.

Every failure an operation can report is one of these.  The API layer maps
each class to an HTTP status; ``code`` is a stable machine-readable tag and
the message is meant for humans.
"""

from __future__ import annotations


class DomainError(Exception):
    status_code = 400
    default_code = "error"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


class Unauthorized(DomainError):
    """No (valid) session."""

    status_code = 401
    default_code = "unauthenticated"


class Forbidden(DomainError):
    """Wrong role, or the row belongs to someone else."""

    status_code = 403
    default_code = "forbidden"


class NotFound(DomainError):
    status_code = 404
    default_code = "not-found"


class ValidationError(DomainError):
    """Input that passed schema validation but is still malformed."""

    status_code = 422
    default_code = "invalid"


class ConflictError(DomainError):
    """Capacity, duplicate or state-machine violation."""

    status_code = 409
    default_code = "conflict"
