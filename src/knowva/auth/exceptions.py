"""Typed errors raised by the auth service.

The transport layer maps each class to its HTTP status; the service itself
never builds responses.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for expected, client-facing auth failures."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def details(self) -> str | None:
        return None


class ValidationError(AuthError):
    """Malformed or policy-violating input. Carries every violated rule."""

    status_code = 400

    def __init__(self, message: str, reasons: list[str] | None = None) -> None:
        super().__init__(message)
        self.reasons = list(reasons or [])

    @property
    def details(self) -> str | None:
        return "; ".join(self.reasons) if self.reasons else None


class ConflictError(AuthError):
    """A unique field (email or username) is already taken."""

    status_code = 409

    def __init__(self, field: str) -> None:
        super().__init__(f"User with this {field} already exists")
        self.field = field


class UnauthorizedError(AuthError):
    """Bad credentials, unusable token, or deactivated account."""

    status_code = 401


class NotFoundError(AuthError):
    """The requested entity does not exist."""

    status_code = 404
