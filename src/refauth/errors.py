"""Error taxonomy for the credential engine.

Learn: Services raise these; the HTTP layer maps each class to a status
code in main.py. ExpiredError subclasses UnauthorizedError so callers
that only care about "not allowed" can catch the parent.
"""

from dataclasses import dataclass


@dataclass
class FieldError:
    """One field-level validation problem."""

    field: str
    message: str

    def to_dict(self) -> dict:
        return {"field": self.field, "message": self.message}


class AuthError(Exception):
    """Base class for all refauth errors."""


class ValidationError(AuthError):
    """Raised when one or more request fields are malformed.

    Carries every problem found, not just the first one.
    """

    def __init__(self, errors: list[FieldError] | FieldError):
        if isinstance(errors, FieldError):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(e.message for e in self.errors))

    @property
    def fields(self) -> list[str]:
        return [e.field for e in self.errors]


class ConflictError(AuthError):
    """Raised when a username is already taken."""


class NotFoundError(AuthError):
    """Raised for an unknown username, user id or account id."""


class UnauthorizedError(AuthError):
    """Raised for bad passwords, invalid tokens and wrong codes."""


class ExpiredError(UnauthorizedError):
    """Raised when a reset or verify code is past its window."""
