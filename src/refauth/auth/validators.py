"""Field validators — format checks that also scrub the value.

Each validator returns the cleaned value (stripped, lower-cased, phone
normalised) or raises ValidationError naming its field. Callers that want
every problem at once use collect().
"""

import re
from typing import Any, Callable, Optional

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from refauth.errors import FieldError, ValidationError


class FieldValidator:
    def __init__(
        self,
        field: str,
        pattern: Optional[str] = None,
        *,
        allow_none: bool = False,
        lowercase: bool = False,
        max_length: Optional[int] = None,
        include_value_in_error: bool = True,
    ):
        self.field = field
        self.regex = re.compile(pattern) if pattern else None
        self.allow_none = allow_none
        self.lowercase = lowercase
        self.max_length = max_length
        self.include_value_in_error = include_value_in_error

    def fail(self, value: Any, reason: str = "is invalid") -> ValidationError:
        if self.include_value_in_error and value is not None:
            message = f"{self.field} '{value}' {reason}"
        else:
            message = f"{self.field} {reason}"
        return ValidationError(FieldError(self.field, message))

    def scrub(self, value: str) -> str:
        value = value.strip()
        return value.lower() if self.lowercase else value

    def validate(self, value: Optional[str]) -> Optional[str]:
        if value is None or (isinstance(value, str) and not value.strip()):
            if self.allow_none:
                return None
            raise self.fail(None, "is required")
        if not isinstance(value, str):
            raise self.fail(value, "must be a string")

        value = self.scrub(value)
        if self.max_length is not None and len(value) > self.max_length:
            raise self.fail(value, f"must be at most {self.max_length} characters")
        if self.regex is not None and not self.regex.match(value):
            raise self.fail(value)
        return value


class EmailValidator(FieldValidator):
    """Syntax check via pydantic's EmailStr (email-validator), no DNS lookups."""

    adapter = TypeAdapter(EmailStr)

    def __init__(self, field: str = "email", *, allow_none: bool = True):
        super().__init__(field, allow_none=allow_none, lowercase=True, max_length=255)

    def validate(self, value: Optional[str]) -> Optional[str]:
        value = super().validate(value)
        if value is None:
            return None
        try:
            return self.adapter.validate_python(value).lower()
        except PydanticValidationError:
            raise self.fail(value)


class PhoneValidator(FieldValidator):
    """Accepts common punctuation and normalises to ``+<digits>``.

    Ten-digit numbers without a country code are treated as North American.
    """

    def __init__(self, field: str = "phone", *, allow_none: bool = True):
        super().__init__(field, r"^\+\d{10,15}$", allow_none=allow_none)

    def scrub(self, value: str) -> str:
        value = re.sub(r"[\s\-\.\(\)]", "", value)
        if value.isdigit():
            if len(value) == 10:
                value = "1" + value
            value = "+" + value
        return value


def username_validator(field: str = "username") -> FieldValidator:
    return FieldValidator(
        field, r"^[_A-Za-z0-9\-\.\@\+]{3,25}$", lowercase=True
    )


def password_validator(field: str = "password") -> FieldValidator:
    return FieldValidator(field, r"^.{6,255}$", include_value_in_error=False)


def name_validator(field: str) -> FieldValidator:
    return FieldValidator(field, allow_none=True, max_length=25)


def validate_contact(contact: Optional[str], field: str = "contact") -> str:
    """Scrub a contact as an email (contains '@') or a phone number."""
    if not contact or not contact.strip():
        raise ValidationError(FieldError(field, f"{field} is required"))
    if "@" in contact:
        return EmailValidator(field, allow_none=False).validate(contact)
    return PhoneValidator(field, allow_none=False).validate(contact)


def collect(checks: dict[str, Callable[[], Optional[str]]]) -> dict[str, Optional[str]]:
    """Run every check and raise one ValidationError with all failures."""
    values: dict[str, Optional[str]] = {}
    errors: list[FieldError] = []
    for name, check in checks.items():
        try:
            values[name] = check()
        except ValidationError as e:
            errors.extend(e.errors)
    if errors:
        raise ValidationError(errors)
    return values
