"""Pydantic schemas for the auth operations.

Learn: These are the typed requests the coordinator accepts. Format
checks (username pattern, email shape, ...) are not done here: the
coordinator's validators run them so every field problem is reported
together with a field name, the same way for HTTP and in-process callers.
"""

import re
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class RegistrationRequest(BaseModel):
    """Register a new user, or claim an anonymous one via user_id."""

    username: Optional[str] = None
    password: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    user_id: Optional[str] = Field(None, description="Existing (anonymous) user to upgrade")
    role: Optional[str] = None
    extra: dict[str, Any] = Field(
        default_factory=dict,
        description="Deployment-specific values read by the extra-field hooks",
    )


class RegisterBody(BaseModel):
    """HTTP registration body. Role is never client-chosen."""

    username: Optional[str] = None
    password: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    user_id: Optional[str] = None
    extra: dict[str, Any] = Field(default_factory=dict)

    def to_request(self) -> RegistrationRequest:
        return RegistrationRequest(**self.model_dump())


class LoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


class ForgotPasswordRequest(BaseModel):
    username: Optional[str] = None


class ResetPasswordRequest(BaseModel):
    username: Optional[str] = None
    reset_code: Optional[str] = None
    password: Optional[str] = None


class ForgotUsernameRequest(BaseModel):
    contact: Optional[str] = None


class VerifyRequest(BaseModel):
    """Verify one contact channel of a user with the code sent to it.

    Codes may be sent formatted (``"123-456"``); everything but digits is
    stripped before parsing.
    """

    user_id: Optional[str] = None
    email: Optional[int] = None
    phone: Optional[int] = None

    @field_validator("email", "phone", mode="before")
    @classmethod
    def digits_only(cls, value: Any) -> Any:
        if isinstance(value, str):
            digits = re.sub(r"\D", "", value)
            return int(digits) if digits else None
        return value


class ShareCodeRead(BaseModel):
    share_code: str
