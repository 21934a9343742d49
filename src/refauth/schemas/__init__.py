from refauth.schemas.auth import (
    ForgotPasswordRequest,
    ForgotUsernameRequest,
    LoginRequest,
    RegisterBody,
    RegistrationRequest,
    ResetPasswordRequest,
    ShareCodeRead,
    VerifyRequest,
)

__all__ = [
    "ForgotPasswordRequest",
    "ForgotUsernameRequest",
    "LoginRequest",
    "RegisterBody",
    "RegistrationRequest",
    "ResetPasswordRequest",
    "ShareCodeRead",
    "VerifyRequest",
]
