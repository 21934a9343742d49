"""Auth API — registration, login, tokens and verification codes.

Learn: Thin routes over AuthCoordinator. Domain errors (ValidationError,
ConflictError, ...) are not caught here: the exception handlers in
main.py turn them into 422/409/404/401 responses.

- GET  /auth/check-username/{username} → availability
- GET  /auth/check-user-ref-token/{id}?v= → validate a ref token
- POST /auth/create-anonymous → anonymous user + token
- POST /auth/register → new user (or upgrade an anonymous one)
- POST /auth/login → username/password → token
- POST /auth/logout → revoke the caller's token
- GET  /auth/me → the caller's token, any scheme
- POST /auth/share-code → share code for the caller's account
- POST /auth/forgot-password, /auth/reset-password
- POST /auth/forgot-username
- POST /auth/send-email-verify-code, /auth/send-phone-verify-code, /auth/verify
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from refauth.auth.dependencies import (
    get_auth_token,
    get_coordinator,
    get_ref_token,
)
from refauth.auth.tokens import REF_TOKEN_SCHEME, AuthToken, RefToken
from refauth.schemas.auth import (
    ForgotPasswordRequest,
    ForgotUsernameRequest,
    LoginRequest,
    RegisterBody,
    ResetPasswordRequest,
    ShareCodeRead,
    VerifyRequest,
)
from refauth.services.coordinator import AuthCoordinator

router = APIRouter(prefix="/auth")


# ─── Lookups ─────────────────────────────────────────────


@router.get("/check-username/{username}", response_model=bool)
async def check_username(
    username: str,
    coordinator: AuthCoordinator = Depends(get_coordinator),
):
    """True if the username is free."""
    return await coordinator.lookup_username(username) is None


@router.get("/check-user-ref-token/{token_id}", response_model=RefToken)
async def check_user_ref_token(
    token_id: str,
    v: Optional[str] = Query(None, description="Client version"),
    coordinator: AuthCoordinator = Depends(get_coordinator),
):
    """Validate a ref token id; 401 if unknown or expired."""
    coordinator.check_version(v)
    return await coordinator.authenticate(REF_TOKEN_SCHEME, token_id)


@router.get("/me", response_model=None)
async def get_me(token: AuthToken = Depends(get_auth_token)) -> AuthToken:
    """The caller's resolved token (ref token or share code)."""
    return token


# ─── Accounts ────────────────────────────────────────────


@router.post("/create-anonymous", response_model=RefToken)
async def create_anonymous(coordinator: AuthCoordinator = Depends(get_coordinator)):
    return await coordinator.create_anonymous_user()


@router.post("/register", response_model=RefToken, status_code=201)
async def register(
    body: RegisterBody,
    coordinator: AuthCoordinator = Depends(get_coordinator),
):
    """Create a user, or name an anonymous one when user_id is given."""
    return await coordinator.register(body.to_request())


@router.post("/login", response_model=RefToken)
async def login(
    body: LoginRequest,
    coordinator: AuthCoordinator = Depends(get_coordinator),
):
    return await coordinator.login(body)


@router.post("/logout", status_code=204)
async def logout(
    token: RefToken = Depends(get_ref_token),
    coordinator: AuthCoordinator = Depends(get_coordinator),
):
    """Revoke the ref token used for this request."""
    await coordinator.logout(token.id)
    return Response(status_code=204)


@router.post("/share-code", response_model=ShareCodeRead, status_code=201)
async def create_share_code(
    token: RefToken = Depends(get_ref_token),
    coordinator: AuthCoordinator = Depends(get_coordinator),
):
    """Generate a new share code for the caller's account."""
    code = await coordinator.create_share_code(token.account_id)
    return ShareCodeRead(share_code=code)


# ─── Forgot / reset ──────────────────────────────────────


@router.post("/forgot-password", status_code=204)
async def forgot_password(
    body: ForgotPasswordRequest,
    coordinator: AuthCoordinator = Depends(get_coordinator),
):
    await coordinator.forgot_password(body.username)
    return Response(status_code=204)


@router.post("/reset-password", response_model=RefToken)
async def reset_password(
    body: ResetPasswordRequest,
    coordinator: AuthCoordinator = Depends(get_coordinator),
):
    return await coordinator.reset_password(body)


@router.post("/forgot-username", status_code=204)
async def forgot_username(
    body: ForgotUsernameRequest,
    coordinator: AuthCoordinator = Depends(get_coordinator),
):
    await coordinator.forgot_username(body.contact)
    return Response(status_code=204)


# ─── Verification ────────────────────────────────────────


@router.post("/send-email-verify-code", status_code=204)
async def send_email_verify_code(
    token: RefToken = Depends(get_ref_token),
    coordinator: AuthCoordinator = Depends(get_coordinator),
):
    await coordinator.send_user_verify_code(token.user_id, "email")
    return Response(status_code=204)


@router.post("/send-phone-verify-code", status_code=204)
async def send_phone_verify_code(
    token: RefToken = Depends(get_ref_token),
    coordinator: AuthCoordinator = Depends(get_coordinator),
):
    await coordinator.send_user_verify_code(token.user_id, "phone")
    return Response(status_code=204)


@router.post("/verify", status_code=204)
async def verify(
    body: VerifyRequest,
    coordinator: AuthCoordinator = Depends(get_coordinator),
):
    await coordinator.verify(body)
    return Response(status_code=204)
