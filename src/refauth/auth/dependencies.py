"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to build the
coordinator and to resolve the caller from the Authorization header:

    Authorization: User-Ref-Token <token id>
    Authorization: Share-Code <code>

The scheme part picks the authenticator; the rest is its value.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from refauth.auth.tokens import AuthToken, RefToken
from refauth.config import settings
from refauth.db.engine import get_store
from refauth.db.store import CredentialStore
from refauth.errors import UnauthorizedError
from refauth.services.coordinator import AuthCoordinator
from refauth.services.hooks import AuthHooks


def get_coordinator(
    request: Request,
    store: CredentialStore = Depends(get_store),
) -> AuthCoordinator:
    hooks: Optional[AuthHooks] = getattr(request.app.state, "hooks", None)
    return AuthCoordinator(store, settings=settings, hooks=hooks)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=detail,
        headers={"WWW-Authenticate": "User-Ref-Token"},
    )


def parse_authorization(authorization: Optional[str]) -> tuple[str, str]:
    """Split ``"<scheme> <value>"``; raises 401 if malformed."""
    if not authorization or " " not in authorization.strip():
        raise _unauthorized("Authentication required")
    scheme, value = authorization.strip().split(" ", 1)
    return scheme, value.strip()


async def get_auth_token(
    authorization: Optional[str] = Header(None),
    coordinator: AuthCoordinator = Depends(get_coordinator),
) -> AuthToken:
    """Resolve the caller's token under any registered scheme."""
    scheme, value = parse_authorization(authorization)
    try:
        return await coordinator.authenticate(scheme, value)
    except UnauthorizedError as e:
        raise _unauthorized(str(e))


async def get_ref_token(
    token: AuthToken = Depends(get_auth_token),
) -> RefToken:
    """Like get_auth_token, but the caller must be a user."""
    if not isinstance(token, RefToken):
        raise _unauthorized("A user token is required")
    return token
