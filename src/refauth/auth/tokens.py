"""Identity tokens returned by authenticators.

Learn: AuthToken is the common shape every scheme resolves to
(type + account_id + role). Each scheme adds its own fields. These are
pydantic models so FastAPI can return them as-is.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel

REF_TOKEN_SCHEME = "User-Ref-Token"
SHARE_CODE_SCHEME = "Share-Code"


class AuthToken(BaseModel):
    type: str
    account_id: Optional[str] = None
    role: Optional[str] = None


class RefToken(AuthToken):
    """Opaque, expiring bearer credential naming a user."""

    type: str = REF_TOKEN_SCHEME
    id: str
    user_id: str
    username: Optional[str] = None
    expires_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: dict[str, Any], default_role: Optional[str] = None) -> "RefToken":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            username=row.get("username"),
            role=row.get("role") or default_role,
            account_id=row.get("account_id"),
            expires_at=row.get("expires_at"),
        )


class ShareCodeToken(AuthToken):
    """Account-scoped credential resolved from an account's share code."""

    type: str = SHARE_CODE_SCHEME
