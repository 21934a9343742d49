"""Share-code authenticator — durable account-scoped credentials.

Learn: The share code itself is the credential; there is no per-token row.
It resolves to an account (not a user). If the schema map configures a
share-code expiry column, a set and past expiry is rejected; otherwise
share codes never expire.
"""

import secrets
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import select

from refauth.auth.base import Authenticator
from refauth.auth.tokens import SHARE_CODE_SCHEME, ShareCodeToken
from refauth.db.models import utcnow
from refauth.db.store import CredentialStore, labelled
from refauth.errors import NotFoundError, UnauthorizedError


def new_share_code() -> str:
    return secrets.token_urlsafe(16)


class ShareCodeAuthenticator(Authenticator):
    scheme = SHARE_CODE_SCHEME

    def __init__(
        self,
        store: CredentialStore,
        role: Optional[str] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.role = role
        self.clock = clock

    async def authenticate(self, value: str) -> ShareCodeToken:
        accounts = self.store.tables.account
        row = None
        if value:
            row = await self.store.select_row(
                select(*labelled(accounts, "id", "share_code_expires_at")).where(
                    accounts.c.share_code == value
                )
            )
        if row is None:
            raise UnauthorizedError("Invalid share code")

        expires_at = row.get("share_code_expires_at")
        if expires_at is not None and expires_at <= self.clock():
            raise UnauthorizedError("Share code has expired")

        return ShareCodeToken(account_id=row["id"], role=self.role)

    async def create(self, account_id: str, expires_at: Optional[datetime] = None) -> str:
        """Generate and store a new share code, replacing any previous one."""
        accounts = self.store.tables.account
        code = new_share_code()
        values = {"share_code": code}
        if self.store.tables.has_share_code_expiry:
            values["share_code_expires_at"] = expires_at
        elif expires_at is not None:
            raise ValueError("Share-code expiry column is not configured")

        count = await self.store.update_and_commit(accounts, account_id, values)
        if not count:
            raise NotFoundError(f"Invalid account id '{account_id}'")
        return code
