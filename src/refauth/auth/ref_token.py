"""Reference-token authenticator — opaque token ids backed by the auth_token table.

Learn: A ref token is just a random id. Everything it means (which user,
which account, which role, when it expires) lives in storage, so
revoking a token is a row delete and there is nothing to decode.

Two lookup paths produce the same dict:
1. Backends that can join → one token⋈user query
2. Backends that can't → token row, then user row, merged in memory
"""

import secrets
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

import structlog
from sqlalchemy import select

from refauth.auth.base import Authenticator
from refauth.auth.tokens import REF_TOKEN_SCHEME, RefToken
from refauth.db.models import utcnow
from refauth.db.store import CredentialStore, Transaction, labelled
from refauth.errors import UnauthorizedError

logger = structlog.get_logger()

TOKEN_FIELDS = ("id", "user_id", "expires_at")
USER_FIELDS = ("account_id", "username", "role")


def new_token_id() -> str:
    return secrets.token_urlsafe(32)


class RefTokenAuthenticator(Authenticator):
    scheme = REF_TOKEN_SCHEME

    def __init__(
        self,
        store: CredentialStore,
        default_role: Optional[str] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.default_role = default_role
        self.clock = clock

    async def authenticate(self, value: str) -> RefToken:
        row = await self._lookup(value) if value else None
        logger.debug("auth.ref_token_lookup", found=row is not None)
        if row is None:
            raise UnauthorizedError("Invalid auth token")

        token = RefToken.from_row(row, default_role=self.default_role)
        if token.expires_at is None or token.expires_at <= self.clock():
            raise UnauthorizedError("Auth token has expired")
        return token

    async def _lookup(self, token_id: str) -> Optional[dict[str, Any]]:
        tokens = self.store.tables.auth_token
        users = self.store.tables.user

        if self.store.can_join:
            stmt = (
                select(*labelled(tokens, *TOKEN_FIELDS), *labelled(users, *USER_FIELDS))
                .select_from(tokens.join(users, tokens.c.user_id == users.c.id))
                .where(tokens.c.id == token_id)
            )
            return await self.store.select_row(stmt)

        row = await self.store.select_row(
            select(*labelled(tokens, *TOKEN_FIELDS)).where(tokens.c.id == token_id)
        )
        if row is None:
            return None
        user_row = await self.store.select_row(
            select(*labelled(users, *USER_FIELDS)).where(users.c.id == row["user_id"])
        )
        # Orphaned token: the inner join above would not return it either
        if user_row is None:
            return None
        row.update(user_row)
        return row

    # ─── Issue / revoke ──────────────────────────────────

    async def issue(
        self,
        tx: Transaction,
        *,
        user_id: str,
        username: Optional[str],
        role: Optional[str],
        account_id: str,
        duration: timedelta,
    ) -> RefToken:
        """Insert a token row inside ``tx`` and return the token."""
        expires_at = self.clock() + duration
        token_id = await tx.insert(
            self.store.tables.auth_token,
            {"id": new_token_id(), "user_id": user_id, "expires_at": expires_at},
        )
        return RefToken(
            id=token_id,
            user_id=user_id,
            username=username,
            role=role,
            account_id=account_id,
            expires_at=expires_at,
        )

    async def revoke(self, token_id: str) -> bool:
        """Delete a token row. Returns False if it did not exist."""
        async with self.store.transaction() as tx:
            count = await tx.delete(self.store.tables.auth_token, token_id)
            await tx.commit()
        return count > 0
