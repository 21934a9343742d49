"""Password reset service — forgot-password codes scoped to a user.

Learn: A user has one reset-code slot. forgot_password() overwrites it
and hands the code to hooks.on_forgot_password; that hook runs in the
caller's path, so a delivery failure surfaces as an error. reset_password()
checks the code (case-insensitive) and its expiry, re-hashes with the
user's existing salt, clears the slot and issues a fresh ref token.
"""

import random
from datetime import datetime, timedelta
from typing import Callable, Optional

import structlog
from sqlalchemy import select

from refauth.auth.password import Hasher, hash_password, sha256_hex
from refauth.auth.ref_token import RefTokenAuthenticator
from refauth.auth.tokens import RefToken
from refauth.auth.validators import password_validator, username_validator
from refauth.config import Settings
from refauth.db.models import utcnow
from refauth.db.store import CredentialStore, labelled
from refauth.errors import ExpiredError, NotFoundError, UnauthorizedError
from refauth.schemas.auth import ResetPasswordRequest
from refauth.services.hooks import AuthHooks

logger = structlog.get_logger()


class PasswordResetService:
    def __init__(
        self,
        store: CredentialStore,
        settings: Settings,
        hooks: AuthHooks,
        ref_tokens: RefTokenAuthenticator,
        rng: random.Random,
        clock: Callable[[], datetime] = utcnow,
        hasher: Hasher = sha256_hex,
    ):
        self.store = store
        self.settings = settings
        self.hooks = hooks
        self.ref_tokens = ref_tokens
        self.rng = rng
        self.clock = clock
        self.hasher = hasher
        self.username_validator = username_validator()
        self.password_validator = password_validator()

    def generate_code(self) -> str:
        length = self.settings.reset_code_length
        return f"{self.rng.randrange(10**length):0{length}d}"

    async def forgot_password(self, username: Optional[str]) -> None:
        username = self.username_validator.validate(username)
        users = self.store.tables.user
        user = await self.store.select_row(
            select(
                *labelled(users, "id", "username", "first_name", "last_name", "email", "phone")
            ).where(users.c.username == username)
        )
        if user is None:
            raise NotFoundError(f"Invalid username '{username}'")

        reset_code = self.generate_code()
        expires_at = self.clock() + timedelta(minutes=self.settings.reset_code_duration_minutes)
        await self.store.update_and_commit(
            users,
            user["id"],
            {"reset_code": reset_code, "reset_code_expires_at": expires_at},
        )
        logger.info("password_reset.code_created", user_id=user["id"])

        user["reset_code"] = reset_code
        await self.hooks.on_forgot_password(user)

    async def reset_password(self, request: ResetPasswordRequest) -> RefToken:
        username = self.username_validator.validate(request.username)
        users = self.store.tables.user

        async with self.store.transaction() as tx:
            user = await tx.select_row(
                select(
                    *labelled(
                        users,
                        "id",
                        "account_id",
                        "username",
                        "role",
                        "salt",
                        "reset_code",
                        "reset_code_expires_at",
                    )
                ).where(users.c.username == username)
            )
            if user is None:
                raise NotFoundError(f"Invalid username '{username}'")

            stored_code = user["reset_code"]
            supplied_code = (request.reset_code or "").strip()
            if not stored_code or stored_code.casefold() != supplied_code.casefold():
                raise UnauthorizedError("Invalid reset code")

            expires_at = user["reset_code_expires_at"]
            if expires_at is None or expires_at <= self.clock():
                raise ExpiredError("Reset code has expired")

            password = self.password_validator.validate(request.password)
            password_hash = hash_password(user["salt"], password, self.hasher)

            await tx.update(
                users,
                user["id"],
                {
                    "password_hash": password_hash,
                    "reset_code": None,
                    "reset_code_expires_at": None,
                },
            )
            token = await self.ref_tokens.issue(
                tx,
                user_id=user["id"],
                username=user["username"],
                role=user.get("role") or self.settings.default_role,
                account_id=user["account_id"],
                duration=timedelta(days=self.settings.auth_token_duration_days),
            )
            await tx.commit()

        logger.info("password_reset.completed", user_id=user["id"])
        return token
