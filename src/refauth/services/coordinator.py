"""Auth coordinator — registration, login and the credential lifecycle.

Learn: Service layer separates business logic from HTTP routing.
API routes and the CLI call the coordinator; the coordinator calls the
credential store. It composes:

- RefTokenAuthenticator / ShareCodeAuthenticator behind a TokenRegistry
- VerificationCodeService (email/phone codes)
- PasswordResetService (forgot/reset password)

Every flow that writes more than one row runs in a single Transaction,
so a failure part-way leaves no orphan account, user or token.
"""

import random
import re
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from refauth.auth.base import TokenRegistry
from refauth.auth.password import Hasher, hash_password, new_salt, sha256_hex, verify_password
from refauth.auth.ref_token import RefTokenAuthenticator
from refauth.auth.share_code import ShareCodeAuthenticator
from refauth.auth.tokens import AuthToken, RefToken
from refauth.auth.validators import (
    EmailValidator,
    PhoneValidator,
    collect,
    name_validator,
    password_validator,
    username_validator,
    validate_contact,
)
from refauth.config import Settings
from refauth.db.models import utcnow
from refauth.db.store import CredentialStore, Transaction, labelled
from refauth.errors import ConflictError, NotFoundError, UnauthorizedError
from refauth.schemas.auth import (
    LoginRequest,
    RegistrationRequest,
    ResetPasswordRequest,
    VerifyRequest,
)
from refauth.services.hooks import AuthHooks
from refauth.services.names import ANIMALS, COLORS
from refauth.services.password_reset import PasswordResetService
from refauth.services.verification import VerificationCodeService

logger = structlog.get_logger()

VERSION_CLEAN_RE = re.compile(r"[^\d\.]+")


class AuthCoordinator:
    """Top-level orchestrator for every auth operation."""

    def __init__(
        self,
        store: CredentialStore,
        settings: Settings,
        hooks: Optional[AuthHooks] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = utcnow,
        hasher: Hasher = sha256_hex,
    ):
        self.store = store
        self.tables = store.tables
        self.settings = settings
        self.hooks = hooks or AuthHooks()
        self.rng = rng or random.SystemRandom()
        self.clock = clock
        self.hasher = hasher

        self.username_validator = username_validator()
        self.password_validator = password_validator()
        self.email_validator = EmailValidator()
        self.phone_validator = PhoneValidator()
        self.first_name_validator = name_validator("first_name")
        self.last_name_validator = name_validator("last_name")

        self.ref_tokens = RefTokenAuthenticator(
            store, default_role=settings.default_role, clock=clock
        )
        self.share_codes = ShareCodeAuthenticator(
            store, role=settings.share_code_role or settings.default_role, clock=clock
        )
        self.registry = TokenRegistry([self.ref_tokens, self.share_codes])

        self.verification = VerificationCodeService(
            store, settings, self.hooks, rng=self.rng, clock=clock
        )
        self.password_reset = PasswordResetService(
            store,
            settings,
            self.hooks,
            self.ref_tokens,
            rng=self.rng,
            clock=clock,
            hasher=hasher,
        )

    @property
    def token_duration(self) -> timedelta:
        return timedelta(days=self.settings.auth_token_duration_days)

    # ─── Register ────────────────────────────────────────

    def validate_registration(self, request: RegistrationRequest) -> dict[str, Optional[str]]:
        """Scrub every registration field, raising all problems at once."""
        return collect(
            {
                "username": lambda: self.username_validator.validate(request.username),
                "password": lambda: self.password_validator.validate(request.password),
                "email": lambda: self.email_validator.validate(request.email),
                "phone": lambda: self.phone_validator.validate(request.phone),
                "first_name": lambda: self.first_name_validator.validate(request.first_name),
                "last_name": lambda: self.last_name_validator.validate(request.last_name),
            }
        )

    async def register(
        self,
        request: RegistrationRequest,
        notify_data: Optional[dict[str, Any]] = None,
    ) -> RefToken:
        """Register a new user, or give an anonymous user a name and password.

        Learn: Passing request.user_id upgrades that user in place and keeps
        its account. Everything (account, user, token) commits together;
        hooks.on_register runs only after the commit and can't undo it.
        """
        users = self.tables.user

        async with self.store.transaction() as tx:
            existing_account_id = None
            existing_username = None
            if request.user_id:
                row = await tx.select_row(
                    select(*labelled(users, "account_id", "username")).where(
                        users.c.id == request.user_id
                    )
                )
                if row is None:
                    raise NotFoundError(f"Invalid user id '{request.user_id}'")
                existing_account_id = row["account_id"]
                existing_username = row["username"]

            fields = self.validate_registration(request)
            username = fields["username"]
            if username != existing_username and await self._username_taken(tx, username):
                raise ConflictError(f"Username '{username}' is unavailable")

            role = request.role or self.settings.default_role
            salt = new_salt()
            password_hash = hash_password(salt, fields["password"], self.hasher)

            new_account = existing_account_id is None
            if new_account:
                account_id = await tx.insert(
                    self.tables.account, self.hooks.extra_account_fields(request) or {}
                )
            else:
                account_id = existing_account_id

            user = {
                "account_id": account_id,
                "username": username,
                "salt": salt,
                "password_hash": password_hash,
                "email": fields["email"],
                "phone": fields["phone"],
                "first_name": fields["first_name"],
                "last_name": fields["last_name"],
            }
            if self.tables.has_role and role:
                user["role"] = role
            user.update(self.hooks.extra_user_fields(request) or {})

            try:
                if request.user_id:
                    user_id = request.user_id
                    await tx.update(users, user_id, user)
                else:
                    user_id = await tx.insert(users, user)
            except IntegrityError:
                # Lost a race for the username, or some other constraint failed
                if await self._username_claimed_elsewhere(username, request.user_id):
                    raise ConflictError(f"Username '{username}' is unavailable")
                raise

            registered = {
                "id": user_id,
                "account_id": account_id,
                "username": username,
                "email": fields["email"],
                "phone": fields["phone"],
                "first_name": fields["first_name"],
                "last_name": fields["last_name"],
                **(notify_data or {}),
            }

            async def notify_registered():
                await self.hooks.on_register(new_account, registered)

            tx.on_commit(notify_registered)

            token = await self.ref_tokens.issue(
                tx,
                user_id=user_id,
                username=username,
                role=role,
                account_id=account_id,
                duration=self.token_duration,
            )
            await tx.commit()

        logger.info("auth.registered", user_id=user_id, new_account=new_account)
        return token

    async def _username_taken(self, tx: Transaction, username: str) -> bool:
        users = self.tables.user
        row = await tx.select_row(
            select(*labelled(users, "id")).where(users.c.username == username)
        )
        return row is not None

    async def _username_claimed_elsewhere(self, username: str, user_id: Optional[str]) -> bool:
        """Committed-state check, usable after the write transaction failed."""
        users = self.tables.user
        stmt = select(*labelled(users, "id")).where(users.c.username == username)
        if user_id:
            stmt = stmt.where(users.c.id != user_id)
        return await self.store.select_row(stmt) is not None

    # ─── Anonymous users ─────────────────────────────────

    async def create_anonymous_user(self) -> RefToken:
        """Create a new account + nameless user and return its token."""
        role = self.settings.default_role
        async with self.store.transaction() as tx:
            account_id = await tx.insert(self.tables.account, {})
            user = {
                "account_id": account_id,
                "first_name": self.rng.choice(COLORS),
                "last_name": self.rng.choice(ANIMALS),
            }
            if self.tables.has_role and role:
                user["role"] = role
            user_id = await tx.insert(self.tables.user, user)

            token = await self.ref_tokens.issue(
                tx,
                user_id=user_id,
                username=None,
                role=role,
                account_id=account_id,
                duration=self.token_duration,
            )
            await tx.commit()

        logger.info("auth.anonymous_created", user_id=user_id)
        return token

    # ─── Login / tokens ──────────────────────────────────

    async def lookup_username(self, username: Optional[str], *fields: str) -> Optional[dict[str, Any]]:
        """Return the user row for ``username`` (selected fields) or None."""
        username = self.username_validator.validate(username)
        users = self.tables.user
        return await self.store.select_row(
            select(*labelled(users, *(fields or ("id",)))).where(users.c.username == username)
        )

    async def login(self, request: LoginRequest) -> RefToken:
        user = await self.lookup_username(
            request.username, "id", "username", "account_id", "role", "salt", "password_hash"
        )
        if user is None:
            raise NotFoundError(f"Invalid username '{request.username}'")

        password = self.password_validator.validate(request.password)
        if not verify_password(password, user["salt"], user["password_hash"], self.hasher):
            logger.info("auth.login_failed", user_id=user["id"])
            raise UnauthorizedError("Incorrect password")

        async with self.store.transaction() as tx:
            token = await self.ref_tokens.issue(
                tx,
                user_id=user["id"],
                username=user["username"],
                role=user.get("role") or self.settings.default_role,
                account_id=user["account_id"],
                duration=self.token_duration,
            )
            await tx.commit()

        logger.info("auth.login", user_id=user["id"])
        return token

    async def create_ref_token(self, user_id: str) -> RefToken:
        """Issue a token for an existing user without a password check."""
        user = await self.store.get_row(
            self.tables.user, user_id, "username", "role", "account_id"
        )
        if user is None:
            raise NotFoundError(f"Invalid user id '{user_id}'")

        async with self.store.transaction() as tx:
            token = await self.ref_tokens.issue(
                tx,
                user_id=user_id,
                username=user["username"],
                role=user.get("role") or self.settings.default_role,
                account_id=user["account_id"],
                duration=self.token_duration,
            )
            await tx.commit()
        return token

    async def logout(self, token_id: str) -> None:
        if not await self.ref_tokens.revoke(token_id):
            raise UnauthorizedError("Invalid auth token")
        logger.info("auth.logout")

    async def authenticate(self, scheme: Optional[str], value: Optional[str]) -> AuthToken:
        return await self.registry.authenticate(scheme or "", value or "")

    def check_version(self, raw_version: Optional[str]) -> Optional[str]:
        """Strip a client version to digits and dots and pass it to the hook."""
        version = VERSION_CLEAN_RE.sub("", raw_version or "") or None
        self.hooks.on_check_version(version)
        return version

    async def create_share_code(self, account_id: str, expires_at: Optional[datetime] = None) -> str:
        code = await self.share_codes.create(account_id, expires_at=expires_at)
        logger.info("auth.share_code_created", account_id=account_id)
        return code

    # ─── Password reset / forgot username ────────────────

    async def forgot_password(self, username: Optional[str]) -> None:
        await self.password_reset.forgot_password(username)

    async def reset_password(self, request: ResetPasswordRequest) -> RefToken:
        return await self.password_reset.reset_password(request)

    async def forgot_username(self, contact: Optional[str]) -> None:
        """Send every username registered to ``contact`` via the hook."""
        contact = validate_contact(contact)
        users = self.tables.user
        column = users.c.email if "@" in contact else users.c.phone

        usernames = await self.store.select_values(
            select(users.c.username).where(column == contact)
        )
        await self.hooks.on_forgot_username(
            {"contact": contact, "usernames": ",".join(u for u in usernames if u)}
        )

    # ─── Verification codes ──────────────────────────────

    async def send_verify_code(self, contact: Optional[str]) -> None:
        await self.verification.send_verify_code(contact)

    async def send_user_verify_code(self, user_id: str, channel: str) -> None:
        await self.verification.send_user_verify_code(user_id, channel)

    async def verify(self, request: VerifyRequest) -> None:
        await self.verification.verify(request)
