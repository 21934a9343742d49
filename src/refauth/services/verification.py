"""Verification-code service — prove control of an email or phone.

Learn: Codes are keyed by contact, not by user: one outstanding code per
email/phone, overwritten on every send. The flow is:
1. send_verify_code(contact) → store code + expiry, dispatch via hooks
2. verify(user_id, email=code | phone=code) → compare against the code
   stored for the user's current contact, then stamp *_verified_at

The code row is written and the message dispatched inside one
transaction: if dispatch raises, the new code is rolled back.
"""

import random
from datetime import datetime, timedelta
from typing import Callable, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from refauth.auth.validators import validate_contact
from refauth.config import Settings
from refauth.db.models import utcnow
from refauth.db.store import CredentialStore, Transaction, labelled
from refauth.errors import (
    ExpiredError,
    FieldError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from refauth.schemas.auth import VerifyRequest
from refauth.services.hooks import AuthHooks

logger = structlog.get_logger()

CHANNELS = ("email", "phone")


def format_code(code: int, mask: str) -> str:
    """Fill each '#' in ``mask`` with the next digit of ``code``."""
    digits = iter(str(code))
    return "".join(next(digits, "0") if ch == "#" else ch for ch in mask)


class VerificationCodeService:
    def __init__(
        self,
        store: CredentialStore,
        settings: Settings,
        hooks: AuthHooks,
        rng: random.Random,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.settings = settings
        self.hooks = hooks
        self.rng = rng
        self.clock = clock

    def generate_code(self) -> int:
        digits = self.settings.verify_code_format.count("#")
        return self.rng.randrange(10 ** (digits - 1), 10**digits)

    # ─── Send ────────────────────────────────────────────

    async def send_verify_code(self, contact: Optional[str]) -> None:
        scrubbed = validate_contact(contact)
        code = self.generate_code()
        expires_at = self.clock() + timedelta(seconds=self.settings.verify_code_expires_seconds)
        code_text = format_code(code, self.settings.verify_code_format)

        for attempt in range(2):
            try:
                async with self.store.transaction() as tx:
                    await self._store_code(tx, scrubbed, code, expires_at)
                    if "@" in scrubbed:
                        await self.hooks.send_email_verify_code(scrubbed, code_text)
                    else:
                        await self.hooks.send_phone_verify_code(scrubbed, code_text)
                    await tx.commit()
                break
            except IntegrityError:
                # A concurrent first send inserted the row; the retry updates it
                if attempt:
                    raise
                logger.info("verify.send_retry")

        logger.info("verify.code_sent", channel="email" if "@" in scrubbed else "phone")

    async def _existing_code_id(self, tx: Transaction, contact: str) -> Optional[str]:
        table = self.store.tables.send_verify
        row = await tx.select_row(select(*labelled(table, "id")).where(table.c.contact == contact))
        return row["id"] if row else None

    async def _store_code(
        self, tx: Transaction, contact: str, code: int, expires_at: datetime
    ) -> None:
        """Upsert the single code slot for ``contact``."""
        table = self.store.tables.send_verify
        row_id = await self._existing_code_id(tx, contact)
        if row_id is None:
            await tx.insert(
                table, {"contact": contact, "verify_code": code, "expires_at": expires_at}
            )
        else:
            await tx.update(table, row_id, {"verify_code": code, "expires_at": expires_at})

    async def send_user_verify_code(self, user_id: str, channel: str) -> None:
        """Send a code to the email or phone currently on the user's record."""
        if channel not in CHANNELS:
            raise ValueError(f"Unknown verify channel '{channel}'")
        user = await self.store.get_row(self.store.tables.user, user_id, channel)
        if user is None:
            raise NotFoundError(f"Invalid user id '{user_id}'")
        if not user[channel]:
            raise ValidationError(FieldError(channel, f"No {channel} on file"))
        await self.send_verify_code(user[channel])

    # ─── Verify ──────────────────────────────────────────

    async def verify(self, request: VerifyRequest) -> None:
        supplied = {
            channel: getattr(request, channel)
            for channel in CHANNELS
            if getattr(request, channel) is not None
        }
        if not request.user_id:
            raise ValidationError(FieldError("user_id", "Must specify a user id"))
        if len(supplied) != 1:
            raise ValidationError(
                FieldError("code", "Must specify exactly one email or phone verify code")
            )
        channel, code = next(iter(supplied.items()))
        if code <= 0:
            raise ValidationError(FieldError(channel, f"{channel} verify code is invalid"))

        users = self.store.tables.user
        table = self.store.tables.send_verify
        now = self.clock()

        async with self.store.transaction() as tx:
            user = await tx.select_row(
                select(*labelled(users, "id", *CHANNELS)).where(users.c.id == request.user_id)
            )
            if user is None:
                raise NotFoundError(f"Invalid user id '{request.user_id}'")
            if not user[channel]:
                raise ValidationError(FieldError(channel, f"No {channel} on file"))

            contact = validate_contact(user[channel], field=channel)
            stored = await tx.select_row(
                select(*labelled(table, "verify_code", "expires_at")).where(
                    table.c.contact == contact
                )
            )
            if stored is None or stored["verify_code"] != code:
                raise UnauthorizedError("Invalid contact and/or verify code")
            if stored["expires_at"] <= now:
                raise ExpiredError("Expired verify code")

            await tx.update(users, request.user_id, {f"{channel}_verified_at": now})
            await tx.commit()

        logger.info("verify.verified", user_id=request.user_id, channel=channel)

        try:
            await self.hooks.on_verified(request.model_dump(exclude_none=True))
        except Exception as e:
            logger.warning("verify.on_verified_failed", user_id=request.user_id, error=str(e))
