"""Integration hooks — extra fields and outbound notifications.

Learn: The engine never sends email or SMS itself. Deployments subclass
AuthHooks and override what they need:

    class MyHooks(AuthHooks):
        async def send_email_verify_code(self, email, code):
            await mailer.send(email, f"Your code is {code}")

The defaults add no extra fields and only log. Codes are included in the
log line only when REFAUTH_DEBUG is on.
"""

from typing import Any, Optional

import structlog

from refauth.config import settings
from refauth.schemas.auth import RegistrationRequest

logger = structlog.get_logger()


class AuthHooks:
    """Override any method to integrate with the surrounding application."""

    # ─── Extra fields ────────────────────────────────────

    def extra_account_fields(self, request: RegistrationRequest) -> Optional[dict[str, Any]]:
        """Values merged into a newly created account row."""
        return None

    def extra_user_fields(self, request: RegistrationRequest) -> Optional[dict[str, Any]]:
        """Values merged into the user row after the base fields."""
        return None

    # ─── Notifications ───────────────────────────────────

    async def on_register(self, new_account: bool, user: dict[str, Any]) -> None:
        logger.info("hooks.registered", user_id=user.get("id"), new_account=new_account)

    async def send_email_verify_code(self, email: str, code: str) -> None:
        logger.info("hooks.email_verify_code", email=email, code=code if settings.debug else None)

    async def send_phone_verify_code(self, phone: str, code: str) -> None:
        logger.info("hooks.phone_verify_code", phone=phone, code=code if settings.debug else None)

    async def on_verified(self, data: dict[str, Any]) -> None:
        logger.info("hooks.verified", user_id=data.get("user_id"))

    async def on_forgot_password(self, user: dict[str, Any]) -> None:
        logger.info(
            "hooks.forgot_password",
            user_id=user.get("id"),
            reset_code=user.get("reset_code") if settings.debug else None,
        )

    async def on_forgot_username(self, data: dict[str, Any]) -> None:
        logger.info("hooks.forgot_username", contact=data.get("contact"))

    # ─── Client version ──────────────────────────────────

    def on_check_version(self, version: Optional[str]) -> None:
        """Called with the client's version string on token checks.

        Raise to reject outdated clients.
        """
