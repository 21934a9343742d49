"""Forgot-username tests."""

import pytest

from refauth.errors import ValidationError
from refauth.schemas.auth import RegistrationRequest


@pytest.mark.asyncio
async def test_forgot_username_by_email(coordinator, hooks, registered):
    await coordinator.register(
        RegistrationRequest(username="alice2", password="password1", email="alice@example.com")
    )

    await coordinator.forgot_username("ALICE@example.com")

    sent = hooks.forgot_usernames[0]
    assert sent["contact"] == "alice@example.com"
    assert sorted(sent["usernames"].split(",")) == ["alice", "alice2"]


@pytest.mark.asyncio
async def test_forgot_username_by_phone(coordinator, hooks, registered):
    await coordinator.forgot_username("555.123.4567")
    assert hooks.forgot_usernames == [{"contact": "+15551234567", "usernames": "alice"}]


@pytest.mark.asyncio
async def test_forgot_username_no_match_still_notifies(coordinator, hooks):
    await coordinator.forgot_username("nobody@example.com")
    assert hooks.forgot_usernames == [{"contact": "nobody@example.com", "usernames": ""}]


@pytest.mark.asyncio
@pytest.mark.parametrize("contact", [None, "  ", "bad@", "12"])
async def test_forgot_username_bad_contact(coordinator, hooks, contact):
    with pytest.raises(ValidationError) as exc:
        await coordinator.forgot_username(contact)
    assert exc.value.fields == ["contact"]
    assert hooks.forgot_usernames == []


@pytest.mark.asyncio
async def test_forgot_username_hook_failure_reaches_caller(coordinator, hooks, registered):
    hooks.fail_forgot_username = True

    with pytest.raises(RuntimeError, match="mailer down"):
        await coordinator.forgot_username("alice@example.com")
    assert hooks.forgot_usernames[0]["usernames"] == "alice"
