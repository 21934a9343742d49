"""Authenticator tests — ref tokens, share codes, scheme dispatch.

Learn: The ref-token lookup has two paths (JOIN vs two queries merged in
memory). Every ref-token test runs against both, and they must agree.
"""

import random
from datetime import timedelta

import pytest
import pytest_asyncio

from refauth.auth.tokens import REF_TOKEN_SCHEME, SHARE_CODE_SCHEME, RefToken, ShareCodeToken
from refauth.config import SchemaMap
from refauth.errors import NotFoundError, UnauthorizedError
from refauth.schemas.auth import LoginRequest, RegistrationRequest
from refauth.services.coordinator import AuthCoordinator

from conftest import make_store


@pytest_asyncio.fixture(params=[True, False], ids=["join", "no-join"])
async def auth(request, tmp_path, auth_settings, hooks, clock):
    store = await make_store(tmp_path, can_join=request.param)
    coordinator = AuthCoordinator(
        store, settings=auth_settings, hooks=hooks, rng=random.Random(7), clock=clock
    )
    yield coordinator
    await store.engine.dispose()


async def _register(coordinator, username="carol"):
    return await coordinator.register(
        RegistrationRequest(username=username, password="password1", email=f"{username}@x.io")
    )


# ═══════════════════════════════════════════════════════════
# Ref tokens
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_ref_token_round_trip(auth):
    issued = await _register(auth)
    token = await auth.authenticate(REF_TOKEN_SCHEME, issued.id)
    assert isinstance(token, RefToken)
    assert token.id == issued.id
    assert token.user_id == issued.user_id
    assert token.account_id == issued.account_id
    assert token.username == "carol"
    assert token.role == "member"
    assert token.expires_at == issued.expires_at


@pytest.mark.asyncio
async def test_token_ids_are_unique_per_issue(auth):
    first = await _register(auth)
    second = await auth.create_ref_token(first.user_id)
    assert first.id != second.id
    assert (await auth.authenticate(REF_TOKEN_SCHEME, first.id)).user_id == first.user_id
    assert (await auth.authenticate(REF_TOKEN_SCHEME, second.id)).user_id == first.user_id


@pytest.mark.asyncio
async def test_token_expires_at_boundary(auth, clock):
    issued = await _register(auth)
    assert issued.expires_at == clock() + timedelta(days=90)

    clock.now = issued.expires_at - timedelta(seconds=1)
    await auth.authenticate(REF_TOKEN_SCHEME, issued.id)

    clock.now = issued.expires_at
    with pytest.raises(UnauthorizedError, match="expired"):
        await auth.authenticate(REF_TOKEN_SCHEME, issued.id)


@pytest.mark.asyncio
async def test_unknown_token_rejected(auth):
    with pytest.raises(UnauthorizedError):
        await auth.authenticate(REF_TOKEN_SCHEME, "nope")
    with pytest.raises(UnauthorizedError):
        await auth.authenticate(REF_TOKEN_SCHEME, "")


@pytest.mark.asyncio
async def test_orphaned_token_rejected(auth, clock):
    store = auth.store
    async with store.transaction() as tx:
        await tx.insert(
            store.tables.auth_token,
            {"id": "orphan", "user_id": "gone", "expires_at": clock() + timedelta(days=1)},
        )
        await tx.commit()

    with pytest.raises(UnauthorizedError, match="Invalid auth token"):
        await auth.authenticate(REF_TOKEN_SCHEME, "orphan")


@pytest.mark.asyncio
async def test_logout_revokes_only_that_token(auth):
    first = await _register(auth)
    second = await auth.create_ref_token(first.user_id)

    await auth.logout(first.id)

    with pytest.raises(UnauthorizedError):
        await auth.authenticate(REF_TOKEN_SCHEME, first.id)
    await auth.authenticate(REF_TOKEN_SCHEME, second.id)

    with pytest.raises(UnauthorizedError):
        await auth.logout(first.id)


@pytest.mark.asyncio
async def test_create_ref_token_unknown_user(auth):
    with pytest.raises(NotFoundError):
        await auth.create_ref_token("missing")


# ═══════════════════════════════════════════════════════════
# Scheme dispatch
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_unknown_scheme_rejected(auth):
    issued = await _register(auth)
    with pytest.raises(UnauthorizedError, match="Unknown auth type Bearer"):
        await auth.authenticate("Bearer", issued.id)


@pytest.mark.asyncio
async def test_registry_lists_schemes(auth):
    assert auth.registry.schemes() == [SHARE_CODE_SCHEME, REF_TOKEN_SCHEME]


# ═══════════════════════════════════════════════════════════
# Share codes
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_share_code_resolves_to_account(auth):
    issued = await _register(auth)
    code = await auth.create_share_code(issued.account_id)

    token = await auth.authenticate(SHARE_CODE_SCHEME, code)
    assert isinstance(token, ShareCodeToken)
    assert token.account_id == issued.account_id
    assert token.role == "member"


@pytest.mark.asyncio
async def test_new_share_code_replaces_old(auth):
    issued = await _register(auth)
    old = await auth.create_share_code(issued.account_id)
    new = await auth.create_share_code(issued.account_id)

    assert old != new
    with pytest.raises(UnauthorizedError):
        await auth.authenticate(SHARE_CODE_SCHEME, old)
    await auth.authenticate(SHARE_CODE_SCHEME, new)


@pytest.mark.asyncio
async def test_share_code_for_unknown_account(auth):
    with pytest.raises(NotFoundError):
        await auth.create_share_code("missing")


@pytest.mark.asyncio
async def test_share_code_expiry_needs_column(auth, clock):
    issued = await _register(auth)
    with pytest.raises(ValueError):
        await auth.create_share_code(issued.account_id, expires_at=clock() + timedelta(days=1))


@pytest.mark.asyncio
async def test_share_code_expiry_when_configured(tmp_path, auth_settings, hooks, clock):
    schema_map = SchemaMap.model_validate(
        {"account": {"share_code_expires_at": "share_code_expires_at"}}
    )
    store = await make_store(tmp_path, schema_map=schema_map)
    try:
        coordinator = AuthCoordinator(store, settings=auth_settings, hooks=hooks, clock=clock)
        issued = await _register(coordinator)
        code = await coordinator.create_share_code(
            issued.account_id, expires_at=clock() + timedelta(hours=1)
        )
        await coordinator.authenticate(SHARE_CODE_SCHEME, code)

        clock.advance(hours=1)
        with pytest.raises(UnauthorizedError, match="expired"):
            await coordinator.authenticate(SHARE_CODE_SCHEME, code)
    finally:
        await store.engine.dispose()


# ═══════════════════════════════════════════════════════════
# Client version
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_check_version_strips_non_numeric(coordinator, hooks):
    assert coordinator.check_version("v2.10.3-beta") == "2.10.3"
    assert coordinator.check_version(None) is None
    assert hooks.versions == ["2.10.3", None]


@pytest.mark.asyncio
async def test_null_role_falls_back_to_default(store, auth_settings, hooks, clock):
    no_default = auth_settings.model_copy(update={"default_role": None})
    first = AuthCoordinator(store, settings=no_default, hooks=hooks, clock=clock)
    issued = await _register(first)
    assert issued.role is None

    second = AuthCoordinator(store, settings=auth_settings, hooks=hooks, clock=clock)
    token = await second.authenticate(REF_TOKEN_SCHEME, issued.id)
    assert token.role == "member"

    login = await second.login(LoginRequest(username="carol", password="password1"))
    assert login.role == "member"
