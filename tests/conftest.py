"""Test fixtures — a fresh SQLite database per test.

Learn: Testing pattern for the credential store + FastAPI:

1. Each test gets its own aiosqlite file under tmp_path and creates the
   tables from the default schema map. Nothing leaks between tests.
2. Services get a controllable clock and a seeded RNG so expiry and
   generated codes are deterministic.
3. RecordingHooks captures every notification so tests can read the
   codes the engine would have emailed or texted.
4. The HTTP client overrides get_store so routes hit the same database.
"""

import random
from datetime import datetime, timedelta, timezone

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine

from refauth.config import SchemaMap, Settings
from refauth.db.engine import get_store
from refauth.db.models import build_tables
from refauth.db.store import CredentialStore
from refauth.main import create_app
from refauth.schemas.auth import RegistrationRequest
from refauth.services.coordinator import AuthCoordinator
from refauth.services.hooks import AuthHooks


class Clock:
    """Callable clock that only moves when a test tells it to."""

    def __init__(self, now: datetime = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingHooks(AuthHooks):
    """AuthHooks that remember every call; set fail_* to make one raise."""

    def __init__(self):
        self.registered: list[tuple[bool, dict]] = []
        self.email_codes: list[tuple[str, str]] = []
        self.phone_codes: list[tuple[str, str]] = []
        self.verified: list[dict] = []
        self.forgot_passwords: list[dict] = []
        self.forgot_usernames: list[dict] = []
        self.versions: list = []
        self.fail_on_register = False
        self.fail_send = False
        self.fail_on_verified = False
        self.fail_forgot_password = False
        self.fail_forgot_username = False

    async def on_register(self, new_account, user):
        self.registered.append((new_account, user))
        if self.fail_on_register:
            raise RuntimeError("welcome mail down")

    async def send_email_verify_code(self, email, code):
        if self.fail_send:
            raise RuntimeError("smtp down")
        self.email_codes.append((email, code))

    async def send_phone_verify_code(self, phone, code):
        if self.fail_send:
            raise RuntimeError("sms down")
        self.phone_codes.append((phone, code))

    async def on_verified(self, data):
        self.verified.append(data)
        if self.fail_on_verified:
            raise RuntimeError("webhook down")

    async def on_forgot_password(self, user):
        self.forgot_passwords.append(user)
        if self.fail_forgot_password:
            raise RuntimeError("mailer down")

    async def on_forgot_username(self, data):
        self.forgot_usernames.append(data)
        if self.fail_forgot_username:
            raise RuntimeError("mailer down")

    def on_check_version(self, version):
        self.versions.append(version)


def code_digits(code: str) -> int:
    """'123-456' → 123456, the form verify() accepts."""
    return int("".join(ch for ch in code if ch.isdigit()))


async def make_store(tmp_path, can_join: bool = True, schema_map: SchemaMap = None) -> CredentialStore:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'refauth.db'}")
    store = CredentialStore(engine, build_tables(schema_map or SchemaMap()), can_join=can_join)
    await store.create_all()
    return store


@pytest_asyncio.fixture()
async def store(tmp_path):
    store = await make_store(tmp_path)
    yield store
    await store.engine.dispose()


@pytest_asyncio.fixture()
async def hooks():
    return RecordingHooks()


@pytest_asyncio.fixture()
async def clock():
    return Clock()


@pytest_asyncio.fixture()
async def auth_settings():
    return Settings(
        database_url="sqlite+aiosqlite://",
        environment="development",
        default_role="member",
    )


@pytest_asyncio.fixture()
async def coordinator(store, auth_settings, hooks, clock):
    return AuthCoordinator(
        store,
        settings=auth_settings,
        hooks=hooks,
        rng=random.Random(1234),
        clock=clock,
    )


@pytest_asyncio.fixture()
async def registered(coordinator):
    """A registered user 'alice' with email and phone on file."""
    return await coordinator.register(
        RegistrationRequest(
            username="Alice",
            password="wonderland",
            email="Alice@Example.com",
            phone="(555) 123-4567",
            first_name="Alice",
            last_name="Liddell",
        )
    )


@pytest_asyncio.fixture()
async def client(store, hooks):
    """HTTP client with get_store pointed at the per-test database."""
    app = create_app(hooks=hooks)
    app.dependency_overrides[get_store] = lambda: store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
