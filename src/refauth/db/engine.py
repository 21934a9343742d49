"""Async SQLAlchemy engine and the app-wide credential store.

Learn: SQLAlchemy 2.0 async mode — create_async_engine for connection
pooling, one CredentialStore per process, dependency injection via FastAPI.

The engine is built on first use so importing the app (tests, CLI) never
needs a reachable database. Tests override get_store with their own store.
"""

from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from refauth.config import settings
from refauth.db.models import build_tables
from refauth.db.store import CredentialStore


@lru_cache(maxsize=1)
def get_engine() -> AsyncEngine:
    """Connection pool: 5 connections, up to 20 under load.

    echo=True in debug to see SQL queries. SQLite pools don't take
    sizing arguments.
    """
    if settings.database_url.startswith("sqlite"):
        return create_async_engine(settings.database_url, echo=settings.debug)
    return create_async_engine(
        settings.database_url,
        echo=settings.debug,
        pool_size=5,
        max_overflow=15,
    )


@lru_cache(maxsize=1)
def _default_store() -> CredentialStore:
    return CredentialStore(
        get_engine(),
        build_tables(settings.schema_map),
        can_join=settings.storage_can_join,
    )


def get_store() -> CredentialStore:
    """FastAPI dependency — the process-wide credential store."""
    return _default_store()


async def dispose_engine() -> None:
    if get_engine.cache_info().currsize:
        await get_engine().dispose()
