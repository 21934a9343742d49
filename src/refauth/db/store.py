"""Credential store — thin transactional layer over an AsyncEngine.

Learn: Services never touch connections directly. They either run a
one-shot read on the store, or open a Transaction:

    async with store.transaction() as tx:
        account_id = await tx.insert(tables.account, {})
        tx.on_commit(send_welcome_email)
        await tx.commit()

Leaving the block without commit() rolls everything back. Callbacks
registered with on_commit() run only after the commit succeeded; their
failures are logged and never reach the caller.
"""

from typing import Any, Awaitable, Callable, Optional

import structlog
from sqlalchemy import delete, insert, select, text, update
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, AsyncTransaction
from sqlalchemy.sql import Executable
from sqlalchemy.sql.schema import Table

from refauth.db.models import Tables

logger = structlog.get_logger()

CommitHook = Callable[[], Awaitable[None]]


def labelled(table: Table, *keys: str) -> list:
    """Columns for the given keys, labelled by key, skipping unmapped ones."""
    return [table.c[k].label(k) for k in keys if k in table.c]


class Transaction:
    """One connection, one database transaction, plus post-commit hooks."""

    def __init__(self, engine: AsyncEngine):
        self._engine = engine
        self._conn: Optional[AsyncConnection] = None
        self._trans: Optional[AsyncTransaction] = None
        self._on_commit: list[CommitHook] = []
        self.committed = False

    async def __aenter__(self) -> "Transaction":
        self._conn = await self._engine.connect()
        self._trans = await self._conn.begin()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            if not self.committed and self._trans.is_active:
                await self._trans.rollback()
        finally:
            await self._conn.close()

    # ─── Statements ──────────────────────────────────────

    async def execute(self, stmt: Executable):
        return await self._conn.execute(stmt)

    async def select_row(self, stmt: Executable) -> Optional[dict[str, Any]]:
        result = await self._conn.execute(stmt)
        row = result.mappings().first()
        return dict(row) if row is not None else None

    async def select_values(self, stmt: Executable) -> list[Any]:
        result = await self._conn.execute(stmt)
        return list(result.scalars().all())

    async def insert(self, table: Table, values: dict[str, Any]) -> Any:
        """Insert a row and return its primary key."""
        stmt = insert(table)
        if values:
            stmt = stmt.values(**values)
        result = await self._conn.execute(stmt)
        return result.inserted_primary_key[0]

    async def update(self, table: Table, row_id: Any, values: dict[str, Any]) -> int:
        """Update the row with the given id; returns the affected row count."""
        result = await self._conn.execute(
            update(table).where(table.c.id == row_id).values(**values)
        )
        return result.rowcount

    async def delete(self, table: Table, row_id: Any) -> int:
        result = await self._conn.execute(delete(table).where(table.c.id == row_id))
        return result.rowcount

    # ─── Commit ──────────────────────────────────────────

    def on_commit(self, hook: CommitHook) -> None:
        """Run ``hook`` after a successful commit."""
        self._on_commit.append(hook)

    async def commit(self) -> None:
        await self._trans.commit()
        self.committed = True
        for hook in self._on_commit:
            try:
                await hook()
            except Exception as e:
                logger.warning(
                    "store.on_commit_failed",
                    hook=getattr(hook, "__name__", repr(hook)),
                    error=str(e),
                )


class CredentialStore:
    """Entry point for storage access.

    ``can_join`` tells authenticators whether the backend can resolve a
    token and its user in one JOIN, or needs two lookups merged in memory.
    """

    def __init__(self, engine: AsyncEngine, tables: Tables, can_join: bool = True):
        self.engine = engine
        self.tables = tables
        self.can_join = can_join

    def transaction(self) -> Transaction:
        return Transaction(self.engine)

    async def create_all(self) -> None:
        """Create any missing tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(self.tables.metadata.create_all)

    async def ping(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def select_row(self, stmt: Executable) -> Optional[dict[str, Any]]:
        async with self.engine.connect() as conn:
            result = await conn.execute(stmt)
            row = result.mappings().first()
            return dict(row) if row is not None else None

    async def select_values(self, stmt: Executable) -> list[Any]:
        async with self.engine.connect() as conn:
            result = await conn.execute(stmt)
            return list(result.scalars().all())

    async def update_and_commit(self, table: Table, row_id: Any, values: dict[str, Any]) -> int:
        async with self.transaction() as tx:
            count = await tx.update(table, row_id, values)
            await tx.commit()
        return count

    async def get_row(self, table: Table, row_id: Any, *keys: str) -> Optional[dict[str, Any]]:
        """Fetch selected columns of one row by id."""
        return await self.select_row(
            select(*labelled(table, *keys)).where(table.c.id == row_id)
        )
