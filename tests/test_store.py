"""Credential store tests — transactions, commit hooks, remapped schemas."""

from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from refauth.config import SchemaMap
from refauth.db.store import labelled

from conftest import make_store


@pytest.mark.asyncio
async def test_insert_generates_id_and_commit_persists(store):
    async with store.transaction() as tx:
        account_id = await tx.insert(store.tables.account, {})
        await tx.commit()

    row = await store.get_row(store.tables.account, account_id, "id", "created_at")
    assert row["id"] == account_id
    assert row["created_at"].tzinfo is not None


@pytest.mark.asyncio
async def test_leaving_without_commit_rolls_back(store):
    async with store.transaction() as tx:
        account_id = await tx.insert(store.tables.account, {})

    assert await store.get_row(store.tables.account, account_id, "id") is None


@pytest.mark.asyncio
async def test_exception_rolls_back(store):
    with pytest.raises(RuntimeError):
        async with store.transaction() as tx:
            account_id = await tx.insert(store.tables.account, {})
            raise RuntimeError("boom")

    assert await store.get_row(store.tables.account, account_id, "id") is None


@pytest.mark.asyncio
async def test_on_commit_runs_after_commit_and_failures_are_swallowed(store):
    calls = []

    async def ok():
        calls.append("ok")

    async def broken():
        raise RuntimeError("hook failed")

    async with store.transaction() as tx:
        account_id = await tx.insert(store.tables.account, {})
        tx.on_commit(broken)
        tx.on_commit(ok)
        assert calls == []
        await tx.commit()

    assert calls == ["ok"]
    assert await store.get_row(store.tables.account, account_id, "id") is not None


@pytest.mark.asyncio
async def test_on_commit_skipped_on_rollback(store):
    calls = []

    async def hook():
        calls.append(1)

    async with store.transaction() as tx:
        await tx.insert(store.tables.account, {})
        tx.on_commit(hook)

    assert calls == []


@pytest.mark.asyncio
async def test_update_and_commit_returns_rowcount(store):
    async with store.transaction() as tx:
        account_id = await tx.insert(store.tables.account, {})
        await tx.commit()

    assert await store.update_and_commit(store.tables.account, account_id, {"share_code": "abc"}) == 1
    assert await store.update_and_commit(store.tables.account, "missing", {"share_code": "x"}) == 0


@pytest.mark.asyncio
async def test_datetimes_come_back_utc(store):
    async with store.transaction() as tx:
        await tx.insert(
            store.tables.send_verify,
            {
                "contact": "a@b.co",
                "verify_code": 123456,
                "expires_at": datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc),
            },
        )
        await tx.commit()

    table = store.tables.send_verify
    row = await store.select_row(select(*labelled(table, "expires_at")))
    assert row["expires_at"] == datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_remapped_names_keep_column_keys(tmp_path):
    schema_map = SchemaMap.model_validate(
        {
            "user": {"table": "members", "username": "login_name", "role": None},
            "auth_token": {"table": "sessions"},
        }
    )
    store = await make_store(tmp_path, schema_map=schema_map)
    try:
        users = store.tables.user
        assert users.name == "members"
        assert users.c.username.name == "login_name"
        assert not store.tables.has_role
        assert store.tables.auth_token.name == "sessions"

        async with store.transaction() as tx:
            account_id = await tx.insert(store.tables.account, {})
            user_id = await tx.insert(users, {"account_id": account_id, "username": "bob"})
            await tx.commit()

        row = await store.get_row(users, user_id, "username", "role")
        assert row == {"username": "bob"}
    finally:
        await store.engine.dispose()


@pytest.mark.asyncio
async def test_labelled_skips_unmapped_keys(store):
    cols = labelled(store.tables.account, "id", "share_code_expires_at")
    assert [c.name for c in cols] == ["id"]
