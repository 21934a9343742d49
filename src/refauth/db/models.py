"""SQLAlchemy Core tables — built at runtime from the schema map.

Learn: Table and column names are configuration, not code, so the tables
can't be declarative ORM classes. build_tables() creates Core Table objects
whose SQL names come from the SchemaMap while every Column keeps a fixed
``key``. Services always write ``users.c.username`` no matter what the
column is called in the database.

Key concepts:
- String primary keys filled in Python (uuid4 hex, or token_urlsafe for tokens)
- UTCDateTime so SQLite hands back timezone-aware datetimes like Postgres does
- Extra account/user columns can be appended for the extra-field hooks
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    TypeDecorator,
)

from refauth.config import RESET_CODE_MAX_LENGTH, SchemaMap


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime stored as UTC."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


@dataclass
class Tables:
    """The four tables the engine works with, plus their metadata."""

    metadata: MetaData
    account: Table
    user: Table
    auth_token: Table
    send_verify: Table

    @property
    def has_role(self) -> bool:
        return "role" in self.user.c

    @property
    def has_share_code_expiry(self) -> bool:
        return "share_code_expires_at" in self.account.c


def _col(name: str, type_, key: str, *args, **kwargs) -> Column:
    return Column(name, type_, *args, key=key, **kwargs)


def build_tables(
    schema_map: SchemaMap,
    metadata: Optional[MetaData] = None,
    extra_account_columns: Iterable[Column] = (),
    extra_user_columns: Iterable[Column] = (),
) -> Tables:
    """Create Core tables for the given schema map."""
    metadata = metadata if metadata is not None else MetaData()
    a = schema_map.account
    u = schema_map.user
    t = schema_map.auth_token
    s = schema_map.send_verify

    account_columns = [
        _col(a.id, String(50), "id", primary_key=True, default=new_id),
        _col(a.share_code, String(64), "share_code", nullable=True, unique=True),
        _col(a.created_at, UTCDateTime(), "created_at", default=utcnow),
        _col(a.updated_at, UTCDateTime(), "updated_at", default=utcnow, onupdate=utcnow),
    ]
    if a.share_code_expires_at:
        account_columns.append(
            _col(a.share_code_expires_at, UTCDateTime(), "share_code_expires_at", nullable=True)
        )
    account = Table(a.table, metadata, *account_columns, *extra_account_columns)

    user_columns = [
        _col(u.id, String(50), "id", primary_key=True, default=new_id),
        _col(
            u.account_id,
            String(50),
            "account_id",
            ForeignKey(account.c.id),
            nullable=False,
            index=True,
        ),
        _col(u.username, String(40), "username", nullable=True, unique=True),
        _col(u.first_name, String(255), "first_name", nullable=True),
        _col(u.last_name, String(255), "last_name", nullable=True),
        _col(u.email, String(255), "email", nullable=True, index=True),
        _col(u.email_verified_at, UTCDateTime(), "email_verified_at", nullable=True),
        _col(u.phone, String(20), "phone", nullable=True, index=True),
        _col(u.phone_verified_at, UTCDateTime(), "phone_verified_at", nullable=True),
        _col(u.salt, String(40), "salt", nullable=True),
        _col(u.password_hash, String(90), "password_hash", nullable=True),
        _col(u.reset_code, String(RESET_CODE_MAX_LENGTH), "reset_code", nullable=True),
        _col(u.reset_code_expires_at, UTCDateTime(), "reset_code_expires_at", nullable=True),
        _col(u.created_at, UTCDateTime(), "created_at", default=utcnow),
        _col(u.updated_at, UTCDateTime(), "updated_at", default=utcnow, onupdate=utcnow),
    ]
    if u.role:
        user_columns.append(_col(u.role, String(25), "role", nullable=True))
    user = Table(u.table, metadata, *user_columns, *extra_user_columns)

    auth_token = Table(
        t.table,
        metadata,
        _col(t.id, String(64), "id", primary_key=True),
        _col(t.user_id, String(50), "user_id", ForeignKey(user.c.id), nullable=False, index=True),
        _col(t.expires_at, UTCDateTime(), "expires_at", nullable=False),
        _col(t.created_at, UTCDateTime(), "created_at", default=utcnow),
    )

    send_verify = Table(
        s.table,
        metadata,
        _col(s.id, String(50), "id", primary_key=True, default=new_id),
        _col(s.contact, String(255), "contact", nullable=False, unique=True),
        _col(s.verify_code, Integer(), "verify_code", nullable=False),
        _col(s.expires_at, UTCDateTime(), "expires_at", nullable=False),
    )

    return Tables(
        metadata=metadata,
        account=account,
        user=user,
        auth_token=auth_token,
        send_verify=send_verify,
    )
