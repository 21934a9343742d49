"""refauth CLI — run the server and drive the credential flows over HTTP.

Usage:
    refauth serve --reload                         # Run the API with uvicorn
    refauth init-db                                # Create the configured tables
    refauth check-username alice                   # Is a username free?
    refauth register alice s3cret! --email a@x.io  # New user → ref token
    refauth login alice s3cret!                    # Username/password → ref token
    refauth whoami                                 # Resolve REFAUTH_TOKEN
    refauth forgot-password alice                  # Send a reset code
    refauth reset-password alice 123456 n3wpass    # Reset → ref token
    refauth create-anonymous                       # Anonymous user → ref token
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from typing import Optional

import click
import httpx

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("REFAUTH_API_URL", DEFAULT_API_URL).rstrip("/")


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Inside an already-running loop (CliRunner under pytest-asyncio) the
    coroutine is run on a worker thread instead.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _fail_on_error(r: httpx.Response) -> None:
    """Print the API's error detail and exit 1 for any 4xx/5xx."""
    if r.status_code < 400:
        return
    try:
        body = r.json()
    except ValueError:
        body = {"detail": r.text}
    click.secho(f"Error {r.status_code}: {body.get('detail')}", fg="red", err=True)
    for field_error in body.get("errors", []):
        click.secho(f"  {field_error['field']}: {field_error['message']}", fg="red", err=True)
    sys.exit(1)


def _print_token(token: dict) -> None:
    click.secho(f"Token: {token['id']}", fg="green")
    click.echo(f"  User:    {token['user_id']} ({token.get('username') or 'anonymous'})")
    click.echo(f"  Account: {token['account_id']}")
    click.echo(f"  Expires: {token['expires_at']}")


def _token_from_ctx(token: Optional[str]) -> str:
    value = token or os.environ.get("REFAUTH_TOKEN")
    if not value:
        click.secho(
            "Error: --token required (or set REFAUTH_TOKEN env var)",
            fg="red",
            err=True,
        )
        sys.exit(1)
    return value


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(prog_name="refauth", package_name="refauth")
def main():
    """refauth — user accounts, ref tokens, share codes and verification codes."""


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", default=None, help="Bind address (default: REFAUTH_HOST)")
@click.option("--port", type=int, default=None, help="Port (default: REFAUTH_PORT)")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the API server."""
    import uvicorn

    from refauth.config import settings

    uvicorn.run(
        "refauth.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


@main.command("init-db")
def init_db():
    """Create every table in the configured schema map."""
    _run(_init_db_impl())


async def _init_db_impl():
    from refauth.config import settings
    from refauth.db.engine import dispose_engine, get_store

    store = get_store()
    try:
        await store.create_all()
    finally:
        await dispose_engine()
    names = ", ".join(t.name for t in store.tables.metadata.sorted_tables)
    click.secho(f"Created tables: {names}", fg="green")
    click.echo(f"  Database: {settings.database_url.split('@')[-1]}")


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


@main.command("check-username")
@click.argument("username")
def check_username(username: str):
    """Report whether USERNAME is free."""
    _run(_check_username_impl(username))


async def _check_username_impl(username: str):
    async with _client() as c:
        r = await c.get(f"/api/v1/auth/check-username/{username}")
        _fail_on_error(r)
        if r.json():
            click.secho(f"'{username}' is available", fg="green")
        else:
            click.secho(f"'{username}' is taken", fg="yellow")
            sys.exit(1)


@main.command()
@click.argument("username")
@click.argument("password")
@click.option("--email", help="Email address")
@click.option("--phone", help="Phone number")
@click.option("--first-name", help="First name")
@click.option("--last-name", help="Last name")
@click.option("--user-id", help="Upgrade this anonymous user instead of creating one")
def register(username: str, password: str, email: Optional[str], phone: Optional[str],
             first_name: Optional[str], last_name: Optional[str], user_id: Optional[str]):
    """Register USERNAME with PASSWORD and print the new ref token."""
    body = {
        "username": username,
        "password": password,
        "email": email,
        "phone": phone,
        "first_name": first_name,
        "last_name": last_name,
        "user_id": user_id,
    }
    _run(_post_for_token("/api/v1/auth/register", {k: v for k, v in body.items() if v}))


@main.command()
@click.argument("username")
@click.argument("password")
def login(username: str, password: str):
    """Log in and print a fresh ref token."""
    _run(_post_for_token("/api/v1/auth/login", {"username": username, "password": password}))


@main.command("create-anonymous")
def create_anonymous():
    """Create an anonymous user and print its ref token."""
    _run(_post_for_token("/api/v1/auth/create-anonymous", None))


async def _post_for_token(path: str, body: Optional[dict]):
    async with _client() as c:
        r = await c.post(path, json=body)
        _fail_on_error(r)
        _print_token(r.json())


@main.command()
@click.option("--token", "-t", help="Ref token id (or set REFAUTH_TOKEN)")
def whoami(token: Optional[str]):
    """Show who a ref token belongs to."""
    _run(_whoami_impl(token))


async def _whoami_impl(token: Optional[str]):
    value = _token_from_ctx(token)
    async with _client() as c:
        r = await c.get("/api/v1/auth/me", headers={"Authorization": f"User-Ref-Token {value}"})
        _fail_on_error(r)
        click.echo(_pretty_json(r.json()))


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------


@main.command("forgot-password")
@click.argument("username")
def forgot_password(username: str):
    """Send a password reset code to USERNAME's contact."""
    _run(_forgot_password_impl(username))


async def _forgot_password_impl(username: str):
    async with _client() as c:
        r = await c.post("/api/v1/auth/forgot-password", json={"username": username})
        _fail_on_error(r)
        click.secho(f"Reset code sent for '{username}'", fg="green")


@main.command("reset-password")
@click.argument("username")
@click.argument("reset_code")
@click.argument("password")
def reset_password(username: str, reset_code: str, password: str):
    """Set a new PASSWORD using RESET_CODE, then print a fresh ref token."""
    _run(_post_for_token(
        "/api/v1/auth/reset-password",
        {"username": username, "reset_code": reset_code, "password": password},
    ))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()
