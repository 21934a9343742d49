#!/usr/bin/env python3
"""
refauth Quickstart — the credential lifecycle in one script.

Anonymous user → register (upgrade) → login → share code → forgot/reset
password → logout.
Run with: python examples/quickstart.py

Requires: pip install httpx
Backend must be running with REFAUTH_DEBUG=true so reset codes are logged:
    REFAUTH_DEBUG=true refauth serve
"""

import sys
import uuid

import httpx

BASE = "http://localhost:8000/api/v1"


def auth_header(token: dict) -> dict:
    return {"Authorization": f"User-Ref-Token {token['id']}"}


def main():
    run_id = uuid.uuid4().hex[:6]
    client = httpx.Client(base_url=BASE, timeout=10)

    # ── Health check ──────────────────────────────────────────────
    print("Checking backend health...")
    try:
        resp = client.get("/health")
    except httpx.ConnectError:
        print(f"Backend not reachable at {BASE}")
        sys.exit(1)
    health = resp.json()
    print(f"  Database: {'✓' if health['database'] == 'ok' else '✗'}")
    print(f"  Redis:    {'✓' if health['redis'] == 'ok' else '✗'}")

    # ── Anonymous user ────────────────────────────────────────────
    print("\n1. Creating anonymous user...")
    resp = client.post("/auth/create-anonymous")
    assert resp.status_code == 200, f"Failed: {resp.text}"
    anon = resp.json()
    print(f"   User {anon['user_id'][:8]}... in account {anon['account_id'][:8]}...")

    # ── Register (upgrade the anonymous user) ─────────────────────
    username = f"demo-{run_id}"
    print(f"\n2. Registering '{username}' on the same account...")
    resp = client.post("/auth/register", json={
        "username": username,
        "password": "demo-password-123",
        "email": f"{username}@example.com",
        "user_id": anon["user_id"],
    })
    assert resp.status_code == 201, f"Failed: {resp.text}"
    token = resp.json()
    assert token["account_id"] == anon["account_id"]
    print(f"   Token expires {token['expires_at']}")

    # ── Login ─────────────────────────────────────────────────────
    print("\n3. Logging in...")
    resp = client.post("/auth/login", json={"username": username, "password": "demo-password-123"})
    assert resp.status_code == 200, f"Failed: {resp.text}"
    token = resp.json()
    resp = client.get("/auth/me", headers=auth_header(token))
    print(f"   /me → {resp.json()['username']}")

    # ── Share code ────────────────────────────────────────────────
    print("\n4. Creating a share code...")
    resp = client.post("/auth/share-code", headers=auth_header(token))
    assert resp.status_code == 201, f"Failed: {resp.text}"
    share_code = resp.json()["share_code"]
    resp = client.get("/auth/me", headers={"Authorization": f"Share-Code {share_code}"})
    print(f"   Share code resolves to account {resp.json()['account_id'][:8]}...")

    # ── Forgot / reset password ───────────────────────────────────
    print("\n5. Requesting a password reset...")
    resp = client.post("/auth/forgot-password", json={"username": username})
    assert resp.status_code == 204, f"Failed: {resp.text}"
    reset_code = input("   Reset code (from the server log): ").strip()
    resp = client.post("/auth/reset-password", json={
        "username": username,
        "reset_code": reset_code,
        "password": "new-demo-password",
    })
    if resp.status_code != 200:
        print(f"   Reset failed: {resp.status_code} {resp.json()['detail']}")
    else:
        token = resp.json()
        print("   Password changed, fresh token issued")

    # ── Logout ────────────────────────────────────────────────────
    print("\n6. Logging out...")
    resp = client.post("/auth/logout", headers=auth_header(token))
    assert resp.status_code == 204, f"Failed: {resp.text}"
    resp = client.get("/auth/me", headers=auth_header(token))
    print(f"   Token after logout → {resp.status_code}")

    print("\nDone.")


if __name__ == "__main__":
    main()
