"""Health check endpoint.

Learn: Simple GET endpoint that verifies the server is running
and dependencies (database, Redis) are reachable. Redis only backs
rate limiting, so a missing Redis reports "degraded", never an error.
"""

from fastapi import APIRouter, Depends

from refauth import __version__
from refauth.db.engine import get_store
from refauth.db.store import CredentialStore

router = APIRouter()


@router.get("/health")
async def health_check(store: CredentialStore = Depends(get_store)):
    """Check server health and dependency connectivity."""
    checks = {"server": "ok", "version": __version__}

    try:
        await store.ping()
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"

    try:
        from refauth.middleware.rate_limit import get_redis

        await get_redis().ping()
        checks["redis"] = "ok"
    except Exception as e:
        checks["redis"] = f"error: {e}"

    status = "healthy" if all(
        v == "ok" for k, v in checks.items() if k != "version"
    ) else "degraded"

    return {"status": status, **checks}
