"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Auth routes resolve the caller per-route (get_ref_token or
get_auth_token) because most of them are open: login, register and the
forgot/reset flows exist for callers who have no token yet.
"""

from fastapi import APIRouter

from refauth.api.auth import router as auth_router
from refauth.api.health import router as health_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])
