"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown (tables, Redis, engine).
Middleware, CORS, exception handlers and routers are all registered here.

Deployments pass their own hooks:

    from refauth.main import create_app
    app = create_app(hooks=MyHooks())
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from refauth import __version__
from refauth.api import api_router
from refauth.auth.tokens import REF_TOKEN_SCHEME
from refauth.config import settings
from refauth.errors import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from refauth.services.hooks import AuthHooks

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` at shutdown.
    """
    logger.info(
        "refauth.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    if settings.create_tables_on_startup:
        from refauth.db.engine import get_store

        await get_store().create_all()
        logger.info("refauth.tables_created")

    from refauth.middleware.rate_limit import close_redis, init_redis

    try:
        await init_redis()
        logger.info("refauth.redis_connected", url=settings.redis_url)
    except Exception as e:
        # Redis only backs rate limiting
        logger.warning("refauth.redis_unavailable", error=str(e))

    yield

    logger.info("refauth.shutdown")
    await close_redis()

    from refauth.db.engine import dispose_engine

    await dispose_engine()


# ─── Exception handlers ──────────────────────────────────


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"detail": str(exc), "errors": [e.to_dict() for e in exc.errors]},
    )


async def conflict_error_handler(request: Request, exc: ConflictError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


async def not_found_error_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def unauthorized_error_handler(request: Request, exc: UnauthorizedError) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={"detail": str(exc)},
        headers={"WWW-Authenticate": REF_TOKEN_SCHEME},
    )


def create_app(hooks: Optional[AuthHooks] = None) -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="refauth",
        description="Credential lifecycle service: users, ref tokens, share codes and codes",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.hooks = hooks or AuthHooks()

    # ── Middleware stack ──────────────────────────────────────
    # Starlette runs middleware in reverse order of registration.
    # Request flow: CORS → RateLimit → Security → RequestId → handler

    from refauth.middleware.rate_limit import RateLimitMiddleware
    from refauth.middleware.request_id import RequestIdMiddleware
    from refauth.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(ConflictError, conflict_error_handler)
    app.add_exception_handler(NotFoundError, not_found_error_handler)
    app.add_exception_handler(UnauthorizedError, unauthorized_error_handler)

    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: refauth.main:app)
app = create_app()
