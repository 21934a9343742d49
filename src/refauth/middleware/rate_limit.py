"""Rate limiting middleware — fixed one-minute windows in Redis.

Learn: Each client IP gets a counter per bucket per minute, keyed
"refauth:rl:{ip}:{bucket}:{minute}". The "auth" bucket covers the
endpoints that accept a secret (password, reset code, verify code) and
gets a much lower limit, since those are the brute-force targets.

Redis is optional. If it was never connected (tests, local dev) or a
command fails, the request goes through unlimited.
"""

import time
from typing import Optional

import redis.asyncio as aioredis
import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from refauth.config import settings

logger = structlog.get_logger()

AUTH_PATHS = (
    "/api/v1/auth/login",
    "/api/v1/auth/register",
    "/api/v1/auth/forgot-password",
    "/api/v1/auth/reset-password",
    "/api/v1/auth/verify",
)

# Connection pool, set up in the app lifespan
_redis: Optional[aioredis.Redis] = None


async def init_redis() -> aioredis.Redis:
    global _redis
    client = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    await client.ping()
    _redis = client
    return _redis


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, default_rpm: int = 100, auth_rpm: int = 10):
        super().__init__(app)
        self.default_rpm = default_rpm
        self.auth_rpm = auth_rpm

    def bucket_for(self, path: str) -> tuple[str, int]:
        if path.startswith(AUTH_PATHS):
            return "auth", self.auth_rpm
        return "api", self.default_rpm

    async def dispatch(self, request: Request, call_next) -> Response:
        if _redis is None:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        bucket, rpm = self.bucket_for(request.url.path)
        window = int(time.time() // 60)
        key = f"refauth:rl:{client_ip}:{bucket}:{window}"

        try:
            count = await _redis.incr(key)
            if count == 1:
                await _redis.expire(key, 120)
        except Exception as e:
            logger.warning("rate_limit.redis_error", error=str(e))
            return await call_next(request)

        if count > rpm:
            logger.info("rate_limit.exceeded", client_ip=client_ip, bucket=bucket)
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Try again later."},
                headers={"Retry-After": "60"},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(rpm)
        response.headers["X-RateLimit-Remaining"] = str(max(0, rpm - count))
        return response
