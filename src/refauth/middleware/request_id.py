"""Request ID middleware — one id per request, bound into every log line.

Learn: The id comes from an incoming X-Request-ID header when a proxy
already assigned one, otherwise a fresh UUID. It is bound to structlog's
contextvars, so "auth.login" and "store.on_commit_failed" events logged
while serving the request carry it, and it is echoed in the response.
"""

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            path=request.url.path,
        )

        response: Response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
