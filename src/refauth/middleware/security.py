"""Security headers middleware.

Learn: Credential endpoints return tokens and share codes in their
bodies, so responses must never be cached or framed:
- Cache-Control / Pragma: no intermediary keeps a copy of a token
- X-Content-Type-Options: no MIME sniffing
- X-Frame-Options: no clickjacking of the login form's API
- Referrer-Policy: token ids in query strings don't leak onward
- Strict-Transport-Security: HTTPS connections only
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

STATIC_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cache-Control": "no-store",
    "Pragma": "no-cache",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        response: Response = await call_next(request)
        for name, value in STATIC_HEADERS.items():
            response.headers[name] = value
        if request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response
