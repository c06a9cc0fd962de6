"""
Secure HTTP headers middleware.

Every HTTP response from the market API gets the same hardening headers.
Cache policy depends on the route: live market and realtime data change on
every tick and are never stored, the rest only needs revalidation.
WebSocket upgrades pass through untouched.
"""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

SECURE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
}

LIVE_DATA_PREFIXES = ("/api/v1/market", "/api/v1/realtime")
LIVE_CACHE_CONTROL = "no-store"
DEFAULT_CACHE_CONTROL = "no-cache"


def cache_control_for(path: str) -> str:
    if path.startswith(LIVE_DATA_PREFIXES):
        return LIVE_CACHE_CONTROL
    return DEFAULT_CACHE_CONTROL


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds ``SECURE_HEADERS`` and a per-route ``Cache-Control``.

    Headers already set by an endpoint are left as they are.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)
        for name, value in SECURE_HEADERS.items():
            response.headers.setdefault(name, value)
        response.headers.setdefault("Cache-Control", cache_control_for(request.url.path))
        return response
