"""
Rate limiting for the market API.

Analysis and refresh re-run the whole pipeline, so they carry the heavy
limit. Routes addressing one symbol are keyed per client and symbol: a
dashboard watching BTC does not use up the budget for SOL.
"""

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse

from app.core.config import settings

DEFAULT_RATE_LIMIT = settings.rate_limit_default
HEAVY_RATE_LIMIT = settings.rate_limit_heavy


def client_symbol_key(request: Request) -> str:
    """Client address, suffixed with the upper-cased ``{symbol}`` path param if any."""
    address = get_remote_address(request)
    symbol = request.path_params.get("symbol")
    return f"{address}:{symbol.upper()}" if symbol else address


limiter = Limiter(key_func=client_symbol_key, default_limits=[DEFAULT_RATE_LIMIT])


async def rate_limit_exceeded_handler(
    request: Request, exc: RateLimitExceeded
) -> JSONResponse:
    """429 with the exceeded limit and a ``Retry-After`` of one limit window."""
    retry_after = exc.limit.limit.get_expiry()
    return JSONResponse(
        status_code=429,
        content={
            "error": "Rate limit exceeded",
            "detail": str(exc.detail),
            "symbol": request.path_params.get("symbol", "").upper() or None,
        },
        headers={"Retry-After": str(retry_after)},
    )
