"""
Historical price bootstrap from the Binance klines REST endpoint.

Used to seed the rolling cache at startup (so analysis has context before
the first live ticks arrive) and as the data source for offline training.
Failures never propagate: the caller gets an empty list and a log line.
"""

import logging
import time

import httpx

from tradecharts.entities import PricePoint

logger = logging.getLogger(__name__)

KLINES_PATH = "/api/v3/klines"
MAX_LIMIT = 1000


def parse_klines(symbol: str, rows: list) -> list[PricePoint]:
    """Convert raw kline rows into PricePoints, skipping malformed rows.

    Row layout: [open_time, open, high, low, close, volume, close_time, ...].
    """
    points = []
    for row in rows:
        try:
            point = PricePoint(
                symbol=symbol,
                timestamp=int(row[0]),
                open=float(row[1]),
                high=float(row[2]),
                low=float(row[3]),
                close=float(row[4]),
                volume=float(row[5]),
            )
        except (IndexError, TypeError, ValueError):
            logger.debug("Skipping malformed kline for %s: %r", symbol, row)
            continue
        if point.close > 0:
            points.append(point)
    points.sort(key=lambda p: p.timestamp)
    return points


class HistoricalLoader:
    """Fetches OHLCV history for ``<symbol>USDT`` pairs.

    Args:
        base_url: REST base URL.
        interval: Kline interval (``1h``, ``4h``, ``1d``...).
        limit: Points per request, capped at 1000.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (tests pass an ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str = "https://api.binance.com",
        interval: str = "1h",
        limit: int = MAX_LIMIT,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._interval = interval
        self._limit = max(1, min(limit, MAX_LIMIT))
        self._timeout = timeout
        self._transport = transport
        self._stats = {"requests": 0, "errors": 0, "points": 0}

    @property
    def stats(self) -> dict:
        return dict(self._stats)

    async def fetch(
        self, symbol: str, interval: str | None = None, limit: int | None = None
    ) -> list[PricePoint]:
        """Return up to ``limit`` points for ``symbol``, oldest first."""
        params = {
            "symbol": f"{symbol.upper()}USDT",
            "interval": interval or self._interval,
            "limit": max(1, min(limit or self._limit, MAX_LIMIT)),
        }
        start = time.monotonic()
        self._stats["requests"] += 1
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                resp = await client.get(KLINES_PATH, params=params)
                resp.raise_for_status()
                rows = resp.json()
        except Exception as exc:
            self._stats["errors"] += 1
            logger.error("Kline fetch for %s failed: %s", symbol, exc)
            return []

        if not isinstance(rows, list):
            self._stats["errors"] += 1
            logger.error("Unexpected kline payload for %s: %r", symbol, type(rows).__name__)
            return []

        points = parse_klines(symbol.upper(), rows)
        self._stats["points"] += len(points)
        logger.info(
            "Loaded %d %s klines for %s in %.0fms",
            len(points), params["interval"], symbol, (time.monotonic() - start) * 1000,
        )
        return points
