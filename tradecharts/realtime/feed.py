"""
Live ticker ingestion.

``FeedIngestor`` turns one raw tick into a cached PricePoint, runs the full
analysis off the event loop and hands the encoded update to the hub.

``BinanceTickerFeed`` keeps one websocket task per symbol alive against the
Binance ``<symbol>usdt@ticker`` streams. A dropped or failed connection is
retried after a fixed delay until the feed is stopped; stopping cancels every
task, including those sleeping before a reconnect.
"""

import asyncio
import json
import logging
import math
from collections import defaultdict
from typing import Any, Callable

import websockets

from tradecharts.analysis import MarketAnalyzer
from tradecharts.entities import AnalysisResult, PricePoint
from tradecharts.errors import InvalidTickError, TransportError
from tradecharts.realtime import wire
from tradecharts.realtime.hub import BroadcastHub
from tradecharts.store import PriceSeriesCache

logger = logging.getLogger(__name__)

DEFAULT_URL_TEMPLATE = "wss://stream.binance.com:9443/ws/{symbol}usdt@ticker"
DEFAULT_RECONNECT_DELAY = 30.0


def parse_tick(symbol: str, payload: str | bytes | dict[str, Any]) -> PricePoint:
    """Build a PricePoint from a Binance 24h ticker message.

    Reads ``c`` (last price) and ``v`` (volume); ``E`` (event time, ms) is
    used as the timestamp when present, otherwise the wall clock.

    Raises:
        InvalidTickError: If the payload is not JSON, has no usable price, or
            the price is not a positive finite number.
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise InvalidTickError(symbol, f"malformed JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise InvalidTickError(symbol, "payload is not an object")
    if "c" not in payload:
        raise InvalidTickError(symbol, "missing price field 'c'")

    try:
        price = float(payload["c"])
        volume = float(payload.get("v", 0.0) or 0.0)
    except (TypeError, ValueError) as exc:
        raise InvalidTickError(symbol, f"non-numeric field: {exc}") from exc

    if not math.isfinite(price) or price <= 0:
        raise InvalidTickError(symbol, f"price must be positive, got {price}")
    if not math.isfinite(volume) or volume < 0:
        volume = 0.0

    timestamp = payload.get("E")
    try:
        timestamp = int(timestamp) if timestamp is not None else wire.now_ms()
    except (TypeError, ValueError):
        timestamp = wire.now_ms()

    return PricePoint.from_tick(symbol, price, volume, timestamp)


class FeedIngestor:
    """tick → cache → analysis → hub, for any number of symbols.

    Ticks for the same symbol are processed one at a time and in arrival
    order; different symbols proceed independently.
    """

    def __init__(
        self,
        cache: PriceSeriesCache,
        analyzer: MarketAnalyzer,
        hub: BroadcastHub,
    ) -> None:
        self._cache = cache
        self._analyzer = analyzer
        self._hub = hub
        self._symbol_locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._latest: dict[str, AnalysisResult] = {}
        self._stats: dict[str, int] = {"ticks": 0, "dropped": 0, "broadcasts": 0}

    @property
    def stats(self) -> dict:
        return dict(self._stats)

    def latest_analysis(self, symbol: str) -> AnalysisResult | None:
        return self._latest.get(symbol)

    async def ingest(self, symbol: str, payload: str | bytes | dict[str, Any]) -> bool:
        """Process one raw tick. Returns False when the tick was dropped."""
        try:
            point = parse_tick(symbol, payload)
        except InvalidTickError as exc:
            self._stats["dropped"] += 1
            logger.debug("Dropping tick: %s", exc.message)
            return False

        async with self._symbol_locks[symbol]:
            try:
                self._cache.append(symbol, point)
            except InvalidTickError as exc:
                self._stats["dropped"] += 1
                logger.debug("Dropping tick: %s", exc.message)
                return False
            self._stats["ticks"] += 1
            await self._publish(symbol, point)
        return True

    async def refresh(self, symbol: str) -> bool:
        """Re-analyze and re-broadcast the latest cached point for ``symbol``."""
        async with self._symbol_locks[symbol]:
            point = self._cache.latest(symbol)
            if point is None:
                return False
            await self._publish(symbol, point)
        return True

    async def analyze(self, symbol: str) -> AnalysisResult | None:
        """Return a fresh analysis of the cached series, without broadcasting."""
        if self._cache.count(symbol) == 0:
            return None
        return await asyncio.to_thread(self._run_analysis, symbol)

    async def _publish(self, symbol: str, point: PricePoint) -> None:
        result = await asyncio.to_thread(self._run_analysis, symbol)
        if result is not None:
            self._latest[symbol] = result
        message = wire.build_message(point, result)
        delivered = await self._hub.broadcast(message, symbol=symbol)
        self._stats["broadcasts"] += 1
        logger.debug("Broadcast %s @ %.6f to %d subscriber(s)", symbol, point.close, delivered)

    def _run_analysis(self, symbol: str) -> AnalysisResult | None:
        snapshot = self._cache.snapshot(symbol, self._analyzer.max_lookback)
        try:
            return self._analyzer.analyze(symbol, snapshot)
        except Exception:
            logger.exception("Analysis failed for %s", symbol)
            return None


ConnectFactory = Callable[[str], Any]


class BinanceTickerFeed:
    """One reconnecting websocket consumer per symbol.

    Args:
        ingestor: Receives every raw message.
        symbols: Base assets, e.g. ("BTC", "SOL").
        url_template: Stream URL, formatted with ``symbol`` in lower case.
        reconnect_delay: Fixed wait in seconds between connection attempts.
        connect: Factory returning an async context manager that yields an
            async iterator of messages; defaults to ``websockets.connect``.
    """

    def __init__(
        self,
        ingestor: FeedIngestor,
        symbols: tuple[str, ...],
        url_template: str = DEFAULT_URL_TEMPLATE,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        connect: ConnectFactory | None = None,
    ) -> None:
        self._ingestor = ingestor
        self._symbols = tuple(s.upper() for s in symbols)
        self._url_template = url_template
        self._reconnect_delay = reconnect_delay
        self._connect = connect or websockets.connect
        self._tasks: dict[str, asyncio.Task] = {}
        self._connected: dict[str, bool] = {s: False for s in self._symbols}
        self._reconnects: dict[str, int] = {s: 0 for s in self._symbols}
        self._running = False

    @property
    def symbols(self) -> tuple[str, ...]:
        return self._symbols

    @property
    def running(self) -> bool:
        return self._running

    def url_for(self, symbol: str) -> str:
        return self._url_template.format(symbol=symbol.lower())

    def status(self) -> dict[str, dict]:
        return {
            s: {
                "connected": self._connected.get(s, False),
                "reconnects": self._reconnects.get(s, 0),
                "running": s in self._tasks and not self._tasks[s].done(),
            }
            for s in self._symbols
        }

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        for symbol in self._symbols:
            self._tasks[symbol] = asyncio.create_task(
                self._run(symbol), name=f"feed-{symbol}"
            )
        logger.info("Started %d ticker feed(s): %s", len(self._tasks), ", ".join(self._symbols))

    async def stop(self) -> None:
        """Cancel every feed task and wait for them to finish."""
        self._running = False
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        for symbol in self._connected:
            self._connected[symbol] = False
        logger.info("Stopped ticker feeds")

    async def _run(self, symbol: str) -> None:
        url = self.url_for(symbol)
        while self._running:
            try:
                await self._consume(symbol, url)
                logger.warning("Feed for %s closed by server", symbol)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                error = TransportError(url, str(exc) or type(exc).__name__)
                logger.warning("%s", error.message)
            finally:
                self._connected[symbol] = False

            if not self._running:
                break
            self._reconnects[symbol] += 1
            logger.info("Reconnecting %s in %.0fs", symbol, self._reconnect_delay)
            await asyncio.sleep(self._reconnect_delay)

    async def _consume(self, symbol: str, url: str) -> None:
        async with self._connect(url) as ws:
            self._connected[symbol] = True
            logger.info("Connected to %s feed at %s", symbol, url)
            async for message in ws:
                await self._ingestor.ingest(symbol, message)
