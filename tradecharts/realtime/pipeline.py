"""
Market pipeline lifecycle.

Owns every piece of in-memory state (price cache, model registry, hub, feed
tasks) and exposes the read-only query surface used by the API and the CLI.
Nothing here is a process-wide singleton: each pipeline is built explicitly
and torn down with ``stop()``.

Usage:
    pipeline = MarketPipeline.from_config(config)
    await pipeline.start()
    ...
    await pipeline.stop()
"""

import asyncio
import logging
from typing import Any

from tradecharts.analysis import MarketAnalyzer
from tradecharts.config import PipelineConfig
from tradecharts.entities import AnalysisResult, PricePoint
from tradecharts.errors import SymbolNotFoundError
from tradecharts.history import HistoricalLoader
from tradecharts.models.registry import ModelRegistry
from tradecharts.realtime.feed import BinanceTickerFeed, ConnectFactory, FeedIngestor
from tradecharts.realtime.hub import BroadcastHub
from tradecharts.store import PriceSeriesCache

logger = logging.getLogger(__name__)


class MarketPipeline:
    """feed → cache → analysis → hub, plus bootstrap and queries."""

    def __init__(
        self,
        cfg: PipelineConfig | None = None,
        cache: PriceSeriesCache | None = None,
        registry: ModelRegistry | None = None,
        hub: BroadcastHub | None = None,
        history: HistoricalLoader | None = None,
        connect: ConnectFactory | None = None,
    ) -> None:
        self.config = cfg or PipelineConfig()
        self.cache = cache or PriceSeriesCache(self.config.cache.capacity)
        self.registry = registry or ModelRegistry()
        self.analyzer = MarketAnalyzer(self.config.analysis, self.registry)
        self.hub = hub or BroadcastHub(send_timeout=self.config.feed.send_timeout)
        self.ingestor = FeedIngestor(self.cache, self.analyzer, self.hub)
        self.hub.set_analysis_lookup(self.analysis)
        self.history = history or HistoricalLoader(
            base_url=self.config.history.base_url,
            interval=self.config.history.interval,
            limit=self.config.history.limit,
            timeout=self.config.history.timeout,
        )
        self.feed = BinanceTickerFeed(
            self.ingestor,
            self.config.feed.symbols,
            url_template=self.config.feed.url_template,
            reconnect_delay=self.config.feed.reconnect_delay,
            connect=connect,
        )

    @classmethod
    def from_config(cls, cfg: PipelineConfig, **kwargs: Any) -> "MarketPipeline":
        return cls(cfg=cfg, **kwargs)

    @property
    def tracked_symbols(self) -> tuple[str, ...]:
        return self.config.feed.symbols

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, feeds: bool = True, bootstrap: bool | None = None) -> None:
        """Optionally seed history, then start one feed task per symbol."""
        if bootstrap is None:
            bootstrap = self.config.history.enabled
        if bootstrap:
            await self.bootstrap()
        if feeds:
            self.feed.start()
        logger.info(
            "Market pipeline started (symbols=%s, feeds=%s)",
            ",".join(self.tracked_symbols), feeds,
        )

    async def stop(self) -> None:
        await self.feed.stop()
        await self.hub.close_all()
        logger.info("Market pipeline stopped")

    async def bootstrap(self, symbols: tuple[str, ...] | None = None) -> dict[str, int]:
        """Seed the cache from REST history. Returns points stored per symbol."""
        symbols = symbols or self.tracked_symbols
        results = await asyncio.gather(*(self.history.fetch(s) for s in symbols))
        seeded = {}
        for symbol, points in zip(symbols, results):
            seeded[symbol] = self.cache.seed(symbol, points) if points else 0
        logger.info("Bootstrap complete: %s", seeded)
        return seeded

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def ingest(self, symbol: str, payload: Any) -> bool:
        return await self.ingestor.ingest(symbol.upper(), payload)

    async def refresh(self, symbols: list[str] | None = None) -> dict[str, bool]:
        """Re-analyze and re-broadcast the latest point of each symbol."""
        targets = [s.upper() for s in symbols] if symbols else self.cache.symbols()
        refreshed = {}
        for symbol in targets:
            refreshed[symbol] = await self.ingestor.refresh(symbol)
        logger.info("Manual refresh: %s", refreshed)
        return refreshed

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def symbols(self) -> list[str]:
        return self.cache.symbols()

    def series(self, symbol: str, limit: int | None = None) -> tuple[PricePoint, ...]:
        symbol = symbol.upper()
        if self.cache.count(symbol) == 0:
            raise SymbolNotFoundError(symbol)
        return self.cache.snapshot(symbol, limit)

    async def analysis(self, symbol: str) -> AnalysisResult | None:
        """Latest analysis for ``symbol``, computing one if none was broadcast yet."""
        symbol = symbol.upper()
        latest = self.ingestor.latest_analysis(symbol)
        if latest is not None:
            return latest
        return await self.ingestor.analyze(symbol)

    def status(self) -> dict:
        return {
            "symbols": {
                s: {"points": self.cache.count(s), **self.feed.status().get(s, {})}
                for s in sorted(set(self.tracked_symbols) | set(self.cache.symbols()))
            },
            "feeds_running": self.feed.running,
            "hub": self.hub.stats,
            "ingestor": self.ingestor.stats,
            "models": self.registry.timeframes(),
        }
