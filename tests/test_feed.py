"""
Tests for live tick ingestion and the reconnecting ticker feed.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from tradecharts.analysis import MarketAnalyzer
from tradecharts.errors import InvalidTickError
from tradecharts.realtime.feed import BinanceTickerFeed, FeedIngestor, parse_tick
from tradecharts.realtime.hub import BroadcastHub
from tradecharts.store import PriceSeriesCache


def _tick(price, ts: int, volume: float = 1.0) -> dict:
    return {"e": "24hrTicker", "E": ts, "s": "BTCUSDT", "c": str(price), "v": str(volume)}


class _FakeStream:
    """Async context manager yielding a fixed list of messages."""

    def __init__(self, messages: list[str]) -> None:
        self._messages = messages

    async def __aenter__(self) -> "_FakeStream":
        return self

    async def __aexit__(self, *exc) -> bool:
        return False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for message in self._messages:
            yield message


class _HangingStream(_FakeStream):
    async def _iterate(self):
        await asyncio.Event().wait()
        yield ""


async def _wait_for(condition, timeout: float = 5.0) -> None:
    async def poll() -> None:
        while not condition():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(poll(), timeout)


@pytest.fixture
def ingestor_parts():
    cache = PriceSeriesCache(capacity=500)
    hub = BroadcastHub()
    return cache, hub, FeedIngestor(cache, MarketAnalyzer(), hub)


class TestParseTick:

    def test_binance_ticker(self) -> None:
        point = parse_tick("BTC", json.dumps(_tick("64012.5", 1_717_000_000_000, 1234)))
        assert point.close == point.open == point.high == point.low == 64012.5
        assert point.volume == 1234.0
        assert point.timestamp == 1_717_000_000_000

    def test_missing_event_time_uses_clock(self) -> None:
        point = parse_tick("BTC", {"c": "10"})
        assert point.timestamp > 1_600_000_000_000
        assert point.volume == 0.0

    @pytest.mark.parametrize("payload", [
        "not json",
        "[1, 2]",
        {"v": "1"},
        {"c": "abc"},
        {"c": "0"},
        {"c": "-5"},
        {"c": "nan"},
        {"c": None},
    ])
    def test_rejects_bad_payloads(self, payload) -> None:
        with pytest.raises(InvalidTickError):
            parse_tick("BTC", payload)


class TestFeedIngestor:

    @pytest.mark.asyncio
    async def test_tick_is_cached_analyzed_and_broadcast(self, ingestor_parts) -> None:
        cache, hub, ingestor = ingestor_parts
        ws = AsyncMock()
        await hub.register(ws)

        assert await ingestor.ingest("BTC", _tick(100, 1))

        assert cache.count("BTC") == 1
        assert ingestor.latest_analysis("BTC") is not None
        message = json.loads(ws.send_text.await_args.args[0])
        assert message["type"] == "price_update"
        assert message["price"] == 100.0
        assert message["analysis"]["symbol"] == "BTC"
        assert ingestor.stats == {"ticks": 1, "dropped": 0, "broadcasts": 1}

    @pytest.mark.asyncio
    async def test_invalid_and_stale_ticks_dropped(self, ingestor_parts) -> None:
        cache, _hub, ingestor = ingestor_parts

        assert not await ingestor.ingest("BTC", {"c": "-1", "E": 1})
        assert await ingestor.ingest("BTC", _tick(100, 10))
        assert not await ingestor.ingest("BTC", _tick(101, 5))

        assert cache.count("BTC") == 1
        assert ingestor.stats["dropped"] == 2

    @pytest.mark.asyncio
    async def test_per_symbol_order_preserved(self, ingestor_parts) -> None:
        _cache, hub, ingestor = ingestor_parts
        ws = AsyncMock()
        await hub.register(ws)

        await asyncio.gather(*(
            ingestor.ingest("BTC", _tick(100 + i, 1000 + i)) for i in range(15)
        ))

        updates = [
            json.loads(call.args[0]) for call in ws.send_text.await_args_list[1:]
        ]
        assert [u["price"] for u in updates] == [100.0 + i for i in range(15)]

    @pytest.mark.asyncio
    async def test_refresh(self, ingestor_parts) -> None:
        _cache, hub, ingestor = ingestor_parts
        assert not await ingestor.refresh("BTC")

        await ingestor.ingest("BTC", _tick(100, 1))
        ws = AsyncMock()
        await hub.register(ws)
        assert await ingestor.refresh("BTC")
        assert json.loads(ws.send_text.await_args.args[0])["price"] == 100.0

    @pytest.mark.asyncio
    async def test_analyze_without_broadcast(self, ingestor_parts) -> None:
        cache, hub, ingestor = ingestor_parts
        assert await ingestor.analyze("BTC") is None
        cache.append("BTC", parse_tick("BTC", _tick(50, 1)))
        result = await ingestor.analyze("BTC")
        assert result.current_price == 50.0
        assert hub.stats["total_broadcasts"] == 0


class TestBinanceTickerFeed:

    def test_url_for(self, ingestor_parts) -> None:
        feed = BinanceTickerFeed(ingestor_parts[2], ("btc", "SOL"))
        assert feed.symbols == ("BTC", "SOL")
        assert feed.url_for("BTC") == "wss://stream.binance.com:9443/ws/btcusdt@ticker"

    @pytest.mark.asyncio
    async def test_reconnects_after_failure_and_close(self, ingestor_parts) -> None:
        cache, _hub, ingestor = ingestor_parts
        calls: list[str] = []

        def connect(url: str):
            calls.append(url)
            if len(calls) == 1:
                raise OSError("connection refused")
            if len(calls) == 2:
                return _FakeStream([json.dumps(_tick(100, 1)), json.dumps(_tick(101, 2))])
            return _HangingStream([])

        feed = BinanceTickerFeed(ingestor, ("BTC",), reconnect_delay=0.01, connect=connect)
        feed.start()
        try:
            await _wait_for(lambda: len(calls) >= 3 and cache.count("BTC") == 2)
            status = feed.status()["BTC"]
            assert status["reconnects"] == 2
            assert status["running"]
        finally:
            await feed.stop()

        assert not feed.running
        assert not feed.status()["BTC"]["connected"]
        assert all(url.endswith("btcusdt@ticker") for url in calls)

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_reconnect(self, ingestor_parts) -> None:
        ingestor = ingestor_parts[2]

        def connect(url: str):
            raise OSError("down")

        feed = BinanceTickerFeed(ingestor, ("BTC", "SOL"), reconnect_delay=3600, connect=connect)
        feed.start()
        await _wait_for(lambda: all(s["reconnects"] == 1 for s in feed.status().values()))

        await asyncio.wait_for(feed.stop(), timeout=1)
        assert not any(s["running"] for s in feed.status().values())

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, ingestor_parts) -> None:
        feed = BinanceTickerFeed(
            ingestor_parts[2], ("BTC",), reconnect_delay=3600,
            connect=lambda url: _HangingStream([]),
        )
        feed.start()
        feed.start()
        await asyncio.sleep(0)
        assert len([t for t in asyncio.all_tasks() if t.get_name() == "feed-BTC"]) == 1
        await feed.stop()
