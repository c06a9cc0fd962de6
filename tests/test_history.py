"""
Tests for the REST klines bootstrap loader.
"""

import httpx
import pytest

from tradecharts.history import HistoricalLoader, parse_klines


def _kline(open_time: int, close: float) -> list:
    return [open_time, str(close - 1), str(close + 1), str(close - 2), str(close), "12.5",
            open_time + 3_599_999, "0", 10, "0", "0", "0"]


class TestParseKlines:

    def test_ohlcv_fields(self) -> None:
        points = parse_klines("BTC", [_kline(1000, 100.0)])
        assert len(points) == 1
        point = points[0]
        assert (point.open, point.high, point.low, point.close) == (99.0, 101.0, 98.0, 100.0)
        assert point.volume == 12.5
        assert point.timestamp == 1000

    def test_sorted_and_malformed_skipped(self) -> None:
        rows = [_kline(3000, 103.0), ["bad"], _kline(1000, 101.0), _kline(2000, 0.0)]
        points = parse_klines("BTC", rows)
        assert [p.timestamp for p in points] == [1000, 3000]


class TestHistoricalLoader:

    @pytest.mark.asyncio
    async def test_fetch_builds_request(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[_kline(i * 1000, 100.0 + i) for i in range(5)])

        loader = HistoricalLoader(
            base_url="https://rest.test", interval="4h", limit=5000,
            transport=httpx.MockTransport(handler),
        )
        points = await loader.fetch("sol")

        assert len(points) == 5
        assert points[0].symbol == "SOL"
        params = seen[0].url.params
        assert seen[0].url.path == "/api/v3/klines"
        assert params["symbol"] == "SOLUSDT"
        assert params["interval"] == "4h"
        assert params["limit"] == "1000"
        assert loader.stats == {"requests": 1, "errors": 0, "points": 5}

    @pytest.mark.asyncio
    async def test_overrides(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[])

        loader = HistoricalLoader(transport=httpx.MockTransport(handler))
        assert await loader.fetch("BTC", interval="1d", limit=50) == []
        assert seen[0].url.params["interval"] == "1d"
        assert seen[0].url.params["limit"] == "50"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        httpx.Response(500, text="boom"),
        httpx.Response(200, json={"code": -1121, "msg": "Invalid symbol."}),
        httpx.Response(200, text="<html>"),
    ])
    async def test_failures_return_empty(self, response: httpx.Response) -> None:
        loader = HistoricalLoader(transport=httpx.MockTransport(lambda request: response))
        assert await loader.fetch("BTC") == []
        assert loader.stats["errors"] == 1

    @pytest.mark.asyncio
    async def test_network_error_returns_empty(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        loader = HistoricalLoader(transport=httpx.MockTransport(handler))
        assert await loader.fetch("BTC") == []
