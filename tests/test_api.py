"""
Tests for the market API.

Runs the FastAPI app against an injected pipeline whose feeds never reach
the network. Validates response schemas, error mapping, security headers
and the WebSocket protocol.
"""

import asyncio

import numpy as np
import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from tradecharts.config import FeedConfig, HistoryConfig, PipelineConfig
from tradecharts.entities import PricePoint
from tradecharts.realtime.pipeline import MarketPipeline


class _IdleStream:
    """Feed connection that never delivers a message."""

    async def __aenter__(self) -> "_IdleStream":
        return self

    async def __aexit__(self, *exc) -> bool:
        return False

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        await asyncio.Event().wait()
        raise StopAsyncIteration


@pytest.fixture
def pipeline() -> MarketPipeline:
    cfg = PipelineConfig(
        feed=FeedConfig(symbols=("BTC", "SOL"), reconnect_delay=3600),
        history=HistoryConfig(enabled=False),
    )
    pipeline = MarketPipeline(cfg, connect=lambda url: _IdleStream())
    prices = np.linspace(100, 200, 101)
    pipeline.cache.seed("BTC", [
        PricePoint.from_tick("BTC", float(p), 1.0, 1_700_000_000_000 + i * 1000)
        for i, p in enumerate(prices)
    ])
    return pipeline


@pytest.fixture
def client(pipeline: MarketPipeline):
    with TestClient(create_app(pipeline)) as test_client:
        yield test_client


class TestHealth:

    def test_health(self, client: TestClient) -> None:
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_security_headers_present(self, client: TestClient) -> None:
        response = client.get("/api/v1/health")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["Cache-Control"] == "no-cache"

    def test_market_responses_are_not_stored(self, client: TestClient) -> None:
        response = client.get("/api/v1/market/symbols")
        assert response.headers["Cache-Control"] == "no-store"
        assert response.headers["Referrer-Policy"] == "no-referrer"


class TestMarketEndpoints:

    def test_symbols(self, client: TestClient) -> None:
        body = client.get("/api/v1/market/symbols").json()
        assert body == {"symbols": ["BTC"], "tracked": ["BTC", "SOL"]}

    def test_series(self, client: TestClient) -> None:
        response = client.get("/api/v1/market/btc/series", params={"limit": 3})
        assert response.status_code == 200
        body = response.json()
        assert body["symbol"] == "BTC"
        assert body["count"] == 3
        assert [p["close"] for p in body["points"]] == [198.0, 199.0, 200.0]

    def test_series_limit_validated(self, client: TestClient) -> None:
        assert client.get("/api/v1/market/BTC/series", params={"limit": 0}).status_code == 422

    def test_unknown_symbol_is_404(self, client: TestClient) -> None:
        response = client.get("/api/v1/market/DOGE/series")
        assert response.status_code == 404
        assert response.json() == {"error": "Symbol not found", "detail": "DOGE"}

    def test_analysis(self, client: TestClient) -> None:
        response = client.get("/api/v1/market/BTC/analysis")
        assert response.status_code == 200
        body = response.json()
        assert body["symbol"] == "BTC"
        assert body["currentPrice"] == 200.0
        assert set(body["timeframePredictions"]) == {"1h", "4h", "1d", "1w", "1m"}
        assert body["timeframePredictions"]["1d"]["predictedPrice"] == body["predictedPrice"]
        assert any(p["patternType"] == "UPTREND" for p in body["chartPatterns"])
        assert body["tradingSignal"] in {"BUY", "STRONG_BUY"}

    def test_analysis_unknown_symbol(self, client: TestClient) -> None:
        assert client.get("/api/v1/market/DOGE/analysis").status_code == 404


class TestRealtimeEndpoints:

    def test_status(self, client: TestClient) -> None:
        body = client.get("/api/v1/realtime/status").json()
        assert body["feeds_running"] is True
        assert body["symbols"]["BTC"]["points"] == 101
        assert body["symbols"]["SOL"]["points"] == 0
        assert body["models"] == []

    def test_refresh(self, client: TestClient) -> None:
        response = client.post("/api/v1/realtime/refresh", json={"symbols": ["btc", "sol"]})
        assert response.status_code == 200
        assert response.json() == {"refreshed": {"BTC": True, "SOL": False}}

    def test_websocket_protocol(self, client: TestClient) -> None:
        with client.websocket_connect("/api/v1/realtime/ws") as ws:
            welcome = ws.receive_json()
            assert welcome["type"] == "welcome"
            assert welcome["activeClients"] == 1

            ws.send_json({"action": "ping"})
            assert ws.receive_json()["type"] == "pong"

            ws.send_json({"action": "subscribe", "symbols": ["btc"]})
            assert ws.receive_json()["symbols"] == ["BTC"]

            ws.send_json({"action": "analyze", "symbol": "BTC"})
            reply = ws.receive_json()
            assert reply["type"] == "analysis"
            assert reply["analysis"]["currentPrice"] == 200.0

            client.post("/api/v1/realtime/refresh")
            update = ws.receive_json()
            assert update["type"] == "price_update"
            assert update["symbol"] == "BTC"
            assert update["analysis"]["symbol"] == "BTC"

    def test_websocket_disconnect_unregisters(
        self, client: TestClient, pipeline: MarketPipeline
    ) -> None:
        with client.websocket_connect("/api/v1/realtime/ws") as ws:
            ws.receive_json()
            assert pipeline.hub.connection_count == 1
        client.get("/api/v1/health")
        assert pipeline.hub.connection_count == 0
