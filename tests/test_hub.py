"""
Tests for the broadcast hub.

Covers:
- Fan-out to every registered subscriber
- Removal of failing and slow subscribers
- Per-subscriber write serialization
- Symbol filters and client commands
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from tradecharts.realtime.hub import BroadcastHub


def _socket() -> AsyncMock:
    ws = AsyncMock()
    ws.send_text = AsyncMock()
    return ws


def _sent(ws: AsyncMock) -> list[dict]:
    return [json.loads(call.args[0]) for call in ws.send_text.await_args_list]


class TestRegistration:

    @pytest.mark.asyncio
    async def test_register_sends_welcome(self) -> None:
        hub = BroadcastHub()
        ws = _socket()
        subscriber = await hub.register(ws)

        assert hub.connection_count == 1
        welcome = _sent(ws)[0]
        assert welcome["type"] == "welcome"
        assert welcome["subscriberId"] == subscriber.id
        ws.accept.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unregister_by_connection_or_subscriber(self) -> None:
        hub = BroadcastHub()
        ws1, ws2 = _socket(), _socket()
        await hub.register(ws1)
        sub2 = await hub.register(ws2)

        assert await hub.unregister(ws1)
        assert await hub.unregister(sub2)
        assert not await hub.unregister(ws1)
        assert hub.connection_count == 0

    @pytest.mark.asyncio
    async def test_failed_welcome_drops_subscriber(self) -> None:
        hub = BroadcastHub()
        ws = _socket()
        ws.send_text.side_effect = ConnectionError("gone")
        await hub.register(ws)
        assert hub.connection_count == 0
        ws.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_all(self) -> None:
        hub = BroadcastHub()
        sockets = [_socket() for _ in range(3)]
        for ws in sockets:
            await hub.register(ws)
        await hub.close_all()
        assert hub.connection_count == 0
        for ws in sockets:
            ws.close.assert_awaited_once()


class TestBroadcast:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("n", [1, 5, 25])
    async def test_delivers_to_all(self, n: int) -> None:
        hub = BroadcastHub()
        sockets = [_socket() for _ in range(n)]
        for ws in sockets:
            await hub.register(ws)

        delivered = await hub.broadcast('{"type":"price_update"}')
        assert delivered == n
        for ws in sockets:
            ws.send_text.assert_awaited_with('{"type":"price_update"}')

    @pytest.mark.asyncio
    async def test_failing_subscriber_removed(self) -> None:
        hub = BroadcastHub()
        good, bad = _socket(), _socket()
        await hub.register(good)
        await hub.register(bad)
        bad.send_text.side_effect = RuntimeError("socket closed")

        assert await hub.broadcast("one") == 1
        assert hub.connection_count == 1
        assert hub.stats["total_dropped"] == 1

        bad_calls = bad.send_text.await_count
        assert await hub.broadcast("two") == 1
        assert bad.send_text.await_count == bad_calls
        good.send_text.assert_awaited_with("two")

    @pytest.mark.asyncio
    async def test_slow_subscriber_times_out_without_blocking_others(self) -> None:
        hub = BroadcastHub(send_timeout=0.05)
        fast, slow = _socket(), _socket()
        await hub.register(fast)
        await hub.register(slow)

        async def hang(_message: str) -> None:
            await asyncio.sleep(10)

        slow.send_text.side_effect = hang
        delivered = await asyncio.wait_for(hub.broadcast("tick"), timeout=2)

        assert delivered == 1
        assert hub.connection_count == 1
        fast.send_text.assert_awaited_with("tick")
        slow.close.assert_awaited_once()
        fast.close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_timed_out_subscriber_is_closed_and_ignored(self) -> None:
        hub = BroadcastHub(send_timeout=0.05)
        slow = _socket()
        subscriber = await hub.register(slow)

        async def hang(_message: str) -> None:
            await asyncio.sleep(10)

        slow.send_text.side_effect = hang
        assert await hub.broadcast("tick") == 0

        slow.close.assert_awaited_once()
        assert not hub.is_registered(subscriber)

        slow.send_text.side_effect = None
        calls = slow.send_text.await_count
        await hub.handle_client_message(slow, json.dumps({"action": "ping"}))
        assert slow.send_text.await_count == calls

    @pytest.mark.asyncio
    async def test_writes_to_one_subscriber_are_serialized(self) -> None:
        hub = BroadcastHub()
        active = 0
        overlap = False
        order: list[str] = []

        async def send_text(message: str) -> None:
            nonlocal active, overlap
            active += 1
            overlap = overlap or active > 1
            await asyncio.sleep(0.01)
            order.append(message)
            active -= 1

        ws = _socket()
        ws.send_text.side_effect = send_text
        await hub.register(ws)
        await asyncio.gather(*(hub.broadcast(f"m{i}") for i in range(5)))

        assert not overlap
        assert sorted(order[1:]) == [f"m{i}" for i in range(5)]

    @pytest.mark.asyncio
    async def test_symbol_filter(self) -> None:
        hub = BroadcastHub()
        btc_only, everything = _socket(), _socket()
        await hub.register(btc_only, symbols=["btc"])
        await hub.register(everything)

        assert await hub.broadcast("sol-update", symbol="SOL") == 1
        assert await hub.broadcast("btc-update", symbol="BTC") == 2
        assert btc_only.send_text.await_args.args[0] == "btc-update"


class TestClientCommands:

    @pytest.mark.asyncio
    async def test_subscribe_unsubscribe(self) -> None:
        hub = BroadcastHub()
        ws = _socket()
        subscriber = await hub.register(ws)

        await hub.handle_client_message(ws, json.dumps({"action": "subscribe", "symbols": ["btc", "sol"]}))
        assert subscriber.symbols == {"BTC", "SOL"}
        reply = _sent(ws)[-1]
        assert reply["type"] == "subscribed"
        assert reply["symbols"] == ["BTC", "SOL"]

        await hub.handle_client_message(ws, json.dumps({"action": "unsubscribe", "symbols": ["SOL"]}))
        assert subscriber.symbols == {"BTC"}

        await hub.handle_client_message(ws, json.dumps({"action": "subscribe_all"}))
        assert subscriber.symbols == set()
        assert _sent(ws)[-1]["type"] == "subscribed_all"

    @pytest.mark.asyncio
    async def test_ping(self) -> None:
        hub = BroadcastHub()
        ws = _socket()
        await hub.register(ws)
        await hub.handle_client_message(ws, '{"action": "ping"}')
        assert _sent(ws)[-1]["type"] == "pong"

    @pytest.mark.asyncio
    async def test_failed_reply_closes_connection(self) -> None:
        hub = BroadcastHub()
        ws = _socket()
        subscriber = await hub.register(ws)
        ws.send_text.side_effect = ConnectionError("gone")

        await hub.handle_client_message(ws, '{"action": "ping"}')

        assert not hub.is_registered(subscriber)
        ws.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_invalid_and_unknown(self) -> None:
        hub = BroadcastHub()
        ws = _socket()
        await hub.register(ws)

        await hub.handle_client_message(ws, "not json")
        assert _sent(ws)[-1] == {"type": "error", "error": "Invalid JSON"}

        await hub.handle_client_message(ws, '{"action": "dance"}')
        reply = _sent(ws)[-1]
        assert reply["type"] == "error"
        assert "ping" in reply["supported"]

    @pytest.mark.asyncio
    async def test_analyze_without_data(self) -> None:
        lookup = AsyncMock(return_value=None)
        hub = BroadcastHub(analysis_lookup=lookup)
        ws = _socket()
        await hub.register(ws)

        await hub.handle_client_message(ws, '{"action": "analyze", "symbol": "doge"}')
        lookup.assert_awaited_once_with("DOGE")
        assert _sent(ws)[-1] == {"type": "error", "error": "No data for DOGE", "symbol": "DOGE"}

    @pytest.mark.asyncio
    async def test_analyze_with_data(self) -> None:
        from tradecharts.entities import AnalysisResult

        result = AnalysisResult("BTC", 100.0, {})
        hub = BroadcastHub(analysis_lookup=AsyncMock(return_value=result))
        ws = _socket()
        await hub.register(ws)

        await hub.handle_client_message(ws, '{"action": "analyze", "symbol": "BTC"}')
        reply = _sent(ws)[-1]
        assert reply["type"] == "analysis"
        assert reply["analysis"]["currentPrice"] == 100.0

    @pytest.mark.asyncio
    async def test_unregistered_connection_ignored(self) -> None:
        hub = BroadcastHub()
        ws = _socket()
        await hub.handle_client_message(ws, '{"action": "ping"}')
        ws.send_text.assert_not_awaited()
