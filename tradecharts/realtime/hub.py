"""
Broadcast hub for live analysis updates.

Tracks connected subscribers and fans price-update messages out to them.

Architecture:
    FeedIngestor ──▶ BroadcastHub.broadcast(message, symbol)
                          │
                    ┌─────┴──────┐
                    │ subscriber │  snapshot taken under the hub lock
                    │    set     │
                    └─────┬──────┘
                          │ concurrent sends, one lock per subscriber
                          ▼
                    JSON text to every matching subscriber

A subscriber whose send fails, times out or finds the socket closed is
removed and its connection closed; it never receives another message.
"""

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable

from tradecharts.entities import AnalysisResult
from tradecharts.realtime import wire

logger = logging.getLogger(__name__)

AnalysisLookup = Callable[[str], Awaitable[AnalysisResult | None]]

SUPPORTED_ACTIONS = ["subscribe", "unsubscribe", "subscribe_all", "ping", "analyze"]


@dataclass(eq=False)
class Subscriber:
    """A connected receiver. An empty ``symbols`` set means every symbol."""

    connection: Any
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    symbols: set[str] = field(default_factory=set)
    write_lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def wants(self, symbol: str | None) -> bool:
        return not self.symbols or symbol is None or symbol.upper() in self.symbols


class BroadcastHub:
    """Fan-out of JSON messages to WebSocket-like connections.

    A connection only needs an async ``send_text(str)`` method.

    Usage in FastAPI:
        hub = BroadcastHub()

        @router.websocket("/ws")
        async def ws_endpoint(ws: WebSocket):
            await ws.accept()
            await hub.register(ws)
            try:
                while True:
                    await hub.handle_client_message(ws, await ws.receive_text())
            except WebSocketDisconnect:
                await hub.unregister(ws)
    """

    def __init__(
        self,
        send_timeout: float = 5.0,
        analysis_lookup: AnalysisLookup | None = None,
    ) -> None:
        self._subscribers: dict[str, Subscriber] = {}
        self._lock = asyncio.Lock()
        self._send_timeout = send_timeout
        self._analysis_lookup = analysis_lookup
        self._stats = {
            "total_connections": 0,
            "total_broadcasts": 0,
            "total_messages_sent": 0,
            "total_dropped": 0,
        }

    @property
    def connection_count(self) -> int:
        return len(self._subscribers)

    @property
    def stats(self) -> dict:
        return {**self._stats, "active_connections": self.connection_count}

    def set_analysis_lookup(self, lookup: AnalysisLookup) -> None:
        self._analysis_lookup = lookup

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def register(
        self, connection: Any, symbols: Iterable[str] | None = None
    ) -> Subscriber:
        """Track ``connection`` and send it the welcome message."""
        subscriber = Subscriber(
            connection=connection,
            symbols={s.upper() for s in symbols} if symbols else set(),
        )
        async with self._lock:
            self._subscribers[subscriber.id] = subscriber
            self._stats["total_connections"] += 1
            active = len(self._subscribers)
        logger.info("Subscriber %s connected. Active: %d", subscriber.id, active)

        if not await self._send(subscriber, wire.welcome(subscriber.id, active)):
            await self._drop(subscriber)
        return subscriber

    async def unregister(self, target: Subscriber | Any) -> bool:
        """Remove a subscriber, given either the Subscriber or its connection."""
        async with self._lock:
            subscriber = self._find(target)
            if subscriber is None:
                return False
            del self._subscribers[subscriber.id]
            active = len(self._subscribers)
        logger.info("Subscriber %s disconnected. Active: %d", subscriber.id, active)
        return True

    async def close_all(self) -> None:
        async with self._lock:
            subscribers = list(self._subscribers.values())
            self._subscribers.clear()
        for subscriber in subscribers:
            await self._close(subscriber)

    def is_registered(self, subscriber: Subscriber) -> bool:
        return subscriber.id in self._subscribers

    async def _drop(self, subscriber: Subscriber) -> None:
        """Unregister a failed subscriber and close its connection so its endpoint loop ends."""
        if await self.unregister(subscriber):
            await self._close(subscriber)

    async def _close(self, subscriber: Subscriber) -> None:
        close = getattr(subscriber.connection, "close", None)
        if close is None:
            return
        try:
            await close()
        except Exception:
            logger.debug("Ignoring close failure for %s", subscriber.id)

    # ------------------------------------------------------------------
    # Broadcasting
    # ------------------------------------------------------------------

    async def broadcast(self, message: str, symbol: str | None = None) -> int:
        """Send ``message`` to every subscriber interested in ``symbol``.

        Returns the number of subscribers that received it.
        """
        async with self._lock:
            targets = [s for s in self._subscribers.values() if s.wants(symbol)]
        self._stats["total_broadcasts"] += 1
        if not targets:
            return 0

        results = await asyncio.gather(*(self._send(s, message) for s in targets))

        dead = [s for s, ok in zip(targets, results) if not ok]
        for subscriber in dead:
            await self._drop(subscriber)
        if dead:
            self._stats["total_dropped"] += len(dead)
            logger.warning("Dropped %d dead subscriber(s)", len(dead))

        return sum(1 for ok in results if ok)

    async def _send(self, subscriber: Subscriber, message: str) -> bool:
        try:
            async with subscriber.write_lock:
                await asyncio.wait_for(
                    subscriber.connection.send_text(message), timeout=self._send_timeout
                )
        except asyncio.TimeoutError:
            logger.warning("Send to %s timed out after %.1fs", subscriber.id, self._send_timeout)
            return False
        except Exception as exc:
            logger.debug("Send to %s failed: %s", subscriber.id, exc)
            return False
        self._stats["total_messages_sent"] += 1
        return True

    # ------------------------------------------------------------------
    # Client commands
    # ------------------------------------------------------------------

    async def handle_client_message(self, connection: Any, raw: str) -> None:
        """Process a command sent by a subscriber.

        Supported commands:
            {"action": "subscribe", "symbols": ["BTC", "SOL"]}
            {"action": "unsubscribe", "symbols": ["SOL"]}
            {"action": "subscribe_all"}
            {"action": "ping"}
            {"action": "analyze", "symbol": "BTC"}
        """
        async with self._lock:
            subscriber = self._find(connection)
        if subscriber is None:
            logger.debug("Ignoring message from unregistered connection")
            return

        try:
            msg = json.loads(raw)
        except json.JSONDecodeError:
            await self._reply(subscriber, wire.error("Invalid JSON"))
            return
        if not isinstance(msg, dict):
            await self._reply(subscriber, wire.error("Expected a JSON object"))
            return

        action = msg.get("action", "")

        if action == "subscribe":
            subscriber.symbols |= {str(s).upper() for s in msg.get("symbols", [])}
            await self._reply(subscriber, wire.control("subscribed", symbols=sorted(subscriber.symbols)))

        elif action == "unsubscribe":
            subscriber.symbols -= {str(s).upper() for s in msg.get("symbols", [])}
            await self._reply(subscriber, wire.control("unsubscribed", symbols=sorted(subscriber.symbols)))

        elif action == "subscribe_all":
            subscriber.symbols = set()
            await self._reply(subscriber, wire.control("subscribed_all"))

        elif action == "ping":
            await self._reply(subscriber, wire.control("pong"))

        elif action == "analyze":
            await self._handle_analyze(subscriber, str(msg.get("symbol", "")).upper())

        else:
            await self._reply(subscriber, wire.error(
                f"Unknown action: {action}", supported=SUPPORTED_ACTIONS,
            ))

    async def _handle_analyze(self, subscriber: Subscriber, symbol: str) -> None:
        if not symbol:
            await self._reply(subscriber, wire.error("Missing symbol"))
            return
        result = await self._analysis_lookup(symbol) if self._analysis_lookup else None
        if result is None:
            await self._reply(subscriber, wire.error(f"No data for {symbol}", symbol=symbol))
            return
        try:
            reply = wire.control("analysis", symbol=symbol, analysis=result.to_dict())
        except Exception as exc:
            logger.warning("Cannot encode analysis for %s: %s", symbol, exc)
            reply = wire.control("analysis", symbol=symbol, analysis=wire.ANALYSIS_UNAVAILABLE)
        await self._reply(subscriber, reply)

    async def _reply(self, subscriber: Subscriber, message: str) -> None:
        if not await self._send(subscriber, message):
            await self._drop(subscriber)

    def _find(self, target: Subscriber | Any) -> Subscriber | None:
        if isinstance(target, Subscriber):
            return self._subscribers.get(target.id)
        for subscriber in self._subscribers.values():
            if subscriber.connection is target:
                return subscriber
        return None
