"""
Real-time ingestion and broadcast.

Provides:
- **FeedIngestor**: tick → cache → analysis (worker thread) → hub.
- **BinanceTickerFeed**: one reconnecting websocket task per symbol.
- **BroadcastHub**: subscriber set and concurrent fan-out with per-subscriber
  write locks and send timeouts.
- **MarketPipeline**: owns all of the above plus bootstrap and queries.
"""

from tradecharts.realtime.feed import BinanceTickerFeed, FeedIngestor, parse_tick
from tradecharts.realtime.hub import BroadcastHub, Subscriber
from tradecharts.realtime.pipeline import MarketPipeline

__all__ = [
    "BinanceTickerFeed",
    "BroadcastHub",
    "FeedIngestor",
    "MarketPipeline",
    "Subscriber",
    "parse_tick",
]
