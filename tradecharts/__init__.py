"""
Real-time Chart Analysis Engine
===============================

Ingests live crypto ticks, keeps a bounded rolling history per symbol and
fans a full analysis out to connected subscribers on every tick.

Architecture
------------
- **Store**: per-symbol bounded deque, one lock per symbol
- **Features**: pure numpy indicators + fixed per-timeframe feature vectors
- **Patterns**: swing-point S/R, trends, classic shapes, candlesticks, weekly
- **Fibonacci**: time zones projected from significant highs and lows
- **Prediction**: 1h / 4h / 1d / 1w / 1m heuristic, optionally model-backed
- **Real-time**: Binance ticker feeds → analysis → WebSocket broadcast hub

Quick start (CLI)
-----------------
    python -m tradecharts serve --port 8000
    python -m tradecharts analyze --symbol BTC
    python -m tradecharts train --symbol BTC --timeframe 1d

Public API
----------
    from tradecharts import MarketAnalyzer, PriceSeriesCache, PredictionOrchestrator
    from tradecharts.realtime import MarketPipeline, BroadcastHub, FeedIngestor
    from tradecharts.config import config
"""

from tradecharts.analysis import MarketAnalyzer
from tradecharts.config import PipelineConfig, config
from tradecharts.entities import (
    AnalysisResult,
    FibonacciZone,
    Pattern,
    PatternType,
    Prediction,
    PricePoint,
    TradingSignal,
    TrendDirection,
)
from tradecharts.fibonacci import FibonacciZoneCalculator
from tradecharts.orchestrator import PredictionOrchestrator
from tradecharts.patterns import PatternDetector
from tradecharts.store import PriceSeriesCache

__all__ = [
    "AnalysisResult",
    "FibonacciZone",
    "FibonacciZoneCalculator",
    "MarketAnalyzer",
    "Pattern",
    "PatternDetector",
    "PatternType",
    "PipelineConfig",
    "Prediction",
    "PredictionOrchestrator",
    "PricePoint",
    "PriceSeriesCache",
    "TradingSignal",
    "TrendDirection",
    "config",
]
