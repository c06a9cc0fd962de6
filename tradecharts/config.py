"""
Chart analysis configuration.

Deployment knobs (symbols, feed URL, cache size, timeouts) are read from the
app's central Settings object (app.core.config), which loads from .env.

Analysis constants (timeframe table, pattern thresholds, windows) are defined
here. They describe the heuristics themselves, not the deployment.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping


def _load_app_settings():
    """Lazy-load the app settings to avoid circular imports."""
    try:
        from app.core.config import settings
        return settings
    except Exception:
        return None


@dataclass(frozen=True)
class CacheConfig:
    """Rolling per-symbol history."""

    capacity: int = field(default_factory=lambda: (
        _s.cache_capacity if (_s := _load_app_settings()) else 20_000
    ))


@dataclass(frozen=True)
class FeedConfig:
    """Live ticker feed settings, read from .env via app settings."""

    symbols: tuple[str, ...] = field(default_factory=lambda: (
        _s.get_tracked_symbols() if (_s := _load_app_settings())
        else ("BTC", "SOL", "TAO", "WIF")
    ))
    url_template: str = field(default_factory=lambda: (
        _s.feed_url_template if (_s := _load_app_settings())
        else "wss://stream.binance.com:9443/ws/{symbol}usdt@ticker"
    ))
    reconnect_delay: float = field(default_factory=lambda: (
        _s.feed_reconnect_delay if (_s := _load_app_settings()) else 30.0
    ))
    send_timeout: float = field(default_factory=lambda: (
        _s.broadcast_send_timeout if (_s := _load_app_settings()) else 5.0
    ))

    def stream_url(self, symbol: str) -> str:
        return self.url_template.format(symbol=symbol.lower())


@dataclass(frozen=True)
class HistoryConfig:
    """REST klines bootstrap."""

    enabled: bool = field(default_factory=lambda: (
        _s.history_bootstrap if (_s := _load_app_settings()) else False
    ))
    base_url: str = field(default_factory=lambda: (
        _s.history_base_url if (_s := _load_app_settings())
        else "https://api.binance.com"
    ))
    interval: str = field(default_factory=lambda: (
        _s.history_interval if (_s := _load_app_settings()) else "1h"
    ))
    limit: int = field(default_factory=lambda: (
        min(_s.history_limit, 1000) if (_s := _load_app_settings()) else 1000
    ))
    timeout: float = 10.0


@dataclass(frozen=True)
class PatternConfig:
    """Pattern detector thresholds."""

    min_points: int = 20
    swing_window: int = 3
    cluster_tolerance: float = 0.02
    min_touches: int = 2
    trend_period: int = 10
    shape_tolerance: float = 0.02
    engulfing_volume_ratio: float = 0.8
    doji_tolerance: float = 0.01
    include_weekly: bool = True


@dataclass(frozen=True)
class FibonacciConfig:
    """Fibonacci time-zone settings."""

    min_points: int = 10
    extremum_window: int = 5
    significance: float = 0.02
    max_anchors: int = 3
    sequence: tuple[int, ...] = (1, 2, 3, 5, 8, 13, 21, 34, 55, 89)
    retracement_ratios: tuple[float, ...] = (
        0.146, 0.236, 0.382, 0.5, 0.618, 0.786, 0.886,
    )
    include_retracements: bool = False


@dataclass(frozen=True)
class TimeframeSpec:
    """Per-timeframe prediction parameters.

    The heuristic move is
    ``trend_weight * trend + momentum_weight * momentum + volatility_weight * volatility``
    with the volatility term clipped to +/-0.3, then clamped to ``max_move``.
    """

    name: str
    min_points: int
    base_confidence: float
    max_move: float
    trend_weight: float
    momentum_weight: float
    volatility_weight: float
    fallback_confidence: float
    lookback: int
    training_offset: int


DEFAULT_TIMEFRAMES: tuple[TimeframeSpec, ...] = (
    TimeframeSpec("1h", 5, 0.60, 0.02, 0.0, 0.2, 0.0, 0.3, 60, 24),
    TimeframeSpec("4h", 5, 0.65, 0.03, 0.3, 0.1, 0.0, 0.3, 120, 12),
    TimeframeSpec("1d", 10, 0.70, 0.05, 0.5, 0.0, 0.0, 0.4, 240, 7),
    TimeframeSpec("1w", 20, 0.75, 0.08, 0.8, 0.0, 0.0, 0.3, 720, 4),
    TimeframeSpec("1m", 30, 0.80, 0.30, 0.8, 0.0, -2.0, 0.2, 2000, 1),
)


@dataclass(frozen=True)
class AnalysisConfig:
    """Windows and tables used to assemble an AnalysisResult."""

    pattern_window: int = 200
    fibonacci_window: int = 200
    timeframes: Mapping[str, TimeframeSpec] = field(default_factory=lambda: (
        MappingProxyType({tf.name: tf for tf in DEFAULT_TIMEFRAMES})
    ))
    patterns: PatternConfig = field(default_factory=PatternConfig)
    fibonacci: FibonacciConfig = field(default_factory=FibonacciConfig)

    def timeframe(self, name: str) -> TimeframeSpec:
        return self.timeframes[name]


@dataclass(frozen=True)
class PipelineConfig:
    """Aggregated configuration for the whole ingestion pipeline."""

    cache: CacheConfig = field(default_factory=CacheConfig)
    feed: FeedConfig = field(default_factory=FeedConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)


config = PipelineConfig()
