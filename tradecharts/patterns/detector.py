"""
Chart and candlestick pattern detection.

Detection is best-effort. Each family (support/resistance, trend, classic
shapes, candlesticks, long-horizon) runs on its own; a failure in one is
logged and the others still report. Input shorter than ``min_points`` yields
no patterns.
"""

import logging
from typing import Callable, Sequence

import numpy as np

from tradecharts.config import PatternConfig
from tradecharts.entities import Pattern, PatternType, PricePoint
from tradecharts.patterns.weekly import detect_weekly

logger = logging.getLogger(__name__)


class PatternDetector:
    """Detects support/resistance, trends, classic shapes and candlesticks.

    Pattern timestamps are the timestamp of the last point in the window, so
    the same window always yields the same patterns.
    """

    def __init__(self, cfg: PatternConfig | None = None) -> None:
        self._cfg = cfg or PatternConfig()

    def detect(self, symbol: str, points: Sequence[PricePoint]) -> list[Pattern]:
        """Run every pattern family over ``points`` (oldest first).

        Returns:
            Patterns sorted by descending confidence. Empty when the window
            is shorter than the configured minimum.
        """
        if len(points) < self._cfg.min_points:
            logger.debug(
                "Insufficient data for pattern detection on %s: %d points",
                symbol, len(points),
            )
            return []

        prices = np.fromiter((p.close for p in points), dtype=float, count=len(points))
        timestamp = points[-1].timestamp

        families: list[tuple[str, Callable[[], list[Pattern]]]] = [
            ("support_resistance", lambda: self._support_resistance(symbol, prices, timestamp)),
            ("trend", lambda: self._trend_lines(symbol, prices, timestamp)),
            ("chart_shapes", lambda: self._chart_shapes(symbol, prices, timestamp)),
            ("candlesticks", lambda: self._candlesticks(symbol, points, timestamp)),
        ]
        if self._cfg.include_weekly:
            families.append(("weekly", lambda: detect_weekly(symbol, prices, timestamp)))

        patterns: list[Pattern] = []
        for name, family in families:
            try:
                patterns.extend(family())
            except Exception:
                logger.exception("Pattern family %s failed for %s", name, symbol)

        patterns.sort(key=lambda p: p.confidence, reverse=True)
        logger.debug("Detected %d patterns for %s", len(patterns), symbol)
        return patterns

    # ------------------------------------------------------------------
    # Support / resistance
    # ------------------------------------------------------------------

    def _support_resistance(
        self, symbol: str, prices: np.ndarray, timestamp: int
    ) -> list[Pattern]:
        current = float(prices[-1])
        highs = self.swing_points(prices, self._cfg.swing_window, highs=True)
        lows = self.swing_points(prices, self._cfg.swing_window, highs=False)

        patterns = []
        for level, touches in self.cluster_levels(highs, self._cfg.cluster_tolerance):
            if touches < self._cfg.min_touches:
                continue
            patterns.append(Pattern(
                symbol, PatternType.RESISTANCE, level,
                self._level_confidence(touches, level, current),
                f"Price rejected {touches} times", timestamp,
            ))
        for level, touches in self.cluster_levels(lows, self._cfg.cluster_tolerance):
            if touches < self._cfg.min_touches:
                continue
            patterns.append(Pattern(
                symbol, PatternType.SUPPORT, level,
                self._level_confidence(touches, level, current),
                f"Price bounced {touches} times", timestamp,
            ))
        return patterns

    @staticmethod
    def swing_points(prices: np.ndarray, window: int, highs: bool) -> list[float]:
        """Values strictly above (or below) every neighbour within ``window``."""
        found = []
        for i in range(window, len(prices) - window):
            neighbours = np.concatenate(
                (prices[i - window:i], prices[i + 1:i + window + 1])
            )
            if highs and np.all(prices[i] > neighbours):
                found.append(float(prices[i]))
            elif not highs and np.all(prices[i] < neighbours):
                found.append(float(prices[i]))
        return found

    @staticmethod
    def cluster_levels(values: list[float], tolerance: float) -> list[tuple[float, int]]:
        """Chain sorted values into clusters; neighbours within ``tolerance`` join.

        Returns (mean level, touch count) per cluster.
        """
        if not values:
            return []
        ordered = sorted(values)
        clusters: list[list[float]] = [[ordered[0]]]
        for value in ordered[1:]:
            prev = clusters[-1][-1]
            if prev > 0 and (value - prev) / prev <= tolerance:
                clusters[-1].append(value)
            else:
                clusters.append([value])
        return [(float(np.mean(c)), len(c)) for c in clusters]

    @staticmethod
    def _level_confidence(touches: int, level: float, current: float) -> float:
        distance = abs(level - current) / current if current > 0 else 1.0
        touch_term = min(0.8, touches * 0.2)
        distance_term = max(0.2, 1 - distance * 10)
        return min(1.0, (touch_term + distance_term) / 2)

    # ------------------------------------------------------------------
    # Trend
    # ------------------------------------------------------------------

    def _trend_lines(self, symbol: str, prices: np.ndarray, timestamp: int) -> list[Pattern]:
        period = self._cfg.trend_period
        current = float(prices[-1])
        patterns = []
        if self.is_trending(prices, period, up=True):
            patterns.append(Pattern(
                symbol, PatternType.UPTREND, current,
                self.trend_strength(prices, up=True),
                "Higher highs and higher lows", timestamp,
            ))
        if self.is_trending(prices, period, up=False):
            patterns.append(Pattern(
                symbol, PatternType.DOWNTREND, current,
                self.trend_strength(prices, up=False),
                "Lower highs and lower lows", timestamp,
            ))
        return patterns

    @staticmethod
    def is_trending(prices: np.ndarray, period: int, up: bool) -> bool:
        """Every point of the trailing window beats the point ``period`` back."""
        n = len(prices)
        if n < period * 2:
            return False
        better = np.greater if up else np.less
        # highs: [n - period, n - 1) against i - period
        highs = all(better(prices[i], prices[i - period]) for i in range(n - period, n - 1))
        # lows: [n - period + 1, n) against i - period + 1
        lows = all(
            better(prices[i], prices[i - period + 1]) for i in range(n - period + 1, n)
        )
        return bool(highs and lows)

    @staticmethod
    def trend_strength(prices: np.ndarray, up: bool) -> float:
        """Mean same-direction step return over the last 20 points, in [0.5, 0.9]."""
        n = len(prices)
        if n < 10:
            return 0.5
        moves = []
        for i in range(1, min(20, n)):
            prev = prices[n - i - 1]
            if prev == 0:
                continue
            change = (prices[n - i] - prev) / prev
            if (up and change > 0) or (not up and change < 0):
                moves.append(abs(change))
        avg = float(np.mean(moves)) if moves else 0.0
        return min(0.9, max(0.5, avg * 10))

    # ------------------------------------------------------------------
    # Classic shapes
    # ------------------------------------------------------------------

    def _chart_shapes(self, symbol: str, prices: np.ndarray, timestamp: int) -> list[Pattern]:
        current = float(prices[-1])
        tol = self._cfg.shape_tolerance
        n = len(prices)
        mid = n // 2
        patterns = []

        left = prices[0:mid // 2].max()
        head = prices[mid // 2:mid * 3 // 2].max()
        right = prices[mid * 3 // 2:n].max()
        if (
            head > left * (1 + tol)
            and head > right * (1 + tol)
            and left > 0
            and abs(left - right) / left < tol
        ):
            patterns.append(Pattern(
                symbol, PatternType.HEAD_SHOULDERS, current, 0.75,
                "Classic reversal pattern", timestamp,
            ))

        first_top = prices[:mid].max()
        second_top = prices[mid:].max()
        valley = prices[mid // 2:mid * 3 // 2].min()
        if (
            first_top > 0
            and abs(first_top - second_top) / first_top < tol
            and valley < first_top * (1 - tol)
        ):
            patterns.append(Pattern(
                symbol, PatternType.DOUBLE_TOP, current, 0.7,
                "Bearish reversal pattern", timestamp,
            ))

        first_bottom = prices[:mid].min()
        second_bottom = prices[mid:].min()
        peak = prices[mid // 2:mid * 3 // 2].max()
        if (
            first_bottom > 0
            and abs(first_bottom - second_bottom) / first_bottom < tol
            and peak > first_bottom * (1 + tol)
        ):
            patterns.append(Pattern(
                symbol, PatternType.DOUBLE_BOTTOM, current, 0.7,
                "Bullish reversal pattern", timestamp,
            ))

        early = prices[0:n // 3].std()
        middle = prices[n // 3:n * 2 // 3].std()
        late = prices[n * 2 // 3:n].std()
        if late < middle < early:
            patterns.append(Pattern(
                symbol, PatternType.TRIANGLE, current, 0.65,
                "Volatility contraction - breakout expected", timestamp,
            ))
        return patterns

    # ------------------------------------------------------------------
    # Candlesticks
    # ------------------------------------------------------------------

    def _candlesticks(
        self, symbol: str, points: Sequence[PricePoint], timestamp: int
    ) -> list[Pattern]:
        recent = list(points[-5:])
        if len(recent) < 3:
            return []
        prev, last = recent[-2], recent[-1]
        ratio = self._cfg.engulfing_volume_ratio
        patterns = []

        if last.close > prev.close and last.volume >= prev.volume * ratio:
            patterns.append(Pattern(
                symbol, PatternType.BULLISH_ENGULFING, last.close, 0.7,
                "Bullish reversal pattern", timestamp,
            ))
        if last.close < prev.close and last.volume >= prev.volume * ratio:
            patterns.append(Pattern(
                symbol, PatternType.BEARISH_ENGULFING, last.close, 0.7,
                "Bearish reversal pattern", timestamp,
            ))

        avg = float(np.mean([p.close for p in recent]))
        if avg > 0 and abs(last.close - avg) / avg < self._cfg.doji_tolerance:
            patterns.append(Pattern(
                symbol, PatternType.DOJI, last.close, 0.6,
                "Indecision pattern", timestamp,
            ))
        return patterns
