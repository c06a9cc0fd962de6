"""
Fibonacci time zones.

Significant swing highs and lows are projected forward by Fibonacci numbers
of periods. A zone links the swing point to the point that many steps later.
Zones from highs lean bearish, zones from lows bullish. The optional weekly
retracement pass adds horizontal levels across the window's high/low range.
"""

import logging
from typing import Sequence

import numpy as np

from tradecharts.config import FibonacciConfig
from tradecharts.entities import FibonacciZone, PricePoint, ZoneBias

logger = logging.getLogger(__name__)

ONE_WEEK_MS = 7 * 24 * 60 * 60 * 1000

RETRACEMENT_NAMES = (
    "MINOR_RESISTANCE", "WEAK_RESISTANCE", "MODERATE_RESISTANCE",
    "STRONG_RESISTANCE", "MODERATE_SUPPORT", "WEAK_SUPPORT", "MINOR_SUPPORT",
)


class FibonacciZoneCalculator:
    """Projects Fibonacci time zones from significant highs and lows."""

    def __init__(self, cfg: FibonacciConfig | None = None) -> None:
        self._cfg = cfg or FibonacciConfig()

    def calculate(self, symbol: str, points: Sequence[PricePoint]) -> list[FibonacciZone]:
        """Return zones sorted by descending start timestamp (most recent first)."""
        if len(points) < self._cfg.min_points:
            logger.debug(
                "Insufficient data for Fibonacci time zones on %s: %d points",
                symbol, len(points),
            )
            return []

        prices = np.fromiter((p.close for p in points), dtype=float, count=len(points))
        zones: list[FibonacciZone] = []

        for idx in self.significant_extrema(prices, highs=True):
            zones.extend(self._project(symbol, points, idx, from_high=True))
        for idx in self.significant_extrema(prices, highs=False):
            zones.extend(self._project(symbol, points, idx, from_high=False))

        if self._cfg.include_retracements:
            zones.extend(self.retracement_zones(symbol, points))

        zones.sort(key=lambda z: z.start_timestamp, reverse=True)
        logger.debug("Calculated %d Fibonacci zones for %s", len(zones), symbol)
        return zones

    def significant_extrema(self, prices: np.ndarray, highs: bool) -> list[int]:
        """Indices of the strongest local extrema that stand out from their surroundings.

        Highs are ranked by price descending, lows ascending; at most
        ``max_anchors`` are kept.
        """
        window = self._cfg.extremum_window
        n = len(prices)
        found = []
        for i in range(window, n - window):
            neighbours = np.concatenate((prices[i - window:i], prices[i + 1:i + window + 1]))
            is_extreme = np.all(prices[i] > neighbours) if highs else np.all(prices[i] < neighbours)
            if is_extreme and self._is_significant(prices, i, highs):
                found.append(i)
        found.sort(key=lambda i: prices[i], reverse=highs)
        return found[:self._cfg.max_anchors]

    def _is_significant(self, prices: np.ndarray, index: int, high: bool) -> bool:
        span = 5
        if index < span or index >= len(prices) - span:
            return False
        before = prices[index - span:index].mean()
        after = prices[index + 1:index + span + 1].mean()
        current = prices[index]
        if high:
            factor = 1 + self._cfg.significance
            return bool(current > before * factor and current > after * factor)
        factor = 1 - self._cfg.significance
        return bool(current < before * factor and current < after * factor)

    def _project(
        self,
        symbol: str,
        points: Sequence[PricePoint],
        index: int,
        from_high: bool,
    ) -> list[FibonacciZone]:
        total = len(points)
        anchor = points[index]
        kind = "high" if from_high else "low"
        zones = []
        for fib in self._cfg.sequence:
            future = index + fib
            if future >= total:
                break
            target = points[future]
            zones.append(FibonacciZone(
                symbol=symbol,
                label=f"FIB_{kind.upper()}_{fib}",
                start_timestamp=anchor.timestamp,
                end_timestamp=target.timestamp,
                start_price=anchor.close,
                end_price=target.close,
                strength=self.zone_strength(fib, index, total),
                description=f"Fibonacci Time Zone from {kind}: {fib} periods",
                bias=ZoneBias.BEARISH if from_high else ZoneBias.BULLISH,
            ))
        return zones

    @staticmethod
    def zone_strength(fib: int, start_index: int, total: int) -> float:
        recency = 1.0 - start_index / total
        magnitude = 1.0 - fib / 100.0
        return min(0.9, max(0.3, (recency + magnitude) / 2))

    def retracement_zones(self, symbol: str, points: Sequence[PricePoint]) -> list[FibonacciZone]:
        """Horizontal retracement levels across the window's range, valid for one week."""
        if len(points) < 20:
            return []
        prices = [p.close for p in points]
        high, low = max(prices), min(prices)
        span = high - low
        start = points[-1].timestamp
        zones = []
        for name, ratio in zip(RETRACEMENT_NAMES, self._cfg.retracement_ratios):
            level = high - span * ratio
            bias = ZoneBias.RESISTANCE if level > high - span * 0.5 else ZoneBias.SUPPORT
            zones.append(FibonacciZone(
                symbol=symbol,
                label=name,
                start_timestamp=start,
                end_timestamp=start + ONE_WEEK_MS,
                start_price=level,
                end_price=level,
                strength=0.4 + ratio * 0.6,
                description=f"Weekly Fibonacci {ratio * 100:.1f}%",
                bias=bias,
            ))
        return zones
