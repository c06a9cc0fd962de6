"""
Long-horizon pattern family.

Looks at the whole window at once instead of at swing points: early versus
late quarter averages for direction, single-step return dispersion for
volatility, and the 10th / 90th price percentiles as support and resistance.
"""

import logging
from typing import Sequence

import numpy as np

from tradecharts.entities import Pattern, PatternType
from tradecharts.features.indicators import returns_volatility

logger = logging.getLogger(__name__)

MIN_POINTS = 20
TREND_THRESHOLD = 0.03
CALM_VOLATILITY = 0.08
HIGH_VOLATILITY = 0.12
LEVEL_PROXIMITY = 0.03


def quarter_trend(prices: np.ndarray) -> float:
    """Late-quarter average relative to early-quarter average."""
    if prices.size < MIN_POINTS:
        return 0.0
    sample = max(10, prices.size // 4)
    early = prices[:sample].mean()
    late = prices[-sample:].mean()
    if early == 0:
        return 0.0
    return float((late - early) / early)


def percentile_levels(prices: np.ndarray) -> tuple[float, float]:
    """Return (support, resistance) as the 10th and 90th price percentiles."""
    ordered = np.sort(prices)
    n = ordered.size
    support = ordered[max(0, n // 10)]
    resistance = ordered[min(n - 1, n * 9 // 10)]
    return float(support), float(resistance)


def detect_weekly(
    symbol: str, prices: Sequence[float], timestamp: int
) -> list[Pattern]:
    arr = np.asarray(prices, dtype=float)
    if arr.size < MIN_POINTS:
        return []

    current = float(arr[-1])
    trend = quarter_trend(arr)
    vol = returns_volatility(arr) if arr.size >= 10 else 0.0
    support, resistance = percentile_levels(arr)

    patterns: list[Pattern] = []

    if trend > TREND_THRESHOLD and vol < CALM_VOLATILITY:
        patterns.append(Pattern(
            symbol, PatternType.WEEKLY_UPTREND, current, 0.8,
            "Strong weekly bullish trend with controlled volatility", timestamp,
        ))
    elif trend < -TREND_THRESHOLD and vol < CALM_VOLATILITY:
        patterns.append(Pattern(
            symbol, PatternType.WEEKLY_DOWNTREND, current, 0.8,
            "Strong weekly bearish trend with controlled volatility", timestamp,
        ))
    elif vol > HIGH_VOLATILITY:
        patterns.append(Pattern(
            symbol, PatternType.WEEKLY_HIGH_VOLATILITY, current, 0.7,
            "Elevated weekly volatility indicates uncertainty", timestamp,
        ))
    else:
        patterns.append(Pattern(
            symbol, PatternType.WEEKLY_CONSOLIDATION, current, 0.6,
            "Price consolidating within weekly range", timestamp,
        ))

    if current > 0 and abs(current - support) / current < LEVEL_PROXIMITY:
        patterns.append(Pattern(
            symbol, PatternType.WEEKLY_SUPPORT, support, 0.85,
            "Approaching significant weekly support level", timestamp,
        ))
    if current > 0 and abs(current - resistance) / current < LEVEL_PROXIMITY:
        patterns.append(Pattern(
            symbol, PatternType.WEEKLY_RESISTANCE, resistance, 0.85,
            "Approaching significant weekly resistance level", timestamp,
        ))

    logger.debug(
        "Weekly scan for %s: trend=%.4f vol=%.4f -> %d patterns",
        symbol, trend, vol, len(patterns),
    )
    return patterns
