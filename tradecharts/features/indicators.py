"""
Technical indicators over a rolling price window.

Every function is pure and deterministic: it takes a read-only sequence of
prices (and volumes where relevant) and returns a float. Live feeds start with
almost no history, so each indicator returns a neutral default when the window
is shorter than its period instead of raising or dividing by zero.

Windows are ordered oldest first; the last element is the current price.
"""

import logging
from datetime import datetime, timezone
from typing import Sequence

import numpy as np

logger = logging.getLogger(__name__)

Series = Sequence[float] | np.ndarray


def _as_array(values: Series) -> np.ndarray:
    return np.asarray(values, dtype=float)


def _safe_div(num: float, den: float, default: float = 0.0) -> float:
    if den == 0 or not np.isfinite(den):
        return default
    return float(num / den)


# ----------------------------------------------------------------------
# Moving averages
# ----------------------------------------------------------------------

def sma(prices: Series, period: int) -> float:
    """Simple moving average of the last ``period`` prices.

    Falls back to the last price when the window is shorter than ``period``.
    """
    arr = _as_array(prices)
    if arr.size == 0:
        return 0.0
    if period <= 0 or arr.size < period:
        return float(arr[-1])
    return float(arr[-period:].mean())


def ema(prices: Series, period: int) -> float:
    """Exponential moving average seeded with the first element."""
    arr = _as_array(prices)
    if period <= 0 or arr.size == 0:
        return 0.0
    alpha = 2.0 / (period + 1)
    value = arr[0]
    for price in arr[1:]:
        value = price * alpha + value * (1 - alpha)
    return float(value)


def macd(prices: Series, fast: int = 12, slow: int = 26) -> float:
    return ema(prices, fast) - ema(prices, slow)


# ----------------------------------------------------------------------
# Oscillators
# ----------------------------------------------------------------------

def rsi(prices: Series, period: int = 14) -> float:
    """Relative Strength Index over the last ``period`` deltas.

    Returns 50.0 without enough history and 100.0 when there were no losses.
    """
    arr = _as_array(prices)
    if period <= 0 or arr.size < period + 1:
        return 50.0
    deltas = np.diff(arr[-(period + 1):])
    avg_gain = deltas[deltas > 0].sum() / period
    avg_loss = -deltas[deltas < 0].sum() / period
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return float(100.0 - 100.0 / (1.0 + rs))


def momentum(prices: Series, period: int) -> float:
    """Last price minus the price ``period`` steps back."""
    arr = _as_array(prices)
    if period <= 0 or arr.size < period + 1:
        return 0.0
    return float(arr[-1] - arr[-1 - period])


def rate_of_change(prices: Series, period: int) -> float:
    """Percentage change over ``period`` steps."""
    arr = _as_array(prices)
    if period <= 0 or arr.size < period + 1:
        return 0.0
    base = arr[-1 - period]
    return _safe_div(arr[-1] - base, base) * 100


# ----------------------------------------------------------------------
# Dispersion
# ----------------------------------------------------------------------

def volatility(prices: Series, period: int) -> float:
    """Population standard deviation of the last ``period`` prices."""
    arr = _as_array(prices)
    if period <= 0 or arr.size < period:
        return 0.0
    return float(arr[-period:].std())


def relative_volatility(prices: Series) -> float:
    """Standard deviation over mean for the whole window."""
    arr = _as_array(prices)
    if arr.size < 2:
        return 0.0
    return _safe_div(arr.std(), arr.mean())


def returns_volatility(prices: Series) -> float:
    """Population standard deviation of single-step returns."""
    returns = _returns(prices)
    if returns.size == 0:
        return 0.0
    return float(returns.std())


def z_score(prices: Series) -> float:
    arr = _as_array(prices)
    if arr.size < 2:
        return 0.0
    return _safe_div(arr[-1] - arr.mean(), arr.std())


def bollinger_position(prices: Series, period: int = 20, width: float = 2.0) -> float:
    """Where the last price sits between the Bollinger bands (0 = lower, 1 = upper)."""
    arr = _as_array(prices)
    if arr.size < period:
        return 0.5
    mid = sma(arr, period)
    std = volatility(arr, period)
    lower = mid - width * std
    upper = mid + width * std
    return _safe_div(arr[-1] - lower, upper - lower, default=0.5)


# ----------------------------------------------------------------------
# Trend
# ----------------------------------------------------------------------

def trend_strength(prices: Series) -> float:
    """(SMA20 - SMA50) / SMA50."""
    arr = _as_array(prices)
    if arr.size < 20:
        return 0.0
    fast = sma(arr, min(20, arr.size))
    slow = sma(arr, min(50, arr.size))
    return _safe_div(fast - slow, slow)


def support_resistance_offset(prices: Series) -> float:
    """Distance of the last price from the window mean, as a ratio."""
    arr = _as_array(prices)
    if arr.size < 10:
        return 0.0
    mean = arr.mean()
    return _safe_div(arr[-1] - mean, mean)


def weighted_trend(prices: Series) -> float:
    """Recency-weighted average price relative to the first price.

    Weights grow linearly from ``1/n`` for the oldest point to 1 for the newest.
    """
    arr = _as_array(prices)
    if arr.size < 2:
        return 0.0
    weights = np.arange(1, arr.size + 1, dtype=float) / arr.size
    weighted_avg = float((arr * weights).sum() / weights.sum())
    return _safe_div(weighted_avg - arr[0], arr[0])


def mean_return(prices: Series, lookback: int = 10) -> float:
    """Average of up to the last ``lookback`` single-step returns."""
    arr = _as_array(prices)
    if arr.size < 3:
        return 0.0
    returns = _returns(arr[-(min(lookback, arr.size - 1) + 1):])
    if returns.size == 0:
        return 0.0
    return float(returns.mean())


def price_acceleration(prices: Series) -> float:
    """Difference between the last two single-step returns."""
    arr = _as_array(prices)
    if arr.size < 3:
        return 0.0
    last = _safe_div(arr[-1] - arr[-2], arr[-2])
    prev = _safe_div(arr[-2] - arr[-3], arr[-3])
    return last - prev


def long_term_trend(prices: Series) -> float:
    """Least-squares slope normalized by the first price (needs 100 points)."""
    arr = _as_array(prices)
    if arr.size < 100:
        return 0.0
    x = np.arange(arr.size, dtype=float)
    slope = np.polyfit(x, arr, 1)[0]
    return _safe_div(slope, arr[0])


def market_cycle(prices: Series) -> float:
    """Relative gap between 30-step and 10-step momentum."""
    arr = _as_array(prices)
    if arr.size < 31:
        return 0.0
    mom30 = momentum(arr, 30)
    mom10 = momentum(arr, 10)
    return _safe_div(mom30 - mom10, abs(mom30))


def market_maturity(prices: Series) -> float:
    """Inverse of recent relative volatility, floored at 0."""
    arr = _as_array(prices)
    if arr.size < 60:
        return 0.1
    return max(0.0, 1.0 - relative_volatility(arr[-60:]) * 10)


def adoption_factor(length: int) -> float:
    return 0.05 if length > 180 else 0.02


def seasonality(timestamp_ms: int | None) -> float:
    """+0.1 Monday to Thursday (UTC), -0.1 otherwise."""
    if timestamp_ms is None:
        return 0.0
    weekday = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).weekday()
    return 0.1 if weekday <= 3 else -0.1


# ----------------------------------------------------------------------
# Volume
# ----------------------------------------------------------------------

def volume_strength(volumes: Series) -> float:
    """Last volume over the average of the preceding volumes."""
    arr = _as_array(volumes)
    if arr.size < 2:
        return 0.5
    return _safe_div(arr[-1], arr[:-1].mean(), default=0.5)


def volume_trend(volumes: Series) -> float:
    arr = _as_array(volumes)
    if arr.size < 5:
        return 0.5
    return volume_strength(arr)


def volume_price_trend(prices: Series, volumes: Series) -> float:
    """Volume-weighted average of single-step returns."""
    p = _as_array(prices)
    v = _as_array(volumes)
    n = min(p.size, v.size)
    if n < 2:
        return 0.0
    p, v = p[-n:], v[-n:]
    returns = _returns(p)
    weights = v[1:]
    return _safe_div(float((returns * weights).sum()), float(weights.sum()))


def _returns(prices: Series) -> np.ndarray:
    arr = _as_array(prices)
    if arr.size < 2:
        return np.empty(0)
    prev = arr[:-1]
    with np.errstate(divide="ignore", invalid="ignore"):
        returns = np.where(prev != 0, np.diff(arr) / np.where(prev != 0, prev, 1.0), 0.0)
    return returns
