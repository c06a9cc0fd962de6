"""
Per-timeframe feature vectors.

Timeframes are grouped into three buckets, each with a fixed list of 15
features. The same builder feeds training and inference, so a model always
sees the layout it was fitted on.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Sequence

import numpy as np
import pandas as pd

from tradecharts.entities import PricePoint
from tradecharts.features import indicators as ind


class FeatureBucket(Enum):
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"


_BUCKETS: dict[str, FeatureBucket] = {
    "1h": FeatureBucket.SHORT,
    "4h": FeatureBucket.SHORT,
    "1d": FeatureBucket.MEDIUM,
    "1w": FeatureBucket.LONG,
    "1m": FeatureBucket.LONG,
}


def bucket_for(timeframe: str) -> FeatureBucket:
    """Unknown timeframes fall into the LONG bucket."""
    return _BUCKETS.get(timeframe, FeatureBucket.LONG)


FEATURE_NAMES: dict[FeatureBucket, tuple[str, ...]] = {
    FeatureBucket.SHORT: (
        "sma_5", "sma_20", "ema_12", "rsi_14", "macd", "volatility_10",
        "momentum_5", "volume_trend", "acceleration", "z_score",
        "bollinger_position", "volume_price_trend", "support_resistance",
        "trend_strength", "roc_5",
    ),
    FeatureBucket.MEDIUM: (
        "sma_20", "sma_50", "ema_26", "rsi_21", "volatility_20",
        "trend_strength", "support_resistance", "seasonality", "market_cycle",
        "volume_strength", "roc_10", "momentum_15", "z_score",
        "bollinger_position", "volume_price_trend",
    ),
    FeatureBucket.LONG: (
        "sma_50", "sma_200", "volatility_50", "long_term_trend",
        "market_maturity", "support_resistance", "trend_strength",
        "seasonality", "market_cycle", "volume_strength", "roc_20", "z_score",
        "bollinger_position", "volume_price_trend", "adoption",
    ),
}


@dataclass(frozen=True)
class FeatureVector:
    """Ordered named features for one timeframe bucket."""

    bucket: FeatureBucket
    names: tuple[str, ...]
    values: tuple[float, ...]

    def as_array(self) -> np.ndarray:
        return np.asarray(self.values, dtype=float)

    def as_series(self) -> pd.Series:
        return pd.Series(self.values, index=list(self.names), dtype=float)

    def __len__(self) -> int:
        return len(self.values)


def build_features(points: Sequence[PricePoint], timeframe: str) -> FeatureVector:
    """Compute the feature vector for ``timeframe`` over ``points``.

    Non-finite results are replaced with 0.0 so downstream models never see NaN.

    Raises:
        ValueError: If ``points`` is empty.
    """
    if not points:
        raise ValueError("cannot build features from an empty window")

    prices = np.fromiter((p.close for p in points), dtype=float, count=len(points))
    volumes = np.fromiter((p.volume for p in points), dtype=float, count=len(points))
    last_ts = points[-1].timestamp if len(points) >= 7 else None
    bucket = bucket_for(timeframe)

    if bucket is FeatureBucket.SHORT:
        values = (
            ind.sma(prices, 5), ind.sma(prices, 20), ind.ema(prices, 12),
            ind.rsi(prices, 14), ind.macd(prices), ind.volatility(prices, 10),
            ind.momentum(prices, 5), ind.volume_trend(volumes),
            ind.price_acceleration(prices), ind.z_score(prices),
            ind.bollinger_position(prices), ind.volume_price_trend(prices, volumes),
            ind.support_resistance_offset(prices), ind.trend_strength(prices),
            ind.rate_of_change(prices, 5),
        )
    elif bucket is FeatureBucket.MEDIUM:
        values = (
            ind.sma(prices, 20), ind.sma(prices, 50), ind.ema(prices, 26),
            ind.rsi(prices, 21), ind.volatility(prices, 20),
            ind.trend_strength(prices), ind.support_resistance_offset(prices),
            ind.seasonality(last_ts), ind.market_cycle(prices),
            ind.volume_strength(volumes), ind.rate_of_change(prices, 10),
            ind.momentum(prices, 15), ind.z_score(prices),
            ind.bollinger_position(prices), ind.volume_price_trend(prices, volumes),
        )
    else:
        values = (
            ind.sma(prices, 50), ind.sma(prices, 200), ind.volatility(prices, 50),
            ind.long_term_trend(prices), ind.market_maturity(prices),
            ind.support_resistance_offset(prices), ind.trend_strength(prices),
            ind.seasonality(last_ts), ind.market_cycle(prices),
            ind.volume_strength(volumes), ind.rate_of_change(prices, 20),
            ind.z_score(prices), ind.bollinger_position(prices),
            ind.volume_price_trend(prices, volumes), ind.adoption_factor(len(points)),
        )

    cleaned = tuple(float(v) if np.isfinite(v) else 0.0 for v in values)
    return FeatureVector(bucket=bucket, names=FEATURE_NAMES[bucket], values=cleaned)
