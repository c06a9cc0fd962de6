"""
Training-set builder.

Slides a fixed window through a symbol's history and pairs the window's
feature vector with the fractional price change observed ``offset`` steps
after the window's last point. Uses the same feature builder as live
inference, so a trained provider always sees the layout it was fitted on.

Usage:
    builder = TrainingSetBuilder()
    X, y = builder.build(points, "1d")
    provider.train("1d", X, y)
"""

import logging
from dataclasses import dataclass
from typing import Sequence

import pandas as pd

from tradecharts.config import DEFAULT_TIMEFRAMES
from tradecharts.entities import PricePoint
from tradecharts.errors import DataInsufficientError
from tradecharts.features.vectors import build_features
from tradecharts.models.base import ModelMetrics, ModelProvider

logger = logging.getLogger(__name__)

WINDOW = 50
MIN_HISTORY = 100
MIN_SAMPLES = 50
MAX_ABS_CHANGE = 0.5
DEFAULT_OFFSET = 24

TARGET_OFFSETS: dict[str, int] = {tf.name: tf.training_offset for tf in DEFAULT_TIMEFRAMES}


def target_offset(timeframe: str) -> int:
    return TARGET_OFFSETS.get(timeframe, DEFAULT_OFFSET)


@dataclass
class TrainingReport:
    """Outcome of one train() call."""

    symbol: str
    timeframe: str
    samples: int
    metrics: ModelMetrics

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "timeframe": self.timeframe,
            "samples": self.samples,
            "metrics": self.metrics.to_dict(),
        }


class TrainingSetBuilder:
    """Builds (features, targets) frames from an ordered price history."""

    def __init__(
        self,
        window: int = WINDOW,
        min_history: int = MIN_HISTORY,
        min_samples: int = MIN_SAMPLES,
        max_abs_change: float = MAX_ABS_CHANGE,
    ) -> None:
        self._window = window
        self._min_history = min_history
        self._min_samples = min_samples
        self._max_abs_change = max_abs_change

    def build(
        self, points: Sequence[PricePoint], timeframe: str
    ) -> tuple[pd.DataFrame, pd.Series]:
        """Return one feature row and one target per usable window.

        Samples whose target move is ``max_abs_change`` or more are dropped
        as outliers.

        Raises:
            DataInsufficientError: If the history or the surviving sample
                count is below the configured minimum.
        """
        if len(points) < self._min_history:
            raise DataInsufficientError(self._min_history, len(points))

        offset = target_offset(timeframe)
        rows: list[tuple[float, ...]] = []
        targets: list[float] = []
        names: tuple[str, ...] = ()
        timestamps: list[int] = []

        for end in range(self._window, len(points) - offset + 1):
            anchor = points[end - 1]
            future = points[end - 1 + offset]
            if anchor.close <= 0:
                continue
            change = (future.close - anchor.close) / anchor.close
            if abs(change) >= self._max_abs_change:
                continue
            vector = build_features(points[end - self._window:end], timeframe)
            names = vector.names
            rows.append(vector.values)
            targets.append(change)
            timestamps.append(anchor.timestamp)

        if len(rows) < self._min_samples:
            raise DataInsufficientError(self._min_samples, len(rows))

        index = pd.Index(timestamps, name="timestamp")
        X = pd.DataFrame(rows, columns=list(names), index=index)
        y = pd.Series(targets, index=index, name="target_change")
        logger.info(
            "Built %d training samples for %s (offset=%d)", len(X), timeframe, offset
        )
        return X, y

    def train(
        self,
        provider: ModelProvider,
        symbol: str,
        points: Sequence[PricePoint],
        timeframe: str,
    ) -> TrainingReport:
        """Build the training set for ``timeframe`` and fit ``provider`` on it."""
        X, y = self.build(points, timeframe)
        metrics = provider.train(timeframe, X, y)
        return TrainingReport(symbol=symbol, timeframe=timeframe, samples=len(X), metrics=metrics)
