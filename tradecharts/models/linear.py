"""
Ridge regression provider built on numpy least squares.

Features are standardized with training statistics, the first 80% of
samples (chronological, never shuffled) fit the model and the last 20% score
it. Predictions are bounded to ±20% and the confidence comes from holdout R²,
damped for large moves.
"""

import logging
import threading
from dataclasses import dataclass

import numpy as np
import pandas as pd

from tradecharts.errors import DataInsufficientError
from tradecharts.models.base import ModelMetrics, ModelProvider

logger = logging.getLogger(__name__)

MIN_TRAINING_SAMPLES = 50
TRAIN_RATIO = 0.8
PREDICTION_BOUND = 0.2


@dataclass(frozen=True)
class _LinearFit:
    columns: tuple[str, ...]
    mean: np.ndarray
    scale: np.ndarray
    coef: np.ndarray
    intercept: float
    metrics: ModelMetrics

    def apply(self, X: np.ndarray) -> np.ndarray:
        return ((X - self.mean) / self.scale) @ self.coef + self.intercept


class LinearModelProvider(ModelProvider):
    """Reference ModelProvider: one ridge fit per timeframe.

    A timeframe only counts as trained when its holdout R² exceeds
    ``min_r_squared``; weaker fits are kept for inspection but never used.
    """

    def __init__(
        self,
        alpha: float = 1.0,
        min_samples: int = MIN_TRAINING_SAMPLES,
        min_r_squared: float = 0.1,
    ) -> None:
        super().__init__(name="linear")
        self._alpha = alpha
        self._min_samples = min_samples
        self._min_r_squared = min_r_squared
        self._fits: dict[str, _LinearFit] = {}
        self._lock = threading.Lock()

    def train(
        self, timeframe: str, features: pd.DataFrame, targets: pd.Series
    ) -> ModelMetrics:
        if len(features) < self._min_samples:
            raise DataInsufficientError(self._min_samples, len(features))
        if len(features) != len(targets):
            raise ValueError("features and targets must have the same length")

        X = features.to_numpy(dtype=float)
        y = targets.to_numpy(dtype=float)
        split = int(len(X) * TRAIN_RATIO)
        X_train, X_test = X[:split], X[split:]
        y_train, y_test = y[:split], y[split:]

        mean = X_train.mean(axis=0)
        scale = X_train.std(axis=0)
        scale[scale == 0] = 1.0
        Z = (X_train - mean) / scale
        intercept = float(y_train.mean())

        # Ridge normal equations on centred targets
        gram = Z.T @ Z + self._alpha * np.eye(Z.shape[1])
        coef = np.linalg.solve(gram, Z.T @ (y_train - intercept))

        fit = _LinearFit(
            columns=tuple(features.columns),
            mean=mean,
            scale=scale,
            coef=coef,
            intercept=intercept,
            metrics=ModelMetrics(),
        )
        metrics = self._compute_metrics(y_test, fit.apply(X_test))
        fit = _LinearFit(fit.columns, mean, scale, coef, intercept, metrics)

        with self._lock:
            self._fits[timeframe] = fit
            self._metrics[timeframe] = metrics
        logger.info("[%s] Trained %s on %d samples: %s", self.name, timeframe, len(X), metrics)
        return metrics

    def predict(self, features: np.ndarray, timeframe: str) -> tuple[float, float]:
        with self._lock:
            fit = self._fits.get(timeframe)
        if fit is None:
            return 0.0, 0.1

        x = np.asarray(features, dtype=float).reshape(1, -1)
        if x.shape[1] != len(fit.columns):
            raise ValueError(
                f"expected {len(fit.columns)} features for {timeframe}, got {x.shape[1]}"
            )
        change = float(fit.apply(x)[0])
        change = max(-PREDICTION_BOUND, min(PREDICTION_BOUND, change))
        return change, self._confidence(change, fit.metrics)

    def is_trained(self, timeframe: str) -> bool:
        with self._lock:
            fit = self._fits.get(timeframe)
        return fit is not None and fit.metrics.r_squared > self._min_r_squared

    def trained_timeframes(self) -> list[str]:
        with self._lock:
            return sorted(self._fits)

    @staticmethod
    def _confidence(change: float, metrics: ModelMetrics) -> float:
        confidence = max(0.1, min(0.9, metrics.r_squared))
        magnitude = abs(change)
        if magnitude > 0.1:
            confidence *= 0.7
        elif magnitude > 0.05:
            confidence *= 0.85
        return max(0.1, min(0.95, confidence))
