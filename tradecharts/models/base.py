"""
Abstract interface for pluggable prediction models.

The orchestrator never depends on a concrete algorithm: anything that can be
trained on feature vectors and return (fractional change, confidence) for a
timeframe can be registered as a provider.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


@dataclass
class ModelMetrics:
    """Container for model evaluation metrics."""

    mae: float = 0.0
    rmse: float = 0.0
    directional_accuracy: float = 0.0
    r_squared: float = 0.0
    samples: int = 0

    def to_dict(self) -> dict:
        return {
            "mae": self.mae,
            "rmse": self.rmse,
            "directional_accuracy": self.directional_accuracy,
            "r_squared": self.r_squared,
            "samples": self.samples,
        }

    def __str__(self) -> str:
        return (
            f"MAE={self.mae:.4f} | RMSE={self.rmse:.4f} | "
            f"DirAcc={self.directional_accuracy:.2%} | "
            f"R²={self.r_squared:.4f} | n={self.samples}"
        )


class ModelProvider(ABC):
    """A trainable model that predicts the fractional price change for a timeframe.

    Methods:
        train:       Fit the model for one timeframe.
        predict:     Return (fractional change, confidence in [0, 1]).
        is_trained:  Whether a timeframe has a fitted model.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._metrics: dict[str, ModelMetrics] = {}

    @abstractmethod
    def train(
        self, timeframe: str, features: pd.DataFrame, targets: pd.Series
    ) -> ModelMetrics:
        """Fit the model for ``timeframe``.

        Args:
            timeframe: Timeframe key, e.g. "1h" or "1d".
            features: One row per sample, columns in the feature-vector order.
            targets: Fractional price change observed after each sample.

        Returns:
            Holdout metrics from the fit.
        """
        ...

    @abstractmethod
    def predict(self, features: np.ndarray, timeframe: str) -> tuple[float, float]:
        """Predict the fractional price change for one feature vector."""
        ...

    @abstractmethod
    def is_trained(self, timeframe: str) -> bool:
        ...

    def get_metrics(self, timeframe: str) -> ModelMetrics:
        return self._metrics.get(timeframe, ModelMetrics())

    # ------------------------------------------------------------------
    # Shared metric computation
    # ------------------------------------------------------------------

    @staticmethod
    def _compute_metrics(y_true: np.ndarray, y_pred: np.ndarray) -> ModelMetrics:
        """Compute standard regression + directional accuracy metrics."""
        valid = ~(np.isnan(y_true) | np.isnan(y_pred))
        y_true = y_true[valid]
        y_pred = y_pred[valid]

        if len(y_true) == 0:
            return ModelMetrics()

        residuals = y_true - y_pred
        mae = np.mean(np.abs(residuals))
        rmse = np.sqrt(np.mean(residuals ** 2))

        # Targets are already changes, so direction is the sign itself
        dir_acc = np.mean(np.sign(y_true) == np.sign(y_pred))

        ss_res = np.sum(residuals ** 2)
        ss_tot = np.sum((y_true - np.mean(y_true)) ** 2)
        r2 = 1 - (ss_res / ss_tot) if ss_tot > 0 else 0.0

        return ModelMetrics(
            mae=float(mae),
            rmse=float(rmse),
            directional_accuracy=float(dir_acc),
            r_squared=float(r2),
            samples=int(len(y_true)),
        )
