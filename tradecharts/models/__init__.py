"""
Prediction models sub-package.

Every model implements `ModelProvider`:
    train(timeframe, X, y) → predict(features, timeframe) → (change, confidence)

- `LinearModelProvider` : numpy ridge regression, one fit per timeframe
- `ModelRegistry`       : timeframe → provider lookup used by the orchestrator
- `TrainingSetBuilder`  : sliding-window (features, target) frames from history
"""

from tradecharts.models.base import ModelMetrics, ModelProvider
from tradecharts.models.linear import LinearModelProvider
from tradecharts.models.registry import ModelRegistry
from tradecharts.models.training import TrainingReport, TrainingSetBuilder

__all__ = [
    "LinearModelProvider",
    "ModelMetrics",
    "ModelProvider",
    "ModelRegistry",
    "TrainingReport",
    "TrainingSetBuilder",
]
