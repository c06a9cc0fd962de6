"""
Assembles an AnalysisResult from a price snapshot.

Runs the pattern detector, the Fibonacci calculator and the prediction
orchestrator over read-only windows of the snapshot. A stage that fails
contributes nothing; the other stages still report.
"""

import logging
from typing import Sequence

from tradecharts.config import AnalysisConfig
from tradecharts.entities import AnalysisResult, FibonacciZone, Pattern, PricePoint, Prediction
from tradecharts.fibonacci import FibonacciZoneCalculator
from tradecharts.models.registry import ModelRegistry
from tradecharts.orchestrator import PredictionOrchestrator
from tradecharts.patterns.detector import PatternDetector

logger = logging.getLogger(__name__)


class MarketAnalyzer:
    """Full per-tick analysis for one symbol."""

    def __init__(
        self,
        cfg: AnalysisConfig | None = None,
        registry: ModelRegistry | None = None,
    ) -> None:
        self._cfg = cfg or AnalysisConfig()
        self.detector = PatternDetector(self._cfg.patterns)
        self.fibonacci = FibonacciZoneCalculator(self._cfg.fibonacci)
        self.orchestrator = PredictionOrchestrator(self._cfg.timeframes, registry)

    @property
    def max_lookback(self) -> int:
        """Largest window any stage reads; callers need not snapshot more."""
        lookbacks = [tf.lookback for tf in self._cfg.timeframes.values()]
        return max([self._cfg.pattern_window, self._cfg.fibonacci_window, *lookbacks])

    def analyze(self, symbol: str, points: Sequence[PricePoint]) -> AnalysisResult | None:
        """Analyze ``points`` (oldest first). Returns None for an empty snapshot."""
        if not points:
            return None

        latest = points[-1]
        patterns = self._patterns(symbol, points[-self._cfg.pattern_window:])
        zones = self._zones(symbol, points[-self._cfg.fibonacci_window:])
        predictions = self._predictions(symbol, points)

        result = AnalysisResult(
            symbol=symbol,
            current_price=latest.close,
            predictions=predictions,
            patterns=tuple(patterns),
            fibonacci_zones=tuple(zones),
            timestamp=latest.timestamp,
        )
        logger.debug(
            "Analysis for %s: price=%.4f patterns=%d zones=%d signal=%s",
            symbol, latest.close, len(patterns), len(zones), result.trading_signal.value,
        )
        return result

    def _patterns(self, symbol: str, window: Sequence[PricePoint]) -> list[Pattern]:
        try:
            return self.detector.detect(symbol, window)
        except Exception:
            logger.exception("Pattern detection failed for %s", symbol)
            return []

    def _zones(self, symbol: str, window: Sequence[PricePoint]) -> list[FibonacciZone]:
        try:
            return self.fibonacci.calculate(symbol, window)
        except Exception:
            logger.exception("Fibonacci calculation failed for %s", symbol)
            return []

    def _predictions(self, symbol: str, points: Sequence[PricePoint]) -> dict[str, Prediction]:
        try:
            return self.orchestrator.predict_all(symbol, points)
        except Exception:
            logger.exception("Prediction failed for %s", symbol)
            return {}
