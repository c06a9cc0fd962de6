"""
Tests for multi-timeframe prediction and analysis assembly.

Covers:
- Insufficient-data fallback per timeframe
- Confidence and maximum-move bounds
- Price target ordering (including the optimistic-target quirk)
- ModelProvider integration and its failure modes
- MarketAnalyzer result assembly
"""

import math

import numpy as np
import pandas as pd
import pytest

from tradecharts.config import DEFAULT_TIMEFRAMES
from tradecharts.entities import PatternType, PricePoint, TradingSignal, TrendDirection
from tradecharts.models.base import ModelMetrics, ModelProvider
from tradecharts.models.registry import ModelRegistry
from tradecharts.orchestrator import (
    PredictionOrchestrator,
    price_targets,
    trend_from_change,
)

MAX_MOVES = {tf.name: tf.max_move for tf in DEFAULT_TIMEFRAMES}


def _points(prices, symbol: str = "BTC") -> list[PricePoint]:
    return [
        PricePoint.from_tick(symbol, float(p), 5.0, 1_700_000_000_000 + i * 1000)
        for i, p in enumerate(prices)
    ]


class _FixedProvider(ModelProvider):
    """Always predicts the same (change, confidence)."""

    def __init__(self, change: float, confidence: float, trained: bool = True) -> None:
        super().__init__(name="fixed")
        self.change = change
        self.confidence = confidence
        self.trained = trained
        self.calls: list[tuple[int, str]] = []

    def train(self, timeframe: str, features: pd.DataFrame, targets: pd.Series) -> ModelMetrics:
        return ModelMetrics()

    def predict(self, features: np.ndarray, timeframe: str) -> tuple[float, float]:
        self.calls.append((len(features), timeframe))
        return self.change, self.confidence

    def is_trained(self, timeframe: str) -> bool:
        return self.trained


class _BrokenProvider(_FixedProvider):
    def predict(self, features: np.ndarray, timeframe: str) -> tuple[float, float]:
        raise RuntimeError("model exploded")


class TestInsufficientData:

    def test_five_ticks_weekly_is_neutral_fallback(self) -> None:
        orchestrator = PredictionOrchestrator()
        window = _points([100, 101, 102, 103, 104])
        prediction = orchestrator.predict("BTC", "1w", window)

        assert prediction.confidence <= 0.4
        assert prediction.trend is TrendDirection.NEUTRAL
        assert prediction.predicted_price == 104.0
        assert prediction.model == "heuristic"

    @pytest.mark.parametrize("timeframe,minimum", [
        ("1h", 5), ("4h", 5), ("1d", 10), ("1w", 20), ("1m", 30),
    ])
    def test_minimum_per_timeframe(self, timeframe: str, minimum: int) -> None:
        orchestrator = PredictionOrchestrator()
        prices = np.linspace(100, 130, minimum)

        short = orchestrator.predict("BTC", timeframe, _points(prices[:-1]))
        enough = orchestrator.predict("BTC", timeframe, _points(prices))

        assert short.trend is TrendDirection.NEUTRAL
        assert short.confidence <= 0.4
        assert enough.trend is not TrendDirection.NEUTRAL

    def test_unknown_timeframe(self) -> None:
        prediction = PredictionOrchestrator().predict("BTC", "3y", _points([100] * 50))
        assert prediction.confidence == 0.1
        assert prediction.model == "fallback"
        assert prediction.trend is TrendDirection.NEUTRAL

    def test_empty_inputs(self) -> None:
        orchestrator = PredictionOrchestrator()
        assert orchestrator.predict_all("BTC", []) == {}
        prediction = orchestrator.predict("BTC", "1h", [])
        assert prediction.predicted_price == 0.0
        assert prediction.trend is TrendDirection.NEUTRAL


class TestBounds:

    @pytest.mark.parametrize("seed", range(8))
    def test_confidence_and_max_move(self, seed: int) -> None:
        rng = np.random.default_rng(seed)
        steps = rng.normal(0, 3, 400) * (seed + 1)
        prices = np.maximum(100 + np.cumsum(steps), 0.5)
        points = _points(prices)

        predictions = PredictionOrchestrator().predict_all("BTC", points)
        assert set(predictions) == {"1h", "4h", "1d", "1w", "1m"}
        current = points[-1].close
        for name, prediction in predictions.items():
            assert 0.1 <= prediction.confidence <= 0.95
            move = abs(prediction.predicted_price - current) / current
            assert move <= MAX_MOVES[name] + 1e-9

    def test_rising_series_predicts_upward(self) -> None:
        points = _points(np.linspace(100, 200, 101))
        predictions = PredictionOrchestrator().predict_all("BTC", points)
        for name in ("4h", "1d", "1w", "1m"):
            assert predictions[name].predicted_price > 200.0
            assert predictions[name].trend in (
                TrendDirection.BULLISH, TrendDirection.STRONG_BULLISH,
            )

    def test_monthly_volatility_term_is_bounded(self) -> None:
        from tradecharts.features.indicators import weighted_trend

        prices = np.linspace(100, 200, 101)
        # -2.0 * relative volatility (~0.19) is clipped to -0.3
        expected = 200.0 * (1 + 0.8 * weighted_trend(prices) - 0.3)
        prediction = PredictionOrchestrator().predict("BTC", "1m", _points(prices))
        assert prediction.predicted_price == pytest.approx(expected)


class TestPriceTargets:

    def test_conservative_never_above_expected(self) -> None:
        for confidence in np.linspace(0.0, 1.0, 21):
            targets = price_targets(100.0, float(confidence))
            assert targets.conservative <= targets.expected == 100.0

    def test_optimistic_can_fall_below_expected_at_low_confidence(self) -> None:
        low = price_targets(100.0, 0.5)
        high = price_targets(100.0, 0.9)
        assert low.optimistic == pytest.approx(65.0)
        assert low.optimistic < low.expected
        assert high.optimistic > high.expected

    @pytest.mark.parametrize("change,expected", [
        (0.06, TrendDirection.STRONG_BULLISH),
        (0.02, TrendDirection.BULLISH),
        (0.0, TrendDirection.NEUTRAL),
        (-0.02, TrendDirection.BEARISH),
        (-0.06, TrendDirection.STRONG_BEARISH),
    ])
    def test_trend_from_change(self, change: float, expected: TrendDirection) -> None:
        assert trend_from_change(change) is expected


class TestModelProviders:

    def _orchestrator(self, provider: ModelProvider, timeframe: str = "1d") -> PredictionOrchestrator:
        registry = ModelRegistry()
        registry.register(timeframe, provider)
        return PredictionOrchestrator(registry=registry)

    def test_provider_output_is_clamped(self) -> None:
        provider = _FixedProvider(change=0.5, confidence=0.9)
        orchestrator = self._orchestrator(provider)
        points = _points(np.linspace(100, 110, 60))

        prediction = orchestrator.predict("BTC", "1d", points)
        assert prediction.model == "fixed"
        assert prediction.predicted_price == pytest.approx(110.0 * 1.05)
        assert prediction.trend in (TrendDirection.BULLISH, TrendDirection.STRONG_BULLISH)
        assert 0.1 <= prediction.confidence <= 0.95
        assert provider.calls == [(15, "1d")]

    def test_negative_provider_output(self) -> None:
        orchestrator = self._orchestrator(_FixedProvider(change=-0.01, confidence=0.5), "1h")
        prediction = orchestrator.predict("BTC", "1h", _points(np.linspace(100, 110, 60)))
        assert prediction.predicted_price == pytest.approx(110.0 * 0.99)
        assert prediction.trend is TrendDirection.NEUTRAL

    def test_non_finite_output_falls_back_to_heuristic(self) -> None:
        orchestrator = self._orchestrator(_FixedProvider(change=math.nan, confidence=0.9))
        prediction = orchestrator.predict("BTC", "1d", _points(np.linspace(100, 110, 60)))
        assert prediction.model == "heuristic"
        assert math.isfinite(prediction.predicted_price)

    def test_untrained_provider_is_ignored(self) -> None:
        provider = _FixedProvider(change=0.5, confidence=0.9, trained=False)
        orchestrator = self._orchestrator(provider)
        prediction = orchestrator.predict("BTC", "1d", _points(np.linspace(100, 110, 60)))
        assert prediction.model == "heuristic"
        assert provider.calls == []

    def test_failing_provider_only_affects_its_timeframe(self) -> None:
        orchestrator = self._orchestrator(_BrokenProvider(change=0.0, confidence=0.5))
        predictions = orchestrator.predict_all("BTC", _points(np.linspace(100, 110, 60)))

        assert predictions["1d"].model == "fallback"
        assert predictions["1d"].trend is TrendDirection.NEUTRAL
        assert predictions["1d"].confidence == 0.4
        assert all(predictions[tf].model == "heuristic" for tf in ("1h", "4h", "1w", "1m"))

    def test_registry_lookup(self) -> None:
        registry = ModelRegistry()
        trained = _FixedProvider(0.0, 0.5)
        untrained = _FixedProvider(0.0, 0.5, trained=False)
        registry.register("1h", trained)
        registry.register("1d", untrained)

        assert registry.get("1h") is trained
        assert registry.get("1d") is None
        assert registry.timeframes() == ["1d", "1h"]
        registry.unregister("1h")
        assert len(registry) == 1


class TestMarketAnalyzer:

    def test_empty_snapshot(self) -> None:
        from tradecharts.analysis import MarketAnalyzer

        assert MarketAnalyzer().analyze("BTC", []) is None

    def test_full_result(self) -> None:
        from tradecharts.analysis import MarketAnalyzer

        points = _points(np.linspace(100, 200, 101))
        result = MarketAnalyzer().analyze("BTC", points)

        assert result.symbol == "BTC"
        assert result.current_price == 200.0
        assert result.timestamp == points[-1].timestamp
        assert set(result.predictions) == {"1h", "4h", "1d", "1w", "1m"}
        assert any(p.pattern_type is PatternType.UPTREND for p in result.patterns)
        assert result.predicted_price == result.predictions["1d"].predicted_price
        assert result.trading_signal in (TradingSignal.BUY, TradingSignal.STRONG_BUY)

    def test_result_is_immutable(self) -> None:
        from tradecharts.analysis import MarketAnalyzer

        result = MarketAnalyzer().analyze("BTC", _points(np.linspace(100, 200, 101)))
        with pytest.raises(TypeError):
            result.predictions["1d"] = None
        assert isinstance(result.patterns, tuple)

    def test_failing_stage_is_isolated(self) -> None:
        from unittest.mock import patch

        from tradecharts.analysis import MarketAnalyzer

        analyzer = MarketAnalyzer()
        with patch.object(analyzer.fibonacci, "calculate", side_effect=RuntimeError("boom")):
            result = analyzer.analyze("BTC", _points(np.linspace(100, 200, 101)))
        assert result.fibonacci_zones == ()
        assert result.patterns
        assert len(result.predictions) == 5

    def test_max_lookback(self) -> None:
        from tradecharts.analysis import MarketAnalyzer

        assert MarketAnalyzer().max_lookback == 2000

    def test_hold_without_main_prediction(self) -> None:
        from tradecharts.entities import AnalysisResult

        result = AnalysisResult("BTC", 100.0, {})
        assert result.trading_signal is TradingSignal.HOLD
        assert result.confidence == 0.1
        assert result.predicted_price == 100.0
