"""
Multi-timeframe price prediction.

For each timeframe the orchestrator checks that enough history is available,
computes trend / momentum / volatility / RSI over the window, and turns them
into a bounded expected move. When a trained ModelProvider is registered for
the timeframe its output replaces the heuristic move, still clamped to the
timeframe's maximum move.

A failure in one timeframe never affects the others: it degrades to a
neutral, low-confidence prediction at the current price.
"""

import logging
import math
from typing import Mapping, Sequence

from tradecharts.config import DEFAULT_TIMEFRAMES, TimeframeSpec
from tradecharts.entities import PricePoint, Prediction, PriceTargets, TrendDirection
from tradecharts.errors import DataInsufficientError
from tradecharts.features import indicators as ind
from tradecharts.features.vectors import build_features
from tradecharts.models.registry import ModelRegistry

logger = logging.getLogger(__name__)

MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 0.95
VOLATILITY_TERM_BOUND = 0.3


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def price_targets(predicted_price: float, confidence: float) -> PriceTargets:
    """Conservative / expected / optimistic targets around ``predicted_price``.

    conservative <= expected holds for any confidence in [0, 1]. optimistic is
    ``1.3 * confidence`` times the expected price, so it falls below expected
    when confidence is under ~0.77.
    """
    return PriceTargets(
        conservative=predicted_price * (0.7 + 0.3 * confidence),
        expected=predicted_price,
        optimistic=predicted_price * 1.3 * confidence,
    )


def trend_from_change(change: float) -> TrendDirection:
    """Classify a fractional move: beyond ±5% is strong, beyond ±1.5% directional."""
    pct = change * 100
    if pct > 5.0:
        return TrendDirection.STRONG_BULLISH
    if pct > 1.5:
        return TrendDirection.BULLISH
    if pct > -1.5:
        return TrendDirection.NEUTRAL
    if pct > -5.0:
        return TrendDirection.BEARISH
    return TrendDirection.STRONG_BEARISH


def trend_from_signals(trend: float, momentum: float, rsi: float) -> TrendDirection:
    if trend > 0.03 and momentum > 0 and rsi > 60:
        return TrendDirection.STRONG_BULLISH
    if trend > 0 or (momentum > 0 and rsi > 50):
        return TrendDirection.BULLISH
    if trend < -0.03 and momentum < 0 and rsi < 40:
        return TrendDirection.STRONG_BEARISH
    if trend < 0 or (momentum < 0 and rsi < 50):
        return TrendDirection.BEARISH
    return TrendDirection.NEUTRAL


class PredictionOrchestrator:
    """Produces one Prediction per configured timeframe.

    Args:
        timeframes: Timeframe table; defaults to 1h / 4h / 1d / 1w / 1m.
        registry: Optional model registry. Without one, or without a trained
            provider for a timeframe, the deterministic heuristic is used.
    """

    def __init__(
        self,
        timeframes: Mapping[str, TimeframeSpec] | None = None,
        registry: ModelRegistry | None = None,
    ) -> None:
        self._timeframes = dict(timeframes) if timeframes else {
            tf.name: tf for tf in DEFAULT_TIMEFRAMES
        }
        self._registry = registry or ModelRegistry()

    @property
    def timeframes(self) -> list[str]:
        return list(self._timeframes)

    @property
    def registry(self) -> ModelRegistry:
        return self._registry

    def predict_all(
        self, symbol: str, points: Sequence[PricePoint]
    ) -> dict[str, Prediction]:
        """Predict every timeframe, each over its own trailing lookback."""
        if not points:
            return {}
        results = {}
        for name, spec in self._timeframes.items():
            window = points[-spec.lookback:] if len(points) > spec.lookback else points
            results[name] = self.predict(symbol, name, window)
        return results

    def predict(
        self, symbol: str, timeframe: str, window: Sequence[PricePoint]
    ) -> Prediction:
        """Predict ``timeframe`` from ``window`` (oldest first). Never raises."""
        spec = self._timeframes.get(timeframe)
        current = window[-1].close if window else 0.0
        timestamp = window[-1].timestamp if window else 0

        if spec is None:
            logger.warning("Unknown timeframe %s requested for %s", timeframe, symbol)
            return self._fallback(symbol, timeframe, current, timestamp, 0.1, "fallback")

        try:
            return self._predict(symbol, spec, window, current, timestamp)
        except DataInsufficientError as exc:
            logger.debug("%s %s: %s", symbol, timeframe, exc.message)
            return self._fallback(
                symbol, timeframe, current, timestamp, spec.fallback_confidence, "heuristic"
            )
        except Exception:
            logger.exception("Prediction failed for %s %s", symbol, timeframe)
            return self._fallback(
                symbol, timeframe, current, timestamp, spec.fallback_confidence, "fallback"
            )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _predict(
        self,
        symbol: str,
        spec: TimeframeSpec,
        window: Sequence[PricePoint],
        current: float,
        timestamp: int,
    ) -> Prediction:
        if len(window) < spec.min_points:
            raise DataInsufficientError(spec.min_points, len(window))

        prices = [p.close for p in window]
        trend = ind.weighted_trend(prices)
        momentum = ind.mean_return(prices)
        volatility = ind.relative_volatility(prices)
        rsi = ind.rsi(prices, 14)

        change = self._heuristic_change(spec, trend, momentum, volatility)
        confidence = self._confidence(spec, trend, volatility, len(window))
        direction = trend_from_signals(trend, momentum, rsi)
        model_name = "heuristic"

        provider = self._registry.get(spec.name)
        if provider is not None:
            features = build_features(window, spec.name)
            value, provider_confidence = provider.predict(features.as_array(), spec.name)
            if math.isfinite(value) and math.isfinite(provider_confidence):
                change = _clamp(value, -spec.max_move, spec.max_move)
                confidence = (confidence + _clamp(provider_confidence, 0.0, 1.0)) / 2
                direction = trend_from_change(change)
                model_name = provider.name
            else:
                logger.warning(
                    "Provider %s returned a non-finite value for %s %s; using heuristic",
                    provider.name, symbol, spec.name,
                )

        confidence = _clamp(confidence, MIN_CONFIDENCE, MAX_CONFIDENCE)
        predicted = current * (1 + change)

        logger.debug(
            "%s %s: trend=%.4f momentum=%.4f vol=%.4f rsi=%.1f -> change=%.4f conf=%.2f",
            symbol, spec.name, trend, momentum, volatility, rsi, change, confidence,
        )
        return Prediction(
            symbol=symbol,
            timeframe=spec.name,
            predicted_price=predicted,
            confidence=confidence,
            trend=direction,
            price_targets=price_targets(predicted, confidence),
            model=model_name,
            timestamp=timestamp,
        )

    @staticmethod
    def _heuristic_change(
        spec: TimeframeSpec, trend: float, momentum: float, volatility: float
    ) -> float:
        volatility_term = _clamp(
            spec.volatility_weight * volatility, -VOLATILITY_TERM_BOUND, VOLATILITY_TERM_BOUND
        )
        raw = spec.trend_weight * trend + spec.momentum_weight * momentum + volatility_term
        return _clamp(raw, -spec.max_move, spec.max_move)

    @staticmethod
    def _confidence(spec: TimeframeSpec, trend: float, volatility: float, size: int) -> float:
        trend_term = min(1.0, abs(trend) * 10)
        data_term = min(1.0, size / 50.0)
        volatility_term = max(0.3, 1.0 - volatility * 3)
        return spec.base_confidence * (
            0.3 + trend_term * 0.3 + data_term * 0.2 + volatility_term * 0.2
        )

    @staticmethod
    def _fallback(
        symbol: str,
        timeframe: str,
        current: float,
        timestamp: int,
        confidence: float,
        model: str,
    ) -> Prediction:
        return Prediction(
            symbol=symbol,
            timeframe=timeframe,
            predicted_price=current,
            confidence=confidence,
            trend=TrendDirection.NEUTRAL,
            price_targets=price_targets(current, confidence),
            model=model,
            timestamp=timestamp,
        )
