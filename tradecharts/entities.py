"""
Domain entities for the chart analysis core.

Value objects are frozen dataclasses: a PricePoint never changes after it is
created, and an AnalysisResult is built once per tick and then shared by every
broadcast receiver. Collections inside an AnalysisResult are stored as tuples
and read-only mappings for the same reason.

No framework imports and no IO here.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping


class TrendDirection(Enum):
    """Direction and strength of an expected move."""

    STRONG_BULLISH = "STRONG_BULLISH"
    BULLISH = "BULLISH"
    NEUTRAL = "NEUTRAL"
    BEARISH = "BEARISH"
    STRONG_BEARISH = "STRONG_BEARISH"


class PatternBias(Enum):
    """Directional reading of a detected pattern."""

    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    NEUTRAL = "NEUTRAL"


class PatternType(Enum):
    """Every chart, candlestick and long-horizon pattern the detector emits."""

    SUPPORT = "SUPPORT"
    RESISTANCE = "RESISTANCE"
    UPTREND = "UPTREND"
    DOWNTREND = "DOWNTREND"
    HEAD_SHOULDERS = "HEAD_SHOULDERS"
    DOUBLE_TOP = "DOUBLE_TOP"
    DOUBLE_BOTTOM = "DOUBLE_BOTTOM"
    TRIANGLE = "TRIANGLE"
    BULLISH_ENGULFING = "BULLISH_ENGULFING"
    BEARISH_ENGULFING = "BEARISH_ENGULFING"
    DOJI = "DOJI"
    WEEKLY_UPTREND = "WEEKLY_UPTREND"
    WEEKLY_DOWNTREND = "WEEKLY_DOWNTREND"
    WEEKLY_HIGH_VOLATILITY = "WEEKLY_HIGH_VOLATILITY"
    WEEKLY_CONSOLIDATION = "WEEKLY_CONSOLIDATION"
    WEEKLY_SUPPORT = "WEEKLY_SUPPORT"
    WEEKLY_RESISTANCE = "WEEKLY_RESISTANCE"

    @property
    def bias(self) -> PatternBias:
        return _PATTERN_BIAS[self]


_PATTERN_BIAS: dict[PatternType, PatternBias] = {
    PatternType.SUPPORT: PatternBias.BULLISH,
    PatternType.RESISTANCE: PatternBias.BEARISH,
    PatternType.UPTREND: PatternBias.BULLISH,
    PatternType.DOWNTREND: PatternBias.BEARISH,
    PatternType.HEAD_SHOULDERS: PatternBias.BEARISH,
    PatternType.DOUBLE_TOP: PatternBias.BEARISH,
    PatternType.DOUBLE_BOTTOM: PatternBias.BULLISH,
    PatternType.TRIANGLE: PatternBias.NEUTRAL,
    PatternType.BULLISH_ENGULFING: PatternBias.BULLISH,
    PatternType.BEARISH_ENGULFING: PatternBias.BEARISH,
    PatternType.DOJI: PatternBias.NEUTRAL,
    PatternType.WEEKLY_UPTREND: PatternBias.BULLISH,
    PatternType.WEEKLY_DOWNTREND: PatternBias.BEARISH,
    PatternType.WEEKLY_HIGH_VOLATILITY: PatternBias.NEUTRAL,
    PatternType.WEEKLY_CONSOLIDATION: PatternBias.NEUTRAL,
    PatternType.WEEKLY_SUPPORT: PatternBias.BULLISH,
    PatternType.WEEKLY_RESISTANCE: PatternBias.BEARISH,
}


class ZoneBias(Enum):
    """Reading attached to a Fibonacci zone."""

    SUPPORT = "SUPPORT"
    RESISTANCE = "RESISTANCE"
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"


class TradingSignal(Enum):
    """Action derived from the main prediction."""

    STRONG_BUY = "STRONG_BUY"
    BUY = "BUY"
    HOLD = "HOLD"
    SELL = "SELL"
    STRONG_SELL = "STRONG_SELL"


@dataclass(frozen=True)
class PricePoint:
    """A single OHLCV observation for one symbol.

    Live ticks carry the last traded price in all four OHLC fields.
    """

    symbol: str
    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float

    @property
    def price(self) -> float:
        return self.close

    @classmethod
    def from_tick(
        cls, symbol: str, price: float, volume: float, timestamp: int
    ) -> "PricePoint":
        return cls(
            symbol=symbol,
            timestamp=timestamp,
            open=price,
            high=price,
            low=price,
            close=price,
            volume=volume,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "timestamp": self.timestamp,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }


@dataclass(frozen=True)
class Pattern:
    """A detected chart or candlestick pattern."""

    symbol: str
    pattern_type: PatternType
    price_level: float
    confidence: float
    description: str
    timestamp: int

    @property
    def bias(self) -> PatternBias:
        return self.pattern_type.bias

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "patternType": self.pattern_type.value,
            "priceLevel": self.price_level,
            "confidence": self.confidence,
            "description": self.description,
            "timestamp": self.timestamp,
            "bias": self.bias.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Pattern":
        return cls(
            symbol=data["symbol"],
            pattern_type=PatternType(data["patternType"]),
            price_level=float(data["priceLevel"]),
            confidence=float(data["confidence"]),
            description=data.get("description", ""),
            timestamp=int(data["timestamp"]),
        )


@dataclass(frozen=True)
class FibonacciZone:
    """A projected Fibonacci time zone or retracement level."""

    symbol: str
    label: str
    start_timestamp: int
    end_timestamp: int
    start_price: float
    end_price: float
    strength: float
    description: str
    bias: ZoneBias

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "label": self.label,
            "startTimestamp": self.start_timestamp,
            "endTimestamp": self.end_timestamp,
            "startPrice": self.start_price,
            "endPrice": self.end_price,
            "strength": self.strength,
            "description": self.description,
            "bias": self.bias.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FibonacciZone":
        return cls(
            symbol=data["symbol"],
            label=data["label"],
            start_timestamp=int(data["startTimestamp"]),
            end_timestamp=int(data["endTimestamp"]),
            start_price=float(data["startPrice"]),
            end_price=float(data["endPrice"]),
            strength=float(data["strength"]),
            description=data.get("description", ""),
            bias=ZoneBias(data["bias"]),
        )


@dataclass(frozen=True)
class PriceTargets:
    """Conservative / expected / optimistic price targets for a prediction."""

    conservative: float
    expected: float
    optimistic: float

    def to_dict(self) -> dict[str, float]:
        return {
            "conservative": self.conservative,
            "expected": self.expected,
            "optimistic": self.optimistic,
        }


@dataclass(frozen=True)
class Prediction:
    """A price prediction for one symbol over one timeframe."""

    symbol: str
    timeframe: str
    predicted_price: float
    confidence: float
    trend: TrendDirection
    price_targets: PriceTargets
    model: str = "heuristic"
    timestamp: int = 0

    @property
    def confidence_level(self) -> str:
        if self.confidence > 0.8:
            return "HIGH"
        if self.confidence > 0.6:
            return "MEDIUM"
        return "LOW"

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "timeframe": self.timeframe,
            "predictedPrice": self.predicted_price,
            "confidence": self.confidence,
            "confidenceLevel": self.confidence_level,
            "trend": self.trend.value,
            "priceTargets": self.price_targets.to_dict(),
            "model": self.model,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Prediction":
        targets = data.get("priceTargets") or {}
        predicted = float(data["predictedPrice"])
        return cls(
            symbol=data["symbol"],
            timeframe=data["timeframe"],
            predicted_price=predicted,
            confidence=float(data["confidence"]),
            trend=TrendDirection(data["trend"]),
            price_targets=PriceTargets(
                conservative=float(targets.get("conservative", predicted)),
                expected=float(targets.get("expected", predicted)),
                optimistic=float(targets.get("optimistic", predicted)),
            ),
            model=data.get("model", "heuristic"),
            timestamp=int(data.get("timestamp", 0)),
        )


MAIN_TIMEFRAME = "1d"


@dataclass(frozen=True)
class AnalysisResult:
    """Everything computed for one symbol on one tick.

    Built fresh for every tick and never mutated afterwards, so a single
    instance can be handed to any number of concurrent broadcast receivers.
    """

    symbol: str
    current_price: float
    predictions: Mapping[str, Prediction]
    patterns: tuple[Pattern, ...] = ()
    fibonacci_zones: tuple[FibonacciZone, ...] = ()
    timestamp: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "predictions", MappingProxyType(dict(self.predictions))
        )
        object.__setattr__(self, "patterns", tuple(self.patterns))
        object.__setattr__(self, "fibonacci_zones", tuple(self.fibonacci_zones))

    @property
    def main_prediction(self) -> Prediction | None:
        return self.predictions.get(MAIN_TIMEFRAME)

    @property
    def predicted_price(self) -> float:
        main = self.main_prediction
        return main.predicted_price if main is not None else self.current_price

    @property
    def confidence(self) -> float:
        main = self.main_prediction
        return main.confidence if main is not None else 0.1

    @property
    def trading_signal(self) -> TradingSignal:
        """Map the main prediction's move and confidence to an action."""
        main = self.main_prediction
        if main is None or self.current_price <= 0:
            return TradingSignal.HOLD

        change_pct = (main.predicted_price - self.current_price) / self.current_price * 100
        confidence = main.confidence

        if change_pct > 2.0 and confidence > 0.7:
            return TradingSignal.STRONG_BUY
        if change_pct > 0.5 and confidence > 0.6:
            return TradingSignal.BUY
        if change_pct < -2.0 and confidence > 0.7:
            return TradingSignal.STRONG_SELL
        if change_pct < -0.5 and confidence > 0.6:
            return TradingSignal.SELL
        return TradingSignal.HOLD

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "currentPrice": self.current_price,
            "timeframePredictions": {
                tf: pred.to_dict() for tf, pred in self.predictions.items()
            },
            "chartPatterns": [p.to_dict() for p in self.patterns],
            "fibonacciTimeZones": [z.to_dict() for z in self.fibonacci_zones],
            "timestamp": self.timestamp,
            "predictedPrice": self.predicted_price,
            "confidence": self.confidence,
            "tradingSignal": self.trading_signal.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AnalysisResult":
        return cls(
            symbol=data["symbol"],
            current_price=float(data["currentPrice"]),
            predictions={
                tf: Prediction.from_dict(pred)
                for tf, pred in (data.get("timeframePredictions") or {}).items()
            },
            patterns=tuple(
                Pattern.from_dict(p) for p in data.get("chartPatterns") or []
            ),
            fibonacci_zones=tuple(
                FibonacciZone.from_dict(z) for z in data.get("fibonacciTimeZones") or []
            ),
            timestamp=int(data.get("timestamp", 0)),
        )

