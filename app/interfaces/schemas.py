"""
Pydantic schemas for the market API.

Response models mirror the camelCase wire format used on the WebSocket so a
client can share one parser for both transports.
"""

from pydantic import BaseModel, ConfigDict, Field

SYMBOL_DESCRIPTION = "Base asset symbol, e.g. BTC"
SYMBOL_PATTERN = r"^[A-Za-z0-9]+$"
SYMBOL_MAX_LEN = 15


class HealthResponse(BaseModel):
    """Response schema for the health check endpoint."""

    status: str
    version: str


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    detail: str | None = None


class SymbolsResponse(BaseModel):
    """Symbols with cached history plus the configured tracked set."""

    symbols: list[str]
    tracked: list[str]


class PricePointItem(BaseModel):
    symbol: str
    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float


class SeriesResponse(BaseModel):
    symbol: str
    count: int
    points: list[PricePointItem]


class PriceTargetsItem(BaseModel):
    conservative: float
    expected: float
    optimistic: float


class PredictionItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    symbol: str
    timeframe: str
    predicted_price: float = Field(alias="predictedPrice")
    confidence: float
    trend: str
    price_targets: PriceTargetsItem = Field(alias="priceTargets")
    confidence_level: str = Field(alias="confidenceLevel")
    model: str
    timestamp: int


class PatternItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    symbol: str
    pattern_type: str = Field(alias="patternType")
    price_level: float = Field(alias="priceLevel")
    confidence: float
    description: str
    bias: str
    timestamp: int


class FibonacciZoneItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    symbol: str
    label: str
    start_timestamp: int = Field(alias="startTimestamp")
    end_timestamp: int = Field(alias="endTimestamp")
    start_price: float = Field(alias="startPrice")
    end_price: float = Field(alias="endPrice")
    strength: float
    description: str
    bias: str


class AnalysisResponse(BaseModel):
    """Full analysis of one symbol.

    Attributes:
        timeframe_predictions: One prediction per timeframe (1h, 4h, 1d, 1w, 1m).
        predicted_price: Main (1d) predicted price, or the current price.
        trading_signal: BUY, SELL or HOLD derived from the main prediction.
    """

    model_config = ConfigDict(populate_by_name=True)

    symbol: str
    current_price: float = Field(alias="currentPrice")
    timeframe_predictions: dict[str, PredictionItem] = Field(alias="timeframePredictions")
    chart_patterns: list[PatternItem] = Field(alias="chartPatterns")
    fibonacci_time_zones: list[FibonacciZoneItem] = Field(alias="fibonacciTimeZones")
    timestamp: int
    predicted_price: float = Field(alias="predictedPrice")
    confidence: float
    trading_signal: str = Field(alias="tradingSignal")


class RefreshRequest(BaseModel):
    """Symbols to re-analyze; all cached symbols when omitted."""

    symbols: list[str] | None = Field(
        default=None,
        max_length=50,
        description="Base asset symbols to refresh",
    )


class RefreshResponse(BaseModel):
    refreshed: dict[str, bool]


class RealtimeStatusResponse(BaseModel):
    """Pipeline status: feeds, hub, ingestion counters and trained models."""

    symbols: dict[str, dict]
    feeds_running: bool
    hub: dict
    ingestor: dict
    models: list[str]
