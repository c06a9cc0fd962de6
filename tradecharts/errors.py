"""
Errors for the chart analysis core.

Every failure mode in the pipeline degrades to a safe default: callers catch
these, log them and substitute a neutral result. None of them is allowed to
stop ingestion or broadcasting. The API layer maps them to HTTP responses.
"""


class ChartAnalysisError(Exception):
    """Base error for all chart analysis errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)


class DataInsufficientError(ChartAnalysisError):
    """Raised when a computation needs more price points than are available."""

    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            f"Insufficient data: required {required} points, available {available}"
        )
        self.required = required
        self.available = available


class InvalidTickError(ChartAnalysisError):
    """Raised when an inbound tick is malformed or carries a non-positive price."""

    def __init__(self, symbol: str, reason: str) -> None:
        super().__init__(f"Invalid tick for {symbol}: {reason}")
        self.symbol = symbol
        self.reason = reason


class TransportError(ChartAnalysisError):
    """Raised when a feed or subscriber connection fails."""

    def __init__(self, target: str, reason: str) -> None:
        super().__init__(f"Transport failure on {target}: {reason}")
        self.target = target
        self.reason = reason


class SerializationError(ChartAnalysisError):
    """Raised when an analysis result cannot be encoded for the wire."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Serialization failed: {reason}")
        self.reason = reason


class SymbolNotFoundError(ChartAnalysisError):
    """Raised by the query surface when no data is cached for a symbol."""

    def __init__(self, symbol: str) -> None:
        super().__init__(f"Symbol not found: {symbol}")
        self.symbol = symbol
