"""
Centralized error handlers for FastAPI.

Maps chart analysis errors to HTTP responses.
No stack traces or internal details are exposed to clients.
All error responses use the ErrorResponse schema.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tradecharts.errors import (
    ChartAnalysisError,
    DataInsufficientError,
    SerializationError,
    SymbolNotFoundError,
)

logger = logging.getLogger(__name__)

HTTP_404 = 404
HTTP_422 = 422
HTTP_500 = 500


def _error_response(status_code: int, error: str, detail: str | None = None) -> JSONResponse:
    """Build a consistent JSON error response."""
    body: dict[str, str | None] = {"error": error}
    if detail:
        body["detail"] = detail
    return JSONResponse(status_code=status_code, content=body)


def register_error_handlers(app: FastAPI) -> None:
    """Register all chart analysis error handlers on the FastAPI application.

    Args:
        app: The FastAPI application instance.
    """

    @app.exception_handler(SymbolNotFoundError)
    async def handle_symbol_not_found(
        _request: Request, exc: SymbolNotFoundError
    ) -> JSONResponse:
        """Handle queries for symbols with no cached history."""
        logger.warning("Symbol not found: %s", exc.symbol)
        return _error_response(HTTP_404, "Symbol not found", exc.symbol)

    @app.exception_handler(DataInsufficientError)
    async def handle_data_insufficient(
        _request: Request, exc: DataInsufficientError
    ) -> JSONResponse:
        logger.warning("Insufficient data: %s", exc.message)
        return _error_response(
            HTTP_422,
            "Insufficient data",
            f"required {exc.required}, available {exc.available}",
        )

    @app.exception_handler(SerializationError)
    async def handle_serialization(
        _request: Request, exc: SerializationError
    ) -> JSONResponse:
        logger.error("Serialization error: %s", exc.reason)
        return _error_response(HTTP_500, "Analysis temporarily unavailable")

    @app.exception_handler(ChartAnalysisError)
    async def handle_chart_analysis(
        _request: Request, exc: ChartAnalysisError
    ) -> JSONResponse:
        """Catch-all for unhandled chart analysis errors."""
        logger.error("Unhandled chart analysis error: %s", exc.message)
        return _error_response(HTTP_500, "Internal server error")

    @app.exception_handler(Exception)
    async def handle_unexpected(
        _request: Request, exc: Exception
    ) -> JSONResponse:
        """Catch-all for unexpected errors. Never exposes internals."""
        logger.exception("Unexpected error: %s", type(exc).__name__)
        return _error_response(HTTP_500, "Internal server error")
