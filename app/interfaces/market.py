"""
FastAPI routers for market data and real-time streaming.

Provides:
- Cached symbols, price series and the latest analysis per symbol
- Manual refresh (re-analyze and re-broadcast)
- Pipeline status
- WebSocket endpoint for live price updates

All routes delegate to the MarketPipeline. No analysis logic here.
Error mapping is handled by centralized error handlers.
"""

import logging

from fastapi import APIRouter, Depends, Query, Request, WebSocket, WebSocketDisconnect

from app.interfaces.dependencies import get_pipeline, get_ws_pipeline
from app.interfaces.schemas import (
    AnalysisResponse,
    ErrorResponse,
    PricePointItem,
    RealtimeStatusResponse,
    RefreshRequest,
    RefreshResponse,
    SeriesResponse,
    SymbolsResponse,
)
from app.shared.security.rate_limiting import HEAVY_RATE_LIMIT, limiter
from tradecharts.errors import SymbolNotFoundError
from tradecharts.realtime.pipeline import MarketPipeline

logger = logging.getLogger(__name__)

market_router = APIRouter(prefix="/market", tags=["market"])
realtime_router = APIRouter(prefix="/realtime", tags=["realtime"])


# ------------------------------------------------------------------
# Market data
# ------------------------------------------------------------------


@market_router.get(
    "/symbols",
    response_model=SymbolsResponse,
    summary="List symbols",
    description="Symbols with cached history and the configured tracked set.",
)
def list_symbols(pipeline: MarketPipeline = Depends(get_pipeline)) -> SymbolsResponse:
    return SymbolsResponse(
        symbols=pipeline.symbols(),
        tracked=list(pipeline.tracked_symbols),
    )


@market_router.get(
    "/{symbol}/series",
    response_model=SeriesResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Cached price series",
    description="Most recent cached points for a symbol, oldest first.",
)
def get_series(
    symbol: str,
    limit: int | None = Query(default=None, ge=1, le=20000),
    pipeline: MarketPipeline = Depends(get_pipeline),
) -> SeriesResponse:
    """Return up to ``limit`` cached points for ``symbol``."""
    points = pipeline.series(symbol, limit)
    return SeriesResponse(
        symbol=symbol.upper(),
        count=len(points),
        points=[PricePointItem(**p.to_dict()) for p in points],
    )


@market_router.get(
    "/{symbol}/analysis",
    response_model=AnalysisResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Latest analysis",
    description="Patterns, Fibonacci zones and multi-timeframe predictions.",
)
@limiter.limit(HEAVY_RATE_LIMIT)
async def get_analysis(
    request: Request,
    symbol: str,
    pipeline: MarketPipeline = Depends(get_pipeline),
) -> AnalysisResponse:
    """Return the latest broadcast analysis, computing one if needed."""
    result = await pipeline.analysis(symbol)
    if result is None:
        raise SymbolNotFoundError(symbol.upper())
    return AnalysisResponse.model_validate(result.to_dict())


# ------------------------------------------------------------------
# Real-time control
# ------------------------------------------------------------------


@realtime_router.post(
    "/refresh",
    response_model=RefreshResponse,
    summary="Refresh analyses",
    description="Re-analyze the latest point of each symbol and re-broadcast it.",
)
@limiter.limit(HEAVY_RATE_LIMIT)
async def refresh(
    request: Request,
    body: RefreshRequest | None = None,
    pipeline: MarketPipeline = Depends(get_pipeline),
) -> RefreshResponse:
    symbols = body.symbols if body is not None else None
    return RefreshResponse(refreshed=await pipeline.refresh(symbols))


@realtime_router.get(
    "/status",
    response_model=RealtimeStatusResponse,
    summary="Pipeline status",
)
def status(pipeline: MarketPipeline = Depends(get_pipeline)) -> RealtimeStatusResponse:
    return RealtimeStatusResponse(**pipeline.status())


@realtime_router.websocket("/ws")
async def ws_updates(
    websocket: WebSocket,
    pipeline: MarketPipeline = Depends(get_ws_pipeline),
) -> None:
    """WebSocket endpoint for live price updates.

    Protocol (JSON):
        ← {"type": "welcome", "subscriberId": "...", "activeClients": 1}
        ← {"type": "price_update", "symbol": "BTC", "price": ..., "analysis": {...}}

        → {"action": "subscribe", "symbols": ["BTC", "SOL"]}
        ← {"type": "subscribed", "symbols": ["BTC", "SOL"]}

        → {"action": "analyze", "symbol": "BTC"}
        ← {"type": "analysis", "symbol": "BTC", "analysis": {...}}

        → {"action": "ping"}
        ← {"type": "pong"}
    """
    hub = pipeline.hub
    await websocket.accept()
    subscriber = await hub.register(websocket)

    try:
        # The hub closes and forgets a subscriber whose writes fail.
        while hub.is_registered(subscriber):
            raw = await websocket.receive_text()
            await hub.handle_client_message(websocket, raw)
    except WebSocketDisconnect:
        logger.debug("Subscriber %s closed the socket", subscriber.id)
    finally:
        await hub.unregister(subscriber)
