"""
Application entry point.

Creates the FastAPI application and wires together:
- Routers (market data, real-time control, health)
- Error handlers (centralized error-to-HTTP mapping)
- Security middleware (headers, rate limiting)
- Logging configuration
- Real-time pipeline (history bootstrap, ticker feeds, broadcast hub)

No analysis logic belongs here.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from slowapi.errors import RateLimitExceeded

from app.core.config import settings
from app.interfaces.health import router as health_router
from app.interfaces.market import market_router, realtime_router
from app.shared.errors.handlers import register_error_handlers
from app.shared.logging import configure_logging
from app.shared.security.headers import SecurityHeadersMiddleware
from app.shared.security.rate_limiting import limiter, rate_limit_exceeded_handler
from tradecharts.config import PipelineConfig
from tradecharts.realtime.pipeline import MarketPipeline

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: start/stop the market pipeline.

    A pipeline already placed on ``app.state`` (tests do this) is used as-is.
    """
    pipeline = getattr(app.state, "pipeline", None)
    if pipeline is None:
        pipeline = MarketPipeline.from_config(PipelineConfig())
        app.state.pipeline = pipeline

    await pipeline.start(feeds=settings.feeds_enabled)

    yield

    # Shutdown
    await pipeline.stop()


def create_app(pipeline: MarketPipeline | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Registers routers, error handlers, and security middleware.
    This is the composition root of the application.

    Args:
        pipeline: Optional pre-built pipeline; one is built from the
            settings at startup otherwise.

    Returns:
        A fully configured FastAPI application instance.
    """
    configure_logging(level=settings.log_level, tick_debug=settings.log_tick_debug)

    app = FastAPI(
        title=settings.project_name,
        version=settings.version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    if pipeline is not None:
        app.state.pipeline = pipeline

    # --- Rate Limiting ---
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    # --- Security Middleware ---
    app.add_middleware(SecurityHeadersMiddleware)

    # --- Error Handlers ---
    register_error_handlers(app)

    # --- Routers ---
    app.include_router(health_router, prefix="/api/v1")
    app.include_router(market_router, prefix="/api/v1")
    app.include_router(realtime_router, prefix="/api/v1")

    return app


app = create_app()
