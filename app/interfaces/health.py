"""
Health check router.

Provides a simple health endpoint for liveness/readiness probes.
Reports the application version and how many symbols have cached data.
"""

from fastapi import APIRouter, Depends

from app.core.config import settings
from app.interfaces.dependencies import get_pipeline
from app.interfaces.schemas import HealthResponse
from tradecharts.realtime.pipeline import MarketPipeline

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns application health status and version.",
)
def health_check(pipeline: MarketPipeline = Depends(get_pipeline)) -> HealthResponse:
    """Return current application health status."""
    status = "ok" if pipeline.symbols() or pipeline.feed.running else "idle"
    return HealthResponse(status=status, version=settings.version)
