"""
Dependency injection for the market API.

The running MarketPipeline is created by the application lifespan and kept on
``app.state``; routes receive it through these dependency functions.
"""

from fastapi import Request, WebSocket

from tradecharts.realtime.pipeline import MarketPipeline


def get_pipeline(request: Request) -> MarketPipeline:
    """Return the pipeline owned by the running application."""
    return request.app.state.pipeline


def get_ws_pipeline(websocket: WebSocket) -> MarketPipeline:
    return websocket.app.state.pipeline
