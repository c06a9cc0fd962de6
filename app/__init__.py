"""
AI Trading Charts: API shell around the ``tradecharts`` engine.

Application package root. The FastAPI app owns one MarketPipeline for its
lifetime and exposes it over REST and a WebSocket.

Layers:
    - core: Settings loaded from the environment.
    - interfaces: FastAPI routers, Pydantic schemas.
    - shared: Cross-cutting concerns (errors, security, logging).
"""
