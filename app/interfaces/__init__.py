"""
Interfaces layer package.

FastAPI routers and Pydantic response schemas for the market API.
Routes read from the running MarketPipeline and never compute analysis
themselves.
"""
