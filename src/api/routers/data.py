"""
Data API endpoints.
"""

from typing import Any

from fastapi import APIRouter, Request

from src.strategies.registry import available_strategies

router = APIRouter()


@router.get("/indicators")
async def get_available_indicators(request: Request) -> dict[str, list[str]]:
    """Indicator types the indicator engine can calculate."""
    engine = request.app.state.indicator_engine
    return {"indicators": engine.get_available_indicators() if engine is not None else []}


@router.get("/strategies")
async def get_available_strategies() -> dict[str, list[dict[str, Any]]]:
    """Built-in strategies with their default parameters."""
    return {"strategies": available_strategies()}


@router.get("/symbols")
async def get_available_symbols(request: Request) -> dict[str, list[dict[str, str]]]:
    """Loaded (symbol, timeframe) pairs."""
    provider = request.app.state.market_data
    pairs = getattr(provider, "available", [])
    return {"symbols": [{"symbol": symbol, "timeframe": timeframe} for symbol, timeframe in pairs]}
