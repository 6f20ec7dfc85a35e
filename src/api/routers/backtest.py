"""
Backtest API endpoints.
"""

from typing import Any

from fastapi import APIRouter, Depends, Request, status

from src.api.schemas.api_models import (
    BacktestRequest,
    BacktestResponse,
    BacktestResults,
    CancelResponse,
    OptimizeRequest,
    ProgressResponse,
)
from src.backtest.service import BacktestService
from src.core.models.backtest import BacktestConfig, IndicatorSpec
from src.strategies.registry import create_strategy

router = APIRouter()


def get_service(request: Request) -> BacktestService:
    """Backtest service attached to the application."""
    return request.app.state.service


def to_config(payload: BacktestRequest) -> BacktestConfig:
    """Build an engine configuration from a request body."""
    return BacktestConfig(
        strategy=create_strategy(payload.strategy),
        symbols=payload.symbols,
        timeframe=payload.timeframe,
        start_date=payload.start_date,
        end_date=payload.end_date,
        initial_capital=payload.initial_capital,
        commission_rate=payload.commission_rate,
        slippage_rate=payload.slippage_rate,
        indicator_specs=[
            IndicatorSpec(type=spec.type, params=spec.params, name=spec.name)
            for spec in payload.indicators
        ],
        params=payload.params,
        name=payload.name,
        description=payload.description,
    )


@router.post("/", response_model=BacktestResponse, status_code=status.HTTP_202_ACCEPTED)
async def submit_backtest(
    payload: BacktestRequest, service: BacktestService = Depends(get_service)
) -> BacktestResponse:
    """Submit a new backtest for execution."""
    backtest_id = await service.create_backtest(to_config(payload))
    return BacktestResponse(
        backtest_id=backtest_id, status="pending", message="Backtest queued for execution"
    )


@router.get("/stats")
async def get_stats(service: BacktestService = Depends(get_service)) -> dict[str, Any]:
    """Counts of backtests per status."""
    return service.get_stats()


@router.get("/history")
async def get_history(service: BacktestService = Depends(get_service)) -> list[dict[str, Any]]:
    """Most recent completed results."""
    return service.get_history()


@router.get("/{backtest_id}", response_model=BacktestResults)
async def get_backtest_results(
    backtest_id: str, service: BacktestService = Depends(get_service)
) -> BacktestResults:
    """Get backtest status and, once finished, its results."""
    snapshot = service.get_status(backtest_id)
    result = service.get_result(backtest_id)
    payload = result.to_dict() if result is not None else {}
    return BacktestResults(
        backtest_id=backtest_id,
        status=snapshot["status"],
        progress=snapshot["progress"],
        error=snapshot["error"],
        error_kind=snapshot["error_kind"],
        metrics=payload.get("metrics"),
        trades=payload.get("trades"),
        equity_curve=payload.get("equity_curve"),
    )


@router.get("/{backtest_id}/progress", response_model=ProgressResponse)
async def get_progress(
    backtest_id: str, service: BacktestService = Depends(get_service)
) -> ProgressResponse:
    """Progress of a running backtest or optimization in percent."""
    snapshot = service.get_status(backtest_id)
    return ProgressResponse(
        backtest_id=backtest_id, status=snapshot["status"], progress=snapshot["progress"]
    )


@router.post("/{backtest_id}/optimize")
async def optimize_backtest(
    backtest_id: str,
    payload: OptimizeRequest,
    service: BacktestService = Depends(get_service),
) -> dict[str, Any]:
    """Grid-search strategy parameters on top of an existing backtest."""
    ranges = {name: model.to_mapping() for name, model in payload.param_ranges.items()}
    result = await service.optimize_strategy(backtest_id, ranges)
    return {"backtest_id": backtest_id, **result.to_dict()}


@router.delete("/{backtest_id}", response_model=CancelResponse)
async def cancel_backtest(
    backtest_id: str, service: BacktestService = Depends(get_service)
) -> CancelResponse:
    """Cancel a queued or running backtest."""
    cancelled = await service.cancel_backtest(backtest_id)
    return CancelResponse(backtest_id=backtest_id, cancelled=cancelled)
