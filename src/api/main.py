"""
FastAPI main application for the strategy backtesting platform.
"""

import os

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from src.backtest.service import BacktestService
from src.core.exceptions.backtest import (
    BacktestCancelledError,
    BacktestException,
    BacktestNotFoundError,
    ConfigurationError,
    ValidationError,
)
from src.core.settings import EngineSettings
from src.infrastructure.data import DataFrameMarketDataProvider, TechnicalIndicatorEngine
from src.infrastructure.storage import InMemoryProgressSink

from .routers import backtest, data

DATA_DIR_ENV = "BACKTEST_DATA_DIR"


def status_for(error: BacktestException) -> int:
    """HTTP status code for a domain error."""
    if isinstance(error, BacktestNotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(error, BacktestCancelledError):
        return status.HTTP_409_CONFLICT
    if isinstance(error, ConfigurationError | ValidationError):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    return status.HTTP_400_BAD_REQUEST


async def handle_backtest_exception(request: Request, exc: BacktestException) -> JSONResponse:
    """Render a domain error as an ``ErrorResponse`` body."""
    code = status_for(exc)
    logger.warning(f"{request.method} {request.url.path} -> {code}: {exc}")
    return JSONResponse(
        status_code=code,
        content={
            "error": exc.kind,
            "message": str(exc),
            "backtest_id": getattr(exc, "backtest_id", None),
        },
    )


def create_default_service() -> BacktestService:
    """Service wired to CSV data from ``BACKTEST_DATA_DIR`` (empty when unset)."""
    settings = EngineSettings.from_env()
    data_dir = os.environ.get(DATA_DIR_ENV)
    if data_dir:
        market_data = DataFrameMarketDataProvider.from_csv_directory(data_dir)
    else:
        logger.info(f"{DATA_DIR_ENV} not set; starting without market data")
        market_data = DataFrameMarketDataProvider()
    return BacktestService(
        market_data,
        indicator_engine=TechnicalIndicatorEngine(),
        progress_sink=InMemoryProgressSink(),
        settings=settings,
    )


def create_app(service: BacktestService | None = None) -> FastAPI:
    """Build the application around ``service`` (a default one when omitted)."""
    service = service or create_default_service()

    app = FastAPI(
        title="Strategy Backtesting API",
        version="1.0.0",
        description="API for trading strategy backtesting and parameter optimization",
    )
    app.state.service = service
    app.state.market_data = service.runner.market_data
    app.state.indicator_engine = service.runner.indicator_engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",  # Development frontend
            "http://localhost:8080",
        ],
        allow_credentials=False,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "Accept", "Origin"],
    )
    app.add_exception_handler(BacktestException, handle_backtest_exception)

    app.include_router(backtest.router, prefix="/api/backtest", tags=["backtest"])
    app.include_router(data.router, prefix="/api/data", tags=["data"])

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint returning API information."""
        return {"message": "Strategy Backtesting API", "version": "1.0.0", "status": "running"}

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()
