"""
Pydantic schemas for API request/response models.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from src.core.constants import DEFAULT_COMMISSION_RATE, DEFAULT_SLIPPAGE_RATE
from src.core.enums import Timeframe


class IndicatorRequest(BaseModel):
    """An indicator series requested for every symbol."""

    type: str = Field(..., min_length=1, description="Indicator type, e.g. sma or rsi")
    params: dict[str, Any] = Field(default_factory=dict)
    name: str = Field(default="", description="Key used by the strategy; defaults to type")


class BacktestRequest(BaseModel):
    """Request model for backtest submission."""

    strategy: str = Field(..., description="Name of a built-in strategy")
    symbols: list[str] = Field(..., min_length=1, description="Symbols traded in lockstep")
    timeframe: Timeframe = Field(..., description="Candlestick timeframe")
    start_date: datetime = Field(..., description="Backtest start date")
    end_date: datetime = Field(..., description="Backtest end date")
    initial_capital: float = Field(default=10000.0, gt=0, description="Starting capital")
    commission_rate: float = Field(default=DEFAULT_COMMISSION_RATE, ge=0.0, lt=1.0)
    slippage_rate: float = Field(default=DEFAULT_SLIPPAGE_RATE, ge=0.0, lt=1.0)
    indicators: list[IndicatorRequest] = Field(default_factory=list)
    params: dict[str, Any] = Field(default_factory=dict, description="Strategy parameters")
    name: str = ""
    description: str = ""

    @field_validator("start_date", "end_date")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        """Treat naive datetimes as UTC."""
        return v.replace(tzinfo=UTC) if v.tzinfo is None else v

    @model_validator(mode="after")
    def validate_date_range(self) -> "BacktestRequest":
        """Validate that end_date is after start_date."""
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class ParameterRangeModel(BaseModel):
    """Either a numeric range (min/max/step) or an explicit list of values."""

    min: int | float | None = None
    max: int | float | None = None
    step: int | float | None = None
    values: list[Any] | None = None

    def to_mapping(self) -> dict[str, Any]:
        """Only the fields that were provided."""
        return self.model_dump(exclude_none=True)


class OptimizeRequest(BaseModel):
    """Request model for a parameter optimization."""

    param_ranges: dict[str, ParameterRangeModel] = Field(..., min_length=1)


class BacktestResponse(BaseModel):
    """Response model for backtest submission."""

    backtest_id: str
    status: str
    message: str


class BacktestResults(BaseModel):
    """Response model for backtest status and results."""

    backtest_id: str
    status: str
    progress: float
    error: str | None = None
    error_kind: str | None = None
    metrics: dict[str, Any] | None = None
    trades: list[dict[str, Any]] | None = None
    equity_curve: list[dict[str, Any]] | None = None


class ProgressResponse(BaseModel):
    """Response model for progress polling."""

    backtest_id: str
    status: str
    progress: float


class CancelResponse(BaseModel):
    """Response model for cancellation."""

    backtest_id: str
    cancelled: bool


class ErrorResponse(BaseModel):
    """Response model for errors."""

    error: str
    message: str
    backtest_id: str | None = None
