"""
Backtest configuration and results models.
"""

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any

from src.core.constants import DEFAULT_COMMISSION_RATE, DEFAULT_SLIPPAGE_RATE
from src.core.enums import BacktestStatus, Timeframe
from src.core.exceptions.backtest import BacktestException, ConfigurationError
from src.core.interfaces.strategy import IStrategy, StrategyCallable, as_strategy, is_strategy
from src.core.models.costs import CostModel
from src.core.models.portfolio import EquityPoint
from src.core.models.trade import Trade
from src.core.utils.validation import validate_positive, validate_rate, validate_symbols


@dataclass(frozen=True)
class IndicatorSpec:
    """An indicator series requested for every symbol of a backtest."""

    type: str
    params: Mapping[str, Any] = field(default_factory=dict)
    name: str = ""

    def __post_init__(self) -> None:
        """Default the name to the type and freeze params."""
        if not self.type:
            raise ConfigurationError("Indicator type must not be empty")
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))
        if not self.name:
            object.__setattr__(self, "name", self.type)

    @classmethod
    def from_value(cls, value: "IndicatorSpec | Mapping[str, Any] | str") -> "IndicatorSpec":
        """Accept a spec, a bare indicator type, or a mapping with type/params/name."""
        if isinstance(value, IndicatorSpec):
            return value
        if isinstance(value, str):
            return cls(type=value)
        if isinstance(value, Mapping) and "type" in value:
            return cls(
                type=value["type"], params=value.get("params") or {}, name=value.get("name", "")
            )
        raise ConfigurationError(f"Invalid indicator spec: {value!r}")

    def to_dict(self) -> dict[str, Any]:
        """Convert spec to dictionary."""
        return {"type": self.type, "params": dict(self.params), "name": self.name}


@dataclass(frozen=True)
class BacktestConfig:
    """Configuration for a backtest execution. Immutable once created."""

    strategy: IStrategy | StrategyCallable
    symbols: Sequence[str]
    timeframe: Timeframe
    start_date: datetime
    end_date: datetime
    initial_capital: float
    commission_rate: float = DEFAULT_COMMISSION_RATE
    slippage_rate: float = DEFAULT_SLIPPAGE_RATE
    indicator_specs: Sequence[IndicatorSpec] = ()
    params: Mapping[str, Any] = field(default_factory=dict)
    name: str = ""
    description: str = ""

    def __post_init__(self) -> None:
        """Normalise collections into immutable forms and naive dates into UTC.

        Symbols that are not a proper collection are left untouched so that
        ``validate`` reports them.
        """
        for name in ("start_date", "end_date"):
            value = getattr(self, name)
            if isinstance(value, datetime) and value.tzinfo is None:
                object.__setattr__(self, name, value.replace(tzinfo=UTC))
        if isinstance(self.symbols, str):
            object.__setattr__(self, "symbols", (self.symbols,))
        elif isinstance(self.symbols, Sequence | set | frozenset):
            object.__setattr__(self, "symbols", tuple(dict.fromkeys(self.symbols)))
        object.__setattr__(
            self,
            "indicator_specs",
            tuple(IndicatorSpec.from_value(spec) for spec in self.indicator_specs or ()),
        )
        object.__setattr__(self, "params", MappingProxyType(dict(self.params or {})))

    def validate(self) -> None:
        """Validate the configuration.

        Raises:
            ConfigurationError: On missing strategy, empty symbols, bad dates,
                non-positive capital or invalid rates
        """
        if self.strategy is None or not is_strategy(self.strategy):
            raise ConfigurationError("A callable strategy is required")
        validate_symbols(self.symbols, ConfigurationError)
        if not isinstance(self.timeframe, Timeframe):
            raise ConfigurationError(f"Invalid timeframe: {self.timeframe!r}")
        if not isinstance(self.start_date, datetime) or not isinstance(self.end_date, datetime):
            raise ConfigurationError("start_date and end_date must be datetimes")
        if not self.end_date > self.start_date:
            raise ConfigurationError(
                f"start_date {self.start_date} must be before end_date {self.end_date}"
            )
        validate_positive(self.initial_capital, "initial_capital", ConfigurationError)
        validate_rate(self.commission_rate, "commission_rate", ConfigurationError)
        validate_rate(self.slippage_rate, "slippage_rate", ConfigurationError)
        names = [spec.name for spec in self.indicator_specs]
        if len(names) != len(set(names)):
            raise ConfigurationError(f"Duplicate indicator names: {names}")

    @property
    def bars_per_year(self) -> int:
        """Bars per year for the configured timeframe."""
        return self.timeframe.bars_per_year

    def resolved_strategy(self) -> IStrategy:
        """Strategy as an ``IStrategy`` instance."""
        return as_strategy(self.strategy)

    def cost_model(self) -> CostModel:
        """Cost model built from the configured rates."""
        return CostModel(commission_rate=self.commission_rate, slippage_rate=self.slippage_rate)

    def with_params(self, params: Mapping[str, Any]) -> "BacktestConfig":
        """Derived config whose ``params`` are replaced by ``params``."""
        return replace(self, params=params)

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {
            "name": self.name,
            "description": self.description,
            "strategy": self.resolved_strategy().name,
            "symbols": list(self.symbols),
            "timeframe": self.timeframe.value,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "initial_capital": self.initial_capital,
            "commission_rate": self.commission_rate,
            "slippage_rate": self.slippage_rate,
            "indicators": [spec.to_dict() for spec in self.indicator_specs],
            "params": dict(self.params),
        }


@dataclass
class BacktestResult:
    """Results from a backtest execution."""

    status: BacktestStatus
    trades: list[Trade] = field(default_factory=list)
    equity_curve: list[EquityPoint] = field(default_factory=list)
    metrics: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    error_kind: str | None = None

    @classmethod
    def completed(
        cls, trades: list[Trade], equity_curve: list[EquityPoint], metrics: dict[str, Any]
    ) -> "BacktestResult":
        """Factory method for a successful run."""
        return cls(
            status=BacktestStatus.COMPLETED,
            trades=list(trades),
            equity_curve=list(equity_curve),
            metrics=metrics,
        )

    @classmethod
    def failed(cls, error: BaseException) -> "BacktestResult":
        """Factory method for a failed run. Partial trades and equity are discarded."""
        kind = error.kind if isinstance(error, BacktestException) else type(error).__name__
        return cls(status=BacktestStatus.FAILED, error=str(error), error_kind=kind)

    @property
    def is_completed(self) -> bool:
        """Check if the run completed."""
        return self.status == BacktestStatus.COMPLETED

    def metric(self, name: str) -> Any:
        """Get a metric by name (None when absent)."""
        return self.metrics.get(name)

    def to_dict(self) -> dict:
        """Convert results to a JSON-friendly dictionary."""
        return {
            "status": self.status.value,
            "error": self.error,
            "error_kind": self.error_kind,
            "metrics": {name: _json_number(value) for name, value in self.metrics.items()},
            "trades": [trade.to_dict() for trade in self.trades],
            "equity_curve": [point.to_dict() for point in self.equity_curve],
        }


def _json_number(value: Any) -> Any:
    """Map non-finite floats to strings so the result stays valid JSON."""
    if isinstance(value, float) and not math.isfinite(value):
        return "NaN" if math.isnan(value) else ("Infinity" if value > 0 else "-Infinity")
    return value
