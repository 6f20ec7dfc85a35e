"""
Market data and strategy signal models.
Optimized for high-performance backtesting with float operations.
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from src.core.enums import Side
from src.core.exceptions.backtest import ValidationError

if TYPE_CHECKING:
    from src.core.models.position import Position


@dataclass(frozen=True, slots=True)
class Candle:
    """One OHLCV sample for a symbol at a fixed time step."""

    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    def __post_init__(self) -> None:
        """Validate candle data after initialization."""
        for name in ("open", "high", "low", "close", "volume"):
            value = getattr(self, name)
            if not math.isfinite(value) or value < 0:
                raise ValidationError(f"Candle {name} must be finite and non-negative, got {value}")
        if self.high < self.low:
            raise ValidationError(f"Candle high {self.high} is below low {self.low}")

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> "Candle":
        """Build a candle from a mapping such as a DataFrame row."""
        return cls(
            timestamp=row["timestamp"],
            open=float(row["open"]),
            high=float(row["high"]),
            low=float(row["low"]),
            close=float(row["close"]),
            volume=float(row.get("volume", 0.0)),
        )


@dataclass(frozen=True, slots=True)
class Signal:
    """A trade request emitted by a strategy for the current bar."""

    symbol: str
    side: Side
    price: float
    size: float

    def __post_init__(self) -> None:
        """Validate signal data after initialization."""
        if not isinstance(self.symbol, str) or not self.symbol:
            raise ValidationError(f"Signal symbol must be a non-empty string, got {self.symbol!r}")
        if not isinstance(self.side, Side):
            raise ValidationError(f"Signal side must be a Side, got {self.side!r}")
        if not math.isfinite(self.price) or self.price <= 0:
            raise ValidationError(f"Signal price must be positive, got {self.price}")
        if not math.isfinite(self.size) or self.size <= 0:
            raise ValidationError(f"Signal size must be positive, got {self.size}")

    @classmethod
    def buy(cls, symbol: str, price: float, size: float) -> "Signal":
        """Factory method for a buy signal."""
        return cls(symbol=symbol, side=Side.BUY, price=float(price), size=float(size))

    @classmethod
    def sell(cls, symbol: str, price: float, size: float) -> "Signal":
        """Factory method for a sell signal."""
        return cls(symbol=symbol, side=Side.SELL, price=float(price), size=float(size))

    @classmethod
    def coerce(cls, value: "Signal | Mapping[str, Any]") -> "Signal":
        """Accept a Signal or a mapping with symbol/side (or type)/price/size keys.

        Raises:
            ValidationError: If the value cannot be turned into a valid signal
        """
        if isinstance(value, Signal):
            return value
        if not isinstance(value, Mapping):
            raise ValidationError(f"Unsupported signal type: {type(value).__name__}")

        try:
            side_value = value["side"] if "side" in value else value["type"]
            return cls(
                symbol=value["symbol"],
                side=Side.from_string(side_value),
                price=float(value["price"]),
                size=float(value["size"]),
            )
        except KeyError as e:
            raise ValidationError(f"Signal is missing field {e.args[0]!r}") from e
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid signal {dict(value)!r}: {e}") from e


@dataclass(frozen=True)
class BarContext:
    """Read-only view of the simulation handed to the strategy for one bar."""

    index: int
    timestamp: datetime
    bars: Mapping[str, Candle]
    indicators: Mapping[str, Mapping[str, float | None]]
    positions: Mapping[str, "Position"]
    cash: float
    params: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    # Strategy API
    def close(self, symbol: str) -> float:
        """Close price of ``symbol`` on this bar."""
        return self.bars[symbol].close

    def position_size(self, symbol: str) -> float:
        """Held size of ``symbol`` (0 when flat)."""
        position = self.positions.get(symbol)
        return position.net_size if position is not None else 0.0

    def indicator(self, name: str, symbol: str | None = None) -> float | None:
        """Value of indicator ``name`` for ``symbol`` (first symbol when omitted)."""
        series = self.indicators[name]
        if symbol is None:
            symbol = next(iter(self.bars))
        return series.get(symbol)
