"""
Trade domain model.
Optimized for high-performance backtesting with float operations.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from src.core.enums import Side
from src.core.exceptions.backtest import ValidationError


@dataclass(frozen=True, slots=True)
class Trade:
    """Represents an executed fill recorded in the ledger's trade log."""

    symbol: str
    side: Side
    effective_price: float
    filled_size: float
    requested_size: float
    cost: float
    commission: float
    timestamp: datetime
    clipped: bool = False
    realized_pnl: float | None = None

    def __post_init__(self) -> None:
        """Validate trade data after initialization."""
        if self.filled_size <= 0:
            raise ValidationError(f"Filled size must be positive, got {self.filled_size}")
        if self.filled_size > self.requested_size:
            raise ValidationError(
                f"Filled size {self.filled_size} exceeds requested size {self.requested_size}"
            )
        if self.effective_price <= 0:
            raise ValidationError(f"Price must be positive, got {self.effective_price}")
        if self.commission < 0:
            raise ValidationError(f"Commission must be non-negative, got {self.commission}")
        if self.side == Side.BUY and self.realized_pnl is not None:
            raise ValidationError("Buy trades do not carry realized PnL")

    @property
    def is_closing(self) -> bool:
        """Check if the trade reduced a position."""
        return self.side == Side.SELL

    def notional_value(self) -> float:
        """Calculate the notional value of the trade."""
        return self.filled_size * self.effective_price

    def to_dict(self) -> dict[str, Any]:
        """Convert trade to dictionary."""
        return {
            "symbol": self.symbol,
            "side": self.side.value,
            "effective_price": self.effective_price,
            "filled_size": self.filled_size,
            "requested_size": self.requested_size,
            "cost": self.cost,
            "commission": self.commission,
            "timestamp": self.timestamp.isoformat(),
            "clipped": self.clipped,
            "realized_pnl": self.realized_pnl,
        }
