"""
Position domain model.
Optimized for high-performance backtesting with float operations.
"""

from dataclasses import dataclass, replace
from datetime import datetime

from src.core.exceptions.backtest import ValidationError
from src.core.types.financial import (
    ZERO,
    calculate_notional_value,
    calculate_realized_pnl,
    round_amount,
    weighted_average_price,
)


@dataclass
class Position:
    """Aggregated long holding of one symbol.

    A symbol has at most one live position. Buys grow it and move the entry
    price to the size-weighted average; sells shrink it.
    """

    symbol: str
    net_size: float
    avg_entry_price: float
    opened_at: datetime

    def __post_init__(self) -> None:
        """Validate position data after initialization."""
        if self.net_size < ZERO:
            raise ValidationError(f"Position size must be non-negative, got {self.net_size}")
        if self.avg_entry_price <= ZERO:
            raise ValidationError(f"Entry price must be positive, got {self.avg_entry_price}")

    @property
    def is_flat(self) -> bool:
        """Check if nothing is held."""
        return self.net_size <= ZERO

    def add(self, size: float, price: float) -> None:
        """Grow the position, updating the weighted-average entry price."""
        if size <= ZERO:
            raise ValidationError(f"Added size must be positive, got {size}")
        self.avg_entry_price = weighted_average_price(
            self.net_size, self.avg_entry_price, size, price
        )
        self.net_size = round_amount(self.net_size + size)

    def reduce(self, size: float, price: float) -> float:
        """Shrink the position and return the realized PnL of the reduced part.

        Raises:
            ValidationError: If more than the held size is removed
        """
        if size <= ZERO:
            raise ValidationError(f"Reduced size must be positive, got {size}")
        if round_amount(size - self.net_size) > ZERO:
            raise ValidationError(f"Cannot reduce {size} from position of {self.net_size}")
        pnl = calculate_realized_pnl(self.avg_entry_price, price, size)
        self.net_size = max(ZERO, round_amount(self.net_size - size))
        return pnl

    def unrealized_pnl(self, current_price: float) -> float:
        """Calculate unrealized PnL at ``current_price``."""
        if self.net_size == ZERO:
            return ZERO
        return calculate_realized_pnl(self.avg_entry_price, current_price, self.net_size)

    def market_value(self, current_price: float) -> float:
        """Calculate current position value at given price."""
        return calculate_notional_value(self.net_size, current_price)

    def snapshot(self) -> "Position":
        """Detached copy handed to strategies."""
        return replace(self)

    @classmethod
    def open(cls, symbol: str, size: float, price: float, timestamp: datetime) -> "Position":
        """Factory method to open a new position from a buy fill."""
        if size <= ZERO:
            raise ValidationError(f"Position size must be positive, got {size}")
        return cls(symbol=symbol, net_size=size, avg_entry_price=price, opened_at=timestamp)
