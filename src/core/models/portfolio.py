"""
Portfolio ledger - cash, per-symbol positions, trade log and equity curve.

The ledger is the single source of truth for portfolio state during a
backtest. It never lets cash or position size go negative: buys that would
overdraw cash are clipped to the largest affordable whole size, sells larger
than the holding are clipped to the held size, and signals that cannot be
filled at all are rejected with a warning instead of failing the run.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Any

from loguru import logger

from src.core.enums import Side
from src.core.exceptions.backtest import ConfigurationError, DataUnavailableError
from src.core.models.costs import CostModel
from src.core.models.position import Position
from src.core.models.trade import Trade
from src.core.types.financial import (
    ZERO,
    max_affordable_units,
    round_amount,
)
from src.core.utils.decorators import log_fills, validate_inputs
from src.core.utils.validation import validate_positive


@dataclass(frozen=True, slots=True)
class EquityPoint:
    """Total portfolio value (cash + marked positions) at a point in time."""

    timestamp: datetime
    total_value: float

    def to_dict(self) -> dict[str, Any]:
        """Convert equity point to dictionary."""
        return {"timestamp": self.timestamp.isoformat(), "total_value": self.total_value}


class PortfolioLedger:
    """Single cash account with independent long-only positions per symbol."""

    def __init__(self, initial_capital: float, cost_model: CostModel | None = None) -> None:
        """Initialize the ledger.

        Args:
            initial_capital: Starting cash, must be positive
            cost_model: Cost model used to re-price clipped fills

        Raises:
            ConfigurationError: If initial capital is not positive
        """
        self.initial_capital = validate_positive(
            initial_capital, "initial_capital", ConfigurationError
        )
        self.cash = self.initial_capital
        self.cost_model = cost_model or CostModel()
        self.positions: dict[str, Position] = {}
        self.trades: list[Trade] = []
        self.equity_curve: list[EquityPoint] = []

    @log_fills
    @validate_inputs
    def apply_buy(
        self,
        symbol: str,
        size: float,
        effective_price: float,
        commission: float,
        timestamp: datetime,
    ) -> Trade | None:
        """Buy ``size`` units at ``effective_price``.

        When cash does not cover cost plus commission the fill is clipped to
        the largest affordable whole size; if not even one unit is affordable
        the signal is rejected.

        Returns:
            The recorded trade, or None when rejected
        """
        filled_size = size
        fee = commission
        clipped = False

        required = round_amount(size * effective_price + commission)
        if required > round_amount(self.cash):
            affordable = min(
                max_affordable_units(self.cash, self.cost_model.unit_cost(effective_price)),
                size,
            )
            if affordable <= ZERO:
                logger.warning(
                    f"Rejected buy of {size} {symbol} at {effective_price:.8f}: "
                    f"requires {required:.2f}, cash {self.cash:.2f}"
                )
                return None
            filled_size = float(affordable)
            fee = self.cost_model.commission(filled_size * effective_price)
            clipped = True
            logger.warning(
                f"Clipped buy of {symbol} from {size} to {filled_size} (cash {self.cash:.2f})"
            )

        cost = round_amount(filled_size * effective_price)
        fee = round_amount(fee)

        position = self.positions.get(symbol)
        if position is None:
            self.positions[symbol] = Position.open(symbol, filled_size, effective_price, timestamp)
        else:
            position.add(filled_size, effective_price)

        # Clipping may leave float dust below zero
        self.cash = max(ZERO, round_amount(self.cash - cost - fee))

        trade = Trade(
            symbol=symbol,
            side=Side.BUY,
            effective_price=effective_price,
            filled_size=filled_size,
            requested_size=size,
            cost=cost,
            commission=fee,
            timestamp=timestamp,
            clipped=clipped,
        )
        self.trades.append(trade)
        return trade

    @log_fills
    @validate_inputs
    def apply_sell(
        self,
        symbol: str,
        size: float,
        effective_price: float,
        commission: float,
        timestamp: datetime,
    ) -> Trade | None:
        """Sell ``size`` units at ``effective_price``.

        Sizes larger than the holding are clipped to the held size and the
        commission is scaled down proportionally. Selling a symbol that is
        not held is rejected.

        Returns:
            The recorded trade, or None when rejected
        """
        position = self.positions.get(symbol)
        if position is None or position.is_flat:
            logger.warning(f"Rejected sell of {size} {symbol}: no open position")
            return None

        filled_size = size
        fee = commission
        clipped = False
        if round_amount(size - position.net_size) > ZERO:
            filled_size = position.net_size
            fee = commission * (filled_size / size)
            clipped = True
            logger.warning(f"Clipped sell of {symbol} from {size} to held size {filled_size}")

        realized_pnl = position.reduce(filled_size, effective_price)
        proceeds = round_amount(filled_size * effective_price)
        fee = round_amount(fee)
        self.cash = round_amount(self.cash + proceeds - fee)

        if position.is_flat:
            del self.positions[symbol]

        trade = Trade(
            symbol=symbol,
            side=Side.SELL,
            effective_price=effective_price,
            filled_size=filled_size,
            requested_size=size,
            cost=proceeds,
            commission=fee,
            timestamp=timestamp,
            clipped=clipped,
            realized_pnl=realized_pnl,
        )
        self.trades.append(trade)
        return trade

    def record_equity(self, timestamp: datetime, total_value: float) -> EquityPoint:
        """Append a point to the equity curve, keeping timestamps non-decreasing.

        Raises:
            DataUnavailableError: If the timestamp goes backwards
        """
        if self.equity_curve:
            last = self.equity_curve[-1].timestamp
            try:
                out_of_order = timestamp < last
            except TypeError as e:
                # Naive and timezone-aware timestamps cannot be ordered
                raise DataUnavailableError(f"Incomparable equity timestamps: {e}") from e
            if out_of_order:
                raise DataUnavailableError(f"Equity timestamp {timestamp} precedes {last}")
        point = EquityPoint(timestamp=timestamp, total_value=round_amount(total_value))
        self.equity_curve.append(point)
        return point

    def portfolio_value(self, closes_by_symbol: Mapping[str, float]) -> float:
        """Cash plus every open position marked at its close.

        Raises:
            DataUnavailableError: If an open position has no close price
        """
        total_value = self.cash
        for symbol, position in self.positions.items():
            if symbol not in closes_by_symbol:
                raise DataUnavailableError(f"No close price for open position {symbol}", symbol)
            total_value += position.market_value(closes_by_symbol[symbol])
        return total_value

    def mark_to_market(
        self, closes_by_symbol: Mapping[str, float], timestamp: datetime
    ) -> EquityPoint:
        """Value the portfolio at the given closes and append it to the equity curve."""
        return self.record_equity(timestamp, self.portfolio_value(closes_by_symbol))

    def positions_snapshot(self) -> Mapping[str, Position]:
        """Read-only copies of the open positions."""
        return MappingProxyType(
            {symbol: position.snapshot() for symbol, position in self.positions.items()}
        )

    def position_size(self, symbol: str) -> float:
        """Get current position size for symbol."""
        position = self.positions.get(symbol)
        return position.net_size if position is not None else ZERO

    def realized_pnl(self) -> float:
        """Total realized PnL of all sells."""
        return round_amount(sum((t.realized_pnl or ZERO for t in self.trades), ZERO))

    def total_commission(self) -> float:
        """Total commission paid."""
        return round_amount(sum((t.commission for t in self.trades), ZERO))
