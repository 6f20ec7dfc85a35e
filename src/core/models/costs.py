"""
Transaction cost model.

Converts a requested fill price into an effective price (slippage) and a
notional into a commission. Pure and stateless.
"""

from dataclasses import dataclass

from src.core.constants import DEFAULT_COMMISSION_RATE, DEFAULT_SLIPPAGE_RATE
from src.core.enums import Side
from src.core.exceptions.backtest import ConfigurationError
from src.core.utils.validation import validate_non_negative, validate_rate


@dataclass(frozen=True)
class CostModel:
    """Commission and slippage applied to every fill."""

    commission_rate: float = DEFAULT_COMMISSION_RATE
    slippage_rate: float = DEFAULT_SLIPPAGE_RATE

    def __post_init__(self) -> None:
        """Validate rates after initialization."""
        validate_rate(self.commission_rate, "commission_rate", ConfigurationError)
        validate_rate(self.slippage_rate, "slippage_rate", ConfigurationError)

    def effective_price(self, side: Side, price: float) -> float:
        """Price after adverse slippage.

        Examples:
            >>> CostModel(0.0, 0.01).effective_price(Side.BUY, 100.0)
            101.0
        """
        validate_non_negative(price, "price", ConfigurationError)
        if side == Side.BUY:
            return price * (1 + self.slippage_rate)
        return price * (1 - self.slippage_rate)

    def commission(self, cost: float) -> float:
        """Commission charged on a fill notional."""
        validate_non_negative(cost, "cost", ConfigurationError)
        return cost * self.commission_rate

    def unit_cost(self, effective_price: float) -> float:
        """All-in cash needed per unit bought at ``effective_price``."""
        return effective_price * (1 + self.commission_rate)
