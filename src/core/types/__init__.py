"""
Core type definitions and utilities.
"""

# Re-export financial utilities for easy access
from .financial import (
    FINANCIAL_DECIMALS,
    HUNDRED,
    ZERO,
    calculate_notional_value,
    calculate_realized_pnl,
    max_affordable_units,
    round_amount,
    weighted_average_price,
)

__all__ = [
    # Utility functions
    "round_amount",
    "calculate_notional_value",
    "calculate_realized_pnl",
    "weighted_average_price",
    "max_affordable_units",
    # Constants
    "FINANCIAL_DECIMALS",
    "ZERO",
    "HUNDRED",
]
