"""
Core enumerations for the backtesting platform.

This module provides centralized enumerations for domain concepts
like timeframes, signal sides and backtest lifecycle states.
"""

from .sides import Side
from .statuses import BacktestStatus, RequestKind
from .timeframes import Timeframe

__all__ = ["Timeframe", "Side", "BacktestStatus", "RequestKind"]
