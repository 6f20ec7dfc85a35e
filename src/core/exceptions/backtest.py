"""
Custom exception hierarchy for backtesting platform.

This module defines domain-specific exceptions for better error handling.
"""


class BacktestException(Exception):
    """Base exception for all backtesting-related errors."""

    @property
    def kind(self) -> str:
        """Name of the error kind, surfaced with terminal failures."""
        return type(self).__name__


class ValidationError(BacktestException):
    """Raised when input validation fails."""

    pass


class ConfigurationError(BacktestException):
    """Raised when a backtest configuration or parameter range is invalid."""

    pass


class DataError(BacktestException):
    """Raised when data access or processing fails."""

    pass


class DataUnavailableError(DataError):
    """Raised when market or indicator data is missing or misaligned."""

    def __init__(self, message: str, symbol: str | None = None):
        self.symbol = symbol
        super().__init__(message)


class StrategyError(BacktestException):
    """Raised when strategy execution fails."""

    pass


class StrategyExecutionError(StrategyError):
    """Raised when the strategy raises or emits an invalid signal inside the bar loop."""

    def __init__(self, message: str, bar_index: int | None = None):
        self.bar_index = bar_index
        super().__init__(message)


class BacktestCancelledError(BacktestException):
    """Raised when a backtest is cancelled by the caller."""

    def __init__(self, backtest_id: str, bar_index: int | None = None):
        self.backtest_id = backtest_id
        self.bar_index = bar_index
        where = f" at bar {bar_index}" if bar_index is not None else " before start"
        super().__init__(f"Backtest {backtest_id} cancelled{where}")


class BacktestNotFoundError(BacktestException):
    """Raised when a backtest id is unknown to the service."""

    def __init__(self, backtest_id: str):
        self.backtest_id = backtest_id
        super().__init__(f"Backtest not found: {backtest_id}")
