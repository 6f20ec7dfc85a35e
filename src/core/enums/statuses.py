"""
Backtest lifecycle enumerations.
"""

from enum import StrEnum


class BacktestStatus(StrEnum):
    """
    Lifecycle states of a backtest run.

    pending -> running -> completed | failed
    """

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Check if no further transitions are possible."""
        return self in [self.COMPLETED, self.FAILED]


class RequestKind(StrEnum):
    """Kinds of requests that flow through the backtest queue."""

    STRATEGY = "strategy"
    OPTIMIZATION = "optimization"
