"""
Persistence and progress interfaces.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from src.core.models.backtest import BacktestConfig


class IBacktestStore(ABC):
    """Abstract interface for backtest configuration/status persistence."""

    @abstractmethod
    async def create(self, config: "BacktestConfig") -> str:
        """Persist a new backtest and return its id."""
        pass

    @abstractmethod
    async def update(self, backtest_id: str, **fields: Any) -> None:
        """Update status, progress, results or error of a backtest."""
        pass


class IProgressSink(ABC):
    """Abstract interface for fire-and-forget progress reporting."""

    @abstractmethod
    def report(self, backtest_id: str, percent: float) -> None:
        """Report progress of a backtest in percent (0-100)."""
        pass
