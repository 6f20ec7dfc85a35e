"""
In-memory persistence and progress adapters.

Reference implementations of the store and progress interfaces, used by
the HTTP app and the tests.
"""

import uuid
from collections import defaultdict
from datetime import UTC, datetime
from typing import Any

from loguru import logger

from src.core.enums import BacktestStatus
from src.core.exceptions.backtest import BacktestNotFoundError
from src.core.interfaces.store import IBacktestStore, IProgressSink
from src.core.models.backtest import BacktestConfig


class InMemoryBacktestStore(IBacktestStore):
    """Backtest records kept in a process-local dictionary."""

    def __init__(self) -> None:
        self._records: dict[str, dict[str, Any]] = {}

    async def create(self, config: BacktestConfig) -> str:
        backtest_id = uuid.uuid4().hex
        now = datetime.now(UTC)
        self._records[backtest_id] = {
            "config": config.to_dict(),
            "status": BacktestStatus.PENDING.value,
            "progress": 0.0,
            "created_at": now,
            "updated_at": now,
        }
        logger.debug(f"Stored backtest {backtest_id}")
        return backtest_id

    async def update(self, backtest_id: str, **fields: Any) -> None:
        record = self._records.get(backtest_id)
        if record is None:
            raise BacktestNotFoundError(backtest_id)
        record.update(fields)
        record["updated_at"] = datetime.now(UTC)

    def get(self, backtest_id: str) -> dict[str, Any]:
        """Copy of a stored record.

        Raises:
            BacktestNotFoundError: If the id is unknown
        """
        record = self._records.get(backtest_id)
        if record is None:
            raise BacktestNotFoundError(backtest_id)
        return dict(record)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, backtest_id: object) -> bool:
        return backtest_id in self._records


class InMemoryProgressSink(IProgressSink):
    """Keeps every reported percentage per backtest."""

    def __init__(self) -> None:
        self.reports: defaultdict[str, list[float]] = defaultdict(list)

    def report(self, backtest_id: str, percent: float) -> None:
        self.reports[backtest_id].append(percent)

    def latest(self, backtest_id: str) -> float | None:
        """Last reported percentage, if any."""
        values = self.reports.get(backtest_id)
        return values[-1] if values else None
