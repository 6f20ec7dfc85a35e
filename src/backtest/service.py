"""
Backtest service - the programmatic API of the platform.

Creates backtests (validated, persisted and queued), awaits their results,
runs parameter optimizations, reports progress and keeps a bounded history
of completed runs.
"""

import asyncio
import time
from collections import Counter, deque
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from loguru import logger

from src.backtest.optimizer import OptimizationCoordinator, OptimizationResult
from src.backtest.parameter_space import ParameterRange
from src.backtest.queue import BacktestQueue
from src.backtest.runner import BacktestRun, StrategyRunner
from src.core.enums import BacktestStatus, RequestKind
from src.core.exceptions.backtest import (
    BacktestCancelledError,
    BacktestNotFoundError,
    ConfigurationError,
)
from src.core.interfaces.data import IIndicatorEngine, IMarketDataProvider
from src.core.interfaces.store import IBacktestStore, IProgressSink
from src.core.models.backtest import BacktestConfig, BacktestResult
from src.core.settings import EngineSettings
from src.infrastructure.storage.memory_store import InMemoryBacktestStore


def _consume_exception(future: asyncio.Future) -> None:
    """Mark a settled future's exception as retrieved."""
    if not future.cancelled():
        future.exception()


class BacktestService:
    """Facade over the runner, optimizer and queue."""

    def __init__(
        self,
        market_data: IMarketDataProvider,
        indicator_engine: IIndicatorEngine | None = None,
        store: IBacktestStore | None = None,
        progress_sink: IProgressSink | None = None,
        settings: EngineSettings | None = None,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.store = store or InMemoryBacktestStore()
        self.progress_sink = progress_sink
        self.queue = BacktestQueue()
        self.runner = StrategyRunner(market_data, indicator_engine, self.store, progress_sink)
        self.optimizer = OptimizationCoordinator(self.runner, self.queue, self.settings, timer)

        self._runs: dict[str, BacktestRun] = {}
        self._futures: dict[str, asyncio.Future] = {}
        self._optimization_progress: dict[str, float] = {}
        self._history: deque[dict[str, Any]] = deque(maxlen=self.settings.max_history_size)
        self._requests_by_kind: Counter[RequestKind] = Counter()

    async def create_backtest(self, config: BacktestConfig) -> str:
        """Validate, persist and enqueue a backtest.

        Returns:
            The new backtest id

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        config.validate()
        backtest_id = await self.store.create(config)

        run = BacktestRun(backtest_id=backtest_id, config=config)
        self._runs[backtest_id] = run
        self._requests_by_kind[RequestKind.STRATEGY] += 1
        future = self.queue.submit(backtest_id, lambda: self._execute(run))
        future.add_done_callback(_consume_exception)
        self._futures[backtest_id] = future

        logger.info(f"Created backtest {backtest_id} ({len(self.queue)} queued)")
        return backtest_id

    async def run_backtest(self, backtest_id: str) -> BacktestResult:
        """Wait for a queued backtest and return its result.

        Raises:
            BacktestNotFoundError: If the id is unknown
            BacktestException: The run's terminal error when it failed
        """
        run = self._get_run(backtest_id)
        result = await asyncio.shield(self._futures[backtest_id])
        if run.error is not None:
            raise run.error
        return result

    async def optimize_strategy(
        self,
        backtest_id: str,
        param_ranges: Mapping[str, ParameterRange | Mapping[str, Any]],
    ) -> OptimizationResult:
        """Grid-search ``param_ranges`` on top of the backtest's configuration.

        Raises:
            BacktestNotFoundError: If the id is unknown
            ConfigurationError: If optimization is disabled or the space is invalid
        """
        if not self.settings.enable_optimization:
            raise ConfigurationError("Optimization is disabled")
        run = self._get_run(backtest_id)

        def on_progress(percent: float) -> None:
            self._optimization_progress[backtest_id] = percent
            self._report_progress(backtest_id, percent)

        self._requests_by_kind[RequestKind.OPTIMIZATION] += 1
        self._optimization_progress[backtest_id] = 0.0
        try:
            result = await self.optimizer.optimize(
                backtest_id, run.config, param_ranges, on_progress
            )
        finally:
            self._optimization_progress.pop(backtest_id, None)

        if result.best is not None:
            self._remember(backtest_id, run.config, result.best.result, params=result.best.params)
        return result

    def get_progress(self, backtest_id: str) -> float:
        """Progress in percent of the running optimization or backtest."""
        run = self._get_run(backtest_id)
        if backtest_id in self._optimization_progress:
            return self._optimization_progress[backtest_id]
        return run.progress

    def get_status(self, backtest_id: str) -> dict[str, Any]:
        """Status snapshot of a backtest."""
        run = self._get_run(backtest_id)
        return {
            "backtest_id": backtest_id,
            "status": run.status.value,
            "progress": self.get_progress(backtest_id),
            "error": str(run.error) if run.error is not None else None,
            "error_kind": run.result.error_kind if run.result is not None else None,
            "created_at": run.created_at.isoformat(),
            "finished_at": run.finished_at.isoformat() if run.finished_at else None,
        }

    def get_result(self, backtest_id: str) -> BacktestResult | None:
        """Result of a finished backtest (None while pending or running)."""
        return self._get_run(backtest_id).result

    async def cancel_backtest(self, backtest_id: str) -> bool:
        """Cancel a queued backtest immediately or a running one at the next bar.

        Returns:
            False if the backtest had already finished
        """
        run = self._get_run(backtest_id)
        if run.status.is_terminal:
            return False

        if self.queue.cancel(backtest_id):
            error = BacktestCancelledError(backtest_id)
            run.error = error
            run.result = BacktestResult.failed(error)
            run.status = BacktestStatus.FAILED
            run.finished_at = datetime.now(UTC)
            await self.store.update(
                backtest_id, status=run.status.value, error=str(error), error_kind=error.kind
            )
            return True

        run.request_cancel()
        logger.info(f"Cancellation requested for running backtest {backtest_id}")
        return True

    def get_stats(self) -> dict[str, Any]:
        """Counts of backtests per status plus queue and cache figures."""
        counts = {status.value: 0 for status in BacktestStatus}
        for run in self._runs.values():
            counts[run.status.value] += 1
        return {
            "total": len(self._runs),
            **counts,
            "queued": len(self.queue),
            "cached_results": self.optimizer.cache_size,
            "history": len(self._history),
            "by_kind": {kind.value: self._requests_by_kind[kind] for kind in RequestKind},
        }

    def get_history(self) -> list[dict[str, Any]]:
        """Most recent completed results, oldest first."""
        return list(self._history)

    def list_backtests(self) -> list[str]:
        """Ids of every known backtest, in creation order."""
        return list(self._runs)

    async def join(self) -> None:
        """Wait until the queue has drained."""
        await self.queue.join()

    async def _execute(self, run: BacktestRun) -> BacktestResult:
        result = await self.runner.run(run)
        if result.is_completed:
            self._remember(run.backtest_id, run.config, result)
        return result

    def _remember(
        self,
        backtest_id: str,
        config: BacktestConfig,
        result: BacktestResult,
        params: Mapping[str, Any] | None = None,
    ) -> None:
        self._history.append(
            {
                "backtest_id": backtest_id,
                "config": config.to_dict(),
                "params": dict(params if params is not None else config.params),
                "metrics": result.to_dict()["metrics"],
                "recorded_at": datetime.now(UTC).isoformat(),
            }
        )

    def _report_progress(self, backtest_id: str, percent: float) -> None:
        if self.progress_sink is None:
            return
        try:
            self.progress_sink.report(backtest_id, percent)
        except Exception as e:
            logger.warning(f"Progress sink failed for {backtest_id}: {e}")

    def _get_run(self, backtest_id: str) -> BacktestRun:
        run = self._runs.get(backtest_id)
        if run is None:
            raise BacktestNotFoundError(backtest_id)
        return run
