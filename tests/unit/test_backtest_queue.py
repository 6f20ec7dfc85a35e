"""
Unit tests for BacktestQueue.
"""

import asyncio

import pytest

from src.backtest.queue import BacktestQueue
from src.core.enums import RequestKind
from src.core.exceptions.backtest import BacktestCancelledError


class TestBacktestQueue:
    """Test suite for the sequential request queue."""

    @pytest.mark.asyncio
    async def test_should_run_requests_one_at_a_time_in_order(self) -> None:
        # Arrange
        queue = BacktestQueue()
        events: list[str] = []
        active = 0
        max_active = 0

        def job(name: str):
            async def run() -> str:
                nonlocal active, max_active
                active += 1
                max_active = max(max_active, active)
                events.append(f"start {name}")
                await asyncio.sleep(0)
                events.append(f"end {name}")
                active -= 1
                return name

            return run

        # Act
        futures = [queue.submit(name, job(name)) for name in ("a", "b", "c")]
        results = await asyncio.gather(*futures)

        # Assert
        assert results == ["a", "b", "c"]
        assert max_active == 1
        assert events == ["start a", "end a", "start b", "end b", "start c", "end c"]
        assert queue.processed == 3
        assert queue.is_idle

    @pytest.mark.asyncio
    async def test_should_deliver_job_exceptions_to_the_submitter(self) -> None:
        queue = BacktestQueue()

        async def failing():
            raise ValueError("bad job")

        async def succeeding():
            return 42

        failed = queue.submit("a", failing)
        ok = queue.submit("b", succeeding)

        with pytest.raises(ValueError, match="bad job"):
            await failed
        assert await ok == 42

    @pytest.mark.asyncio
    async def test_should_cancel_requests_that_have_not_started(self) -> None:
        # Arrange
        queue = BacktestQueue()
        started: list[str] = []

        def job(name: str):
            async def run():
                started.append(name)
                return name

            return run

        first = queue.submit("a", job("a"))
        second = queue.submit("b", job("b"), kind=RequestKind.OPTIMIZATION)

        # Act
        cancelled = queue.cancel("b")

        # Assert
        assert cancelled
        assert await first == "a"
        with pytest.raises(BacktestCancelledError):
            await second
        await queue.join()
        assert started == ["a"]

    @pytest.mark.asyncio
    async def test_should_not_cancel_unknown_or_started_requests(self) -> None:
        queue = BacktestQueue()
        release = asyncio.Event()

        async def blocking():
            await release.wait()
            return "done"

        future = queue.submit("a", blocking)
        await asyncio.sleep(0)

        assert queue.running_id == "a"
        assert not queue.cancel("a")
        assert not queue.cancel("missing")

        release.set()
        assert await future == "done"

    @pytest.mark.asyncio
    async def test_should_report_pending_ids(self) -> None:
        queue = BacktestQueue()

        async def noop():
            return None

        queue.submit("a", noop)
        queue.submit("b", noop)

        assert queue.pending_ids == ["a", "b"]
        assert len(queue) == 2
        await queue.join()
        assert len(queue) == 0
