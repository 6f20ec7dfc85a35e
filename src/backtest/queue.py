"""
Sequential backtest queue.

Requests are started strictly in submission order and only one runs at a
time, so ledgers and caches are never touched by two runs concurrently.
"""

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from loguru import logger

from src.core.enums import RequestKind
from src.core.exceptions.backtest import BacktestCancelledError

Job = Callable[[], Awaitable[Any]]


@dataclass
class QueuedRequest:
    """A pending unit of work and the future its submitter awaits."""

    request_id: str
    job: Job
    future: asyncio.Future
    kind: RequestKind = RequestKind.STRATEGY
    enqueued_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class BacktestQueue:
    """FIFO queue with a single worker draining it."""

    def __init__(self) -> None:
        self._pending: deque[QueuedRequest] = deque()
        self._running: QueuedRequest | None = None
        self._drain_task: asyncio.Task | None = None
        self.processed = 0

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def pending_ids(self) -> list[str]:
        """Ids of requests waiting to start, in order."""
        return [request.request_id for request in self._pending]

    @property
    def running_id(self) -> str | None:
        """Id of the request currently running."""
        return self._running.request_id if self._running is not None else None

    @property
    def is_idle(self) -> bool:
        """Check if nothing is queued or running."""
        return self._running is None and not self._pending

    def submit(
        self, request_id: str, job: Job, kind: RequestKind = RequestKind.STRATEGY
    ) -> asyncio.Future:
        """Enqueue ``job`` and return a future resolved with its outcome.

        Must be called from a running event loop.
        """
        loop = asyncio.get_running_loop()
        request = QueuedRequest(
            request_id=request_id, job=job, future=loop.create_future(), kind=kind
        )
        self._pending.append(request)
        logger.debug(f"Queued {kind.value} request {request_id} (position {len(self._pending)})")

        if self._drain_task is None or self._drain_task.done():
            self._drain_task = loop.create_task(self._drain())
        return request.future

    def cancel(self, request_id: str) -> bool:
        """Remove a request that has not started yet.

        Returns:
            True if the request was queued and is now cancelled
        """
        for request in self._pending:
            if request.request_id == request_id:
                self._pending.remove(request)
                if not request.future.done():
                    request.future.set_exception(BacktestCancelledError(request_id))
                logger.info(f"Cancelled queued request {request_id}")
                return True
        return False

    async def join(self) -> None:
        """Wait until every submitted request has settled."""
        while self._drain_task is not None and not self._drain_task.done():
            await asyncio.shield(self._drain_task)

    async def _drain(self) -> None:
        while self._pending:
            request = self._pending.popleft()
            self._running = request
            logger.debug(f"Starting {request.kind.value} request {request.request_id}")
            try:
                result = await request.job()
            except asyncio.CancelledError:
                request.future.cancel()
                raise
            except Exception as e:
                if not request.future.done():
                    request.future.set_exception(e)
            else:
                if not request.future.done():
                    request.future.set_result(result)
            finally:
                self._running = None
                self.processed += 1
