"""Concurrency-bounded batch runner.

A shared work queue is drained by a fixed number of asyncio workers. Each
worker checks the stop flag, pops one item, awaits the processor and reports
progress. Stopping clears the queue; in-flight items always finish, nothing is
cancelled mid-task.

Used for bulk health analysis and bulk publishing.
"""

import asyncio
import time
from collections import deque
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Generic, TypeVar

from article_pipeline.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_CONCURRENCY = 5
SLOW_OPERATION_THRESHOLD_MS = 60_000


@dataclass
class BatchProgress:
    """Progress snapshot passed to the progress callback."""

    completed: int
    total: int

    @property
    def percent(self) -> float:
        if self.total == 0:
            return 100.0
        return round(self.completed / self.total * 100, 1)


@dataclass
class BatchResult:
    """Outcome of one batch run."""

    total: int
    completed: int = 0
    failed: int = 0
    stopped: bool = False
    duration_ms: float = 0.0


class BatchRunner(Generic[T]):
    """Runs an async processor over items with at most N in flight."""

    def __init__(
        self,
        processor: Callable[[T], Awaitable[object]],
        concurrency: int = DEFAULT_CONCURRENCY,
        on_progress: Callable[[BatchProgress], None] | None = None,
        should_stop: Callable[[], bool] | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._processor = processor
        self._concurrency = concurrency
        self._on_progress = on_progress
        self._should_stop = should_stop

    async def run(self, items: Iterable[T]) -> BatchResult:
        """Process every item (unless stopped) and return when all workers exit."""
        queue: deque[T] = deque(items)
        result = BatchResult(total=len(queue))
        start_time = time.monotonic()

        logger.info(
            "Batch started",
            extra={"total": result.total, "concurrency": self._concurrency},
        )

        async def worker(worker_id: int) -> None:
            while queue:
                if self._should_stop is not None and self._should_stop():
                    if queue:
                        logger.info(
                            "Batch stop requested, clearing queue",
                            extra={"worker_id": worker_id, "remaining": len(queue)},
                        )
                    queue.clear()
                    result.stopped = True
                    return
                item = queue.popleft()
                try:
                    await self._processor(item)
                except Exception as e:
                    result.failed += 1
                    logger.error(
                        "Batch item failed",
                        extra={
                            "worker_id": worker_id,
                            "error_type": type(e).__name__,
                            "error_message": str(e)[:500],
                        },
                        exc_info=True,
                    )
                finally:
                    result.completed += 1
                    if self._on_progress is not None:
                        self._on_progress(
                            BatchProgress(completed=result.completed, total=result.total)
                        )

        worker_count = min(self._concurrency, max(result.total, 1))
        await asyncio.gather(*(worker(i) for i in range(worker_count)))

        result.duration_ms = (time.monotonic() - start_time) * 1000
        logger.info(
            "Batch finished",
            extra={
                "total": result.total,
                "completed": result.completed,
                "failed": result.failed,
                "stopped": result.stopped,
                "duration_ms": round(result.duration_ms, 2),
            },
        )
        if result.duration_ms > SLOW_OPERATION_THRESHOLD_MS:
            logger.warning(
                "Slow batch operation",
                extra={
                    "total": result.total,
                    "duration_ms": round(result.duration_ms, 2),
                    "threshold_ms": SLOW_OPERATION_THRESHOLD_MS,
                },
            )
        return result


async def process_concurrently(
    items: Iterable[T],
    processor: Callable[[T], Awaitable[object]],
    concurrency: int = DEFAULT_CONCURRENCY,
    on_progress: Callable[[BatchProgress], None] | None = None,
    should_stop: Callable[[], bool] | None = None,
) -> BatchResult:
    """Convenience wrapper around BatchRunner.run."""
    runner: BatchRunner[T] = BatchRunner(
        processor,
        concurrency=concurrency,
        on_progress=on_progress,
        should_stop=should_stop,
    )
    return await runner.run(items)
