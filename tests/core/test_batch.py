"""Tests for the concurrency-bounded batch runner."""

import asyncio

import pytest

from article_pipeline.core.batch import BatchProgress, BatchRunner, process_concurrently


class TestBatchRunner:
    """Tests for BatchRunner.run."""

    @pytest.mark.asyncio
    async def test_concurrency_never_exceeds_limit(self) -> None:
        """20 items with concurrency 5: every item runs, never more than 5 at once."""
        in_flight = 0
        peak = 0
        processed: list[int] = []

        async def processor(item: int) -> None:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.001)
            processed.append(item)
            in_flight -= 1

        result = await BatchRunner(processor, concurrency=5).run(range(20))

        assert peak <= 5
        assert peak == 5
        assert sorted(processed) == list(range(20))
        assert result.completed == 20
        assert result.stopped is False

    @pytest.mark.asyncio
    async def test_progress_reported_per_item(self) -> None:
        progress: list[BatchProgress] = []

        async def processor(item: int) -> None:
            await asyncio.sleep(0)

        await process_concurrently(range(4), processor, concurrency=2, on_progress=progress.append)

        assert [p.completed for p in progress] == [1, 2, 3, 4]
        assert progress[-1].total == 4
        assert progress[-1].percent == 100.0

    @pytest.mark.asyncio
    async def test_failures_do_not_stop_batch(self) -> None:
        async def processor(item: int) -> None:
            if item % 2:
                raise RuntimeError(f"item {item} failed")

        result = await BatchRunner(processor, concurrency=3).run(range(6))

        assert result.completed == 6
        assert result.failed == 3

    @pytest.mark.asyncio
    async def test_stop_clears_queue_and_finishes_in_flight(self) -> None:
        stop = False
        started: list[int] = []
        finished: list[int] = []

        async def processor(item: int) -> None:
            nonlocal stop
            started.append(item)
            if item == 2:
                stop = True
            await asyncio.sleep(0.001)
            finished.append(item)

        result = await BatchRunner(processor, concurrency=2, should_stop=lambda: stop).run(
            range(10)
        )

        assert result.stopped is True
        assert len(started) < 10
        assert sorted(finished) == sorted(started)

    @pytest.mark.asyncio
    async def test_empty_input(self) -> None:
        async def processor(item: int) -> None:
            raise AssertionError("never called")

        result = await BatchRunner(processor).run([])
        assert result.total == 0
        assert result.completed == 0

    def test_rejects_zero_concurrency(self) -> None:
        async def processor(item: int) -> None:
            return None

        with pytest.raises(ValueError):
            BatchRunner(processor, concurrency=0)
