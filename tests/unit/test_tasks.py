"""
Unit tests for analysis task handles and worker-thread offload.
"""

import asyncio
import time

import pytest

from vocab_lab.tasks import AnalysisTask, run_offloaded


class TestAnalysisTask:

    def test_progress(self):
        task = AnalysisTask(total=4)
        assert task.progress == 0
        task.processed = 2
        task.failed = 1
        assert task.completed == 3
        assert task.progress == 75

    def test_empty_total_is_complete(self):
        assert AnalysisTask(total=0).progress == 100

    def test_summary_reports_cancellation(self):
        task = AnalysisTask(total=3)
        task.processed = 1
        task.cancel()
        assert task.cancel_requested
        assert task.summary() == {"processed": 1, "failed": 0, "total": 3, "cancelled": True}

    def test_cancel_after_completion_is_not_reported(self):
        task = AnalysisTask(total=1)
        task.processed = 1
        task.cancel()
        assert not task.summary()["cancelled"]

    def test_not_started(self):
        task = AnalysisTask(total=1)
        assert not task.done()
        with pytest.raises(RuntimeError):
            task.result()

    @pytest.mark.asyncio
    async def test_await_result(self):
        async def work():
            return {"processed": 1}

        task = AnalysisTask(total=1).start(work())
        assert await task == {"processed": 1}
        assert task.done()
        assert task.result() == {"processed": 1}

    @pytest.mark.asyncio
    async def test_await_unstarted(self):
        with pytest.raises(RuntimeError):
            await AnalysisTask(total=1)


def _double(value):
    return value * 2


class TestRunOffloaded:

    @pytest.mark.asyncio
    async def test_runs_in_thread(self):
        assert await run_offloaded(_double, 21) == 42

    @pytest.mark.asyncio
    async def test_timeout_falls_back_in_process(self, caplog):
        calls = []

        def slow(value):
            calls.append(value)
            if len(calls) == 1:
                time.sleep(0.3)
            return value

        assert await run_offloaded(slow, "x", timeout=0.05) == "x"
        assert len(calls) == 2
        assert "timed out" in caplog.text

    @pytest.mark.asyncio
    async def test_worker_failure_falls_back_in_process(self, caplog):
        calls = []

        def flaky(value):
            calls.append(value)
            if len(calls) == 1:
                raise OSError("worker died")
            return value

        assert await run_offloaded(flaky, 7) == 7
        assert "worker died" in caplog.text

    @pytest.mark.asyncio
    async def test_in_process_failure_propagates(self):
        def broken():
            raise ValueError("bad input")

        with pytest.raises(ValueError):
            await run_offloaded(broken)

    @pytest.mark.asyncio
    async def test_does_not_block_loop(self):
        ticks = []

        async def ticker():
            for _ in range(3):
                ticks.append(1)
                await asyncio.sleep(0.01)

        def slow():
            time.sleep(0.1)
            return "done"

        result, _ = await asyncio.gather(run_offloaded(slow), ticker())
        assert result == "done"
        assert len(ticks) == 3
