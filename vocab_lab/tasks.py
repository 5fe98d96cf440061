"""
Background analysis tasks and worker-thread offload.

AnalysisTask wraps one corpus ingestion run: callers can poll progress,
request cancellation (honoured between articles or batches, never in the
middle of one) and await the final summary.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AnalysisTask:
    """Progress and cancellation handle for an ingestion run."""

    def __init__(self, total: int):
        self.total = total
        self.processed = 0
        self.failed = 0
        self.current_title: Optional[str] = None
        self._cancel_requested = False
        self._task: Optional[asyncio.Task] = None

    def start(self, coro: Awaitable[Dict[str, Any]]) -> "AnalysisTask":
        self._task = asyncio.get_running_loop().create_task(coro)
        return self

    @property
    def completed(self) -> int:
        return self.processed + self.failed

    @property
    def progress(self) -> int:
        """Percentage of articles handled so far (successful or not)."""
        if self.total <= 0:
            return 100
        return round(self.completed / self.total * 100)

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    def cancel(self) -> None:
        """Stop after the article or batch currently in flight."""
        self._cancel_requested = True

    def done(self) -> bool:
        return self._task is not None and self._task.done()

    def result(self) -> Dict[str, Any]:
        if self._task is None:
            raise RuntimeError("Analysis task was never started")
        return self._task.result()

    def summary(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "failed": self.failed,
            "total": self.total,
            "cancelled": self._cancel_requested and self.completed < self.total,
        }

    def __await__(self):
        if self._task is None:
            raise RuntimeError("Analysis task was never started")
        return self._task.__await__()


async def run_offloaded(func: Callable[..., T], *args: Any, timeout: float = 15.0) -> T:
    """
    Run a CPU-bound function in a worker thread with a timeout.

    On timeout or worker failure the function is run again in-process, so
    func must be free of side effects.
    """
    try:
        return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Offloaded {func.__name__} timed out after {timeout}s, running in-process")
    except Exception as e:
        logger.warning(f"Offloaded {func.__name__} failed ({e}), running in-process")
    return func(*args)
