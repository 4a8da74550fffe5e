"""Keyed background tasks for fire-and-forget side effects."""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional


class BackgroundTaskRunner:
    """Run side effects off the request path, at most one in flight per key.

    A second submit for a key whose task is still running is dropped, so the
    task body is expected to drain whatever work accumulated for its key
    before it returns. A global semaphore caps how many bodies run at once.
    Failures are logged and counted; close() waits for in-flight work so
    durable writes are not cut off at shutdown.
    """

    def __init__(self, max_concurrency: int = 100, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.max_concurrency = max_concurrency
        self.failures = 0
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._tasks: Dict[str, asyncio.Task] = {}
        self._closed = False

    def __len__(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    def in_flight(self, key: str) -> bool:
        task = self._tasks.get(key)
        return task is not None and not task.done()

    def submit(self, key: str, job: Callable[[], Awaitable[None]]) -> bool:
        """Schedule `job()` under `key`.

        Returns:
            True if a new task was started, False if one was already running
            for the key or the runner is closed
        """
        if self._closed:
            self.logger.warning(f"Background runner closed, dropping task {key}")
            return False
        if self.in_flight(key):
            return False

        task = asyncio.create_task(self._run(job), name=f"background:{key}")
        self._tasks[key] = task
        task.add_done_callback(lambda t, k=key: self._on_done(k, t))
        return True

    async def _run(self, job: Callable[[], Awaitable[None]]) -> None:
        async with self._semaphore:
            await job()

    def _on_done(self, key: str, task: asyncio.Task) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.failures += 1
            self.logger.error(f"Background task {key} failed: {exc!r}")

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for every in-flight task (up to `timeout` seconds)."""
        pending = [task for task in self._tasks.values() if not task.done()]
        if pending:
            await asyncio.wait(pending, timeout=timeout)

    async def close(self, timeout: float = 10.0) -> None:
        """Stop accepting work, drain, then cancel stragglers."""
        self._closed = True
        await self.drain(timeout)
        for key, task in list(self._tasks.items()):
            if not task.done():
                self.logger.warning(f"Cancelling background task {key} at shutdown")
                task.cancel()
