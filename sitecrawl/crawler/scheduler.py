"""
Bounded worker pool that runs crawl tasks with a global concurrency ceiling.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional


@dataclass(frozen=True)
class CrawlTask:
    """A URL to visit and its distance from the seed."""
    url: str
    depth: int
    parent_url: Optional[str] = None

    def __post_init__(self):
        if self.depth < 0:
            raise ValueError(f"depth must be non-negative, got {self.depth}")


TaskHandler = Callable[[CrawlTask], Awaitable[None]]


class Scheduler:
    """
    Runs submitted tasks on a fixed number of consumer coroutines.

    Tasks go into an unbounded asyncio.Queue; exactly ``capacity`` workers
    consume it, so at most ``capacity`` handlers are in flight. ``run()``
    returns once the queue is empty and no handler is running. Tasks
    submitted by a handler are queued before that handler's slot is
    released, so quiescence cannot be observed early.

    ``active``, ``peak_active``, ``completed`` and ``failed`` count handler
    dispatches, including tasks the handler drops straight away as
    duplicates. Fetch accounting belongs to the handler.
    """

    def __init__(self, handler: TaskHandler, capacity: int):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")

        self.handler = handler
        self.capacity = capacity
        self.logger = logging.getLogger(__name__)

        self._queue: asyncio.Queue = asyncio.Queue()
        self._workers: List[asyncio.Task] = []

        self.active = 0
        self.peak_active = 0
        self.submitted = 0
        self.completed = 0
        self.failed = 0

    def submit(self, task: CrawlTask):
        """Queue a task. Never blocks."""
        self._queue.put_nowait(task)
        self.submitted += 1

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def is_quiescent(self) -> bool:
        return self.active == 0 and self._queue.empty()

    async def run(self):
        """Start the workers and wait until every submitted task has finished."""
        if self._workers:
            raise RuntimeError("Scheduler is already running")

        self._workers = [
            asyncio.create_task(self._worker(f"worker-{i}"))
            for i in range(self.capacity)
        ]
        self.logger.info(f"Started {self.capacity} workers")

        try:
            await self._queue.join()
        finally:
            await self.close()

        self.logger.debug(
            f"Scheduler drained: {self.completed} completed, {self.failed} failed"
        )

    async def _worker(self, worker_id: str):
        self.logger.debug(f"Worker {worker_id} started")

        while True:
            task = await self._queue.get()
            self.active += 1
            self.peak_active = max(self.peak_active, self.active)
            try:
                await self.handler(task)
                self.completed += 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.failed += 1
                self.logger.error(f"Worker {worker_id} failed on {task.url}: {e}", exc_info=True)
            finally:
                self.active -= 1
                self._queue.task_done()

    async def close(self):
        """Cancel the workers. Safe to call more than once."""
        workers, self._workers = self._workers, []
        for worker in workers:
            if not worker.done():
                worker.cancel()
        if workers:
            await asyncio.gather(*workers, return_exceptions=True)
