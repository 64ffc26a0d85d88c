"""Bounded pool of asyncio tasks."""

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

Task = Callable[[], Awaitable[None]]


class ConcurrencyPool:
    """Run at most ``concurrency`` tasks at once, queueing the rest FIFO.

    Tasks are zero-argument coroutine functions. A failing task is logged and
    forgotten; it never stops its siblings. The pool collects no results:
    tasks report through whatever state their closures share.

    Counters are only touched from the event loop thread.
    """

    def __init__(self, concurrency: int = 3):
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self.concurrency = concurrency
        self._queue: deque[Task] = deque()
        self._running = 0
        self._max_running = 0
        self._tasks: set[asyncio.Task] = set()
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def running(self) -> int:
        return self._running

    @property
    def queued(self) -> int:
        return len(self._queue)

    @property
    def max_running(self) -> int:
        """Highest number of tasks ever running at the same time."""
        return self._max_running

    def submit(self, task: Task) -> None:
        """Start the task now if there is capacity, otherwise queue it."""
        if self._running < self.concurrency:
            self._start(task)
        else:
            self._queue.append(task)
            self._idle.clear()

    def _start(self, task: Task) -> None:
        self._running += 1
        self._max_running = max(self._max_running, self._running)
        self._idle.clear()
        handle = asyncio.create_task(self._run(task))
        self._tasks.add(handle)
        handle.add_done_callback(self._tasks.discard)

    async def _run(self, task: Task) -> None:
        try:
            await task()
        except Exception:
            logger.exception("Pool task failed")
        finally:
            self._running -= 1
            while self._queue and self._running < self.concurrency:
                self._start(self._queue.popleft())
            if self._running == 0 and not self._queue:
                self._idle.set()

    async def complete(self) -> None:
        """Wait until nothing is running or queued."""
        while self._running or self._queue:
            await self._idle.wait()
