"""Sliding-window request limiter for the elevation provider quota."""

import asyncio
import logging
import time
from collections import deque
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

DEFAULT_CALLER = "default"


class RateLimiter:
    """Admit at most ``max_requests`` per caller in any trailing window.

    Each caller's request timestamps are kept in their own deque. When a
    caller's window is full, ``acquire`` sleeps until the oldest timestamp
    leaves the window, plus a fixed backoff. Idle time does not bank extra
    capacity: at most ``max_requests`` timestamps ever sit in the window.

    Callers are serialised per id with an asyncio lock, so concurrent
    acquirers of one id cannot both slip into the last free slot.
    """

    def __init__(
        self,
        max_requests: int = 40,
        window_seconds: float = 60.0,
        retry_after_seconds: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.retry_after_seconds = retry_after_seconds
        self._clock = clock
        self._sleep = sleep
        self._requests: dict[str, deque[float]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _prune(self, timestamps: deque[float], now: float) -> None:
        while timestamps and timestamps[0] <= now - self.window_seconds:
            timestamps.popleft()

    async def acquire(self, caller_id: str = DEFAULT_CALLER) -> None:
        """Wait until the caller has a free slot, then record the request."""
        timestamps = self._requests.setdefault(caller_id, deque())
        lock = self._locks.setdefault(caller_id, asyncio.Lock())

        async with lock:
            now = self._clock()
            self._prune(timestamps, now)

            while len(timestamps) >= self.max_requests:
                wait = timestamps[0] + self.window_seconds - now + self.retry_after_seconds
                logger.info(
                    "Rate limit reached for %s (%d/%d), waiting %.1fs",
                    caller_id, len(timestamps), self.max_requests, wait,
                )
                await self._sleep(wait)
                now = self._clock()
                self._prune(timestamps, now)

            timestamps.append(now)

    def remaining(self, caller_id: str = DEFAULT_CALLER) -> int:
        """Free slots for the caller in the current window."""
        timestamps = self._requests.get(caller_id)
        if not timestamps:
            return self.max_requests
        self._prune(timestamps, self._clock())
        return self.max_requests - len(timestamps)

    def reset(self) -> None:
        self._requests.clear()
        self._locks.clear()
