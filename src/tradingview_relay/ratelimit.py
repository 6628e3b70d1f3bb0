"""Sliding-window rate limiting for inbound requests and outbound sends."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque

logger = logging.getLogger(__name__)

GLOBAL_KEY = "*"


class SlidingWindowLimiter:
    """Allow at most ``limit`` events per ``window`` seconds per key.

    ``try_acquire`` rejects immediately (inbound HTTP), ``acquire`` waits
    for a free slot (outbound API calls).
    """

    def __init__(self, limit: int, window: float = 60.0) -> None:
        """Initialize the limiter.

        Args:
            limit: Maximum events allowed inside one window.
            window: Window length in seconds.
        """
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.limit = limit
        self.window = window
        self._events: dict[str, deque[float]] = {}
        self._last_sweep = time.monotonic()
        self._lock = asyncio.Lock()

    def _sweep(self, now: float) -> None:
        """Drop every key whose newest event has left the window."""
        if now - self._last_sweep < self.window:
            return
        self._last_sweep = now
        expired = [k for k, events in self._events.items() if now - events[-1] >= self.window]
        for key in expired:
            del self._events[key]

    def _prune(self, key: str, now: float) -> deque[float]:
        events = self._events.get(key)
        if events is None:
            return deque()
        while events and now - events[0] >= self.window:
            events.popleft()
        if not events:
            del self._events[key]
        return events

    def try_acquire(self, key: str = GLOBAL_KEY) -> bool:
        """Record an event for ``key`` if the window has room.

        Returns:
            True if the event is allowed, False if the limit is reached.
        """
        now = time.monotonic()
        self._sweep(now)
        events = self._prune(key, now)
        if len(events) >= self.limit:
            return False
        events.append(now)
        self._events[key] = events
        return True

    def retry_after(self, key: str = GLOBAL_KEY) -> float:
        """Seconds until ``key`` has a free slot again."""
        now = time.monotonic()
        events = self._prune(key, now)
        if len(events) < self.limit:
            return 0.0
        return max(0.0, self.window - (now - events[0]))

    async def acquire(self, key: str = GLOBAL_KEY) -> None:
        """Wait until an event for ``key`` is allowed, then record it."""
        async with self._lock:
            while not self.try_acquire(key):
                wait_time = self.retry_after(key)
                logger.debug("Rate limit hit for %s, waiting %.2fs", key, wait_time)
                await asyncio.sleep(wait_time)
