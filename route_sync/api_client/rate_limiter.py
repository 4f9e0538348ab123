"""Process-wide request pacing shared by every API caller."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Awaitable, Callable, Deque

from ..config import (
    RATE_LIMIT_MAX_PER_WINDOW,
    RATE_LIMIT_MIN_INTERVAL_S,
    RATE_LIMIT_SAFETY_MARGIN_S,
    RATE_LIMIT_WINDOW_S,
)

__all__ = ["RateLimiter", "get_default_limiter"]

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class RateLimiter:
    """Minimum spacing plus a sliding-window cap on request starts.

    State is only touched between awaits on the event loop, so the
    cooperative scheduler gives single-writer access without a lock.
    """

    def __init__(
        self,
        *,
        min_interval: float = RATE_LIMIT_MIN_INTERVAL_S,
        max_per_window: int = RATE_LIMIT_MAX_PER_WINDOW,
        window_size: float = RATE_LIMIT_WINDOW_S,
        safety_margin: float = RATE_LIMIT_SAFETY_MARGIN_S,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if max_per_window < 1:
            raise ValueError("max_per_window must be >= 1")
        if window_size <= 0:
            raise ValueError("window_size must be > 0")
        self._min_interval = max(0.0, min_interval)
        self._max_per_window = max_per_window
        self._window_size = window_size
        self._safety_margin = max(0.0, safety_margin)
        self._clock = clock
        self._sleep = sleep
        self._last_request: float | None = None
        self._history: Deque[float] = deque()

    def _prune(self, now: float) -> None:
        cutoff = now - self._window_size
        while self._history and self._history[0] <= cutoff:
            self._history.popleft()

    def _required_wait(self, now: float) -> float:
        self._prune(now)
        wait_for = 0.0
        if self._last_request is not None:
            wait_for = self._last_request + self._min_interval - now
        if len(self._history) >= self._max_per_window:
            oldest = self._history[0]
            window_wait = oldest + self._window_size - now + self._safety_margin
            if window_wait > wait_for:
                LOGGER.debug(
                    "Rate limit window full (%d/%ss); waiting %.3fs",
                    len(self._history),
                    self._window_size,
                    window_wait,
                )
                wait_for = window_wait
        return wait_for

    async def acquire(self) -> None:
        """Wait until a request may start, then record its start time."""

        while True:
            wait_for = self._required_wait(self._clock())
            if wait_for <= 0:
                break
            await self._sleep(wait_for)
        now = self._clock()
        self._last_request = now
        self._history.append(now)

    def reset(self) -> None:
        self._last_request = None
        self._history.clear()

    def snapshot(self) -> dict[str, float | int | None]:
        """Return current limiter stats (used by tests and diagnostics)."""

        return {
            "max_per_window": self._max_per_window,
            "in_window": len(self._history),
            "last_request": self._last_request,
        }


_DEFAULT_LIMITER = RateLimiter()


def get_default_limiter() -> RateLimiter:
    """Return the shared process-wide limiter."""

    return _DEFAULT_LIMITER
