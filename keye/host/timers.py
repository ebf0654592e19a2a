"""Process-local timer services.

The coordinator never touches the event loop directly; it schedules
short-horizon callbacks (debounce windows, auto-stop quiet periods) through
a ``TimerService``. Production code uses the running asyncio loop, tests use
``ManualTimerService`` and advance simulated time explicitly.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import time
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class TimerService(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...

    def now(self) -> float:
        """Current wall-clock time in seconds since the epoch."""
        ...


class AsyncioTimerService:
    """Timer service backed by ``loop.call_later``."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)

    def now(self) -> float:
        return time.time()


class _ManualTimer:
    def __init__(self, when: float, callback: Callable[[], None]):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualTimerService:
    """Deterministic timer service whose clock only moves when advanced."""

    def __init__(self, start: float = 0.0):
        self._now = start
        self._queue: list[tuple[float, int, _ManualTimer]] = []
        self._sequence = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> _ManualTimer:
        timer = _ManualTimer(self._now + max(delay, 0), callback)
        heapq.heappush(self._queue, (timer.when, next(self._sequence), timer))
        return timer

    def now(self) -> float:
        return self._now

    @property
    def pending(self) -> int:
        """Number of scheduled callbacks that have not fired or been cancelled."""
        return sum(1 for _, _, timer in self._queue if not timer.cancelled)

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing due callbacks in deadline order.

        Callbacks scheduled while advancing fire too if they fall due before
        the target time.

        Returns:
            Number of callbacks fired.
        """
        target = self._now + seconds
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            when, _, timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self._now = when
            timer.callback()
            fired += 1
        self._now = target
        logger.debug('Manual clock advanced to %.3f, fired %d timers', target, fired)
        return fired
