"""Clock collaborators for the FormFlow engine.

The engine never reads the system time or schedules callbacks directly. It
asks a Clock, so tests can substitute ManualClock and step time explicitly.

- SystemClock: local wall-clock time and the running asyncio event loop
- ManualClock: deterministic virtual time; timers fire only on advance()

Usage:
    >>> clock = ManualClock()
    >>> fired = []
    >>> handle = clock.call_later(5, lambda: fired.append(clock.elapsed))
    >>> clock.advance(4)
    >>> fired
    []
    >>> clock.advance(1)
    >>> fired
    [5.0]
"""

import asyncio
import heapq
import itertools
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple

from typing_extensions import Protocol, runtime_checkable


@runtime_checkable
class TimerHandle(Protocol):
    """A scheduled callback that can be cancelled before it fires."""

    def cancel(self) -> None:
        ...


@runtime_checkable
class Clock(Protocol):
    """Source of the current instant and of delayed callbacks."""

    def now(self) -> datetime:
        ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...

    async def sleep(self, delay: float) -> None:
        ...


class SystemClock:
    """Clock backed by local time and the running asyncio event loop.

    call_later() must be called from inside a running loop; it returns the
    loop's asyncio.TimerHandle.
    """

    def now(self) -> datetime:
        return datetime.now().astimezone()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)

    async def sleep(self, delay: float) -> None:
        await asyncio.sleep(delay)


class ManualTimer:
    """Timer handle returned by ManualClock.call_later()."""

    def __init__(self, when: float, callback: Callable[[], None]):
        self.when = when
        self.callback = callback
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "pending"
        return f"<ManualTimer when={self.when} {state}>"


class ManualClock:
    """Deterministic clock for tests.

    Time only moves when advance() or sleep() is called. Timers due within the
    advanced span fire in order of due time (ties in scheduling order), and
    the clock reads the timer's due time while its callback runs.

    Attributes:
        start: Instant that now() returns before any time has elapsed
    """

    def __init__(self, start: Optional[datetime] = None):
        self.start = start or datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)
        self._elapsed = 0.0
        self._seq = itertools.count()
        self._timers: List[Tuple[float, int, ManualTimer]] = []

    @property
    def elapsed(self) -> float:
        """Virtual seconds since the clock was created."""
        return self._elapsed

    @property
    def pending(self) -> int:
        """Number of scheduled timers that have not fired or been cancelled."""
        return sum(1 for _, _, t in self._timers if not t.cancelled())

    def now(self) -> datetime:
        return self.start + timedelta(seconds=self._elapsed)

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        if delay < 0:
            raise ValueError(f"delay must be non-negative, got {delay}")
        timer = ManualTimer(self._elapsed + delay, callback)
        heapq.heappush(self._timers, (timer.when, next(self._seq), timer))
        return timer

    def advance(self, seconds: float) -> None:
        """Move time forward, firing every timer that falls due."""
        if seconds < 0:
            raise ValueError(f"cannot advance by a negative amount: {seconds}")
        target = self._elapsed + seconds
        while self._timers and self._timers[0][0] <= target:
            _, _, timer = heapq.heappop(self._timers)
            if timer.cancelled():
                continue
            self._elapsed = timer.when
            timer.callback()
        self._elapsed = target

    async def sleep(self, delay: float) -> None:
        """Advance virtual time by ``delay`` and yield to the event loop once."""
        self.advance(delay)
        await asyncio.sleep(0)


__all__ = [
    "Clock",
    "TimerHandle",
    "SystemClock",
    "ManualClock",
    "ManualTimer",
]
