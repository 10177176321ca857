"""
Periodic timers driven by an injected clock.

Nothing here sleeps or spawns threads: the owner calls `run_pending()` from its
own loop (the pygame frame loop, or a test advancing a `ManualClock`) and every
timer that came due since the last call fires in time order.
"""
import heapq
import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)


class ManualClock:
    """Clock that only moves when told to. Milliseconds."""

    def __init__(self, start_ms: float = 0.0):
        self._now = float(start_ms)

    def now(self) -> float:
        return self._now

    def advance(self, ms: float) -> float:
        if ms < 0:
            raise ValueError("time cannot go backwards")
        self._now += ms
        return self._now


class SystemClock:
    def now(self) -> float:
        return time.monotonic() * 1000


@dataclass(order=True)
class _Firing:
    due: float
    seq: int
    name: str = field(compare=False)


@dataclass
class PeriodicTimer:
    name: str
    period_ms: float
    callback: Callable[[float], None]
    next_due: float
    fired: int = 0


class Scheduler:
    """
    Named periodic timers. A timer first fires one period after it is
    registered and then every period after that; missed periods are caught up
    one firing at a time, each callback receiving the time it was due.
    """

    def __init__(self, clock=None):
        self.clock = clock or SystemClock()
        self.timers: Dict[str, PeriodicTimer] = {}
        self._queue: List[_Firing] = []
        self._seq = itertools.count()
        self.running = False

    def every(self, name: str, period_ms: float, callback: Callable[[float], None]) -> PeriodicTimer:
        if period_ms <= 0:
            raise ValueError(f"timer {name!r} needs a positive period, got {period_ms}")
        if name in self.timers:
            self.cancel(name)
        timer = PeriodicTimer(name, period_ms, callback, self.clock.now() + period_ms)
        self.timers[name] = timer
        heapq.heappush(self._queue, _Firing(timer.next_due, next(self._seq), name))
        self.running = True
        logger.debug("Timer %s every %s ms", name, period_ms)
        return timer

    def cancel(self, name: str) -> bool:
        # queued firings for a cancelled timer are discarded lazily
        return self.timers.pop(name, None) is not None

    def stop(self) -> None:
        self.timers.clear()
        self._queue.clear()
        self.running = False

    def run_pending(self) -> int:
        """Fire every timer due at or before the clock's current time. Returns the number of firings."""
        now = self.clock.now()
        fired = 0
        while self._queue and self._queue[0].due <= now:
            firing = heapq.heappop(self._queue)
            timer = self.timers.get(firing.name)
            if timer is None or timer.next_due != firing.due:
                continue
            timer.next_due = firing.due + timer.period_ms
            heapq.heappush(self._queue, _Firing(timer.next_due, next(self._seq), timer.name))
            timer.fired += 1
            fired += 1
            timer.callback(firing.due)
        return fired

    def pending_count(self) -> int:
        return len(self.timers)
