from __future__ import annotations

import asyncio
import heapq
import itertools
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol

Callback = Callable[[], None]

# Same tolerance as advance(): n * 0.1 must still land on n-th due time
DUE_EPSILON = 1e-9


class Timer(Protocol):
    def cancel(self) -> None:
        """Stop the timer. Idempotent."""
        ...

    @property
    def active(self) -> bool:
        ...


class Clock(Protocol):
    """
    The only source of time the engine sees.
    """

    def now(self) -> float:
        ...

    def call_every(self, interval: float, callback: Callback) -> Timer:
        ...

    def call_later(self, delay: float, callback: Callback) -> Timer:
        ...


# =========================
# Manual (virtual) clock
# =========================

@dataclass(slots=True)
class _ManualTimer:
    clock: "ManualClock"
    callback: Callback
    start: float
    interval: Optional[float]
    fired: int = 0
    cancelled: bool = False

    @property
    def active(self) -> bool:
        return not self.cancelled

    @property
    def next_due(self) -> float:
        if self.interval is None:
            return self.start
        # computed from the fire counter, not accumulated
        return self.start + (self.fired + 1) * self.interval

    def cancel(self) -> None:
        self.cancelled = True


@dataclass(slots=True)
class ManualClock:
    """
    Deterministic virtual clock.

    Nothing happens until the owner calls advance() / step(); due callbacks then
    fire in (due time, registration order). Used by tests and offline replays.
    """

    _now: float = 0.0
    _queue: list[tuple[float, int, _ManualTimer]] = field(default_factory=list)
    _order: itertools.count = field(default_factory=itertools.count)

    def now(self) -> float:
        return self._now

    def call_every(self, interval: float, callback: Callback) -> _ManualTimer:
        if interval <= 0:
            raise ValueError("interval must be > 0")
        timer = _ManualTimer(clock=self, callback=callback, start=self._now, interval=interval)
        self._push(timer)
        return timer

    def call_later(self, delay: float, callback: Callback) -> _ManualTimer:
        if delay < 0:
            raise ValueError("delay must be >= 0")
        timer = _ManualTimer(clock=self, callback=callback, start=self._now + delay, interval=None)
        self._push(timer)
        return timer

    @property
    def pending(self) -> int:
        return sum(1 for _, _, t in self._queue if t.active)

    def advance(self, seconds: float) -> int:
        """
        Move time forward by `seconds`, firing everything due on the way.

        Returns the number of callbacks fired.
        """
        if seconds < 0:
            raise ValueError("seconds must be >= 0")
        target = self._now + seconds
        fired = 0
        while self._fire_next(until=target):
            fired += 1
        self._now = max(self._now, target)
        return fired

    def step(self) -> bool:
        """
        Jump to the next due callback and fire it. False if nothing is scheduled.
        """
        return self._fire_next(until=None)

    def _push(self, timer: _ManualTimer) -> None:
        heapq.heappush(self._queue, (timer.next_due, next(self._order), timer))

    def _fire_next(self, *, until: Optional[float]) -> bool:
        while self._queue:
            due, _, timer = self._queue[0]
            if timer.cancelled:
                heapq.heappop(self._queue)
                continue
            if until is not None and due > until + DUE_EPSILON:
                return False

            heapq.heappop(self._queue)
            self._now = max(self._now, due)
            if timer.interval is None:
                timer.cancelled = True
            else:
                timer.fired += 1
                self._push(timer)
            timer.callback()
            return True
        return False


# =========================
# asyncio clock
# =========================

class _AsyncioTimer:
    def __init__(self, loop: asyncio.AbstractEventLoop, callback: Callback, interval: Optional[float]) -> None:
        self._loop = loop
        self._callback = callback
        self._interval = interval
        self._start = loop.time()
        self._fired = 0
        self._handle: Optional[asyncio.TimerHandle] = None
        self._cancelled = False

    @property
    def active(self) -> bool:
        return not self._cancelled

    def arm(self, delay: float) -> None:
        self._handle = self._loop.call_later(delay, self._run)

    def cancel(self) -> None:
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _run(self) -> None:
        if self._cancelled:
            return
        if self._interval is None:
            self._cancelled = True
        else:
            self._fired += 1
            # re-arm against the original start so late callbacks do not drift
            due = self._start + (self._fired + 1) * self._interval
            self.arm(max(0.0, due - self._loop.time()))
        self._callback()


class AsyncioClock:
    """
    Real-time clock backed by an asyncio event loop (the running one by default).
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop or asyncio.get_running_loop()

    def now(self) -> float:
        return self._loop.time()

    def call_every(self, interval: float, callback: Callback) -> _AsyncioTimer:
        if interval <= 0:
            raise ValueError("interval must be > 0")
        timer = _AsyncioTimer(self._loop, callback, interval)
        timer.arm(interval)
        return timer

    def call_later(self, delay: float, callback: Callback) -> _AsyncioTimer:
        if delay < 0:
            raise ValueError("delay must be >= 0")
        timer = _AsyncioTimer(self._loop, callback, None)
        timer.arm(delay)
        return timer
