# trendscope/view/scheduler.py
"""
Cancellable scheduled tasks.

The controller never touches timers directly: it asks a `Scheduler` for a
`call_later` and keeps the returned handle. `ThreadingScheduler` fires on a
timer thread; `ManualScheduler` fires when its owner advances the clock, which
suits hosts that pump their own event loop and keeps tests free of sleeps.
"""
from __future__ import annotations

import heapq
import itertools
import logging
import threading
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)


class TaskHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay_s: float, fn: Callable[[], Any]) -> TaskHandle: ...


class ThreadingScheduler:
    def call_later(self, delay_s: float, fn: Callable[[], Any]) -> TaskHandle:
        timer = threading.Timer(delay_s, fn)
        timer.daemon = True
        timer.start()
        return timer


class _ManualHandle:
    __slots__ = ("when", "seq", "fn", "cancelled")

    def __init__(self, when: float, seq: int, fn: Callable[[], Any]) -> None:
        self.when = when
        self.seq = seq
        self.fn = fn
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def __lt__(self, other: "_ManualHandle") -> bool:
        return (self.when, self.seq) < (other.when, other.seq)


class ManualScheduler:
    """Deterministic scheduler driven by `advance()`."""

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: list[_ManualHandle] = []
        self._seq = itertools.count()

    def call_later(self, delay_s: float, fn: Callable[[], Any]) -> TaskHandle:
        handle = _ManualHandle(self.now + max(0.0, delay_s), next(self._seq), fn)
        heapq.heappush(self._queue, handle)
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for h in self._queue if not h.cancelled)

    def advance(self, seconds: float) -> int:
        """Move the clock forward and run every task that became due. Returns the count run."""
        target = self.now + seconds
        ran = 0
        while self._queue and self._queue[0].when <= target:
            handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self.now = handle.when
            handle.fn()
            ran += 1
        self.now = target
        return ran


class DebouncedTask:
    """
    Runs `fn` once, `delay_s` after the last `trigger()`.

    Each trigger replaces the pending argument and restarts the delay, so a
    burst of triggers (continuous drag) costs a single call with the last
    argument.
    """

    def __init__(self, fn: Callable[[Any], Any], delay_s: float, scheduler: Scheduler | None = None) -> None:
        self._fn = fn
        self._delay_s = delay_s
        self._scheduler = scheduler or ThreadingScheduler()
        self._lock = threading.Lock()
        self._handle: TaskHandle | None = None
        self._arg: Any = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self, arg: Any = None) -> None:
        with self._lock:
            if self._handle is not None:
                self._handle.cancel()
            self._generation += 1
            generation = self._generation
            self._arg = arg
            self._handle = self._scheduler.call_later(self._delay_s, lambda: self._fire(generation))

    def _fire(self, generation: int) -> None:
        with self._lock:
            # A timer that raced with a later trigger() is stale.
            if generation != self._generation or self._handle is None:
                return
            arg = self._arg
            self._handle = None
            self._arg = None
        self._fn(arg)

    def cancel(self) -> None:
        with self._lock:
            if self._handle is not None:
                self._handle.cancel()
            self._handle = None
            self._arg = None
            self._generation += 1

    def flush(self) -> bool:
        """Run the pending call now. Returns False when nothing was pending."""
        with self._lock:
            if self._handle is None:
                return False
            self._handle.cancel()
            arg = self._arg
            self._handle = None
            self._arg = None
            self._generation += 1
        self._fn(arg)
        return True
