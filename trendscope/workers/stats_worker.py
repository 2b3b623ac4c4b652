# trendscope/workers/stats_worker.py
"""
Background statistics worker.

Runs window statistics on a dedicated thread and talks to its owner only
through messages: requests go in through `submit()`, responses come out
through the `post` callable given at construction. Requests carry read-only
Series snapshots, so no mutable state is shared with the caller.

Contract:
- one computation in flight at a time
- every request is answered exactly once, with a ResultMessage or an
  ErrorMessage; a request superseded by a newer one gets an ErrorMessage with
  `cancelled=True` before the newer one starts
- ProgressMessage every `progress_every` records
"""
from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import Callable, Union

import numpy as np

from trendscope.core import Domain, Series, VariableStats, compute

logger = logging.getLogger(__name__)

DEFAULT_PROGRESS_EVERY = 1_000

SUPERSEDED = "cancelled: superseded by a newer request"
CANCELLED = "cancelled by caller"
SHUT_DOWN = "cancelled: worker shut down"


@dataclass(frozen=True, slots=True)
class StatsRequest:
    request_id: str
    domain: Domain
    series: tuple[Series, ...] = field(repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "series", tuple(self.series))


@dataclass(frozen=True, slots=True)
class ProgressMessage:
    request_id: str
    percent: int


@dataclass(frozen=True, slots=True)
class ResultMessage:
    request_id: str
    stats: tuple[VariableStats, ...]


@dataclass(frozen=True, slots=True)
class ErrorMessage:
    request_id: str
    reason: str
    cancelled: bool = False


StatsMessage = Union[ProgressMessage, ResultMessage, ErrorMessage]

_STOP = object()


class _Cancelled(Exception):
    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class BackgroundStatsWorker:
    def __init__(
        self,
        post: Callable[[StatsMessage], None],
        *,
        progress_every: int = DEFAULT_PROGRESS_EVERY,
        name: str = "trendscope-stats",
    ) -> None:
        if progress_every <= 0:
            raise ValueError("progress_every must be positive")
        self._post = post
        self._progress_every = progress_every
        self._name = name

        self._inbox: queue.Queue = queue.Queue()
        self._lock = threading.Lock()
        self._queued = 0
        self._pending: set[str] = set()
        self._cancelled: set[str] = set()
        self._stopping = threading.Event()
        self._thread: threading.Thread | None = None
        self._current: str | None = None

    # ---- lifecycle ----
    def start(self) -> None:
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._stopping.clear()
            self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
            self._thread.start()

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def current_request(self) -> str | None:
        return self._current

    def shutdown(self, *, wait: bool = True, timeout: float | None = None) -> None:
        """Stop the thread. Queued and running requests are answered as cancelled."""
        self._stopping.set()
        self._inbox.put(_STOP)
        if wait and self._thread is not None:
            self._thread.join(timeout)

    # ---- requests ----
    def submit(self, request: StatsRequest) -> None:
        if self._stopping.is_set():
            raise RuntimeError("worker is shut down")
        self.start()
        with self._lock:
            self._queued += 1
            self._pending.add(request.request_id)
        self._inbox.put(request)

    def cancel(self, request_id: str) -> None:
        """
        Ask for `request_id` to stop at its next progress check. Ids that are
        neither queued nor running have nothing to stop and are ignored.
        """
        with self._lock:
            if request_id != self._current and request_id not in self._pending:
                logger.debug("cancel(%s): not queued or running", request_id)
                return
            self._cancelled.add(request_id)

    # ---- worker thread ----
    def _run(self) -> None:
        while True:
            item = self._inbox.get()
            if item is _STOP:
                self._drain()
                return
            with self._lock:
                self._queued -= 1
                self._pending.discard(item.request_id)
                self._current = item.request_id
            self._process(item)

    def _drain(self) -> None:
        while True:
            try:
                item = self._inbox.get_nowait()
            except queue.Empty:
                return
            if item is not _STOP:
                with self._lock:
                    self._pending.discard(item.request_id)
                self._send(ErrorMessage(item.request_id, SHUT_DOWN, cancelled=True))

    def _check(self, request_id: str) -> None:
        if self._stopping.is_set():
            raise _Cancelled(SHUT_DOWN)
        with self._lock:
            if request_id in self._cancelled:
                self._cancelled.discard(request_id)
                raise _Cancelled(CANCELLED)
            if self._queued > 0:
                raise _Cancelled(SUPERSEDED)

    def _process(self, request: StatsRequest) -> None:
        rid = request.request_id
        try:
            self._check(rid)
            stats = self._compute(request)
            self._check(rid)
        except _Cancelled as c:
            logger.info("Stats request %s %s", rid, c.reason)
            self._send(ErrorMessage(rid, c.reason, cancelled=True))
            return
        except Exception as e:
            logger.error("Stats request %s failed: %s", rid, e, exc_info=True)
            self._send(ErrorMessage(rid, f"{type(e).__name__}: {e}"))
            return
        finally:
            with self._lock:
                self._current = None
                self._cancelled.discard(rid)

        self._send(ResultMessage(rid, stats))

    def _compute(self, request: StatsRequest) -> tuple[VariableStats, ...]:
        rid = request.request_id
        cadence = self._progress_every
        bounds = [s.window_bounds(request.domain) for s in request.series]
        total = sum(hi - lo for lo, hi in bounds)

        processed = 0
        next_tick = cadence
        out: list[VariableStats] = []

        for s, (lo, hi) in zip(request.series, bounds):
            parts: list[np.ndarray] = []
            pos = lo
            while pos < hi:
                step = min(hi - pos, next_tick - processed)
                parts.append(s.values[pos:pos + step])
                pos += step
                processed += step
                if processed >= next_tick:
                    next_tick += cadence
                    self._check(rid)
                    self._send(ProgressMessage(rid, int(processed * 100 // total)))

            values = np.concatenate(parts) if parts else np.empty(0)
            out.append(VariableStats(variable=s.variable, stats=compute(values)))

        return tuple(out)

    def _send(self, message: StatsMessage) -> None:
        try:
            self._post(message)
        except Exception:
            logger.exception("Posting %s failed", type(message).__name__)
