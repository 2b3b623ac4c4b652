# trendscope/workers/scheduler.py
"""
Request table for the background stats worker.

`StatsScheduler` issues request ids, remembers every request it issued and
what became of it, and decides which responses are authoritative: only
messages for the most recently issued request are accepted; anything else is
recorded in the table and otherwise dropped.

`poll()` and `wait()` consume the same response queue and are meant to be
called from one thread (the interaction thread).
"""
from __future__ import annotations

import enum
import itertools
import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable

from trendscope.config import DEFAULT_CONFIG, EngineConfig
from trendscope.core import (
    Domain,
    Series,
    StatsCancelled,
    StatsRequestFailed,
    StatsTimeout,
    VariableStats,
)

from .stats_worker import (
    BackgroundStatsWorker,
    ErrorMessage,
    ProgressMessage,
    ResultMessage,
    StatsMessage,
    StatsRequest,
)

logger = logging.getLogger(__name__)


class RequestStatus(enum.Enum):
    PENDING = "pending"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class PendingRequest:
    request_id: str
    domain: Domain
    dataset_version: int | None = None
    status: RequestStatus = RequestStatus.PENDING
    percent: int = 0
    stats: tuple[VariableStats, ...] | None = None
    reason: str | None = None
    issued_at: float = field(default_factory=time.monotonic)

    @property
    def finished(self) -> bool:
        return self.status is not RequestStatus.PENDING


class StatsScheduler:
    def __init__(
        self,
        config: EngineConfig = DEFAULT_CONFIG,
        *,
        worker_factory: Callable[[Callable[[StatsMessage], None]], BackgroundStatsWorker] | None = None,
        max_history: int = 64,
    ) -> None:
        self._responses: queue.Queue[StatsMessage] = queue.Queue()
        if worker_factory is None:
            self._worker = BackgroundStatsWorker(self._responses.put, progress_every=config.progress_every)
        else:
            self._worker = worker_factory(self._responses.put)

        self._table: dict[str, PendingRequest] = {}
        self._latest: str | None = None
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._max_history = max_history

        self._progress_listeners: list[Callable[[ProgressMessage], None]] = []
        self._result_listeners: list[Callable[[ResultMessage], None]] = []
        self._error_listeners: list[Callable[[ErrorMessage], None]] = []

    # ---- listeners (called from poll/wait, on the caller's thread) ----
    def on_progress(self, callback: Callable[[ProgressMessage], None]) -> None:
        self._progress_listeners.append(callback)

    def on_result(self, callback: Callable[[ResultMessage], None]) -> None:
        self._result_listeners.append(callback)

    def on_error(self, callback: Callable[[ErrorMessage], None]) -> None:
        self._error_listeners.append(callback)

    # ---- table ----
    @property
    def latest_id(self) -> str | None:
        return self._latest

    def is_latest(self, request_id: str) -> bool:
        return request_id == self._latest

    def request(self, request_id: str) -> PendingRequest:
        return self._table[request_id]

    # ---- issuing ----
    def submit(
        self,
        series: Iterable[Series],
        domain: Domain,
        *,
        dataset_version: int | None = None,
    ) -> str:
        with self._lock:
            request_id = f"stats-{next(self._ids)}"
            self._table[request_id] = PendingRequest(request_id, domain, dataset_version)
            self._latest = request_id
            self._prune()
        self._worker.submit(StatsRequest(request_id, domain, tuple(series)))
        logger.debug("Issued %s for [%s, %s]", request_id, domain.start, domain.end)
        return request_id

    def cancel(self, request_id: str) -> None:
        self._worker.cancel(request_id)

    def close(self, *, timeout: float | None = 1.0) -> None:
        self._worker.shutdown(wait=True, timeout=timeout)
        self.poll()

    # ---- consuming ----
    def poll(self, timeout: float = 0.0) -> list[StatsMessage]:
        """
        Drain available responses and return the accepted ones (latest id only).

        With `timeout > 0`, block up to that long for the first message.
        """
        accepted: list[StatsMessage] = []
        block = timeout > 0
        while True:
            try:
                msg = self._responses.get(block=block, timeout=timeout if block else None)
            except queue.Empty:
                return accepted
            block = False
            if self._apply(msg):
                accepted.append(msg)

    def wait(self, request_id: str, timeout: float | None = None) -> list[VariableStats]:
        """
        Block until `request_id` is answered.

        Raises StatsCancelled if it was superseded or cancelled,
        StatsRequestFailed if the worker raised, and StatsTimeout (after
        cancelling the request) when `timeout` seconds pass first.
        """
        entry = self._table.get(request_id)
        if entry is None:
            raise KeyError(request_id)

        deadline = None if timeout is None else time.monotonic() + timeout
        while not entry.finished:
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                self.cancel(request_id)
                raise StatsTimeout(request_id, f"no answer within {timeout:.3f}s")
            try:
                msg = self._responses.get(timeout=remaining)
            except queue.Empty:
                continue
            self._apply(msg)

        if entry.status is RequestStatus.DONE:
            return list(entry.stats or ())
        if entry.status is RequestStatus.CANCELLED:
            raise StatsCancelled(request_id, entry.reason or "cancelled")
        raise StatsRequestFailed(request_id, entry.reason or "failed")

    # ---- internals ----
    def _apply(self, msg: StatsMessage) -> bool:
        entry = self._table.get(msg.request_id)
        if entry is not None:
            if isinstance(msg, ProgressMessage):
                entry.percent = msg.percent
            elif isinstance(msg, ResultMessage):
                entry.status = RequestStatus.DONE
                entry.percent = 100
                entry.stats = msg.stats
            elif isinstance(msg, ErrorMessage):
                entry.status = RequestStatus.CANCELLED if msg.cancelled else RequestStatus.FAILED
                entry.reason = msg.reason

        if not self.is_latest(msg.request_id):
            logger.debug("Discarding %s for stale request %s", type(msg).__name__, msg.request_id)
            return False

        if isinstance(msg, ProgressMessage):
            listeners = self._progress_listeners
        elif isinstance(msg, ResultMessage):
            listeners = self._result_listeners
        else:
            listeners = self._error_listeners
        for callback in list(listeners):
            callback(msg)
        return True

    def _prune(self) -> None:
        if len(self._table) <= self._max_history:
            return
        for rid in [r for r, e in self._table.items() if e.finished][: len(self._table) - self._max_history]:
            del self._table[rid]
