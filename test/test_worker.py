# test/test_worker.py
import queue
import threading

import numpy as np
import pytest

from trendscope.config import EngineConfig
from trendscope.core import (
    Domain,
    Series,
    StatsCancelled,
    StatsRequestFailed,
    StatsTimeout,
    VariableId,
    compute_window_stats,
)
from trendscope.workers import (
    BackgroundStatsWorker,
    ErrorMessage,
    ProgressMessage,
    RequestStatus,
    ResultMessage,
    StatsRequest,
    StatsScheduler,
    StatsService,
)
from trendscope.workers.stats_worker import CANCELLED, SUPERSEDED

TEMP = VariableId("TEMP", "A1")
PRESS = VariableId("PRESS", "B2")
TIMEOUT = 5.0


def _s(var, n, t0=0.0):
    t = t0 + np.arange(float(n))
    return Series(variable=var, time=t, values=np.cos(t))


def _until_final(out, request_id):
    """Messages for `request_id` up to and including its Result/Error."""
    seen = []
    while True:
        msg = out.get(timeout=TIMEOUT)
        if msg.request_id != request_id:
            continue
        seen.append(msg)
        if not isinstance(msg, ProgressMessage):
            return seen


class FakeWorker:
    """Stands in for the thread: records requests, the test posts the answers."""

    def __init__(self, post):
        self.post = post
        self.requests = []
        self.cancelled = []
        self.stopped = False

    def submit(self, request):
        self.requests.append(request)

    def cancel(self, request_id):
        self.cancelled.append(request_id)

    def shutdown(self, *, wait=True, timeout=None):
        self.stopped = True


class FailingWorker(FakeWorker):
    def submit(self, request):
        super().submit(request)
        self.post(ErrorMessage(request.request_id, "RuntimeError: boom"))


def _fake_scheduler(**kw):
    holder = {}

    def factory(post):
        holder["worker"] = FakeWorker(post)
        return holder["worker"]

    sched = StatsScheduler(worker_factory=factory, **kw)
    return sched, holder["worker"]


# ---- BackgroundStatsWorker ----

def test_worker_result_echoes_request_id():
    out = queue.Queue()
    worker = BackgroundStatsWorker(out.put)
    series = (_s(TEMP, 50), _s(PRESS, 10))
    domain = Domain(5.0, 30.0)
    try:
        worker.submit(StatsRequest("r1", domain, series))
        msgs = _until_final(out, "r1")
    finally:
        worker.shutdown(timeout=TIMEOUT)

    result = msgs[-1]
    assert isinstance(result, ResultMessage)
    assert result.request_id == "r1"
    assert list(result.stats) == compute_window_stats(series, domain)


def test_worker_reports_progress_every_n_records():
    out = queue.Queue()
    worker = BackgroundStatsWorker(out.put, progress_every=1000)
    series = (_s(TEMP, 1500), _s(PRESS, 1000))
    try:
        worker.submit(StatsRequest("r1", Domain(0.0, 5000.0), series))
        msgs = _until_final(out, "r1")
    finally:
        worker.shutdown(timeout=TIMEOUT)

    progress = [m.percent for m in msgs if isinstance(m, ProgressMessage)]
    assert progress == [40, 80]
    assert isinstance(msgs[-1], ResultMessage)
    assert msgs[-1].stats[0].stats.count == 1500
    assert msgs[-1].stats[1].stats.count == 1000


def test_worker_empty_window_returns_none_stats():
    out = queue.Queue()
    worker = BackgroundStatsWorker(out.put)
    try:
        worker.submit(StatsRequest("r1", Domain(900.0, 950.0), (_s(TEMP, 10),)))
        msgs = _until_final(out, "r1")
    finally:
        worker.shutdown(timeout=TIMEOUT)

    assert len(msgs) == 1
    assert msgs[0].stats[0].stats is None


def _gated_worker():
    """A worker whose first progress post for r1 blocks until the test releases it."""
    out = queue.Queue()
    entered = threading.Event()
    gate = threading.Event()

    def post(msg):
        out.put(msg)
        if isinstance(msg, ProgressMessage) and msg.request_id == "r1" and not gate.is_set():
            entered.set()
            gate.wait(TIMEOUT)

    worker = BackgroundStatsWorker(post, progress_every=100)
    return worker, out, entered, gate


def test_newer_request_supersedes_running_one():
    worker, out, entered, gate = _gated_worker()
    domain = Domain(0.0, 1000.0)
    try:
        worker.submit(StatsRequest("r1", domain, (_s(TEMP, 1000),)))
        assert entered.wait(TIMEOUT)

        worker.submit(StatsRequest("r2", domain, (_s(PRESS, 10),)))
        gate.set()

        r1 = _until_final(out, "r1")
        r2 = _until_final(out, "r2")
    finally:
        worker.shutdown(timeout=TIMEOUT)

    assert isinstance(r1[-1], ErrorMessage)
    assert r1[-1].cancelled
    assert r1[-1].reason == SUPERSEDED

    assert isinstance(r2[-1], ResultMessage)
    assert r2[-1].stats[0].variable == PRESS


def test_cancel_stops_running_request():
    worker, out, entered, gate = _gated_worker()
    try:
        worker.submit(StatsRequest("r1", Domain(0.0, 1000.0), (_s(TEMP, 1000),)))
        assert entered.wait(TIMEOUT)
        worker.cancel("r1")
        gate.set()
        msgs = _until_final(out, "r1")
    finally:
        worker.shutdown(timeout=TIMEOUT)

    assert isinstance(msgs[-1], ErrorMessage)
    assert msgs[-1].cancelled
    assert msgs[-1].reason == CANCELLED


def test_cancel_of_unknown_or_finished_request_is_ignored():
    out = queue.Queue()
    worker = BackgroundStatsWorker(out.put)
    try:
        worker.cancel("never-submitted")
        worker.submit(StatsRequest("r1", Domain(0.0, 5.0), (_s(TEMP, 5),)))
        msgs = _until_final(out, "r1")
        worker.cancel("r1")
    finally:
        worker.shutdown(timeout=TIMEOUT)

    assert isinstance(msgs[-1], ResultMessage)
    assert worker._cancelled == set()


def test_cancel_of_queued_request():
    worker, out, entered, gate = _gated_worker()
    domain = Domain(0.0, 1000.0)
    try:
        worker.submit(StatsRequest("r1", domain, (_s(TEMP, 1000),)))
        assert entered.wait(TIMEOUT)
        worker.submit(StatsRequest("r2", domain, (_s(PRESS, 10),)))
        worker.cancel("r2")
        gate.set()

        r1 = _until_final(out, "r1")
        r2 = _until_final(out, "r2")
    finally:
        worker.shutdown(timeout=TIMEOUT)

    assert r1[-1].reason == SUPERSEDED
    assert isinstance(r2[-1], ErrorMessage)
    assert r2[-1].cancelled
    assert r2[-1].reason == CANCELLED
    assert worker._cancelled == set()


def test_worker_reports_failures_as_error_messages():
    out = queue.Queue()
    worker = BackgroundStatsWorker(out.put)
    try:
        worker.submit(StatsRequest("bad", Domain(0.0, 1.0), (object(),)))
        msgs = _until_final(out, "bad")
        worker.submit(StatsRequest("good", Domain(0.0, 1.0), (_s(TEMP, 5),)))
        after = _until_final(out, "good")
    finally:
        worker.shutdown(timeout=TIMEOUT)

    assert isinstance(msgs[-1], ErrorMessage)
    assert not msgs[-1].cancelled
    assert msgs[-1].reason.startswith("AttributeError")
    # the thread survives a failing request
    assert isinstance(after[-1], ResultMessage)


def test_submit_after_shutdown_is_rejected():
    worker = BackgroundStatsWorker(lambda msg: None)
    worker.start()
    assert worker.is_alive
    worker.shutdown(timeout=TIMEOUT)

    assert not worker.is_alive
    with pytest.raises(RuntimeError):
        worker.submit(StatsRequest("r1", Domain(0.0, 1.0), ()))


def test_progress_every_must_be_positive():
    with pytest.raises(ValueError):
        BackgroundStatsWorker(lambda msg: None, progress_every=0)


# ---- StatsScheduler ----

def test_scheduler_issues_ids_and_accepts_latest_only():
    sched, worker = _fake_scheduler()
    results = []
    sched.on_result(results.append)

    r1 = sched.submit([_s(TEMP, 5)], Domain(0.0, 1.0))
    r2 = sched.submit([_s(TEMP, 5)], Domain(0.0, 2.0))
    assert (r1, r2) == ("stats-1", "stats-2")
    assert [req.request_id for req in worker.requests] == [r1, r2]
    assert sched.latest_id == r2

    worker.post(ResultMessage(r1, ()))
    worker.post(ResultMessage(r2, ()))
    accepted = sched.poll()

    assert [m.request_id for m in accepted] == [r2]
    assert [m.request_id for m in results] == [r2]
    # the stale answer is still recorded
    assert sched.request(r1).status is RequestStatus.DONE


def test_scheduler_tracks_progress_of_latest():
    sched, worker = _fake_scheduler()
    progress = []
    sched.on_progress(progress.append)

    r1 = sched.submit([], Domain(0.0, 1.0))
    worker.post(ProgressMessage(r1, 40))
    sched.poll()

    assert sched.request(r1).percent == 40
    assert [p.percent for p in progress] == [40]


def test_wait_returns_own_result():
    sched, worker = _fake_scheduler()
    r1 = sched.submit([], Domain(0.0, 1.0))
    expected = tuple(compute_window_stats([_s(TEMP, 3)], Domain(0.0, 5.0)))
    worker.post(ResultMessage(r1, expected))

    assert sched.wait(r1, timeout=TIMEOUT) == list(expected)


def test_wait_raises_for_cancelled_and_failed():
    sched, worker = _fake_scheduler()
    errors = []
    sched.on_error(errors.append)

    r1 = sched.submit([], Domain(0.0, 1.0))
    worker.post(ErrorMessage(r1, SUPERSEDED, cancelled=True))
    with pytest.raises(StatsCancelled) as exc:
        sched.wait(r1, timeout=TIMEOUT)
    assert exc.value.request_id == r1

    r2 = sched.submit([], Domain(0.0, 1.0))
    worker.post(ErrorMessage(r2, "ValueError: nope"))
    with pytest.raises(StatsRequestFailed):
        sched.wait(r2, timeout=TIMEOUT)

    assert [e.request_id for e in errors] == [r1, r2]


def test_wait_timeout_cancels_request():
    sched, worker = _fake_scheduler()
    r1 = sched.submit([], Domain(0.0, 1.0))

    with pytest.raises(StatsTimeout) as exc:
        sched.wait(r1, timeout=0.05)

    assert exc.value.retryable
    assert worker.cancelled == [r1]


def test_wait_unknown_request():
    sched, _ = _fake_scheduler()
    with pytest.raises(KeyError):
        sched.wait("stats-99")


def test_finished_requests_are_pruned():
    sched, worker = _fake_scheduler(max_history=2)
    r1 = sched.submit([], Domain(0.0, 1.0))
    r2 = sched.submit([], Domain(0.0, 1.0))
    worker.post(ResultMessage(r1, ()))
    worker.post(ResultMessage(r2, ()))
    sched.poll()

    r3 = sched.submit([], Domain(0.0, 1.0))

    with pytest.raises(KeyError):
        sched.request(r1)
    assert sched.request(r2).finished
    assert not sched.request(r3).finished


def test_close_shuts_worker_down():
    sched, worker = _fake_scheduler()
    sched.close()
    assert worker.stopped


def test_scheduler_end_to_end_with_real_worker():
    sched = StatsScheduler(EngineConfig(progress_every=100))
    series = [_s(TEMP, 2000)]
    domain = Domain(100.0, 1500.0)
    try:
        r1 = sched.submit(series, domain)
        r2 = sched.submit(series, Domain(0.0, 10.0))
        out = sched.wait(r2, timeout=TIMEOUT)
        assert sched.request(r1).status in (RequestStatus.DONE, RequestStatus.CANCELLED)
    finally:
        sched.close()

    assert out == compute_window_stats(series, Domain(0.0, 10.0))


# ---- StatsService ----

def test_service_computes_inline_without_scheduler():
    service = StatsService()
    series = [_s(TEMP, 10)]

    assert not service.should_delegate(series, Domain(0.0, 5.0))
    assert service.window_size(series, Domain(0.0, 5.0)) == 6
    assert service.compute_stats(series, Domain(0.0, 5.0)) == compute_window_stats(series, Domain(0.0, 5.0))


def test_service_delegates_large_windows():
    config = EngineConfig(worker_threshold=100)
    sched = StatsScheduler(config)
    service = StatsService(config, scheduler=sched)
    series = [_s(TEMP, 500)]
    try:
        assert not service.should_delegate(series, Domain(0.0, 50.0))
        assert service.should_delegate(series, Domain(0.0, 400.0))
        out = service.compute_stats(series, Domain(0.0, 400.0), timeout=TIMEOUT)
        assert sched.latest_id == "stats-1"
    finally:
        service.close()

    assert out == compute_window_stats(series, Domain(0.0, 400.0))


def test_service_retries_inline_when_worker_fails():
    config = EngineConfig(worker_threshold=1)
    sched = StatsScheduler(config, worker_factory=FailingWorker)
    series = [_s(TEMP, 20)]

    service = StatsService(config, scheduler=sched)
    assert service.compute_stats(series, Domain(0.0, 10.0)) == compute_window_stats(series, Domain(0.0, 10.0))

    strict = StatsService(config, scheduler=sched, fallback_inline=False)
    with pytest.raises(StatsRequestFailed):
        strict.compute_stats(series, Domain(0.0, 10.0))
