# trendscope/workers/service.py
from __future__ import annotations

import logging
from typing import Sequence

from trendscope.config import DEFAULT_CONFIG, EngineConfig
from trendscope.core import Domain, Series, StatsRequestFailed, VariableStats, compute_window_stats

from .scheduler import StatsScheduler

logger = logging.getLogger(__name__)


class StatsService:
    """
    `compute_stats(series, domain)` with one signature whether the work runs
    inline or on the background worker.

    Windows holding fewer than `config.worker_threshold` points are computed
    inline. Larger ones go to the worker; if the worker fails, the request is
    retried inline once. A caller timeout raises StatsTimeout, which is
    retryable.
    """

    def __init__(
        self,
        config: EngineConfig = DEFAULT_CONFIG,
        *,
        scheduler: StatsScheduler | None = None,
        fallback_inline: bool = True,
    ) -> None:
        self.config = config
        self.scheduler = scheduler
        self.fallback_inline = fallback_inline

    def window_size(self, series: Sequence[Series], domain: Domain) -> int:
        total = 0
        for s in series:
            lo, hi = s.window_bounds(domain)
            total += hi - lo
        return total

    def should_delegate(self, series: Sequence[Series], domain: Domain) -> bool:
        return self.scheduler is not None and self.window_size(series, domain) >= self.config.worker_threshold

    def compute_stats(
        self,
        series: Sequence[Series],
        domain: Domain,
        *,
        timeout: float | None = None,
    ) -> list[VariableStats]:
        if not self.should_delegate(series, domain):
            return compute_window_stats(series, domain)

        request_id = self.scheduler.submit(series, domain)
        try:
            return self.scheduler.wait(request_id, timeout)
        except StatsRequestFailed as e:
            if not self.fallback_inline:
                raise
            logger.warning("Worker failed on %s (%s); computing inline", request_id, e.reason)
            return compute_window_stats(series, domain)

    def close(self) -> None:
        if self.scheduler is not None:
            self.scheduler.close()
