"""
Off-thread window statistics.

- BackgroundStatsWorker: one thread, message-passing, cooperative cancellation
- StatsScheduler: request table, id correlation, stale-response filtering
- StatsService: inline or delegated `compute_stats`, same signature
"""

from .stats_worker import (
    BackgroundStatsWorker,
    ErrorMessage,
    ProgressMessage,
    ResultMessage,
    StatsMessage,
    StatsRequest,
)
from .scheduler import PendingRequest, RequestStatus, StatsScheduler
from .service import StatsService


__all__ = [
    "BackgroundStatsWorker",
    "ErrorMessage",
    "ProgressMessage",
    "ResultMessage",
    "StatsMessage",
    "StatsRequest",
    "PendingRequest",
    "RequestStatus",
    "StatsScheduler",
    "StatsService",
]
