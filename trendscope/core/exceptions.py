# trendscope/core/exceptions.py
from __future__ import annotations


class CoreError(Exception):
    """Base error for all core-domain exceptions."""


# ---- Validation / construction errors ----
class InvalidSeries(CoreError):
    """Raised when a Series is constructed with invalid inputs."""


class InvalidVariable(CoreError):
    """Raised when a Variable / VariableId is constructed with invalid inputs."""


class InvalidDomain(CoreError):
    """Raised when a Domain is constructed with invalid bounds."""


class InvalidDataset(CoreError):
    """Raised when a Dataset / DatasetMeta is constructed with invalid inputs."""


# ---- Lookup errors (also behave like KeyError for dict-like APIs) ----
class VariableNotFound(CoreError, KeyError):
    """Raised when a requested variable is not present in a Dataset."""


# ---- Statistics requests ----
class StatsError(CoreError):
    """Base error for window statistics requests."""

    retryable: bool = False

    def __init__(self, request_id: str | None, reason: str) -> None:
        super().__init__(f"[{request_id}] {reason}" if request_id else reason)
        self.request_id = request_id
        self.reason = reason


class StatsRequestFailed(StatsError):
    """The worker raised while computing a request."""

    retryable = True


class StatsCancelled(StatsError):
    """The request was superseded or cancelled before it produced a result."""


class StatsTimeout(StatsError):
    """A caller-imposed wall-clock budget expired; the request was cancelled."""

    retryable = True
