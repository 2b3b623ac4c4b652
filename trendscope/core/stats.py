# trendscope/core/stats.py
"""
Descriptive statistics over a time window.

Conventions (kept identical everywhere statistics are shown):
- std_dev is the *population* standard deviation: squared deviations are
  divided by `count`, not `count - 1`.
- Sums are accumulated left to right with no compensation. For windows of
  realistic size (up to a few million samples of telemetry) the rounding error
  stays well below display precision; it is a known limit, not something to
  patch locally in one caller.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Iterable, Sequence

import numpy as np

from .domain import Domain
from .series import Series
from .variable import VariableId


@dataclass(frozen=True, slots=True)
class WindowStats:
    count: int
    min: float
    max: float
    mean: float
    median: float
    std_dev: float

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class VariableStats:
    variable: VariableId
    stats: WindowStats | None


def _plain_sum(v: np.ndarray) -> float:
    # np.sum uses pairwise summation; cumsum accumulates strictly left to right.
    return float(np.cumsum(v)[-1])


def compute(values: Iterable[float] | np.ndarray) -> WindowStats | None:
    """Statistics of `values`, or None when there is nothing to describe."""
    v = np.asarray(values if isinstance(values, np.ndarray) else list(values), dtype=np.float64)
    v = v[~np.isnan(v)]

    count = int(v.size)
    if count == 0:
        return None

    ordered = np.sort(v, kind="stable")
    mid = count // 2
    if count % 2 == 0:
        median = (float(ordered[mid - 1]) + float(ordered[mid])) / 2.0
    else:
        median = float(ordered[mid])

    mean = _plain_sum(v) / count
    variance = _plain_sum((v - mean) ** 2) / count

    return WindowStats(
        count=count,
        min=float(ordered[0]),
        max=float(ordered[-1]),
        mean=mean,
        median=median,
        std_dev=float(np.sqrt(variance)),
    )


def compute_window_stats(series: Sequence[Series], domain: Domain) -> list[VariableStats]:
    """Per-variable statistics over the points of each series inside the closed `domain`."""
    return [VariableStats(variable=s.variable, stats=compute(s.window_values(domain))) for s in series]
