# trendscope/core/series.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, NamedTuple

import numpy as np

from .domain import Domain
from .exceptions import InvalidSeries
from .variable import VariableId


class Point(NamedTuple):
    timestamp: float
    value: float


def _frozen(a: np.ndarray) -> np.ndarray:
    # Own a private copy so nothing outside the snapshot can write through it.
    out = np.array(a, dtype=np.float64, copy=True)
    out.flags.writeable = False
    return out


@dataclass(frozen=True, slots=True)
class Series:
    """
    Immutable series of one variable: 1D time vector (epoch ms) + 1D values vector.

    Arrays are copied to float64 and flagged read-only, so a snapshot handed to
    a worker thread can never be observed half-modified.
    """

    variable: VariableId
    time: np.ndarray = field(repr=False)
    values: np.ndarray = field(repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.variable, VariableId):
            raise InvalidSeries("Series.variable must be a VariableId instance.")

        t = np.asarray(self.time)
        v = np.asarray(self.values)

        if t.ndim != 1:
            raise InvalidSeries(f"`time` must be 1D, got shape {t.shape}")
        if v.ndim != 1:
            raise InvalidSeries(f"`values` must be 1D, got shape {v.shape}")
        if t.size != v.size:
            raise InvalidSeries(
                f"`time` and `values` must have same length, got {t.size} vs {v.size}"
            )

        try:
            t = _frozen(t)
            v = _frozen(v)
        except (TypeError, ValueError) as e:
            raise InvalidSeries(f"Series arrays must be numeric: {e}") from e

        if t.size > 0:
            if not np.isfinite(t).all():
                raise InvalidSeries("`time` contains non-finite values (NaN/Inf).")
            if not np.isfinite(v).all():
                raise InvalidSeries("`values` contains non-finite values (NaN/Inf).")
            if np.any(np.diff(t) < 0):
                raise InvalidSeries("`time` must be monotonic non-decreasing.")

        object.__setattr__(self, "time", t)
        object.__setattr__(self, "values", v)

    @classmethod
    def empty(cls, variable: VariableId) -> "Series":
        return cls(variable=variable, time=np.empty(0), values=np.empty(0))

    @classmethod
    def from_points(cls, variable: VariableId, points) -> "Series":
        pts = list(points)
        if not pts:
            return cls.empty(variable)
        t, v = zip(*pts)
        return cls(variable=variable, time=np.asarray(t, dtype=np.float64), values=np.asarray(v, dtype=np.float64))

    def __len__(self) -> int:
        return self.n

    def __iter__(self) -> Iterator[Point]:
        for t, v in zip(self.time.tolist(), self.values.tolist()):
            yield Point(t, v)

    @property
    def n(self) -> int:
        return int(self.time.size)

    @property
    def t_start(self) -> float | None:
        return None if self.n == 0 else float(self.time[0])

    @property
    def t_end(self) -> float | None:
        return None if self.n == 0 else float(self.time[-1])

    @property
    def extent(self) -> Domain | None:
        return None if self.n == 0 else Domain(self.time[0], self.time[-1])

    @property
    def value_extent(self) -> tuple[float, float] | None:
        if self.n == 0:
            return None
        return float(self.values.min()), float(self.values.max())

    def window_bounds(self, domain: Domain, *, closed: str = "both") -> tuple[int, int]:
        """Index range [lo, hi) of the points inside `domain` (bisection on sorted time)."""
        if closed not in {"both", "left", "right", "neither"}:
            raise ValueError("closed must be one of: both, left, right, neither")
        lo_side = "left" if closed in {"both", "left"} else "right"
        hi_side = "right" if closed in {"both", "right"} else "left"
        lo = int(np.searchsorted(self.time, domain.start, side=lo_side))
        hi = int(np.searchsorted(self.time, domain.end, side=hi_side))
        return lo, max(lo, hi)

    def slice_time(self, domain: Domain, *, closed: str = "both") -> "Series":
        if self.n == 0:
            return self
        lo, hi = self.window_bounds(domain, closed=closed)
        return Series(variable=self.variable, time=self.time[lo:hi], values=self.values[lo:hi])

    def window_values(self, domain: Domain) -> np.ndarray:
        """Read-only view of the values whose timestamp lies in the closed `domain`."""
        lo, hi = self.window_bounds(domain)
        return self.values[lo:hi]

    def to_numpy(self, *, copy: bool = False) -> tuple[np.ndarray, np.ndarray]:
        if copy:
            return self.time.copy(), self.values.copy()
        return self.time, self.values
