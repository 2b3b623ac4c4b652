# trendscope/core/domain.py
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

from .exceptions import InvalidDomain


@dataclass(frozen=True, slots=True)
class Domain:
    """Closed time window [start, end] in epoch milliseconds."""

    start: float
    end: float

    def __post_init__(self) -> None:
        try:
            start = float(self.start)
            end = float(self.end)
        except (TypeError, ValueError) as e:
            raise InvalidDomain(f"Domain bounds must be numeric, got {self.start!r}, {self.end!r}") from e

        if not (math.isfinite(start) and math.isfinite(end)):
            raise InvalidDomain("Domain bounds must be finite.")
        if start > end:
            raise InvalidDomain(f"Domain start {start} is after end {end}.")

        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    @classmethod
    def ordered(cls, a: float, b: float) -> "Domain":
        """Build a Domain from two bounds in either order."""
        return cls(a, b) if a <= b else cls(b, a)

    @classmethod
    def spanning(cls, domains: Iterable["Domain"]) -> "Domain | None":
        items = list(domains)
        if not items:
            return None
        return cls(min(d.start for d in items), max(d.end for d in items))

    @property
    def width(self) -> float:
        return self.end - self.start

    @property
    def is_empty(self) -> bool:
        return self.width == 0.0

    def contains(self, t: float) -> bool:
        return self.start <= t <= self.end

    def covers(self, other: "Domain") -> bool:
        return self.start <= other.start and other.end <= self.end

    def shift_within(self, bounds: "Domain") -> "Domain":
        """
        Translate into `bounds` keeping the width, like a d3 zoom translate
        extent. A window at least as wide as `bounds` becomes `bounds`.
        """
        if self.width >= bounds.width:
            return bounds
        if self.start < bounds.start:
            return Domain(bounds.start, bounds.start + self.width)
        if self.end > bounds.end:
            return Domain(bounds.end - self.width, bounds.end)
        return self

    def as_tuple(self) -> tuple[float, float]:
        return self.start, self.end
