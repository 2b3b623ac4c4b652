# trendscope/view/scales.py
from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from trendscope.core import Domain


@dataclass(frozen=True, slots=True)
class LinearScale:
    """
    Affine map from a data interval to a pixel interval.

    Works on scalars and numpy arrays. A zero-width domain maps every input to
    the middle of the range and inverts to the domain start.
    """
    d0: float
    d1: float
    r0: float
    r1: float

    @property
    def domain(self) -> tuple[float, float]:
        return self.d0, self.d1

    @property
    def range(self) -> tuple[float, float]:
        return self.r0, self.r1

    def __call__(self, x):
        span = self.d1 - self.d0
        if span == 0:
            mid = (self.r0 + self.r1) / 2.0
            return np.full_like(np.asarray(x, dtype=np.float64), mid) if np.ndim(x) else mid
        out = self.r0 + (np.asarray(x, dtype=np.float64) - self.d0) * ((self.r1 - self.r0) / span)
        return out if np.ndim(out) else float(out)

    def invert(self, px):
        rspan = self.r1 - self.r0
        if rspan == 0 or self.d1 == self.d0:
            return np.full_like(np.asarray(px, dtype=np.float64), self.d0) if np.ndim(px) else self.d0
        out = self.d0 + (np.asarray(px, dtype=np.float64) - self.r0) * ((self.d1 - self.d0) / rspan)
        return out if np.ndim(out) else float(out)

    def with_domain(self, d0: float, d1: float) -> "LinearScale":
        return LinearScale(d0, d1, self.r0, self.r1)


def time_scale(domain: Domain, width: float) -> LinearScale:
    """Domain (epoch ms) -> [0, width] pixels."""
    return LinearScale(domain.start, domain.end, 0.0, float(width))


def value_scale(lo: float, hi: float, height: float) -> LinearScale:
    """Values -> [height, 0] pixels (SVG-style: larger values higher up)."""
    if lo == hi:
        lo, hi = lo - 1.0, hi + 1.0
    return LinearScale(lo, hi, float(height), 0.0)


@dataclass(frozen=True, slots=True)
class ZoomTransform:
    """
    Pan/zoom transform in pixel space: screen = x + k * base.

    k is the zoom factor (1 = no zoom), x the horizontal translation.
    """
    k: float = 1.0
    x: float = 0.0

    def apply_x(self, px):
        return self.x + np.asarray(px, dtype=np.float64) * self.k

    def invert_x(self, px):
        return (np.asarray(px, dtype=np.float64) - self.x) / self.k

    def rescale(self, scale: LinearScale) -> LinearScale:
        """The scale that shows what `scale` shows after this transform."""
        lo, hi = scale.invert(self.invert_x(np.array([scale.r0, scale.r1])))
        return scale.with_domain(float(lo), float(hi))

    @classmethod
    def for_domain(cls, base: LinearScale, domain: Domain) -> "ZoomTransform":
        """Transform that makes `base` display `domain` across its full range."""
        p0, p1 = base(domain.start), base(domain.end)
        if p1 == p0:
            return cls()
        k = (base.r1 - base.r0) / (p1 - p0)
        return cls(k=k, x=base.r0 - p0 * k)
