# trendscope/view/render.py
"""
Render engine: Domain + series -> pixel-space geometry.

Nothing here draws; curves come out as vertex arrays a toolkit can stroke
as polylines. Conventions:
- X follows the Domain; Y follows the *global* value extent of all given
  series (YAxisPolicy.GLOBAL), so panning never rescales the vertical axis.
  YAxisPolicy.WINDOW rebinds Y to the visible slice and must be asked for.
- Curves are step-after: a value holds until the next sample replaces it.
- Color depends on the position in the selection, not on the variable.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

from trendscope.config import DEFAULT_CONFIG, EngineConfig
from trendscope.core import Domain, Point, Series, VariableId

from .scales import LinearScale, time_scale, value_scale

logger = logging.getLogger(__name__)


class YAxisPolicy(str, enum.Enum):
    GLOBAL = "global"
    WINDOW = "window"


@dataclass(frozen=True, slots=True)
class Margins:
    top: float = 20.0
    right: float = 30.0
    bottom: float = 30.0
    left: float = 60.0


@dataclass(frozen=True, slots=True)
class Layout:
    width: float = 800.0
    height: float = 400.0
    navigator_height: float = 100.0
    margins: Margins = field(default_factory=Margins)

    def __post_init__(self) -> None:
        if self.inner_width <= 0 or self.inner_height <= 0 or self.navigator_height <= 0:
            raise ValueError("Layout leaves no drawable area")

    @property
    def inner_width(self) -> float:
        return self.width - self.margins.left - self.margins.right

    @property
    def inner_height(self) -> float:
        return self.height - self.margins.top - self.margins.bottom


@dataclass(frozen=True, slots=True)
class Curve:
    variable: VariableId
    color: str
    xs: np.ndarray = field(repr=False)
    ys: np.ndarray = field(repr=False)
    source_points: int = 0
    decimated: bool = False


@dataclass(frozen=True, slots=True)
class RenderFrame:
    domain: Domain
    time_scale: LinearScale
    value_scale: LinearScale
    curves: tuple[Curve, ...]
    navigator_scale: LinearScale
    navigator_value_scale: LinearScale
    navigator_curves: tuple[Curve, ...]


@dataclass(frozen=True, slots=True)
class HoverValue:
    variable: VariableId
    color: str
    timestamp: float
    value: float
    x: float
    y: float


def step_after(xs: np.ndarray, ys: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Vertices of a step-after polyline through (xs[i], ys[i])."""
    n = int(xs.size)
    if n <= 1:
        return xs.copy(), ys.copy()
    out_x = np.empty(2 * n - 1, dtype=np.float64)
    out_y = np.empty(2 * n - 1, dtype=np.float64)
    out_x[0::2] = xs
    out_x[1::2] = xs[1:]
    out_y[0::2] = ys
    out_y[1::2] = ys[:-1]
    return out_x, out_y


def decimate_indices(xs: np.ndarray, ys: np.ndarray, columns: int) -> np.ndarray:
    """
    Indices to keep so each pixel column retains its first, min, max and last
    sample. `xs` must be ascending pixel positions.
    """
    n = int(xs.size)
    if columns <= 0 or n <= 2 * columns:
        return np.arange(n)

    lo, hi = float(xs[0]), float(xs[-1])
    span = hi - lo
    if span <= 0:
        return np.array([0, n - 1]) if n > 1 else np.arange(n)

    buckets = np.minimum(((xs - lo) / span * columns).astype(np.int64), columns - 1)
    starts = np.concatenate(([0], np.flatnonzero(np.diff(buckets)) + 1))
    ends = np.concatenate((starts[1:], [n]))

    # Sorted by bucket, then value: first/last slot of each bucket is its min/max.
    by_value = np.lexsort((ys, buckets))
    keep = np.concatenate((starts, ends - 1, by_value[starts], by_value[ends - 1]))
    return np.unique(keep)


def nearest_index(series: Series, t: float) -> int | None:
    """
    Index of the sample closest in time to `t`.

    Bisects for the insertion point and compares the two bracketing samples;
    an exact tie goes to the earlier sample. At either end of the series the
    single available neighbour is returned.
    """
    n = series.n
    if n == 0:
        return None
    idx = int(np.searchsorted(series.time, t, side="left"))
    if idx <= 0:
        return 0
    if idx >= n:
        return n - 1
    before = t - float(series.time[idx - 1])
    after = float(series.time[idx]) - t
    return idx if after < before else idx - 1


def nearest_point(series: Series, t: float) -> Point | None:
    idx = nearest_index(series, t)
    if idx is None:
        return None
    return Point(float(series.time[idx]), float(series.values[idx]))


class RenderEngine:
    def __init__(
        self,
        layout: Layout | None = None,
        *,
        config: EngineConfig = DEFAULT_CONFIG,
        y_policy: YAxisPolicy | str | None = None,
    ) -> None:
        self.layout = layout or Layout()
        self.palette = config.palette
        self.y_policy = YAxisPolicy(y_policy or config.y_axis_policy)
        self.decimate = config.decimate

    def color_for(self, index: int) -> str:
        return self.palette[index % len(self.palette)]

    # ---- scales ----
    def value_extent(self, series: Sequence[Series], domain: Domain | None = None) -> tuple[float, float] | None:
        """
        Y extent under the engine's policy.

        GLOBAL ignores `domain`. WINDOW uses the points inside `domain`, and
        falls back to the global extent when the window holds no points.
        """
        if self.y_policy is YAxisPolicy.WINDOW and domain is not None:
            chunks = [s.window_values(domain) for s in series]
            chunks = [c for c in chunks if c.size]
            if chunks:
                return float(min(c.min() for c in chunks)), float(max(c.max() for c in chunks))

        extents = [s.value_extent for s in series if s.n > 0]
        if not extents:
            return None
        return min(e[0] for e in extents), max(e[1] for e in extents)

    def scales(self, series: Sequence[Series], domain: Domain) -> tuple[LinearScale, LinearScale]:
        extent = self.value_extent(series, domain) or (0.0, 1.0)
        return (
            time_scale(domain, self.layout.inner_width),
            value_scale(extent[0], extent[1], self.layout.inner_height),
        )

    # ---- curves ----
    def visible_slice(self, series: Series, domain: Domain) -> tuple[np.ndarray, np.ndarray]:
        """
        Points inside `domain` plus one neighbour on each side, so the held
        value is drawn from the left edge and the last step reaches the right.
        """
        lo, hi = series.window_bounds(domain)
        start, stop = max(lo - 1, 0), min(hi + 1, series.n)
        return series.time[start:stop], series.values[start:stop]

    def curve(
        self,
        series: Series,
        index: int,
        domain: Domain,
        tscale: LinearScale,
        vscale: LinearScale,
        *,
        columns: int,
    ) -> Curve | None:
        if series.n == 0:
            return None
        lo, hi = series.window_bounds(domain)
        start, stop = max(lo - 1, 0), min(hi + 1, series.n)
        if stop <= start:
            return None
        t, v = series.time[start:stop], series.values[start:stop]

        xs = np.asarray(tscale(t), dtype=np.float64)
        decimated = False
        if self.decimate:
            # Buckets span the in-window points only; the edge neighbours may
            # lie arbitrarily far outside the drawable range.
            a, b = lo - start, hi - start
            inner = decimate_indices(xs[a:b], v[a:b], columns)
            if inner.size < b - a:
                keep = np.concatenate((np.arange(a), inner + a, np.arange(b, xs.size)))
                xs, v = xs[keep], v[keep]
                decimated = True

        ys = np.asarray(vscale(v), dtype=np.float64)
        px, py = step_after(xs, ys)
        return Curve(
            variable=series.variable,
            color=self.color_for(index),
            xs=px,
            ys=py,
            source_points=int(t.size),
            decimated=decimated,
        )

    def render(self, series: Sequence[Series], domain: Domain, *, full_extent: Domain | None = None) -> RenderFrame:
        """
        Geometry for the detail chart over `domain` and the navigator over the
        full extent. Empty series are skipped but keep their color slot.
        """
        full = full_extent or Domain.spanning(s.extent for s in series if s.n > 0) or domain
        columns = max(int(self.layout.inner_width), 1)

        tscale, vscale = self.scales(series, domain)
        nav_t = time_scale(full, self.layout.inner_width)
        extent = self.value_extent(series) or (0.0, 1.0)
        nav_v = value_scale(extent[0], extent[1], self.layout.navigator_height)

        curves: list[Curve] = []
        nav_curves: list[Curve] = []
        for i, s in enumerate(series):
            c = self.curve(s, i, domain, tscale, vscale, columns=columns)
            if c is None:
                logger.debug("Skipping %s: no points to draw", s.variable)
                continue
            curves.append(c)
            nc = self.curve(s, i, full, nav_t, nav_v, columns=columns)
            if nc is not None:
                nav_curves.append(nc)

        return RenderFrame(
            domain=domain,
            time_scale=tscale,
            value_scale=vscale,
            curves=tuple(curves),
            navigator_scale=nav_t,
            navigator_value_scale=nav_v,
            navigator_curves=tuple(nav_curves),
        )

    # ---- pointer ----
    def hover(self, series: Sequence[Series], pixel_x: float, domain: Domain) -> list[HoverValue]:
        """Nearest sample of every non-empty series under the pointer at `pixel_x`."""
        tscale, vscale = self.scales(series, domain)
        t = float(tscale.invert(pixel_x))
        out: list[HoverValue] = []
        for i, s in enumerate(series):
            p = nearest_point(s, t)
            if p is None:
                continue
            out.append(
                HoverValue(
                    variable=s.variable,
                    color=self.color_for(i),
                    timestamp=p.timestamp,
                    value=p.value,
                    x=float(tscale(p.timestamp)),
                    y=float(vscale(p.value)),
                )
            )
        return out
