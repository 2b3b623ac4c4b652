# trendscope/view/controller.py
"""
Viewport controller: owns the active Domain of a detail/overview chart pair.

States:
    IDLE   -- no data
    READY  -- Domain is the full extent of the loaded series
    ZOOMED -- Domain is a sub-range chosen by brush or zoom

Every Domain change is tagged with its origin and dispatched to listeners
synchronously. While a change is being dispatched, further Domain changes are
ignored: a listener that moves the navigator brush in response to a zoom
(or the zoom in response to a brush) cannot loop back into the controller.
Stats recomputes are coalesced through a DebouncedTask.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Iterable

from trendscope.config import DEFAULT_CONFIG, EngineConfig
from trendscope.core import Domain, InvalidDomain, Series

from .scales import LinearScale, ZoomTransform, time_scale
from .scheduler import DebouncedTask, Scheduler

logger = logging.getLogger(__name__)


class ViewState(enum.Enum):
    IDLE = "idle"
    READY = "ready"
    ZOOMED = "zoomed"


class Origin(str, enum.Enum):
    LOAD = "load"
    BRUSH = "brush"
    ZOOM = "zoom"
    RESET = "reset"


@dataclass(frozen=True, slots=True)
class ViewportSnapshot:
    state: ViewState
    domain: Domain | None
    full_extent: Domain | None
    brush_selection: tuple[float, float] | None


@dataclass(frozen=True, slots=True)
class DomainChange:
    domain: Domain
    origin: Origin
    state: ViewState
    # Navigator brush handle position (pixels) matching `domain`.
    brush_selection: tuple[float, float]
    zoom: ZoomTransform


class Subscription:
    def __init__(self, listeners: list, callback: Callable) -> None:
        self._listeners = listeners
        self._callback = callback

    @property
    def active(self) -> bool:
        return self._callback in self._listeners

    def cancel(self) -> None:
        if self._callback in self._listeners:
            self._listeners.remove(self._callback)


def series_extent(series: Iterable[Series]) -> Domain | None:
    return Domain.spanning(s.extent for s in series if s.n > 0)


class ViewportController:
    def __init__(
        self,
        width: float,
        *,
        config: EngineConfig = DEFAULT_CONFIG,
        scheduler: Scheduler | None = None,
    ) -> None:
        if width <= 0:
            raise ValueError("width must be positive")
        self._width = float(width)
        self._state = ViewState.IDLE
        self._domain: Domain | None = None
        self._full_extent: Domain | None = None
        self._brush_selection: tuple[float, float] | None = None
        self._zoom = ZoomTransform()

        self._domain_listeners: list[Callable[[DomainChange], None]] = []
        self._stats_listeners: list[Callable[[Domain], None]] = []
        self._dispatching: Origin | None = None
        self._stats_task = DebouncedTask(self._emit_stats_due, config.debounce_s, scheduler)

    # ---- state ----
    @property
    def state(self) -> ViewState:
        return self._state

    @property
    def domain(self) -> Domain | None:
        return self._domain

    @property
    def full_extent(self) -> Domain | None:
        return self._full_extent

    @property
    def brush_selection(self) -> tuple[float, float] | None:
        return self._brush_selection

    @property
    def zoom(self) -> ZoomTransform:
        return self._zoom

    @property
    def width(self) -> float:
        return self._width

    @property
    def stats_pending(self) -> bool:
        return self._stats_task.pending

    def snapshot(self) -> ViewportSnapshot:
        return ViewportSnapshot(self._state, self._domain, self._full_extent, self._brush_selection)

    def navigator_scale(self) -> LinearScale | None:
        """Fixed full-extent scale of the overview; brush pixels invert through it."""
        if self._full_extent is None:
            return None
        return time_scale(self._full_extent, self._width)

    def detail_scale(self) -> LinearScale | None:
        if self._domain is None:
            return None
        return time_scale(self._domain, self._width)

    # ---- subscriptions ----
    def on_domain_change(self, callback: Callable[[DomainChange], None]) -> Subscription:
        self._domain_listeners.append(callback)
        return Subscription(self._domain_listeners, callback)

    def on_stats_due(self, callback: Callable[[Domain], None]) -> Subscription:
        """`callback(domain)` runs once per burst of Domain changes, after the debounce delay."""
        self._stats_listeners.append(callback)
        return Subscription(self._stats_listeners, callback)

    # ---- transitions ----
    def load(self, series: Iterable[Series]) -> bool:
        """IDLE/any -> READY with Domain = full extent of `series` (the selected ones)."""
        extent = series_extent(series)
        if extent is None:
            logger.debug("load(): no points in selected series, staying %s", self._state.value)
            if self._state is not ViewState.IDLE:
                self.data_cleared()
            return False
        self._full_extent = extent
        return self._commit(extent, Origin.LOAD, ViewState.READY)

    def brush(self, selection: tuple[float, float] | None) -> bool:
        """
        Apply a navigator brush selection given in navigator pixels.

        A zero-width selection is ignored; reversed bounds are swapped; a
        cleared selection (None) resets to the full extent.
        """
        if self._state is ViewState.IDLE:
            return False
        if selection is None:
            return self.reset()

        x0, x1 = float(selection[0]), float(selection[1])
        if x0 == x1:
            logger.debug("brush(): zero-width selection at %.1f ignored", x0)
            return False
        if x0 > x1:
            x0, x1 = x1, x0

        scale = self.navigator_scale()
        candidate = Domain(scale.invert(x0), scale.invert(x1))
        return self._commit(candidate, Origin.BRUSH, ViewState.ZOOMED)

    def zoom_gesture(self, transform: ZoomTransform) -> bool:
        """Apply a pan/zoom transform to the base (full-extent) time scale."""
        if self._state is ViewState.IDLE:
            return False
        if transform.k < 1.0:
            transform = ZoomTransform(k=1.0, x=transform.x)

        rescaled = transform.rescale(self.navigator_scale())
        try:
            candidate = Domain.ordered(rescaled.d0, rescaled.d1).shift_within(self._full_extent)
        except InvalidDomain:
            return False
        return self._commit(candidate, Origin.ZOOM, ViewState.ZOOMED)

    def reset(self) -> bool:
        if self._state is ViewState.IDLE:
            return False
        return self._commit(self._full_extent, Origin.RESET, ViewState.READY)

    def data_cleared(self) -> None:
        self._stats_task.cancel()
        self._state = ViewState.IDLE
        self._domain = None
        self._full_extent = None
        self._brush_selection = None
        self._zoom = ZoomTransform()
        logger.debug("Viewport cleared")

    def set_domain(self, domain: Domain | tuple[float, float], origin: Origin | str) -> bool:
        """
        Boundary entry point for the UI layer.

        An inverted or zero-width `domain` leaves the current Domain untouched.
        """
        origin = Origin(origin)
        if origin is Origin.RESET:
            return self.reset()
        if origin is Origin.LOAD:
            raise ValueError("use load() to set the Domain from data")
        if self._state is ViewState.IDLE:
            return False

        if not isinstance(domain, Domain):
            try:
                domain = Domain(*domain)
            except InvalidDomain:
                logger.debug("set_domain(): rejecting invalid window %r", domain)
                return False
        return self._commit(domain, origin, ViewState.ZOOMED)

    def resize(self, width: float) -> None:
        if width <= 0:
            raise ValueError("width must be positive")
        self._width = float(width)
        if self._domain is not None:
            self._brush_selection, self._zoom = self._handles_for(self._domain)

    def flush_stats(self) -> bool:
        """Run a pending stats recompute immediately."""
        return self._stats_task.flush()

    # ---- internals ----
    def _handles_for(self, domain: Domain) -> tuple[tuple[float, float], ZoomTransform]:
        nav = self.navigator_scale()
        return (nav(domain.start), nav(domain.end)), ZoomTransform.for_domain(nav, domain)

    def _commit(self, domain: Domain, origin: Origin, state: ViewState) -> bool:
        if self._dispatching is not None:
            logger.debug(
                "Ignoring re-entrant %s update while dispatching %s",
                origin.value, self._dispatching.value,
            )
            return False
        if domain.is_empty and origin in (Origin.BRUSH, Origin.ZOOM):
            logger.debug("Ignoring zero-width %s window", origin.value)
            return False

        self._domain = domain
        self._state = state
        self._brush_selection, self._zoom = self._handles_for(domain)

        change = DomainChange(domain, origin, state, self._brush_selection, self._zoom)
        self._dispatching = origin
        try:
            for callback in list(self._domain_listeners):
                callback(change)
        finally:
            self._dispatching = None

        self._stats_task.trigger(domain)
        return True

    def _emit_stats_due(self, domain: Domain) -> None:
        # A recompute scheduled before data_cleared() or a newer change is moot.
        if domain is None or domain != self._domain:
            return
        for callback in list(self._stats_listeners):
            callback(domain)
