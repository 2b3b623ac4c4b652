# trendscope/view/adapters.py
"""
Interaction adapters: translate toolkit events into controller calls.

Chart variants differ only in which adapter they plug in; the controller and
the render engine stay the same.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, ClassVar, Union

from .controller import ViewportController
from .scales import ZoomTransform

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BrushEvent:
    # Navigator pixels; None when the user cleared the brush.
    selection: tuple[float, float] | None


@dataclass(frozen=True, slots=True)
class ZoomEvent:
    transform: ZoomTransform


@dataclass(frozen=True, slots=True)
class ClickEvent:
    # Detail-chart pixel x.
    x: float
    double: bool = False


InteractionEvent = Union[BrushEvent, ZoomEvent, ClickEvent]


class InteractionAdapter:
    supports: ClassVar[tuple[type, ...]] = ()

    def __init__(self, controller: ViewportController) -> None:
        self.controller = controller

    def handle(self, event: InteractionEvent) -> bool:
        """Dispatch `event`. Returns True when it changed the view (or was consumed)."""
        if not isinstance(event, self.supports):
            logger.debug("%s ignores %s", type(self).__name__, type(event).__name__)
            return False
        if isinstance(event, BrushEvent):
            return self.controller.brush(event.selection)
        if isinstance(event, ZoomEvent):
            return self.controller.zoom_gesture(event.transform)
        return self.on_click(event)

    def on_click(self, event: ClickEvent) -> bool:
        return False


class BrushOnlyAdapter(InteractionAdapter):
    supports = (BrushEvent,)


class ZoomBrushAdapter(InteractionAdapter):
    supports = (BrushEvent, ZoomEvent)


class ClickReferenceAdapter(InteractionAdapter):
    """
    Brush navigation plus double-click to pick a reference time.

    The reference time goes to `on_reference(epoch_ms)`; the Domain is not
    touched.
    """
    supports = (BrushEvent, ClickEvent)

    def __init__(self, controller: ViewportController, on_reference: Callable[[float], None]) -> None:
        super().__init__(controller)
        self._on_reference = on_reference
        self.reference_time: float | None = None

    def on_click(self, event: ClickEvent) -> bool:
        if not event.double:
            return False
        scale = self.controller.detail_scale()
        if scale is None:
            return False
        self.reference_time = float(scale.invert(event.x))
        self._on_reference(self.reference_time)
        return True
