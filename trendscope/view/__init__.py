"""
Viewport and rendering for trendscope.

- ViewportController: Domain state machine (brush / zoom / reset)
- RenderEngine: scales, step-after curves, decimation, nearest-sample lookup
- adapters: pluggable brush / zoom / click interaction variants
- scheduler: cancellable debounced tasks
"""

from .scales import LinearScale, ZoomTransform, time_scale, value_scale
from .scheduler import DebouncedTask, ManualScheduler, Scheduler, ThreadingScheduler
from .controller import (
    DomainChange,
    Origin,
    Subscription,
    ViewportController,
    ViewportSnapshot,
    ViewState,
)
from .render import (
    Curve,
    HoverValue,
    Layout,
    Margins,
    RenderEngine,
    RenderFrame,
    YAxisPolicy,
    nearest_index,
    nearest_point,
    step_after,
)
from .adapters import (
    BrushEvent,
    BrushOnlyAdapter,
    ClickEvent,
    ClickReferenceAdapter,
    InteractionAdapter,
    ZoomBrushAdapter,
    ZoomEvent,
)


__all__ = [
    # scales
    "LinearScale",
    "ZoomTransform",
    "time_scale",
    "value_scale",

    # scheduling
    "DebouncedTask",
    "ManualScheduler",
    "Scheduler",
    "ThreadingScheduler",

    # controller
    "DomainChange",
    "Origin",
    "Subscription",
    "ViewportController",
    "ViewportSnapshot",
    "ViewState",

    # rendering
    "Curve",
    "HoverValue",
    "Layout",
    "Margins",
    "RenderEngine",
    "RenderFrame",
    "YAxisPolicy",
    "nearest_index",
    "nearest_point",
    "step_after",

    # adapters
    "BrushEvent",
    "BrushOnlyAdapter",
    "ClickEvent",
    "ClickReferenceAdapter",
    "InteractionAdapter",
    "ZoomBrushAdapter",
    "ZoomEvent",
]
