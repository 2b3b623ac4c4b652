# trendscope/api.py
"""
Boundary operations and the workspace that wires the components together.

Stateless entry points:
    ingest(raw)                          -> IngestResult
    merge_datasets(existing, incoming)   -> list[Series]
    compute_stats(series, domain)        -> list[VariableStats]

Stateful:
    ViewContext -- immutable {dataset_version, domain, selection}
    Workspace   -- current dataset snapshot + context + controller + renderer + stats
"""
from __future__ import annotations

import logging
import queue
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Iterable, Sequence

from trendscope.config import DEFAULT_CONFIG, EngineConfig
from trendscope.core import (
    Dataset,
    DatasetMeta,
    Domain,
    Series,
    VariableId,
    VariableStats,
    compute_window_stats,
    merge_series_lists,
)
from trendscope.io.load import load_csv
from trendscope.io.normalize import NormalizeResult, normalize
from trendscope.io.records import RawRecord
from trendscope.view import (
    DomainChange,
    HoverValue,
    Layout,
    RenderEngine,
    RenderFrame,
    Scheduler,
    ViewportController,
)
from trendscope.workers import ResultMessage, StatsScheduler, StatsService

logger = logging.getLogger(__name__)

IngestResult = NormalizeResult


def ingest(raw: Iterable[RawRecord], config: EngineConfig = DEFAULT_CONFIG) -> IngestResult:
    return normalize(raw, config)


def merge_datasets(
    existing: Iterable[Series],
    incoming: Iterable[Series],
    config: EngineConfig = DEFAULT_CONFIG,
) -> list[Series]:
    return merge_series_lists(existing, incoming, chunk_size=config.merge_chunk_size)


def compute_stats(series: Sequence[Series], domain: Domain) -> list[VariableStats]:
    return compute_window_stats(series, domain)


@dataclass(frozen=True, slots=True)
class ViewContext:
    dataset_version: int = 0
    domain: Domain | None = None
    selection: tuple[VariableId, ...] = ()

    def with_domain(self, domain: Domain | None) -> "ViewContext":
        return replace(self, domain=domain)

    def with_selection(self, selection: Iterable[VariableId]) -> "ViewContext":
        return replace(self, selection=tuple(selection))

    def with_dataset_version(self, version: int) -> "ViewContext":
        return replace(self, dataset_version=version)


class Workspace:
    """
    One interactive session over one dataset.

    Every mutation swaps in a new Dataset / ViewContext snapshot; readers
    holding the previous snapshot keep a consistent view.
    """

    def __init__(
        self,
        config: EngineConfig = DEFAULT_CONFIG,
        *,
        layout: Layout | None = None,
        scheduler: Scheduler | None = None,
        stats_scheduler: StatsScheduler | None = None,
    ) -> None:
        self.config = config
        self.dataset = Dataset()
        self.context = ViewContext()
        self.renderer = RenderEngine(layout, config=config)
        self.controller = ViewportController(self.renderer.layout.inner_width, config=config, scheduler=scheduler)
        self.stats = StatsService(config, scheduler=stats_scheduler)
        self.latest_stats: list[VariableStats] | None = None

        self._stats_listeners: list[Callable[[Domain, list[VariableStats]], None]] = []
        # Due recomputes fire on the scheduler thread; pump() runs them on the caller.
        self._due: queue.Queue[tuple[Domain, int]] = queue.Queue()
        self.controller.on_domain_change(self._on_domain_change)
        self.controller.on_stats_due(self._on_stats_due)
        if stats_scheduler is not None:
            stats_scheduler.on_result(self._on_stats_result)

    # ---- data ----
    def load(self, dataset: Dataset) -> Dataset:
        """Replace the working dataset. The selection keeps the ids that still exist."""
        self.dataset = replace(dataset, version=self.dataset.version + 1)
        selection = [k for k in self.context.selection if k in self.dataset]
        self.context = ViewContext(dataset_version=self.dataset.version, selection=tuple(selection))
        self._reload_view()
        return self.dataset

    def load_records(self, raw: Iterable[RawRecord], *, source: str = "") -> Dataset:
        return self.load(self._dataset_from(ingest(raw, self.config), source))

    def load_file(self, path: str | Path) -> Dataset:
        return self.load(load_csv(path, self.config))

    def append(self, incoming: Dataset | Iterable[RawRecord], *, source: str = "") -> Dataset:
        """Merge a second upload into the working dataset."""
        if not isinstance(incoming, Dataset):
            incoming = self._dataset_from(ingest(incoming, self.config), source)
        merged = self.dataset.merge(incoming, chunk_size=self.config.merge_chunk_size)
        logger.info(
            "Merged upload: %d -> %d points, %d variables (v%d)",
            self.dataset.n_points, merged.n_points, len(merged), merged.version,
        )
        self.dataset = merged
        self.context = self.context.with_dataset_version(merged.version)
        self._reload_view()
        return merged

    def clear(self) -> None:
        self.dataset = Dataset(version=self.dataset.version + 1)
        self.context = ViewContext(dataset_version=self.dataset.version)
        self.latest_stats = None
        self.controller.data_cleared()

    def select(self, selection: Iterable[VariableId]) -> None:
        """Selection order is display order, and drives color assignment."""
        keys = tuple(selection)
        self.dataset.select(keys)
        self.context = self.context.with_selection(keys)
        self._reload_view()

    def selected_series(self) -> list[Series]:
        return self.dataset.select(self.context.selection, missing="ignore")

    # ---- view ----
    def render(self) -> RenderFrame | None:
        if self.context.domain is None:
            return None
        return self.renderer.render(
            self.selected_series(), self.context.domain, full_extent=self.controller.full_extent
        )

    def hover(self, pixel_x: float) -> list[HoverValue]:
        if self.context.domain is None:
            return []
        return self.renderer.hover(self.selected_series(), pixel_x, self.context.domain)

    # ---- stats ----
    def on_stats(self, callback: Callable[[Domain, list[VariableStats]], None]) -> None:
        self._stats_listeners.append(callback)

    def pump(self, timeout: float = 0.0) -> int:
        """
        Run due stats recomputes and deliver worker responses, on the calling
        (interaction) thread. Returns the number of recomputes run.

        With `timeout > 0`, waits up to that long for a due recompute and again
        for a worker response.
        """
        ran = self._run_due(timeout)
        if self.stats.scheduler is not None:
            self.stats.scheduler.poll(timeout)
        return ran

    def close(self) -> None:
        self.controller.data_cleared()
        self.stats.close()

    # ---- internals ----
    def _dataset_from(self, result: IngestResult, source: str) -> Dataset:
        return Dataset.from_series(
            result.series,
            variables=result.variables,
            meta=DatasetMeta(sources=(source,) if source else (), dropped_count=result.dropped_count),
        )

    def _reload_view(self) -> None:
        if not self.controller.load(self.selected_series()):
            self.context = self.context.with_domain(None)
            self.latest_stats = None

    def _on_domain_change(self, change: DomainChange) -> None:
        self.context = self.context.with_domain(change.domain)

    def _on_stats_due(self, domain: Domain) -> None:
        self._due.put((domain, self.dataset.version))

    def _run_due(self, timeout: float) -> int:
        ran = 0
        block = timeout > 0
        while True:
            try:
                domain, version = self._due.get(block=block, timeout=timeout if block else None)
            except queue.Empty:
                return ran
            block = False
            ran += 1
            self._recompute(domain, version)

    def _is_current(self, domain: Domain, version: int | None) -> bool:
        return domain == self.controller.domain and version == self.dataset.version

    def _recompute(self, domain: Domain, version: int) -> None:
        if not self._is_current(domain, version):
            logger.debug("Skipping stats for superseded window [%s, %s] (v%d)", domain.start, domain.end, version)
            return
        series = self.selected_series()
        if self.stats.should_delegate(series, domain):
            self.stats.scheduler.submit(series, domain, dataset_version=version)
            return
        self._publish(domain, compute_window_stats(series, domain))

    def _on_stats_result(self, msg: ResultMessage) -> None:
        entry = self.stats.scheduler.request(msg.request_id)
        if not self._is_current(entry.domain, entry.dataset_version):
            logger.debug(
                "Dropping stats for [%s, %s] v%s (now v%d)",
                entry.domain.start, entry.domain.end, entry.dataset_version, self.dataset.version,
            )
            return
        self._publish(entry.domain, list(msg.stats))

    def _publish(self, domain: Domain, stats: list[VariableStats]) -> None:
        self.latest_stats = stats
        for callback in list(self._stats_listeners):
            callback(domain, stats)
