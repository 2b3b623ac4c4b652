# trendscope/core/metadata.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .exceptions import InvalidDataset


@dataclass(frozen=True, slots=True)
class DatasetMeta:
    """
    Metadata attached to a Dataset snapshot.

    - sources: files / batches merged into the snapshot, in load order
    - dropped_count: malformed records discarded while normalizing those batches
    - attrs: arbitrary additional fields
    """
    sources: tuple[str, ...] = ()
    dropped_count: int = 0
    attrs: dict[str, Any] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        if self.attrs is None:
            object.__setattr__(self, "attrs", {})
        elif not isinstance(self.attrs, dict):
            raise InvalidDataset("DatasetMeta.attrs must be a dict.")

        if not isinstance(self.dropped_count, int) or self.dropped_count < 0:
            raise InvalidDataset("DatasetMeta.dropped_count must be a non-negative int.")

        object.__setattr__(self, "sources", tuple(self.sources))

    def combine(self, other: "DatasetMeta") -> "DatasetMeta":
        """Meta of a merged snapshot: sources concatenated, dropped counts summed."""
        attrs = self.attrs.copy()
        attrs.update(other.attrs)
        return DatasetMeta(
            sources=self.sources + other.sources,
            dropped_count=self.dropped_count + other.dropped_count,
            attrs=attrs,
        )
