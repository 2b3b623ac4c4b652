# trendscope/core/dataset.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, Mapping, Sequence

from .domain import Domain
from .exceptions import InvalidDataset, VariableNotFound
from .merge import merge_series_lists
from .metadata import DatasetMeta
from .series import Series
from .variable import Variable, VariableId


@dataclass(frozen=True, slots=True)
class DatasetSummary:
    """Headline figures of a loaded dataset, as shown next to the file name."""
    variables_count: int = 0
    n_points: int = 0
    first_timestamp: float | None = None
    last_timestamp: float | None = None
    dropped_count: int = 0
    sources: tuple[str, ...] = ()

    @property
    def duration_ms(self) -> float:
        if self.first_timestamp is None or self.last_timestamp is None:
            return 0.0
        return self.last_timestamp - self.first_timestamp


@dataclass(frozen=True, slots=True)
class Dataset:
    """
    Dataset = one immutable, versioned snapshot of every loaded variable.

    Design goals:
    - dict-like access by identity: ds[VariableId("TEMP", "A1")]
    - safe + predictable: validated, variables and series always aligned
    - merge/select/slice return new snapshots; readers of an older snapshot
      never observe a partially merged state
    """
    variables: Sequence[Variable] = ()
    series: Mapping[VariableId, Series] = field(default_factory=dict, repr=False)
    meta: DatasetMeta = field(default_factory=DatasetMeta, repr=False)
    version: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.series, Mapping):
            raise InvalidDataset("Dataset.series must be a mapping (e.g., dict).")
        if not isinstance(self.meta, DatasetMeta):
            raise InvalidDataset("Dataset.meta must be a DatasetMeta instance.")
        if not isinstance(self.version, int) or self.version < 0:
            raise InvalidDataset("Dataset.version must be a non-negative int.")

        variables = tuple(self.variables)
        seen: set[VariableId] = set()
        for var in variables:
            if not isinstance(var, Variable):
                raise InvalidDataset("Dataset.variables must hold Variable instances.")
            if var.id in seen:
                raise InvalidDataset(f"Duplicate variable '{var.id}'.")
            seen.add(var.id)

        normalized: dict[VariableId, Series] = {}
        for key, s in self.series.items():
            if not isinstance(s, Series):
                raise InvalidDataset("Dataset.series values must be Series instances.")
            if s.variable != key:
                raise InvalidDataset(
                    f"Series key mismatch: key '{key}' but Series.variable is '{s.variable}'."
                )
            if key not in seen:
                raise InvalidDataset(f"Series '{key}' has no matching Variable.")
            normalized[key] = s

        # Every variable owns a series, possibly empty.
        for var in variables:
            normalized.setdefault(var.id, Series.empty(var.id))

        object.__setattr__(self, "variables", variables)
        object.__setattr__(self, "series", {v.id: normalized[v.id] for v in variables})

    @classmethod
    def from_series(
        cls,
        series: Iterable[Series],
        *,
        variables: Iterable[Variable] | None = None,
        meta: DatasetMeta | None = None,
        version: int = 0,
    ) -> "Dataset":
        items = list(series)
        if variables is None:
            variables = [Variable(id=s.variable) for s in items]
        return cls(
            variables=tuple(variables),
            series={s.variable: s for s in items},
            meta=meta if meta is not None else DatasetMeta(),
            version=version,
        )

    # ---- dict-like API ----
    def __len__(self) -> int:
        return len(self.variables)

    def __iter__(self) -> Iterator[VariableId]:
        return iter(self.series)

    def __contains__(self, key: object) -> bool:
        return key in self.series

    def __getitem__(self, key: VariableId) -> Series:
        try:
            return self.series[key]
        except KeyError as e:
            raise VariableNotFound(key) from e

    def get(self, key: VariableId, default: Series | None = None) -> Series | None:
        return self.series.get(key, default)

    def variable(self, key: VariableId) -> Variable:
        for var in self.variables:
            if var.id == key:
                return var
        raise VariableNotFound(key)

    # ---- derived bounds ----
    @property
    def n_points(self) -> int:
        return sum(s.n for s in self.series.values())

    @property
    def extent(self) -> Domain | None:
        return Domain.spanning(s.extent for s in self.series.values() if s.n > 0)

    def summary(self) -> DatasetSummary:
        extent = self.extent
        return DatasetSummary(
            variables_count=len(self.variables),
            n_points=self.n_points,
            first_timestamp=extent.start if extent is not None else None,
            last_timestamp=extent.end if extent is not None else None,
            dropped_count=self.meta.dropped_count,
            sources=tuple(self.meta.sources),
        )

    # ---- transformations ----
    def select(self, keys: Iterable[VariableId], *, missing: str = "raise") -> list[Series]:
        """
        Series for `keys`, in the order given (selection order drives colors).

        missing:
          - "raise": error if any key is missing
          - "ignore": skip missing keys
        """
        selected: list[Series] = []
        for key in keys:
            if key in self.series:
                selected.append(self.series[key])
            elif missing == "raise":
                raise VariableNotFound(key)
        return selected

    def selected_series(self) -> list[Series]:
        """Series of the variables the UI flagged as selected, in variable order."""
        return [self.series[v.id] for v in self.variables if v.selected]

    def slice_time(self, domain: Domain, *, closed: str = "both") -> "Dataset":
        return Dataset(
            variables=self.variables,
            series={k: s.slice_time(domain, closed=closed) for k, s in self.series.items()},
            meta=self.meta,
            version=self.version,
        )

    def merge(self, other: "Dataset", *, chunk_size: int | None = None) -> "Dataset":
        """
        New snapshot holding both datasets, time order preserved per variable.

        Variables already present keep their position and their `selected`
        flag; newly seen variables are appended.
        """
        if not isinstance(other, Dataset):
            raise InvalidDataset("merge() expects a Dataset instance.")

        merged = merge_series_lists(
            self.series.values(), other.series.values(), chunk_size=chunk_size
        )
        known = {v.id for v in self.variables}
        variables = list(self.variables) + [v for v in other.variables if v.id not in known]

        return Dataset(
            variables=tuple(variables),
            series={s.variable: s for s in merged},
            meta=self.meta.combine(other.meta),
            version=max(self.version, other.version) + 1,
        )
