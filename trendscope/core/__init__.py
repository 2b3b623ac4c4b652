"""
Core domain objects for trendscope.

This module defines the toolkit-agnostic data model and algorithms:
- Variable / VariableId: identity and label of a measured tag
- Series: validated, read-only time-ordered samples of one variable
- Domain: closed [start, end] time window
- Dataset: immutable, versioned snapshot of all loaded series (and its summary)
- merge: order-preserving merges of sorted series
- stats: window statistics (population std-dev, plain summation)

The core layer is independent from file formats, rendering and threading.
"""

from .variable import Variable, VariableId
from .series import Series, Point
from .domain import Domain
from .dataset import Dataset, DatasetSummary
from .metadata import DatasetMeta
from .merge import (
    merge_points,
    merge_series,
    merge_series_chunked,
    merge_series_lists,
    merge_chunks,
    iter_merge_chunks,
)
from .stats import WindowStats, VariableStats, compute, compute_window_stats
from .exceptions import (
    CoreError,
    InvalidSeries,
    InvalidVariable,
    InvalidDomain,
    InvalidDataset,
    VariableNotFound,
    StatsError,
    StatsRequestFailed,
    StatsCancelled,
    StatsTimeout,
)


__all__ = [
    # model
    "Variable",
    "VariableId",
    "Series",
    "Point",
    "Domain",
    "Dataset",
    "DatasetSummary",
    "DatasetMeta",

    # merging
    "merge_points",
    "merge_series",
    "merge_series_chunked",
    "merge_series_lists",
    "merge_chunks",
    "iter_merge_chunks",

    # statistics
    "WindowStats",
    "VariableStats",
    "compute",
    "compute_window_stats",

    # exceptions
    "CoreError",
    "InvalidSeries",
    "InvalidVariable",
    "InvalidDomain",
    "InvalidDataset",
    "VariableNotFound",
    "StatsError",
    "StatsRequestFailed",
    "StatsCancelled",
    "StatsTimeout",
]
