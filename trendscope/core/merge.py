# trendscope/core/merge.py
"""
Order-preserving merges of sorted series.

All functions take arrays / Series that are already ascending by time and
return new objects; inputs are never modified.
"""
from __future__ import annotations

import logging
from typing import Iterable, Iterator, Sequence

import numpy as np

from .exceptions import InvalidSeries
from .series import Series
from .variable import VariableId

logger = logging.getLogger(__name__)

Chunk = tuple[np.ndarray, np.ndarray]


def merge_points(
    existing_time: np.ndarray,
    existing_values: np.ndarray,
    incoming_time: np.ndarray,
    incoming_values: np.ndarray,
) -> Chunk:
    """
    Linear merge of two ascending (time, values) pairs.

    Each element's output slot is its own index plus its rank in the other
    input. Existing points rank with side="left" and incoming points with
    side="right", so on equal timestamps existing points come first.
    """
    et = np.asarray(existing_time, dtype=np.float64)
    ev = np.asarray(existing_values, dtype=np.float64)
    it = np.asarray(incoming_time, dtype=np.float64)
    iv = np.asarray(incoming_values, dtype=np.float64)

    if et.size != ev.size or it.size != iv.size:
        raise InvalidSeries("merge_points(): time and values lengths differ.")

    if it.size == 0:
        return et.copy(), ev.copy()
    if et.size == 0:
        return it.copy(), iv.copy()

    n, m = et.size, it.size
    out_t = np.empty(n + m, dtype=np.float64)
    out_v = np.empty(n + m, dtype=np.float64)

    existing_slots = np.arange(n) + np.searchsorted(it, et, side="left")
    incoming_slots = np.arange(m) + np.searchsorted(et, it, side="right")

    out_t[existing_slots] = et
    out_v[existing_slots] = ev
    out_t[incoming_slots] = it
    out_v[incoming_slots] = iv
    return out_t, out_v


def merge_series(existing: Series, incoming: Series) -> Series:
    if existing.variable != incoming.variable:
        raise InvalidSeries(
            f"Cannot merge series of '{existing.variable}' with '{incoming.variable}'."
        )
    t, v = merge_points(existing.time, existing.values, incoming.time, incoming.values)
    return Series(variable=existing.variable, time=t, values=v)


def iter_merge_chunks(chunks: Sequence[Chunk]) -> Iterator[Chunk]:
    """
    Pairwise reduction over sorted chunks: merge neighbours (0,1), (2,3), ...
    and repeat until one chunk is left.

    Yields after every pairwise merge so a caller can hand control back to its
    event loop between merges. The last value yielded is the full result.
    Earlier chunks win ties against later ones, matching a single
    left-to-right `merge_points`.
    """
    level: list[Chunk] = [(np.asarray(t, dtype=np.float64), np.asarray(v, dtype=np.float64)) for t, v in chunks]
    if not level:
        yield np.empty(0), np.empty(0)
        return
    if len(level) == 1:
        yield level[0]
        return

    while len(level) > 1:
        merged: list[Chunk] = []
        for i in range(0, len(level), 2):
            if i + 1 < len(level):
                a, b = level[i], level[i + 1]
                pair = merge_points(a[0], a[1], b[0], b[1])
                merged.append(pair)
                yield pair
            else:
                # Odd chunk out rides along to the next level.
                merged.append(level[i])
        level = merged


def merge_chunks(chunks: Sequence[Chunk]) -> Chunk:
    result: Chunk = (np.empty(0), np.empty(0))
    for result in iter_merge_chunks(chunks):
        pass
    return result


def split_chunks(time: np.ndarray, values: np.ndarray, chunk_size: int) -> list[Chunk]:
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    return [
        (time[i:i + chunk_size], values[i:i + chunk_size])
        for i in range(0, int(time.size), chunk_size)
    ]


def merge_series_chunked(existing: Series, incoming: Series, *, chunk_size: int) -> Series:
    """Same result as `merge_series`, built by pairwise reduction over bounded chunks."""
    if existing.variable != incoming.variable:
        raise InvalidSeries(
            f"Cannot merge series of '{existing.variable}' with '{incoming.variable}'."
        )
    if existing.n + incoming.n <= chunk_size:
        return merge_series(existing, incoming)

    chunks = split_chunks(existing.time, existing.values, chunk_size)
    chunks += split_chunks(incoming.time, incoming.values, chunk_size)
    t, v = merge_chunks(chunks)
    logger.debug(
        "Chunked merge of %s: %d + %d points in %d chunks",
        existing.variable, existing.n, incoming.n, len(chunks),
    )
    return Series(variable=existing.variable, time=t, values=v)


def merge_series_lists(
    existing: Iterable[Series],
    incoming: Iterable[Series],
    *,
    chunk_size: int | None = None,
) -> list[Series]:
    """
    Union two series lists by variable.

    Variables already present keep their position; newly seen variables are
    appended in the order they appear in `incoming`.
    """
    by_var: dict[VariableId, Series] = {}
    for s in existing:
        if s.variable in by_var:
            by_var[s.variable] = merge_series(by_var[s.variable], s)
        else:
            by_var[s.variable] = s

    for s in incoming:
        prior = by_var.get(s.variable)
        if prior is None:
            by_var[s.variable] = s
        elif chunk_size:
            by_var[s.variable] = merge_series_chunked(prior, s, chunk_size=chunk_size)
        else:
            by_var[s.variable] = merge_series(prior, s)

    return list(by_var.values())
