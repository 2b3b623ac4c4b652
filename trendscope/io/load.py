# trendscope/io/load.py
from __future__ import annotations

import logging
from pathlib import Path

import polars as pl

from trendscope.config import DEFAULT_CONFIG, EngineConfig
from trendscope.core import Dataset, DatasetMeta

from .normalize import normalize
from .records import COL_NAME, RawRecord, records_from_rows

logger = logging.getLogger(__name__)


def _sniff_separator(path: Path) -> str:
    with open(path, "r", encoding="utf-8-sig", errors="replace") as f:
        header = f.readline()
    return ";" if header.count(";") > header.count(",") else ","


def read_records(path: str | Path, *, separator: str | None = None) -> list[RawRecord]:
    """
    Read a historian CSV export into RawRecords.

    Every column is read as text: timestamp format detection and decimal-comma
    handling happen in `normalize`, not in the CSV reader.
    """
    path = Path(path)
    sep = separator or _sniff_separator(path)

    df = pl.read_csv(
        path,
        separator=sep,
        infer_schema_length=0,
        encoding="utf8-lossy",
        truncate_ragged_lines=True,
    )
    df = df.rename({c: c.lstrip("\ufeff").strip() for c in df.columns})
    if COL_NAME not in df.columns:
        raise ValueError(f"{path.name}: missing required column '{COL_NAME}' (got {df.columns})")

    logger.info("Read %s rows from %s (separator %r)", f"{df.height:,}", path.name, sep)
    return list(records_from_rows(df.iter_rows(named=True)))


def load_csv(
    path: str | Path,
    config: EngineConfig = DEFAULT_CONFIG,
    *,
    separator: str | None = None,
) -> Dataset:
    result = normalize(read_records(path, separator=separator), config)
    return Dataset.from_series(
        result.series,
        variables=result.variables,
        meta=DatasetMeta(sources=(str(path),), dropped_count=result.dropped_count),
    )
