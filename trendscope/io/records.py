# trendscope/io/records.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Mapping

# Column names of the historian export this engine was built around.
COL_TICKS = "Chrono"
COL_NAME = "Name"
COL_VALUE = "Value"
COL_QUALITY = "Quality"
COL_AUX = "TextAttr03"
COL_TIMESTAMP = "TS"

EXPECTED_COLUMNS = (COL_TICKS, COL_NAME, COL_VALUE, COL_QUALITY, COL_AUX, COL_TIMESTAMP)


@dataclass(frozen=True, slots=True)
class RawRecord:
    """
    One unvalidated sample as produced by a file parser.

    raw_timestamp is either localized text ("dd/mm/yyyy hh:mm:ss"), a compact
    14-digit numeral ("yyyyMMddHHmmss") or an integer tick count.
    raw_value may use a decimal comma.
    """
    series_key: str
    aux_attribute: str
    raw_timestamp: Any
    raw_value: Any
    quality: int | None = None


def _parse_quality(raw: Any) -> int | None:
    if raw is None or raw == "":
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


def _text(raw: Any) -> str:
    return "" if raw is None else str(raw).strip()


def record_from_row(row: Mapping[str, Any]) -> RawRecord:
    """
    Map one export row to a RawRecord.

    The localized TS column wins; the Chrono tick column is only used when TS
    is absent or blank.
    """
    ts = row.get(COL_TIMESTAMP)
    if ts is None or (isinstance(ts, str) and not ts.strip()):
        ts = row.get(COL_TICKS)
    elif isinstance(ts, str):
        ts = ts.strip()

    return RawRecord(
        series_key=_text(row.get(COL_NAME)),
        aux_attribute=_text(row.get(COL_AUX)),
        raw_timestamp=ts,
        raw_value=row.get(COL_VALUE),
        quality=_parse_quality(row.get(COL_QUALITY)),
    )


def records_from_rows(rows: Iterable[Mapping[str, Any]]) -> Iterator[RawRecord]:
    for row in rows:
        yield record_from_row(row)
