# trendscope/io/normalize.py
"""
Raw records -> validated, per-variable ascending Series.

Malformed records are dropped and counted, never raised: a historian export
routinely carries a few bad lines and one of them must not cost the whole file.
"""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from functools import lru_cache
from typing import Any, Iterable
from zoneinfo import ZoneInfo

import numpy as np

from trendscope.config import DEFAULT_CONFIG, EngineConfig
from trendscope.core import InvalidVariable, Series, Variable, VariableId

from .records import RawRecord

logger = logging.getLogger(__name__)

_LOCALIZED_RE = re.compile(
    r"^(?P<d>\d{1,2})/(?P<m>\d{1,2})/(?P<y>\d{4})"
    r"(?:[ T]+(?P<H>\d{1,2}):(?P<M>\d{2})(?::(?P<S>\d{2})(?:[.,](?P<f>\d{1,6}))?)?)?$"
)
_COMPACT_RE = re.compile(r"^\d{14}$")
_TICKS_RE = re.compile(r"^[+-]?\d+$")

# Only the first few drops are logged individually.
_LOG_DROPS = 5


@lru_cache(maxsize=16)
def _zone(name: str) -> tzinfo:
    # UTC needs no tz database, which slim hosts may lack.
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def _epoch_ms(dt: datetime) -> float:
    return dt.timestamp() * 1000.0


def parse_timestamp(raw: Any, config: EngineConfig = DEFAULT_CONFIG) -> float | None:
    """
    Epoch milliseconds for a raw timestamp, or None when it cannot be parsed.

    Detection order:
    - contains "/"      -> localized "dd/mm/yyyy hh:mm:ss" in config.timezone
    - exactly 14 digits -> compact "yyyyMMddHHmmss" in config.timezone
    - otherwise         -> integer ticks / config.tick_divisor
    """
    if raw is None or isinstance(raw, bool):
        return None

    # Numeric input goes through the same digit-based detection as text, so a
    # compact yyyyMMddHHmmss typed as an integer upstream is still a date.
    if isinstance(raw, (int, np.integer)):
        text = str(int(raw))
    elif isinstance(raw, (float, np.floating)):
        if not math.isfinite(raw) or not float(raw).is_integer():
            return None
        text = str(int(raw))
    else:
        text = str(raw).strip()
    if not text:
        return None

    tz = _zone(config.timezone)
    try:
        if "/" in text:
            m = _LOCALIZED_RE.match(text)
            if m is None:
                return None
            frac = (m.group("f") or "0").ljust(6, "0")
            dt = datetime(
                int(m.group("y")), int(m.group("m")), int(m.group("d")),
                int(m.group("H") or 0), int(m.group("M") or 0), int(m.group("S") or 0),
                int(frac), tzinfo=tz,
            )
            return _epoch_ms(dt)

        if _COMPACT_RE.match(text):
            dt = datetime.strptime(text, "%Y%m%d%H%M%S").replace(tzinfo=tz)
            return _epoch_ms(dt)
    except ValueError:
        # Out-of-range fields, e.g. 31/02/2024.
        return None

    if _TICKS_RE.match(text):
        return int(text) / config.tick_divisor
    return None


def parse_value(raw: Any) -> float | None:
    """Finite float for a raw value (decimal comma accepted), or None."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float, np.integer, np.floating)):
        value = float(raw)
    else:
        text = str(raw).strip().replace(",", ".")
        if not text:
            return None
        try:
            value = float(text)
        except ValueError:
            return None
    return value if math.isfinite(value) else None


@dataclass(frozen=True, slots=True)
class NormalizeResult:
    variables: tuple[Variable, ...] = ()
    series: tuple[Series, ...] = field(default=(), repr=False)
    dropped_count: int = 0

    @property
    def n_points(self) -> int:
        return sum(s.n for s in self.series)


def normalize(raw: Iterable[RawRecord], config: EngineConfig = DEFAULT_CONFIG) -> NormalizeResult:
    """
    Group records by (series_key, aux_attribute), drop malformed ones and sort
    each group by time with a stable sort (ties keep input order).

    Variables come out in first-seen order.
    """
    times: dict[VariableId, list[float]] = {}
    values: dict[VariableId, list[float]] = {}
    dropped = 0

    for i, rec in enumerate(raw):
        t = parse_timestamp(rec.raw_timestamp, config)
        v = parse_value(rec.raw_value)
        key: VariableId | None = None
        if t is not None and v is not None:
            try:
                key = VariableId(rec.series_key, rec.aux_attribute or "")
            except InvalidVariable:
                key = None

        if key is None:
            dropped += 1
            if dropped <= _LOG_DROPS:
                logger.debug(
                    "Dropping record %d: key=%r ts=%r value=%r",
                    i, rec.series_key, rec.raw_timestamp, rec.raw_value,
                )
            continue

        if key not in times:
            times[key] = []
            values[key] = []
        times[key].append(t)
        values[key].append(v)

    series: list[Series] = []
    for key, ts in times.items():
        t_arr = np.asarray(ts, dtype=np.float64)
        v_arr = np.asarray(values[key], dtype=np.float64)
        order = np.argsort(t_arr, kind="stable")
        series.append(Series(variable=key, time=t_arr[order], values=v_arr[order]))

    variables = tuple(Variable(id=key) for key in times)

    if dropped:
        logger.info("Normalized %d variables, dropped %d malformed records", len(variables), dropped)
    else:
        logger.debug("Normalized %d variables", len(variables))

    return NormalizeResult(variables=variables, series=tuple(series), dropped_count=dropped)
