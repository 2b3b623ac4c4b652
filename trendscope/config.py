# trendscope/config.py
"""
Engine configuration.

Defaults live on `EngineConfig`. `load_config()` overlays, in order:
1. a JSON file (explicit `path`, else the ``TRENDSCOPE_CONFIG`` env var)
2. ``TRENDSCOPE_<FIELD>`` environment variables (e.g. ``TRENDSCOPE_DEBOUNCE_MS=100``)
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

logger = logging.getLogger(__name__)

ENV_PREFIX = "TRENDSCOPE_"
CONFIG_ENV_VAR = "TRENDSCOPE_CONFIG"

# d3 schemeCategory10
CATEGORY10 = (
    "#1f77b4", "#ff7f0e", "#2ca02c", "#d62728", "#9467bd",
    "#8c564b", "#e377c2", "#7f7f7f", "#bcbd22", "#17becf",
)


@dataclass(frozen=True, slots=True)
class EngineConfig:
    # Integer tick timestamps are divided by this to reach epoch milliseconds.
    tick_divisor: float = 10_000.0
    # Zone used for localized "dd/mm/yyyy hh:mm:ss" and compact timestamps.
    timezone: str = "UTC"
    # Worker progress cadence, in records processed.
    progress_every: int = 1_000
    # Coalescing window for stats recomputes after a Domain change.
    debounce_ms: float = 75.0
    # Above this many points in the selected series, stats run on the worker.
    worker_threshold: int = 200_000
    # Chunk size for pairwise chunked merges of large uploads.
    merge_chunk_size: int = 500_000
    palette: tuple[str, ...] = CATEGORY10
    # "global" (fixed Y extent) or "window" (Y follows the visible slice).
    y_axis_policy: str = "global"
    decimate: bool = True

    def __post_init__(self) -> None:
        if self.tick_divisor <= 0:
            raise ValueError("tick_divisor must be positive")
        if self.progress_every <= 0:
            raise ValueError("progress_every must be positive")
        if self.debounce_ms < 0:
            raise ValueError("debounce_ms must be >= 0")
        if self.merge_chunk_size <= 0:
            raise ValueError("merge_chunk_size must be positive")
        if not self.palette:
            raise ValueError("palette must not be empty")
        if self.y_axis_policy not in {"global", "window"}:
            raise ValueError("y_axis_policy must be 'global' or 'window'")
        object.__setattr__(self, "palette", tuple(self.palette))

    @property
    def debounce_s(self) -> float:
        return self.debounce_ms / 1000.0


DEFAULT_CONFIG = EngineConfig()


def _coerce(name: str, raw: Any, current: Any) -> Any:
    if isinstance(current, bool):
        if isinstance(raw, str):
            return raw.strip().lower() in {"1", "true", "yes", "on"}
        return bool(raw)
    if isinstance(current, tuple):
        if isinstance(raw, str):
            return tuple(p.strip() for p in raw.split(",") if p.strip())
        return tuple(raw)
    if isinstance(current, int):
        return int(raw)
    if isinstance(current, float):
        return float(raw)
    return str(raw)


def config_from_mapping(values: Mapping[str, Any], base: EngineConfig = DEFAULT_CONFIG) -> EngineConfig:
    known = {f.name for f in fields(EngineConfig)}
    updates: dict[str, Any] = {}
    for key, raw in values.items():
        if key not in known:
            logger.warning("Ignoring unknown config key %r", key)
            continue
        updates[key] = _coerce(key, raw, getattr(base, key))
    return replace(base, **updates)


def _read_json(path: Path) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must hold a JSON object")
    return data


def load_config(path: str | Path | None = None, *, env: Mapping[str, str] | None = None) -> EngineConfig:
    env = os.environ if env is None else env
    config = DEFAULT_CONFIG

    file_path = path if path is not None else env.get(CONFIG_ENV_VAR)
    if file_path:
        file_path = Path(file_path).expanduser()
        config = config_from_mapping(_read_json(file_path), config)
        logger.info("Loaded config from %s", file_path)

    overrides = {
        f.name: env[ENV_PREFIX + f.name.upper()]
        for f in fields(EngineConfig)
        if ENV_PREFIX + f.name.upper() in env
    }
    if overrides:
        config = config_from_mapping(overrides, config)
    return config
