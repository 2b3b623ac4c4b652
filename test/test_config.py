# test/test_config.py
import json
import logging

import pytest

from trendscope.config import (
    CATEGORY10,
    DEFAULT_CONFIG,
    EngineConfig,
    config_from_mapping,
    load_config,
)
from trendscope.logging_setup import ROOT_LOGGER, configure_logging


def test_defaults():
    assert DEFAULT_CONFIG.tick_divisor == 10_000.0
    assert DEFAULT_CONFIG.progress_every == 1_000
    assert DEFAULT_CONFIG.debounce_s == pytest.approx(0.075)
    assert DEFAULT_CONFIG.palette == CATEGORY10
    assert DEFAULT_CONFIG.y_axis_policy == "global"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"tick_divisor": 0},
        {"progress_every": 0},
        {"debounce_ms": -1},
        {"merge_chunk_size": 0},
        {"palette": ()},
        {"y_axis_policy": "auto"},
    ],
)
def test_validation(kwargs):
    with pytest.raises(ValueError):
        EngineConfig(**kwargs)


def test_config_from_mapping_coerces_and_skips_unknown(caplog):
    with caplog.at_level(logging.WARNING, logger="trendscope.config"):
        cfg = config_from_mapping({"debounce_ms": "120", "decimate": "no", "bogus": 1})

    assert cfg.debounce_ms == 120.0
    assert cfg.decimate is False
    assert "bogus" in caplog.text


def test_load_config_file_then_env(tmp_path):
    path = tmp_path / "trendscope.json"
    path.write_text(json.dumps({"debounce_ms": 100, "worker_threshold": 50, "timezone": "UTC"}))

    env = {
        "TRENDSCOPE_CONFIG": str(path),
        "TRENDSCOPE_WORKER_THRESHOLD": "10",
        "TRENDSCOPE_PALETTE": "#000000, #ffffff",
    }
    cfg = load_config(env=env)

    assert cfg.debounce_ms == 100.0
    assert cfg.worker_threshold == 10
    assert cfg.palette == ("#000000", "#ffffff")


def test_load_config_without_sources_is_default():
    assert load_config(env={}) == DEFAULT_CONFIG


def test_load_config_rejects_non_object(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("[1, 2]")
    with pytest.raises(ValueError):
        load_config(path, env={})


def test_configure_logging_file_handler(tmp_path):
    logger = logging.getLogger(ROOT_LOGGER)
    saved = (logger.level, list(logger.handlers), logger.propagate)
    try:
        out = configure_logging(logging.INFO, log_dir=str(tmp_path / "logs"), production_mode=False)
        assert out is logger
        assert len(logger.handlers) == 2

        logging.getLogger("trendscope.io.normalize").info("hello from normalize")
        for h in logger.handlers:
            h.flush()

        text = (tmp_path / "logs" / "trendscope.log").read_text(encoding="utf-8")
        assert "hello from normalize" in text
        assert "trendscope.io.normalize" in text
    finally:
        for h in logger.handlers:
            h.close()
        logger.setLevel(saved[0])
        logger.handlers[:] = saved[1]
        logger.propagate = saved[2]


def test_configure_logging_production_default_level():
    logger = logging.getLogger(ROOT_LOGGER)
    saved = (logger.level, list(logger.handlers), logger.propagate)
    try:
        configure_logging()
        assert logger.level == logging.WARNING
        assert len(logger.handlers) == 1
    finally:
        logger.setLevel(saved[0])
        logger.handlers[:] = saved[1]
        logger.propagate = saved[2]
