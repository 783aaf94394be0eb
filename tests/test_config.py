"""Tests for the configuration module."""

import dataclasses
import os
import socket
import tempfile

import pytest
import yaml

from runtime_metrics.config import (
    Config,
    InfluxConfig,
    default_measurement,
    load_config,
)
from runtime_metrics.log import DefaultLogger


def test_load_config_defaults():
    """Loading from a non-existent file returns defaults."""
    cfg = load_config("/tmp/nonexistent_runtime_metrics.yaml")
    assert isinstance(cfg, Config)
    assert cfg.collector.interval_seconds == 10.0
    assert cfg.collector.disable_cpu is False
    assert cfg.batch.interval_seconds == 60.0
    assert cfg.batch.drop_on_failure is True
    assert cfg.influx.addr == ""


def test_resolve_fills_defaults():
    cfg = Config().resolve()
    assert cfg.influx.addr == "localhost:8086"
    assert cfg.influx.database == "stats"
    assert cfg.influx.measurement == default_measurement()
    assert isinstance(cfg.logger, DefaultLogger)


def test_resolve_udp_addr():
    cfg = Config(influx=InfluxConfig(use_udp=True)).resolve()
    assert cfg.influx.addr == "localhost:8089"


def test_resolve_keeps_explicit_values():
    cfg = Config(influx=InfluxConfig(addr="db:1", database="d", measurement="m")).resolve()
    assert (cfg.influx.addr, cfg.influx.database, cfg.influx.measurement) == ("db:1", "d", "m")


def test_config_is_frozen():
    cfg = Config().resolve()
    with pytest.raises(dataclasses.FrozenInstanceError):
        cfg.influx.addr = "elsewhere:8086"


def test_default_measurement_uses_hostname(monkeypatch):
    monkeypatch.setattr(socket, "gethostname", lambda: "box")
    assert default_measurement() == "python.runtime.box"


def test_default_measurement_unknown_host(monkeypatch):
    def fail():
        raise OSError("no hostname")

    monkeypatch.setattr(socket, "gethostname", fail)
    assert default_measurement() == "python.runtime.unknown"


def test_load_config_from_yaml():
    """Loading from a YAML file populates values."""
    data = {
        "influx": {
            "addr": "influx:8086",
            "database": "metrics",
            "precision": "ms",
            "unknown_key": "ignored",
        },
        "collector": {
            "interval_seconds": 5.0,
            "disable_gc": True,
        },
        "batch": {"interval_seconds": 30},
    }
    with tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False) as fh:
        yaml.dump(data, fh)
        path = fh.name

    try:
        cfg = load_config(path)
        assert cfg.influx.addr == "influx:8086"
        assert cfg.influx.database == "metrics"
        assert cfg.influx.precision == "ms"
        assert cfg.collector.interval_seconds == 5.0
        assert cfg.collector.disable_gc is True
        assert cfg.batch.interval_seconds == 30
    finally:
        os.unlink(path)


def test_overrides_merge():
    cfg = load_config(
        "/tmp/nonexistent_runtime_metrics.yaml",
        overrides={"influx": {"database": "over"}},
    )
    assert cfg.influx.database == "over"


def test_env_override(monkeypatch):
    """Environment variables override YAML values."""
    data = {"influx": {"addr": "yaml:8086"}}
    with tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False) as fh:
        yaml.dump(data, fh)
        path = fh.name

    try:
        monkeypatch.setenv("RUNTIME_METRICS_ADDR", "env:8086")
        monkeypatch.setenv("RUNTIME_METRICS_USE_UDP", "true")
        monkeypatch.setenv("RUNTIME_METRICS_COLLECTION_INTERVAL", "2.5")
        monkeypatch.setenv("RUNTIME_METRICS_DISABLE_MEM", "1")
        cfg = load_config(path)
        assert cfg.influx.addr == "env:8086"
        assert cfg.influx.use_udp is True
        assert cfg.collector.interval_seconds == 2.5
        assert cfg.collector.disable_mem is True
    finally:
        os.unlink(path)
