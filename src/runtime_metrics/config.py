"""Configuration loading and validation for runtime_metrics."""

from __future__ import annotations

import os
import socket
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable

import yaml

from .log import DefaultLogger, Logger

DEFAULT_HTTP_ADDR = "localhost:8086"
DEFAULT_UDP_ADDR = "localhost:8089"
DEFAULT_MEASUREMENT = "python.runtime"
DEFAULT_DATABASE = "stats"
DEFAULT_COLLECTION_INTERVAL = 10.0
DEFAULT_BATCH_INTERVAL = 60.0


@dataclass(frozen=True)
class InfluxConfig:
    """InfluxDB connection and write settings."""

    # "host:port" or "[ipv6-host]:port"; defaults depend on use_udp
    addr: str = ""
    database: str = ""
    username: str = ""
    password: str = field(default="", repr=False)
    # defaults to "python.runtime.<hostname>"
    measurement: str = ""
    retention_policy: str = ""
    # "" means nanoseconds
    precision: str = ""
    use_udp: bool = False
    user_agent: str = "InfluxDBClient"
    # seconds; None disables the timeout
    timeout: float | None = None
    ssl: bool = False
    insecure_skip_verify: bool = False


@dataclass(frozen=True)
class CollectorConfig:
    """Runtime sampler settings."""

    interval_seconds: float = DEFAULT_COLLECTION_INTERVAL
    disable_cpu: bool = False
    disable_mem: bool = False
    # GC statistics also require memory collection
    disable_gc: bool = False


@dataclass(frozen=True)
class BatchConfig:
    """Batching and flush settings."""

    interval_seconds: float = DEFAULT_BATCH_INTERVAL
    max_pending: int = 1000
    drop_on_failure: bool = True


@dataclass(frozen=True)
class Config:
    """Top-level runtime_metrics configuration."""

    influx: InfluxConfig = field(default_factory=InfluxConfig)
    collector: CollectorConfig = field(default_factory=CollectorConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)
    logger: Logger | None = field(default=None, repr=False, compare=False)

    def resolve(self) -> Config:
        """Return a copy with every unset field replaced by its default."""
        influx = self.influx
        if not influx.database:
            influx = replace(influx, database=DEFAULT_DATABASE)
        if not influx.addr:
            influx = replace(influx, addr=DEFAULT_UDP_ADDR if influx.use_udp else DEFAULT_HTTP_ADDR)
        if not influx.measurement:
            influx = replace(influx, measurement=default_measurement())

        collector = self.collector
        if collector.interval_seconds <= 0:
            collector = replace(collector, interval_seconds=DEFAULT_COLLECTION_INTERVAL)

        batch = self.batch
        if batch.interval_seconds <= 0:
            batch = replace(batch, interval_seconds=DEFAULT_BATCH_INTERVAL)

        return replace(
            self,
            influx=influx,
            collector=collector,
            batch=batch,
            logger=self.logger if self.logger is not None else DefaultLogger(),
        )


def default_measurement() -> str:
    """Return ``python.runtime.<hostname>``, or ``python.runtime.unknown``."""
    try:
        hostname = socket.gethostname()
    except OSError:
        hostname = ""
    return f"{DEFAULT_MEASUREMENT}.{hostname or 'unknown'}"


def _to_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _merge_dict(target: dict[str, Any], source: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *source* into *target*."""
    for key, value in source.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _merge_dict(target[key], value)
        else:
            target[key] = value
    return target


_ENV_MAP: dict[str, tuple[tuple[str, ...], Callable[[str], Any]]] = {
    "RUNTIME_METRICS_ADDR": (("influx", "addr"), str),
    "RUNTIME_METRICS_DATABASE": (("influx", "database"), str),
    "RUNTIME_METRICS_USERNAME": (("influx", "username"), str),
    "RUNTIME_METRICS_PASSWORD": (("influx", "password"), str),
    "RUNTIME_METRICS_MEASUREMENT": (("influx", "measurement"), str),
    "RUNTIME_METRICS_RETENTION_POLICY": (("influx", "retention_policy"), str),
    "RUNTIME_METRICS_PRECISION": (("influx", "precision"), str),
    "RUNTIME_METRICS_USE_UDP": (("influx", "use_udp"), _to_bool),
    "RUNTIME_METRICS_TIMEOUT": (("influx", "timeout"), float),
    "RUNTIME_METRICS_COLLECTION_INTERVAL": (("collector", "interval_seconds"), float),
    "RUNTIME_METRICS_DISABLE_CPU": (("collector", "disable_cpu"), _to_bool),
    "RUNTIME_METRICS_DISABLE_MEM": (("collector", "disable_mem"), _to_bool),
    "RUNTIME_METRICS_DISABLE_GC": (("collector", "disable_gc"), _to_bool),
    "RUNTIME_METRICS_BATCH_INTERVAL": (("batch", "interval_seconds"), float),
}


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variable overrides using the RUNTIME_METRICS_ prefix."""
    for env_key, (path, coerce) in _ENV_MAP.items():
        value = os.environ.get(env_key)
        if value is None:
            continue
        obj = data
        for part in path[:-1]:
            obj = obj.setdefault(part, {})
        obj[path[-1]] = coerce(value)
    return data


def _section(cls: type, data: Any) -> Any:
    if not isinstance(data, dict):
        data = {}
    return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


def _dict_to_config(data: dict[str, Any]) -> Config:
    """Convert a raw dictionary to a Config dataclass."""
    return Config(
        influx=_section(InfluxConfig, data.get("influx")),
        collector=_section(CollectorConfig, data.get("collector")),
        batch=_section(BatchConfig, data.get("batch")),
    )


def load_config(path: str | Path | None = None, overrides: dict[str, Any] | None = None) -> Config:
    """Load configuration from a YAML file with environment overrides.

    Looks for ``runtime_metrics.yaml`` in the current directory if *path* is
    None.  *overrides* is merged on top of the file before the environment is
    applied.  The result is not resolved; call :meth:`Config.resolve`.
    """
    data: dict[str, Any] = {}
    if path is None:
        path = Path("runtime_metrics.yaml")
    else:
        path = Path(path)

    if path.exists():
        with open(path, encoding="utf-8") as fh:
            loaded = yaml.safe_load(fh)
            if isinstance(loaded, dict):
                data = loaded

    if overrides:
        _merge_dict(data, overrides)
    data = _apply_env_overrides(data)
    return _dict_to_config(data)
