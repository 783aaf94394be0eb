"""InfluxDB transport – connects, pings, queries and writes batches of points."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from influxdb import InfluxDBClient
from influxdb.exceptions import InfluxDBClientError, InfluxDBServerError
from influxdb.line_protocol import make_lines
from requests.exceptions import RequestException

from ..config import InfluxConfig
from ..errors import PointError, TransportError

logger = logging.getLogger(__name__)

_CLIENT_ERRORS = (InfluxDBClientError, InfluxDBServerError, RequestException, OSError, ValueError)

# accepted spellings -> influxdb client time_precision
PRECISIONS: dict[str, str | None] = {
    "": None,
    "n": "n",
    "ns": "n",
    "u": "u",
    "us": "u",
    "ms": "ms",
    "s": "s",
    "m": "m",
    "h": "h",
}

Point = dict[str, Any]


@dataclass
class Batch:
    """Points waiting to be written together."""

    database: str
    precision: str | None = None
    retention_policy: str = ""
    points: list[Point] = field(default_factory=list)

    def add_point(self, point: Point) -> None:
        self.points.append(point)

    def __len__(self) -> int:
        return len(self.points)


def new_batch(database: str, precision: str = "", retention_policy: str = "") -> Batch:
    """Create an empty batch.  Raises :class:`PointError` on an unknown precision."""
    if precision not in PRECISIONS:
        raise PointError(f"unknown write precision {precision!r}")
    return Batch(database=database, precision=PRECISIONS[precision], retention_policy=retention_policy)


def make_point(
    measurement: str,
    tags: dict[str, str],
    values: dict[str, Any],
    time: datetime,
) -> Point:
    """Build a wire-ready point, validating tag and field types."""
    if not measurement:
        raise PointError("point has no measurement")
    if not values:
        raise PointError("point has no fields")
    for key, value in tags.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise PointError(f"tag {key!r} must map a string to a string")
    for key, value in values.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise PointError(f"field {key!r} has unsupported type {type(value).__name__}")
    return {
        "measurement": measurement,
        "tags": dict(tags),
        "time": time,
        "fields": dict(values),
    }


def point_line(point: Point) -> str:
    """Render a point in line protocol."""
    return make_lines({"points": [point]}).strip()


def split_addr(addr: str, default_port: int = 8086) -> tuple[str, int]:
    """Split ``host:port`` or ``[ipv6-host%zone]:port`` into host and port."""
    if addr.startswith("["):
        host, sep, rest = addr[1:].partition("]")
        if not sep:
            raise ValueError(f"missing ']' in address {addr!r}")
        port = rest[1:] if rest.startswith(":") else ""
    else:
        host, _, port = addr.rpartition(":") if ":" in addr else (addr, "", "")
    if not host:
        raise ValueError(f"missing host in address {addr!r}")
    return host, int(port) if port else default_port


class Transport(Protocol):
    """Operations the push path needs from the time-series store."""

    def ping(self, timeout: float) -> str: ...

    def query(self, command: str) -> Any: ...

    def write(self, batch: Batch) -> None: ...

    def close(self) -> None: ...


class InfluxTransport:
    """Transport backed by :class:`influxdb.InfluxDBClient`.

    With ``use_udp`` the client writes over UDP; ping and query are skipped
    because the UDP listener cannot answer them.
    """

    def __init__(self, config: InfluxConfig, client_kwargs: dict[str, Any]) -> None:
        self._config = config
        self._client_kwargs = client_kwargs
        self._client = InfluxDBClient(timeout=config.timeout, **client_kwargs)

    @classmethod
    def connect(cls, config: InfluxConfig) -> InfluxTransport:
        try:
            host, port = split_addr(config.addr, 8089 if config.use_udp else 8086)
        except ValueError as exc:
            raise TransportError(f"invalid influxdb address: {exc}") from exc

        kwargs: dict[str, Any] = {
            "host": host,
            "username": config.username,
            "password": config.password,
            "database": config.database,
            "ssl": config.ssl,
            "verify_ssl": config.ssl and not config.insecure_skip_verify,
            # a failed request is never retried
            "retries": 1,
            "headers": {"User-Agent": config.user_agent},
        }
        if config.use_udp:
            kwargs.update(use_udp=True, udp_port=port)
        else:
            kwargs["port"] = port
        try:
            transport = cls(config, kwargs)
        except _CLIENT_ERRORS as exc:
            raise TransportError(f"failed to create influxdb client: {exc}") from exc
        logger.info("InfluxTransport initialized → %s (udp=%s)", config.addr, config.use_udp)
        return transport

    def ping(self, timeout: float) -> str:
        """Check reachability within *timeout* seconds; return the server version."""
        if self._config.use_udp:
            return ""
        probe = InfluxDBClient(timeout=timeout, **self._client_kwargs)
        try:
            return probe.ping()
        except _CLIENT_ERRORS as exc:
            raise TransportError(f"failed to ping influxdb: {exc}") from exc
        finally:
            probe.close()

    def query(self, command: str) -> Any:
        if self._config.use_udp:
            logger.info("Skipping query over UDP: %s", command)
            return None
        try:
            return self._client.query(command, method="POST")
        except _CLIENT_ERRORS as exc:
            raise TransportError(f"query {command!r} failed: {exc}") from exc

    def write(self, batch: Batch) -> None:
        try:
            self._client.write_points(
                batch.points,
                time_precision=batch.precision,
                database=batch.database,
                retention_policy=batch.retention_policy or None,
            )
        except _CLIENT_ERRORS as exc:
            raise TransportError(f"could not write {len(batch)} points: {exc}") from exc

    def close(self) -> None:
        self._client.close()
