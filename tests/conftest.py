"""Shared test doubles."""

from __future__ import annotations

import threading
from typing import Any

import pytest

from runtime_metrics.errors import TransportError
from runtime_metrics.exporter.influx import Batch


class RecordingLogger:
    """Logger that records calls instead of exiting."""

    def __init__(self) -> None:
        self.infos: list[str] = []
        self.fatals: list[str] = []

    def info(self, *args: Any) -> None:
        self.infos.append(" ".join(str(a) for a in args))

    def fatal(self, *args: Any) -> None:
        self.fatals.append(" ".join(str(a) for a in args))


class FakeTransport:
    """In-memory transport; set the ``fail_*`` flags to raise TransportError."""

    def __init__(self) -> None:
        self.pings: list[float] = []
        self.queries: list[str] = []
        self.writes: list[list[dict]] = []
        self.closed = False
        self.fail_ping = False
        self.fail_query = False
        self.fail_write = False
        self.written = threading.Event()

    def ping(self, timeout: float) -> str:
        self.pings.append(timeout)
        if self.fail_ping:
            raise TransportError("ping refused")
        return "1.8.10"

    def query(self, command: str) -> Any:
        self.queries.append(command)
        if self.fail_query:
            raise TransportError("query refused")
        return None

    def write(self, batch: Batch) -> None:
        if self.fail_write:
            raise TransportError("write refused")
        self.writes.append(list(batch.points))
        self.written.set()

    def close(self) -> None:
        self.closed = True


class BlockingTransport(FakeTransport):
    """Transport whose writes hang until ``release`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def write(self, batch: Batch) -> None:
        self.entered.set()
        self.release.wait(timeout=10)
        super().write(batch)


class ResetTransport(FakeTransport):
    """Transport whose writes fail with a raw socket error."""

    def write(self, batch: Batch) -> None:
        raise ConnectionResetError("connection reset by peer")


@pytest.fixture
def recording_logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def blocking_transport():
    transport = BlockingTransport()
    yield transport
    transport.release.set()


@pytest.fixture
def reset_transport() -> ResetTransport:
    return ResetTransport()
