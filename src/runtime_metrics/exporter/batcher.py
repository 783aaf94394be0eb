"""Batch accumulator and flush loop for the push path."""

from __future__ import annotations

import logging
import queue
import threading
import time
from datetime import datetime, timezone

from ..collector.base import Fields
from ..config import BatchConfig, InfluxConfig
from ..errors import PointError
from ..log import Logger
from .influx import Batch, Point, Transport, make_point, new_batch, point_line

logger = logging.getLogger(__name__)

_STOP = object()


class _Line:
    """Renders a point as line protocol only when a logger asks for the text."""

    __slots__ = ("point",)

    def __init__(self, point: Point) -> None:
        self.point = point

    def __str__(self) -> str:
        return point_line(self.point)


class PointBatcher:
    """Collects points from the sampler and writes them to a transport on a timer.

    The sampler calls :meth:`on_fields`, which only enqueues.  A single worker
    thread drains the queue into the open batch and, every
    ``batch.interval_seconds``, hands the batch to the transport.  After every
    flush attempt the batch is replaced by a fresh one, so a failing sink
    loses data instead of growing memory (unless ``drop_on_failure`` is off).
    """

    def __init__(
        self,
        transport: Transport,
        influx: InfluxConfig,
        batch: BatchConfig,
        log: Logger,
    ) -> None:
        self._transport = transport
        self._influx = influx
        self._config = batch
        self._log = log
        self._queue: queue.Queue = queue.Queue(maxsize=max(batch.max_pending, 0))
        self._lock = threading.Lock()
        self._stopping = threading.Event()
        self._thread: threading.Thread | None = None
        self._batch: Batch | None = self.new_batch()

    @property
    def pending(self) -> int:
        """Number of points in the open batch."""
        with self._lock:
            return len(self._batch) if self._batch is not None else 0

    def new_batch(self) -> Batch | None:
        try:
            return new_batch(self._influx.database, self._influx.precision, self._influx.retention_policy)
        except PointError as exc:
            self._log.fatal(f"could not create batch: {exc}")
            return None

    def on_fields(self, fields: Fields) -> None:
        """Sampler callback: turn *fields* into a point and enqueue it without blocking."""
        try:
            point = make_point(
                self._influx.measurement,
                fields.tags(),
                fields.values(),
                datetime.now(timezone.utc),
            )
        except PointError as exc:
            self._log.fatal(f"error while creating point: {exc}")
            return
        try:
            self._queue.put_nowait(point)
        except queue.Full:
            self._log.info("point queue full, dropping point")

    def receive(self, point: Point) -> None:
        """Append *point* to the open batch; dropped when there is none."""
        with self._lock:
            if self._batch is None:
                return
            self._log.info(_Line(point))
            self._batch.add_point(point)

    def flush(self) -> bool:
        """Write the open batch if it holds any points.  Returns True if a write was attempted."""
        with self._lock:
            batch = self._batch
            if batch is None or len(batch) == 0:
                return False
            try:
                self._transport.write(batch)
            except Exception as exc:
                self._log.fatal(f"could not write points to InfluxDB: {exc}")
                if not self._config.drop_on_failure:
                    return True
            self._batch = self.new_batch()
            return True

    def _drain(self) -> None:
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return
            if item is not _STOP:
                self.receive(item)

    def _guarded(self, func, *args) -> None:
        try:
            func(*args)
        except Exception as exc:
            self._log.fatal(f"flush worker error: {exc!r}")

    def _loop(self) -> None:
        interval = self._config.interval_seconds
        next_tick = time.monotonic() + interval
        while not self._stopping.is_set():
            timeout = next_tick - time.monotonic()
            if timeout <= 0:
                self._guarded(self.flush)
                next_tick += interval
                continue
            try:
                item = self._queue.get(timeout=timeout)
            except queue.Empty:
                continue
            if item is _STOP:
                break
            self._guarded(self.receive, item)

        self._guarded(self._drain)
        self._guarded(self.flush)

    def start(self) -> None:
        """Start the flush worker."""
        if self._thread is not None:
            return
        self._stopping.clear()
        self._thread = threading.Thread(target=self._loop, name="runtime-metrics-flush", daemon=True)
        self._thread.start()
        logger.info("PointBatcher started (interval=%.1fs)", self._config.interval_seconds)

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the worker after writing whatever is still buffered.

        Waits at most *timeout* seconds.  A worker stuck in a write is left
        behind as a daemon thread and finishes its final flush on its own.
        """
        if self._thread is None:
            return
        try:
            # wakes a worker idle on an empty queue; a full queue wakes it anyway
            self._queue.put_nowait(_STOP)
        except queue.Full:
            pass
        self._stopping.set()
        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            logger.warning("PointBatcher worker still busy after %.1fs, not waiting", timeout)
        self._thread = None
        logger.info("PointBatcher stopped")
