"""Garbage-collection pause tracking.

CPython does not record collector pause times, so :class:`GCTracker` hooks
``gc.callbacks`` and keeps them in a fixed-size ring.  The i-th completed
collection (counting from zero) is stored at slot ``i % ring_size``; the most
recent pause is therefore found at :func:`pause_index` of the collection count.
"""

from __future__ import annotations

import gc
import threading
import time
from dataclasses import dataclass
from typing import Any

RING_SIZE = 256


def pause_index(count: int, ring_size: int = RING_SIZE) -> int:
    """Return the ring slot holding the most recent pause after *count* collections."""
    return (count + (ring_size - 1)) % ring_size


@dataclass(frozen=True)
class GCSnapshot:
    """Collector statistics read at one instant."""

    count: int = 0
    pause_ns: int = 0
    pause_total_ns: int = 0
    last_ns: int = 0
    collected: int = 0
    uncollectable: int = 0


class GCTracker:
    """Records the duration of every garbage collection through ``gc.callbacks``."""

    def __init__(self, ring_size: int = RING_SIZE) -> None:
        self.ring_size = ring_size
        self._ring = [0] * ring_size
        self._count = 0
        self._pause_total_ns = 0
        self._last_ns = 0
        self._collected = 0
        self._uncollectable = 0
        self._started_ns: int | None = None
        # re-entrant: a collection can fire on the thread reading a snapshot
        self._lock = threading.RLock()
        self._installed = False

    def install(self) -> None:
        if not self._installed:
            gc.callbacks.append(self.callback)
            self._installed = True

    def uninstall(self) -> None:
        if self._installed:
            gc.callbacks.remove(self.callback)
            self._installed = False

    @property
    def installed(self) -> bool:
        return self._installed

    def callback(self, phase: str, info: dict[str, Any]) -> None:
        if phase == "start":
            self._started_ns = time.perf_counter_ns()
            return
        if phase != "stop" or self._started_ns is None:
            return
        pause = time.perf_counter_ns() - self._started_ns
        self._started_ns = None
        self.record(pause, info.get("collected", 0), info.get("uncollectable", 0))

    def record(self, pause_ns: int, collected: int = 0, uncollectable: int = 0) -> None:
        """Store one completed collection."""
        with self._lock:
            self._ring[self._count % self.ring_size] = pause_ns
            self._count += 1
            self._pause_total_ns += pause_ns
            self._last_ns = time.time_ns()
            self._collected += collected
            self._uncollectable += uncollectable

    def snapshot(self) -> GCSnapshot:
        with self._lock:
            count = self._count
            return GCSnapshot(
                count=count,
                pause_ns=self._ring[pause_index(count, self.ring_size)],
                pause_total_ns=self._pause_total_ns,
                last_ns=self._last_ns,
                collected=self._collected,
                uncollectable=self._uncollectable,
            )


_default_tracker: GCTracker | None = None
_default_lock = threading.Lock()


def default_tracker() -> GCTracker:
    """Return the process-wide tracker, installing it on first use."""
    global _default_tracker
    with _default_lock:
        if _default_tracker is None:
            _default_tracker = GCTracker()
            _default_tracker.install()
        return _default_tracker
