"""Periodic and on-demand sampling of process runtime counters."""

from __future__ import annotations

import gc
import logging
import platform
import sys
import threading
import time
import tracemalloc
from dataclasses import dataclass
from typing import Any, Callable

import psutil

from ..config import CollectorConfig
from .base import Category, Fields, collection_plan
from .gc_stats import GCSnapshot, GCTracker, default_tracker

logger = logging.getLogger(__name__)

FieldsFunc = Callable[[Fields], None]


@dataclass(frozen=True)
class MemorySnapshot:
    """Memory and collector counters read together; feeds both MEMORY and GC."""

    rss: int
    vms: int
    data: int
    shared: int
    text: int
    lib: int
    traced_current: int
    traced_peak: int
    allocated_blocks: int
    modules: int
    gen_counts: tuple[int, ...]
    gen0_threshold: int
    garbage: int
    stack_frames: int
    thread_states: int
    os_threads: int
    recursion_limit: int
    collections: int
    uptime_ns: int
    gc_snapshot: GCSnapshot


def _thread_stacks() -> tuple[int, int]:
    """Return the number of frames on all thread stacks and the number of stacks."""
    frames = sys._current_frames()
    total = 0
    for frame in frames.values():
        while frame is not None:
            total += 1
            frame = frame.f_back
    return total, len(frames)


def read_memory(proc: psutil.Process, tracker: GCTracker) -> MemorySnapshot:
    mem = proc.memory_info()
    traced_current, traced_peak = tracemalloc.get_traced_memory()
    stack_frames, thread_states = _thread_stacks()
    uptime_ns = max(time.time_ns() - int(proc.create_time() * 1e9), 1)
    return MemorySnapshot(
        rss=mem.rss,
        vms=mem.vms,
        data=getattr(mem, "data", 0),
        shared=getattr(mem, "shared", 0),
        text=getattr(mem, "text", 0),
        lib=getattr(mem, "lib", 0),
        traced_current=traced_current,
        traced_peak=traced_peak,
        allocated_blocks=sys.getallocatedblocks(),
        modules=len(sys.modules),
        gen_counts=gc.get_count(),
        gen0_threshold=gc.get_threshold()[0],
        garbage=len(gc.garbage),
        stack_frames=stack_frames,
        thread_states=thread_states,
        os_threads=proc.num_threads(),
        recursion_limit=sys.getrecursionlimit(),
        collections=sum(gen["collections"] for gen in gc.get_stats()),
        uptime_ns=uptime_ns,
        gc_snapshot=tracker.snapshot(),
    )


def _cpu_stats(proc: psutil.Process) -> dict[str, Any]:
    times = proc.cpu_times()
    switches = proc.num_ctx_switches()
    return {
        "num_cpu": psutil.cpu_count() or 0,
        "num_threads": threading.active_count(),
        "num_ctx_switches": switches.voluntary + switches.involuntary,
        "cpu_user": float(times.user),
        "cpu_system": float(times.system),
    }


def _mem_stats(m: MemorySnapshot) -> dict[str, Any]:
    return {
        "rss": m.rss,
        "traced_peak": m.traced_peak,
        "vms": m.vms,
        "modules": m.modules,
        "allocated_blocks": m.allocated_blocks,
        "freed_objects": m.gc_snapshot.collected,
        "traced_current": m.traced_current,
        "heap_sys": m.data,
        "heap_idle": max(m.vms - m.rss, 0),
        "heap_inuse": max(m.rss - m.shared, 0),
        "heap_released": 0,
        "heap_objects": sum(m.gen_counts),
        "stack_frames": m.stack_frames,
        "recursion_limit": m.recursion_limit,
        "code_segment": m.text,
        "lib_segment": m.lib,
        "thread_states": m.thread_states,
        "os_threads": m.os_threads,
        "shared": m.shared,
    }


def _gc_stats(m: MemorySnapshot) -> dict[str, Any]:
    return {
        "gc_garbage": m.garbage,
        "gc_next": max(m.gen0_threshold - m.gen_counts[0], 0),
        "gc_last": m.gc_snapshot.last_ns,
        "gc_pause_total": m.gc_snapshot.pause_total_ns,
        "gc_pause": m.gc_snapshot.pause_ns,
        "gc_count": m.collections,
        "gc_cpu_fraction": m.gc_snapshot.pause_total_ns / m.uptime_ns,
    }


class Collector:
    """Samples runtime statistics and hands each :class:`Fields` to a callback.

    Use :meth:`run` (or :meth:`start`/:meth:`stop`) for periodic sampling and
    :meth:`one_off` for a single synchronous sample.  The enable flags may be
    changed any time before :meth:`run` is called.
    """

    def __init__(
        self,
        fields_func: FieldsFunc | None = None,
        interval: float = 10.0,
        enable_cpu: bool = True,
        enable_mem: bool = True,
        enable_gc: bool = True,
        gc_tracker: GCTracker | None = None,
    ) -> None:
        self.interval = interval
        self.enable_cpu = enable_cpu
        self.enable_mem = enable_mem
        self.enable_gc = enable_gc
        self._fields_func: FieldsFunc = fields_func or (lambda _fields: None)
        self._gc_tracker = gc_tracker
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()

    @classmethod
    def from_config(cls, config: CollectorConfig, fields_func: FieldsFunc | None = None) -> Collector:
        return cls(
            fields_func,
            interval=config.interval_seconds,
            enable_cpu=not config.disable_cpu,
            enable_mem=not config.disable_mem,
            enable_gc=not config.disable_gc,
        )

    @property
    def gc_tracker(self) -> GCTracker:
        if self._gc_tracker is None:
            self._gc_tracker = default_tracker()
        return self._gc_tracker

    def one_off(self) -> Fields:
        """Return a fresh sample.  Safe to call from any number of threads."""
        return self._collect_stats()

    def _collect_stats(self) -> Fields:
        plan = collection_plan(self.enable_cpu, self.enable_mem, self.enable_gc)
        proc = psutil.Process()
        values: dict[str, Any] = {}
        snapshot: MemorySnapshot | None = None
        for category in plan:
            if category is Category.CPU:
                values.update(_cpu_stats(proc))
            elif category is Category.MEMORY:
                snapshot = read_memory(proc, self.gc_tracker)
                values.update(_mem_stats(snapshot))
            elif category is Category.GC and snapshot is not None:
                values.update(_gc_stats(snapshot))

        return Fields(
            os=sys.platform,
            arch=platform.machine(),
            version=platform.python_version(),
            **values,
        )

    def _emit(self) -> None:
        try:
            self._fields_func(self._collect_stats())
        except Exception:
            logger.exception("Sampling callback failed")

    def run(self, done: threading.Event | None = None) -> None:
        """Sample now and then every ``interval`` seconds until *done* is set.

        Blocks the calling thread; with ``done=None`` it never returns.
        Ticks missed because the callback was slow are skipped, not queued.
        """
        if done is None:
            done = threading.Event()
        next_tick = time.monotonic() + self.interval
        self._emit()
        while not done.wait(max(next_tick - time.monotonic(), 0.0)):
            self._emit()
            next_tick += self.interval
            now = time.monotonic()
            if next_tick <= now:
                next_tick += ((now - next_tick) // self.interval + 1) * self.interval

    def start(self) -> None:
        """Start periodic sampling on a background thread."""
        if self._thread is not None:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self.run, args=(self._stop_event,), name="runtime-metrics-sampler", daemon=True
        )
        self._thread.start()
        logger.info("Collector started (interval=%.1fs)", self.interval)

    def stop(self, timeout: float = 5.0) -> None:
        """Stop periodic sampling."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info("Collector stopped")
