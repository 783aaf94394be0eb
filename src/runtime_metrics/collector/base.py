"""Field record produced by the sampler and the per-sample collection plan."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, fields
from typing import Any


def _metric(key: str, default: int | float = 0) -> Any:
    return field(default=default, metadata={"key": key})


class Category(enum.Enum):
    """Independently toggleable group of metrics."""

    CPU = "cpu"
    MEMORY = "mem"
    GC = "gc"


def collection_plan(cpu: bool = True, mem: bool = True, gc: bool = True) -> tuple[Category, ...]:
    """Return the categories to sample, in order.

    GC statistics come from the memory snapshot, so GC is only planned when
    memory collection is enabled as well.
    """
    plan: list[Category] = []
    if cpu:
        plan.append(Category.CPU)
    if mem:
        plan.append(Category.MEMORY)
        if gc:
            plan.append(Category.GC)
    return tuple(plan)


@dataclass(frozen=True)
class Fields:
    """One complete sample of process runtime counters.

    Every metric is declared, so :meth:`values` always has the same key set;
    categories that were not sampled keep their zero value.

    ``mem.gc.count`` counts every collection since the interpreter started;
    the pause values only cover collections seen after the GC tracker was
    installed, which happens on the first sample.
    """

    # CPU
    num_cpu: int = _metric("cpu.count")
    num_threads: int = _metric("cpu.goroutines")
    num_ctx_switches: int = _metric("cpu.cgo_calls")
    cpu_user: float = _metric("cpu.user", 0.0)
    cpu_system: float = _metric("cpu.system", 0.0)

    # General
    rss: int = _metric("mem.alloc")
    traced_peak: int = _metric("mem.total")
    vms: int = _metric("mem.sys")
    modules: int = _metric("mem.lookups")
    allocated_blocks: int = _metric("mem.malloc")
    freed_objects: int = _metric("mem.frees")

    # Heap
    traced_current: int = _metric("mem.heap.alloc")
    heap_sys: int = _metric("mem.heap.sys")
    heap_idle: int = _metric("mem.heap.idle")
    heap_inuse: int = _metric("mem.heap.inuse")
    # always 0, pymalloc keeps no count of arenas handed back to the OS
    heap_released: int = _metric("mem.heap.released")
    heap_objects: int = _metric("mem.heap.objects")

    # Stack
    stack_frames: int = _metric("mem.stack.inuse")
    recursion_limit: int = _metric("mem.stack.sys")
    code_segment: int = _metric("mem.stack.mspan_inuse")
    lib_segment: int = _metric("mem.stack.mspan_sys")
    thread_states: int = _metric("mem.stack.mcache_inuse")
    os_threads: int = _metric("mem.stack.mcache_sys")

    shared: int = _metric("mem.othersys")

    # GC
    gc_garbage: int = _metric("mem.gc.sys")
    gc_next: int = _metric("mem.gc.next")
    gc_last: int = _metric("mem.gc.last")
    gc_pause_total: int = _metric("mem.gc.pause_total")
    gc_pause: int = _metric("mem.gc.pause")
    gc_count: int = _metric("mem.gc.count")
    gc_cpu_fraction: float = _metric("mem.gc.cpu_fraction", 0.0)

    os: str = ""
    arch: str = ""
    version: str = ""

    def tags(self) -> dict[str, str]:
        return {
            "python.os": self.os,
            "python.arch": self.arch,
            "python.version": self.version,
        }

    def values(self) -> dict[str, int | float]:
        return {f.metadata["key"]: getattr(self, f.name) for f in fields(self) if "key" in f.metadata}


METRIC_KEYS: tuple[str, ...] = tuple(f.metadata["key"] for f in fields(Fields) if "key" in f.metadata)
