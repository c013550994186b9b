"""Memory measurement utilities for benchmarks.

Allocation counters for the timed region of a run, plus system memory
information for session headers.
"""

from __future__ import annotations

import sys
import tracemalloc

import psutil

__all__ = [
    "AllocationCounter",
    "allocated_blocks",
    "cpu_count",
    "total_memory_bytes",
]


def allocated_blocks() -> int:
    """Number of memory blocks currently allocated by the interpreter."""
    return sys.getallocatedblocks()


def cpu_count() -> int:
    """Logical CPU count, at least 1."""
    return psutil.cpu_count(logical=True) or 1


def total_memory_bytes() -> int:
    """Total physical memory in bytes, or 0 if unavailable."""
    try:
        return psutil.virtual_memory().total
    except (OSError, RuntimeError):
        return 0


class AllocationCounter:
    """Accumulates allocations over one or more timed intervals.

    Block counts come from ``sys.getallocatedblocks`` and are net: blocks freed
    inside an interval are not counted. Byte counts need ``tracemalloc`` and
    are only collected when ``trace_bytes`` is set, since tracing slows
    allocation-heavy code considerably.

        counter = AllocationCounter(trace_bytes=True)
        counter.start()
        work()
        counter.stop()
        print(counter.blocks, counter.bytes)
    """

    def __init__(self, *, trace_bytes: bool = False) -> None:
        self.trace_bytes = trace_bytes
        self.blocks = 0
        self.bytes = 0
        self._start_blocks = 0
        self._start_traced = 0
        self._owns_tracing = False
        self._running = False

    def start(self) -> None:
        if self._running:
            return
        if self.trace_bytes:
            if not tracemalloc.is_tracing():
                tracemalloc.start()
                self._owns_tracing = True
            tracemalloc.reset_peak()
            self._start_traced = tracemalloc.get_traced_memory()[0]
        self._start_blocks = allocated_blocks()
        self._running = True

    def stop(self) -> None:
        if not self._running:
            return
        self.blocks += max(allocated_blocks() - self._start_blocks, 0)
        if self.trace_bytes and tracemalloc.is_tracing():
            _, peak = tracemalloc.get_traced_memory()
            self.bytes += max(peak - self._start_traced, 0)
        self._running = False

    def reset(self) -> None:
        self.blocks = 0
        self.bytes = 0
        if self._running:
            self._running = False
            self.start()

    def close(self) -> None:
        """Stop tracing if this counter started it."""
        self.stop()
        if self._owns_tracing:
            tracemalloc.stop()
            self._owns_tracing = False
