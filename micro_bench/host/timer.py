r"""
Benchmark handle with a pausable timer.

Each run gets a fresh ``B``. The benchmark body runs ``b.n`` iterations and
may pause the timer around one-time setup.

    @benchmark("dict_lookup")
    def bench_dict_lookup(b):
        b.stop_timer()
        table = {i: i for i in range(1000)}
        b.start_timer()
        for i in range(b.n):
            table[i % 1000]
"""

import time
from collections.abc import Callable

from micro_bench.host import concurrency
from micro_bench.utils.memory import AllocationCounter

__all__ = ["B"]


class B:
    """Handle passed to benchmark functions.

    Attributes:
        n: Number of iterations the body must run.
        parallelism: Worker count requested for this run.
    """

    def __init__(self, n: int, *, parallelism: int = 1, trace_bytes: bool = False) -> None:
        self.n = n
        self.parallelism = parallelism
        self._start: int = 0
        self._duration: int = 0
        self._running = False
        self._bytes = 0
        self._show_alloc_result = False
        self._failed = False
        self._error: str | None = None
        self._allocs = AllocationCounter(trace_bytes=trace_bytes)

    def start_timer(self) -> None:
        """Start or resume timing. Called by the host before the body runs."""
        if self._running:
            return
        self._allocs.start()
        self._start = time.perf_counter_ns()
        self._running = True

    def stop_timer(self) -> None:
        """Pause timing, e.g. around setup inside the body."""
        if not self._running:
            return
        self._duration += time.perf_counter_ns() - self._start
        self._allocs.stop()
        self._running = False

    def reset_timer(self) -> None:
        """Zero elapsed time and allocation counters, keeping the timer state."""
        if self._running:
            self._start = time.perf_counter_ns()
        self._duration = 0
        self._allocs.reset()

    def set_bytes(self, n: int) -> None:
        """Record bytes processed per iteration; enables MB/s reporting."""
        self._bytes = n

    def report_allocs(self) -> None:
        """Include allocation stats in this run's result."""
        self._show_alloc_result = True

    def fail(self, message: str = "benchmark failed") -> None:
        """Mark the run failed without stopping the body."""
        self._failed = True
        if self._error is None:
            self._error = message

    def run_parallel(self, body: Callable[[int], None]) -> None:
        """Split ``n`` iterations across the current worker level and join.

        ``body(share)`` runs ``share`` iterations on its own thread.
        """
        concurrency.run_across(self.n, concurrency.get_max_workers(), body)

    @property
    def failed(self) -> bool:
        return self._failed

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def elapsed_ns(self) -> int:
        """Elapsed time in the timed region, in nanoseconds."""
        if self._running:
            return self._duration + time.perf_counter_ns() - self._start
        return self._duration

    @property
    def bytes(self) -> int:
        return self._bytes

    @property
    def show_alloc_result(self) -> bool:
        return self._show_alloc_result

    @property
    def mem_allocs(self) -> int:
        return self._allocs.blocks

    @property
    def mem_bytes(self) -> int:
        return self._allocs.bytes

    def close(self) -> None:
        self._allocs.close()
