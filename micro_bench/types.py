r"""
Core types for micro-benchmark measurement.

    from micro_bench.types import RunOutcome, RunRequest

    outcome = host.run("sort_small", 1000)
    if not outcome.failed:
        print(f"{outcome.ns_per_op:.2f} ns/op")
"""

import math
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from micro_bench.exceptions import InvalidRequest

__all__ = [
    "BenchmarkDescriptor",
    "RunRequest",
    "RunOutcome",
    "RegressionEstimate",
    "OverheadEstimate",
    "DoublingEstimate",
    "LadderStep",
    "LadderEstimate",
]


@dataclass(frozen=True, slots=True)
class BenchmarkDescriptor:
    """A registered benchmark.

    Attributes:
        name: Benchmark name as listed by the host.
        func: Callable receiving a ``B`` handle; runs ``b.n`` iterations.
        report_allocs: Always report allocation stats for this benchmark.
    """

    name: str
    func: Callable[[Any], None]
    report_allocs: bool = False


@dataclass(frozen=True, slots=True)
class RunRequest:
    """A single run request.

    Attributes:
        benchmark: Benchmark name, ``#index`` string, or integer index.
        iterations: Number of iterations to run (>= 1).
        parallelism: Number of concurrent workers (>= 1).
    """

    benchmark: str | int
    iterations: int
    parallelism: int = 1

    def __post_init__(self) -> None:
        if self.iterations < 1:
            raise InvalidRequest(f"iterations must be positive, got {self.iterations}")
        if self.parallelism < 1:
            raise InvalidRequest(f"parallelism must be positive, got {self.parallelism}")


@dataclass(frozen=True, slots=True)
class RunOutcome:
    """Result of one timed run.

    Numeric fields are only meaningful when ``failed`` is False.

    Attributes:
        name: Benchmark name (with ``-P`` suffix when parallelism > 1).
        iterations: Iterations executed.
        elapsed_ns: Time spent in the timed region, in nanoseconds.
        bytes_processed: Bytes processed per iteration (``b.set_bytes``).
        mem_allocs: Net allocated blocks during the timed region.
        mem_bytes: Bytes allocated during the timed region.
        failed: True if the benchmark body failed.
        show_alloc_result: Benchmark asked for allocation stats.
        error: Failure message if failed.
        warning: Non-fatal host warning (e.g. concurrency level left changed).
    """

    name: str
    iterations: int
    elapsed_ns: int
    bytes_processed: int = 0
    mem_allocs: int = 0
    mem_bytes: int = 0
    failed: bool = False
    show_alloc_result: bool = False
    error: str | None = None
    warning: str | None = None

    @property
    def ns_per_op(self) -> float:
        """Elapsed nanoseconds per iteration."""
        if self.iterations <= 0:
            return math.nan
        return self.elapsed_ns / self.iterations

    @property
    def total_ns(self) -> float:
        """Total elapsed time, recomputed as ns/op times iterations."""
        return self.ns_per_op * self.iterations

    @property
    def allocs_per_op(self) -> float:
        """Allocated blocks per iteration."""
        if self.iterations <= 0:
            return math.nan
        return self.mem_allocs / self.iterations

    @property
    def bytes_per_op(self) -> float:
        """Allocated bytes per iteration."""
        if self.iterations <= 0:
            return math.nan
        return self.mem_bytes / self.iterations

    @property
    def mb_per_s(self) -> float:
        """Throughput in MB/s, 0 when no bytes were reported."""
        if self.bytes_processed <= 0 or self.elapsed_ns <= 0:
            return 0.0
        return (self.bytes_processed * self.iterations / 1e6) / (self.elapsed_ns / 1e9)


@dataclass(frozen=True, slots=True)
class RegressionEstimate:
    """Regression of ns/op against iteration count.

    The slope approximates the marginal per-iteration cost; the intercept
    the fixed per-call overhead.
    """

    benchmark: str
    host: str
    calibrated_n: int
    count: int
    r_squared: float
    slope: float
    slope_error: float
    intercept: float
    intercept_error: float
    mean: float
    skew: float
    kurtosis: float
    failures: int = 0

    @property
    def failed(self) -> bool:
        """True if no sample survived."""
        return self.count == 0


@dataclass(frozen=True, slots=True)
class OverheadEstimate:
    """Two-point difference estimate of per-iteration cost and overhead.

    Attributes:
        code_mean: Overhead-free cost of one iteration, in ns.
        overhead_mean: Fixed per-call cost, in ns.
        target: Largest accepted overhead fraction of total time.
        target_n: Iteration count at which overhead equals ``target``.
        duration_ns: Estimated run time at ``target_n`` (``target_n * code_mean``).
        reliable: False when ``code_mean <= 0``; ``target_n`` is then NaN.
    """

    benchmark: str
    host: str
    probe: int
    count: int
    mean_one: float
    mean_probe: float
    code_mean: float
    overhead_mean: float
    target: float
    target_n: float
    duration_ns: float
    reliable: bool
    recommended_iterations: int | None
    failures: int = 0

    @property
    def failed(self) -> bool:
        """True if either probe point has no surviving sample."""
        return self.count == 0


@dataclass(frozen=True, slots=True)
class DoublingEstimate:
    """Smallest doubling of n after which ns/op stops improving."""

    benchmark: str
    host: str
    iterations: int
    ns_per_op: float
    failures: int = 0

    @property
    def failed(self) -> bool:
        return math.isnan(self.ns_per_op)


@dataclass(frozen=True, slots=True)
class LadderStep:
    """Samples taken at one calibrated iteration count."""

    duration_ns: int
    iterations: int
    count: int
    mean: float
    variance: float


@dataclass(frozen=True, slots=True)
class LadderEstimate:
    """ns/op distribution at decreasing calibration durations."""

    benchmark: str
    host: str
    steps: tuple[LadderStep, ...] = field(default_factory=tuple)
    failures: int = 0

    @property
    def failed(self) -> bool:
        return not any(step.count for step in self.steps)
