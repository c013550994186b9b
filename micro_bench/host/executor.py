r"""
Single-run executor and the execution host.

    from micro_bench.host import BenchmarkHost

    host = BenchmarkHost(registry)
    outcome = host.run("dict_lookup", 10_000)
    print(outcome.ns_per_op)
"""

from __future__ import annotations

import gc
import logging
import re
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace

from micro_bench.exceptions import BenchmarkNotFound, InvalidRequest
from micro_bench.host import concurrency
from micro_bench.host.registry import BenchmarkRegistry, default_registry
from micro_bench.host.timer import B
from micro_bench.types import BenchmarkDescriptor, RunOutcome, RunRequest

__all__ = [
    "BenchmarkHost",
    "benchmark_name",
    "parse_duration",
    "run_benchmark",
    "run_for",
]

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 1_000_000_000

_DURATION_RE = re.compile(r"^(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)$")
_DURATION_UNITS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}


def parse_duration(text: str) -> int | None:
    """Parse a duration like ``2s`` or ``100ms`` into nanoseconds.

    Returns None if ``text`` is not a duration.
    """
    match = _DURATION_RE.match(text.strip())
    if match is None:
        return None
    value, unit = match.groups()
    return int(float(value) * _DURATION_UNITS[unit])


def benchmark_name(name: str, parallelism: int) -> str:
    """Full benchmark name including the ``-P`` suffix."""
    if parallelism != 1:
        return f"{name}-{parallelism}"
    return name


def _timed_call(descriptor: BenchmarkDescriptor, b: B) -> None:
    # Clear garbage from previous runs so each run starts comparable
    gc.collect()
    gc_enabled = gc.isenabled()
    gc.disable()
    try:
        b.reset_timer()
        b.start_timer()
        try:
            descriptor.func(b)
        finally:
            b.stop_timer()
    except Exception as e:
        logger.debug("Benchmark %s raised", descriptor.name, exc_info=True)
        b.fail(f"{type(e).__name__}: {e}")
    finally:
        if gc_enabled:
            gc.enable()
        b.close()


def run_benchmark(
    descriptor: BenchmarkDescriptor,
    n: int,
    *,
    parallelism: int = 1,
    benchmem: bool = False,
) -> RunOutcome:
    """Run ``descriptor`` for exactly ``n`` iterations.

    The call runs on a dedicated thread; the caller blocks until it joins.
    Failures inside the benchmark body are captured in the outcome.

    Args:
        descriptor: Benchmark to run.
        n: Iteration count (>= 1).
        parallelism: Worker count exposed to the body.
        benchmem: Always collect and report allocation bytes.

    Returns:
        RunOutcome covering only the timed region.
    """
    RunRequest(descriptor.name, n, parallelism)
    b = B(n, parallelism=parallelism, trace_bytes=benchmem or descriptor.report_allocs)
    name = benchmark_name(descriptor.name, parallelism)

    with ThreadPoolExecutor(max_workers=1) as executor:
        executor.submit(_timed_call, descriptor, b).result()

    if b.failed:
        return RunOutcome(name=name, iterations=n, elapsed_ns=0, failed=True, error=b.error)

    return RunOutcome(
        name=name,
        iterations=n,
        elapsed_ns=b.elapsed_ns,
        bytes_processed=b.bytes,
        mem_allocs=b.mem_allocs,
        mem_bytes=b.mem_bytes,
        show_alloc_result=benchmem or descriptor.report_allocs or b.show_alloc_result,
    )


def run_for(
    descriptor: BenchmarkDescriptor,
    duration_ns: int,
    *,
    parallelism: int = 1,
    benchmem: bool = False,
) -> RunOutcome:
    """Grow the iteration count until one run takes at least ``duration_ns``.

    Returns the last outcome; its ``iterations`` is the calibrated count.
    """
    n = 1
    outcome = run_benchmark(descriptor, n, parallelism=parallelism, benchmem=benchmem)
    while not outcome.failed and outcome.elapsed_ns < duration_ns and n < MAX_ITERATIONS:
        last = n
        if outcome.elapsed_ns <= 0:
            n = last * 100
        else:
            n = int(duration_ns * last / outcome.elapsed_ns)
            # Overshoot by 20%, grow at most 100x and at least by one
            n = max(min(n + n // 5, 100 * last), last + 1)
        n = min(n, MAX_ITERATIONS)
        outcome = run_benchmark(descriptor, n, parallelism=parallelism, benchmem=benchmem)
    return outcome


class BenchmarkHost:
    """Serves runs of the benchmarks in one frozen registry.

    Runs are sequential: each ``run`` call blocks until the benchmark and all
    of its workers finished.
    """

    SETTINGS = ("benchmem", "parallelism")

    def __init__(
        self,
        registry: BenchmarkRegistry | None = None,
        *,
        benchmem: bool = False,
        parallelism: int = 1,
    ) -> None:
        if registry is None:
            registry = default_registry
        self._benchmarks = registry.freeze()
        self.benchmem = benchmem
        self.parallelism = parallelism

    @property
    def benchmarks(self) -> tuple[BenchmarkDescriptor, ...]:
        return self._benchmarks

    @staticmethod
    def compile_filter(pattern: str) -> re.Pattern[str]:
        try:
            return re.compile(pattern)
        except re.error as e:
            raise InvalidRequest(f"bad filter {pattern!r}: {e}", command="list") from e

    def describe(self, pattern: str = ".") -> list[tuple[int, str]]:
        """Indices and names of benchmarks matching ``pattern``."""
        regex = self.compile_filter(pattern)
        return [(i, b.name) for i, b in enumerate(self._benchmarks) if regex.search(b.name)]

    def list(self, pattern: str = ".") -> list[int]:
        """Indices of benchmarks matching ``pattern``."""
        return [i for i, _ in self.describe(pattern)]

    def names(self, pattern: str = ".") -> list[str]:
        """Names of benchmarks matching ``pattern``, in registry order."""
        return [name for _, name in self.describe(pattern)]

    def resolve(self, benchmark: str | int) -> BenchmarkDescriptor:
        """Look up a benchmark by index, ``#index`` or name.

        Raises:
            BenchmarkNotFound: If nothing matches.
        """
        index: int | None = None
        if isinstance(benchmark, int):
            index = benchmark
        elif benchmark.startswith("#") and benchmark[1:].isdigit():
            index = int(benchmark[1:])

        if index is not None:
            if 0 <= index < len(self._benchmarks):
                return self._benchmarks[index]
            raise BenchmarkNotFound(f"benchmark not found: index {index}", command="run")

        for descriptor in self._benchmarks:
            if descriptor.name == benchmark:
                return descriptor
        raise BenchmarkNotFound(f"benchmark not found: {benchmark}", command="run")

    def _with_workers(
        self,
        descriptor: BenchmarkDescriptor,
        parallelism: int,
        run: Callable[[], RunOutcome],
    ) -> RunOutcome:
        concurrency.set_max_workers(parallelism)
        try:
            outcome = run()
        finally:
            leaked = concurrency.get_max_workers()
            concurrency.set_max_workers(None)

        if leaked != parallelism:
            warning = f"{benchmark_name(descriptor.name, parallelism)} left max workers set to {leaked}"
            logger.warning(warning)
            outcome = replace(outcome, warning=warning)
        return outcome

    def run(self, benchmark: str | int, iterations: int, parallelism: int | None = None) -> RunOutcome:
        """Run a benchmark for exactly ``iterations`` iterations.

        Raises:
            BenchmarkNotFound: Unknown benchmark.
            InvalidRequest: Non-positive iterations or parallelism.
        """
        request = RunRequest(benchmark, iterations, self.parallelism if parallelism is None else parallelism)
        descriptor = self.resolve(request.benchmark)
        logger.debug("run %s n=%d p=%d", descriptor.name, request.iterations, request.parallelism)
        return self._with_workers(
            descriptor,
            request.parallelism,
            lambda: run_benchmark(
                descriptor,
                request.iterations,
                parallelism=request.parallelism,
                benchmem=self.benchmem,
            ),
        )

    def run_for(self, benchmark: str | int, duration_ns: int, parallelism: int | None = None) -> RunOutcome:
        """Calibrate an iteration count that runs for at least ``duration_ns``."""
        if duration_ns <= 0:
            raise InvalidRequest(f"duration must be positive, got {duration_ns}ns", command="run")
        if parallelism is None:
            parallelism = self.parallelism
        if parallelism < 1:
            raise InvalidRequest(f"parallelism must be positive, got {parallelism}", command="run")
        descriptor = self.resolve(benchmark)
        logger.debug("run %s for %dns p=%d", descriptor.name, duration_ns, parallelism)
        return self._with_workers(
            descriptor,
            parallelism,
            lambda: run_for(descriptor, duration_ns, parallelism=parallelism, benchmem=self.benchmem),
        )

    def set(self, key: str, value: str | bool | int) -> None:
        """Change a host setting.

        Raises:
            InvalidRequest: Unknown key or bad value.
        """
        if key == "benchmem":
            self.benchmem = _parse_bool(value)
        elif key == "parallelism":
            try:
                parallelism = int(value)
            except (TypeError, ValueError) as e:
                raise InvalidRequest(f"bad parallelism value: {value!r}", command="set") from e
            if parallelism < 1:
                raise InvalidRequest(f"parallelism must be positive, got {parallelism}", command="set")
            self.parallelism = parallelism
        else:
            valid = ", ".join(self.SETTINGS)
            raise InvalidRequest(f"unknown setting {key!r}, valid settings: {valid}", command="set")


def _parse_bool(value: str | bool | int) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "t", "true", "yes", "on"):
        return True
    if text in ("0", "f", "false", "no", "off"):
        return False
    raise InvalidRequest(f"bad benchmem value: {value!r}", command="set")
