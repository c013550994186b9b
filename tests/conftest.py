r"""
Shared pytest fixtures for micro-bench tests.
"""

import math
import random
import threading
import time
from pathlib import Path

import pytest

from micro_bench.exceptions import BenchmarkNotFound
from micro_bench.host import B, BenchmarkHost, BenchmarkRegistry
from micro_bench.host import concurrency
from micro_bench.types import RunOutcome

SAMPLE_BENCHMARKS = Path(__file__).parent / "sample_benchmarks.py"


class SyntheticHost:
    """HostClient whose runs take ``overhead + cost * n`` nanoseconds.

    Optional multiplicative noise is drawn from a seeded generator. Runs whose
    sequence number is a multiple of ``fail_every`` come back failed.
    """

    def __init__(
        self,
        name: str = "synthetic",
        *,
        overhead: float = 100.0,
        cost: float = 10.0,
        noise: float = 0.0,
        fail_every: int = 0,
        benchmarks: tuple[str, ...] = ("alpha", "beta", "gamma"),
        seed: int = 1,
    ) -> None:
        self.name = name
        self.overhead = overhead
        self.cost = cost
        self.noise = noise
        self.fail_every = fail_every
        self.benchmarks = list(benchmarks)
        self.calls: list[tuple[str, int]] = []
        self.closed = False
        self._rng = random.Random(seed)

    def _check(self, benchmark: str) -> None:
        if benchmark not in self.benchmarks:
            raise BenchmarkNotFound(f"benchmark not found: {benchmark}", command="run")

    def _outcome(self, benchmark: str, n: int) -> RunOutcome:
        self.calls.append((benchmark, n))
        if self.fail_every and len(self.calls) % self.fail_every == 0:
            return RunOutcome(name=benchmark, iterations=n, elapsed_ns=0, failed=True, error="synthetic failure")
        elapsed = self.overhead + self.cost * n
        if self.noise:
            elapsed *= 1 + self._rng.uniform(-self.noise, self.noise)
        return RunOutcome(name=benchmark, iterations=n, elapsed_ns=round(elapsed))

    def list(self, pattern: str = ".") -> list[str]:
        return list(self.benchmarks)

    def run(self, benchmark: str | int, iterations: int, parallelism: int = 1) -> RunOutcome:
        self._check(benchmark)
        return self._outcome(benchmark, iterations)

    def run_for(self, benchmark: str | int, seconds: float, parallelism: int = 1) -> RunOutcome:
        self._check(benchmark)
        n = max(1, math.ceil((seconds * 1e9 - self.overhead) / self.cost))
        return self._outcome(benchmark, n)

    def set(self, key: str, value: str | bool | int) -> None:
        pass

    def close(self) -> None:
        self.closed = True


def build_registry() -> BenchmarkRegistry:
    registry = BenchmarkRegistry()

    @registry.register("noop")
    def bench_noop(b: B) -> None:
        for _ in range(b.n):
            pass

    @registry.register("sum_range")
    def bench_sum_range(b: B) -> None:
        for _ in range(b.n):
            sum(range(50))

    @registry.register("setup_heavy")
    def bench_setup_heavy(b: B) -> None:
        b.stop_timer()
        time.sleep(0.05)
        b.start_timer()
        for _ in range(b.n):
            pass

    @registry.register("failing")
    def bench_failing(b: B) -> None:
        b.fail("ran out of widgets")

    @registry.register("raising")
    def bench_raising(b: B) -> None:
        raise ValueError("boom")

    @registry.register("copy_bytes")
    def bench_copy_bytes(b: B) -> None:
        data = b"x" * 1024
        b.set_bytes(len(data))
        for _ in range(b.n):
            bytes(data)

    @registry.register("allocating", report_allocs=True)
    def bench_allocating(b: B) -> None:
        keep = []
        for _ in range(b.n):
            keep.append([0] * 10)

    @registry.register("leaky")
    def bench_leaky(b: B) -> None:
        concurrency.set_max_workers(3)
        for _ in range(b.n):
            pass

    @registry.register("parallel")
    def bench_parallel(b: B) -> None:
        lock = threading.Lock()
        done = []

        def body(share: int) -> None:
            for _ in range(share):
                with lock:
                    done.append(1)

        b.run_parallel(body)
        if len(done) != b.n:
            b.fail(f"ran {len(done)} of {b.n} iterations")

    return registry


@pytest.fixture
def registry() -> BenchmarkRegistry:
    """Fresh registry with a mix of well-behaved and misbehaving benchmarks."""
    return build_registry()


@pytest.fixture
def host(registry) -> BenchmarkHost:
    return BenchmarkHost(registry)


@pytest.fixture
def synthetic() -> SyntheticHost:
    """Noise-free synthetic host: 100ns overhead, 10ns per iteration."""
    return SyntheticHost()


@pytest.fixture
def sample_benchmarks() -> Path:
    """Benchmark file served by subprocess hosts."""
    return SAMPLE_BENCHMARKS


@pytest.fixture(autouse=True)
def restore_max_workers():
    yield
    concurrency.set_max_workers(None)
