r"""
Execution host: benchmark registry and single-run executor.

    from micro_bench.host import BenchmarkHost, benchmark

    @benchmark("join_strings")
    def bench_join(b):
        parts = ["a"] * 100
        for _ in range(b.n):
            "".join(parts)

    host = BenchmarkHost()
    print(host.run("join_strings", 1000))
"""

from micro_bench.host.concurrency import get_max_workers, run_across, set_max_workers
from micro_bench.host.executor import BenchmarkHost, benchmark_name, parse_duration, run_benchmark, run_for
from micro_bench.host.registry import BenchmarkRegistry, benchmark, default_registry
from micro_bench.host.timer import B

__all__ = [
    "B",
    "BenchmarkHost",
    "BenchmarkRegistry",
    "benchmark",
    "benchmark_name",
    "default_registry",
    "get_max_workers",
    "parse_duration",
    "run_across",
    "run_benchmark",
    "run_for",
    "set_max_workers",
]
