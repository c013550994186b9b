r"""
Benchmarks served by subprocess hosts in the client and CLI tests.

    python -m micro_bench serve tests/sample_benchmarks.py
    python tests/sample_benchmarks.py --benchserve
"""

import sys

from micro_bench.host import BenchmarkRegistry
from micro_bench.server import main

registry = BenchmarkRegistry()


@registry.register("noop")
def bench_noop(b):
    for _ in range(b.n):
        pass


@registry.register("join")
def bench_join(b):
    parts = ["x"] * 16
    for _ in range(b.n):
        "".join(parts)


@registry.register("failing")
def bench_failing(b):
    b.fail("always fails")


@registry.register("noisy")
def bench_noisy(b):
    sys.stderr.write("something went wrong\n")
    sys.stderr.flush()


if __name__ == "__main__":
    main(registry)
