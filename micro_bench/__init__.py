r"""
micro-bench: statistical micro-benchmark harness.

A host process runs registered benchmarks for exactly N iterations behind a
line or RPC protocol; the sampler drives it with randomized iteration counts
and separates per-operation cost from fixed overhead.

    from micro_bench import BenchmarkHost, LocalHost, RegressionStrategy, benchmark

    @benchmark("join")
    def bench_join(b):
        parts = ["x"] * 64
        for _ in range(b.n):
            "".join(parts)

    estimate = RegressionStrategy(trials=20).estimate(LocalHost(BenchmarkHost()), "join")
"""

from micro_bench.client import LocalHost, RpcHost, StdioHost, open_host
from micro_bench.config import DEFAULT_PROFILE, PROFILES, SamplingProfile, get_profile
from micro_bench.exceptions import (
    BenchmarkNotFound,
    HostError,
    InvalidRequest,
    MicroBenchError,
    ProtocolError,
    TransportError,
)
from micro_bench.host import B, BenchmarkHost, BenchmarkRegistry, benchmark
from micro_bench.sampling import DoublingStrategy, LadderStrategy, RegressionStrategy, TwoPointStrategy
from micro_bench.stats import MomentAccumulator, RegressionAccumulator
from micro_bench.types import (
    BenchmarkDescriptor,
    DoublingEstimate,
    LadderEstimate,
    OverheadEstimate,
    RegressionEstimate,
    RunOutcome,
    RunRequest,
)

__all__ = [
    "B",
    "BenchmarkDescriptor",
    "BenchmarkHost",
    "BenchmarkNotFound",
    "BenchmarkRegistry",
    "DEFAULT_PROFILE",
    "DoublingEstimate",
    "DoublingStrategy",
    "HostError",
    "InvalidRequest",
    "LadderEstimate",
    "LadderStrategy",
    "LocalHost",
    "MicroBenchError",
    "MomentAccumulator",
    "OverheadEstimate",
    "PROFILES",
    "ProtocolError",
    "RegressionAccumulator",
    "RegressionEstimate",
    "RegressionStrategy",
    "RpcHost",
    "RunOutcome",
    "RunRequest",
    "SamplingProfile",
    "StdioHost",
    "TransportError",
    "TwoPointStrategy",
    "benchmark",
    "get_profile",
    "open_host",
]

__version__ = "0.1.0"
