r"""
In-process transport: sample a BenchmarkHost without a subprocess.

    from micro_bench.client.local import LocalHost

    host = LocalHost(BenchmarkHost(registry))
"""

from __future__ import annotations

from micro_bench.host.executor import BenchmarkHost
from micro_bench.types import RunOutcome

__all__ = ["LocalHost"]


class LocalHost:
    """HostClient backed directly by a BenchmarkHost in this process."""

    def __init__(self, host: BenchmarkHost, *, name: str = "local") -> None:
        self.host = host
        self.name = name

    def list(self, pattern: str = ".") -> list[str]:
        return self.host.names(pattern)

    def run(self, benchmark: str | int, iterations: int, parallelism: int = 1) -> RunOutcome:
        return self.host.run(benchmark, iterations, parallelism)

    def run_for(self, benchmark: str | int, seconds: float, parallelism: int = 1) -> RunOutcome:
        return self.host.run_for(benchmark, int(seconds * 1e9), parallelism)

    def set(self, key: str, value: str | bool | int) -> None:
        self.host.set(key, value)

    def close(self) -> None:
        pass
