r"""
Protocol definitions for host clients and estimation strategies.

Transports (stdio subprocess, RPC, or an in-process host) implement
HostClient. Sampling strategies implement Estimator.

    from micro_bench.protocols import HostClient, Estimator

    def measure(host: HostClient, strategy: Estimator) -> None:
        ...
"""

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from micro_bench.stats import MomentAccumulator
from micro_bench.types import RunOutcome

__all__ = [
    "HostClient",
    "Estimator",
    "TrialCallback",
]

TrialCallback = Callable[[int, MomentAccumulator], None]


@runtime_checkable
class HostClient(Protocol):
    """Client side of the control protocol."""

    name: str

    def list(self, pattern: str = ".") -> list[str]:
        """Names of benchmarks matching ``pattern``."""
        ...

    def run(self, benchmark: str | int, iterations: int, parallelism: int = 1) -> RunOutcome:
        """Run a benchmark for exactly ``iterations`` iterations."""
        ...

    def run_for(self, benchmark: str | int, seconds: float, parallelism: int = 1) -> RunOutcome:
        """Run a benchmark with an iteration count calibrated to ``seconds``."""
        ...

    def set(self, key: str, value: str | bool | int) -> None:
        """Change a host setting."""
        ...

    def close(self) -> None:
        """Release the connection or process."""
        ...


@runtime_checkable
class Estimator(Protocol):
    """Estimates per-operation cost of one benchmark on one host."""

    @property
    def name(self) -> str:
        """Strategy name."""
        ...

    def estimate(
        self,
        host: HostClient,
        benchmark: str,
        *,
        on_trial: TrialCallback | None = None,
    ) -> Any:
        """Sample ``benchmark`` on ``host`` and return an estimate record."""
        ...
