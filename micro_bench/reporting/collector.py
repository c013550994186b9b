r"""
Session collection and aggregation.

    from micro_bench.reporting.collector import ResultCollector

    collector = ResultCollector()
    collector.start_session(strategy="regression", profile="standard", hosts=["local"])
    collector.add_result(orchestrator.run())
"""

import math
import platform
import sys
from dataclasses import asdict, dataclass, field, is_dataclass
from datetime import UTC, datetime
from typing import Any

from micro_bench.runner import BenchmarkReport, OrchestratorResult
from micro_bench.types import DoublingEstimate, LadderEstimate, OverheadEstimate, RegressionEstimate
from micro_bench.utils.memory import cpu_count, total_memory_bytes

__all__ = ["EnvironmentInfo", "ResultCollector", "SessionInfo", "per_op_cost"]


@dataclass
class SessionInfo:
    """Information about a sampling session.

    Attributes:
        session_id: Unique session identifier.
        started_at: Session start timestamp.
        completed_at: Session end timestamp (empty if ongoing).
        strategy: Sampling strategy name.
        profile: Sampling profile name.
        hosts: Names of the hosts sampled.
    """

    session_id: str = ""
    started_at: str = ""
    completed_at: str = ""
    strategy: str = ""
    profile: str = ""
    hosts: list[str] = field(default_factory=list)


@dataclass
class EnvironmentInfo:
    """Information about the machine running the sampler."""

    platform: str = ""
    python_version: str = ""
    cpu: str = ""
    cpu_count: int = 0
    memory_gb: float = 0.0


def per_op_cost(estimate: Any) -> float:
    """Per-operation cost in ns used to compare hosts."""
    if isinstance(estimate, RegressionEstimate):
        # Slope is d(ns/op)/dn, so compare on the mean ns/op instead
        return estimate.mean
    if isinstance(estimate, OverheadEstimate):
        return estimate.code_mean
    if isinstance(estimate, DoublingEstimate):
        return estimate.ns_per_op
    if isinstance(estimate, LadderEstimate):
        # The longest rung has the least overhead per op
        return estimate.steps[0].mean if estimate.steps else math.nan
    return math.nan


def _finite(value: Any) -> Any:
    """Replace NaN and infinities with None so the result is strict JSON."""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {k: _finite(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_finite(v) for v in value]
    return value


class ResultCollector:
    """Collects and aggregates benchmark reports."""

    def __init__(self) -> None:
        self._reports: list[BenchmarkReport] = []
        self._session = SessionInfo()
        self._environment = EnvironmentInfo()
        self._started_at: datetime | None = None

    def start_session(self, *, strategy: str, profile: str, hosts: list[str]) -> None:
        """Start a new session and snapshot the environment."""
        self._started_at = datetime.now(UTC)
        self._session = SessionInfo(
            session_id=f"micro_{self._started_at.strftime('%Y%m%d_%H%M%S')}",
            started_at=self._started_at.isoformat(),
            strategy=strategy,
            profile=profile,
            hosts=hosts,
        )
        self._collect_environment()

    def _collect_environment(self) -> None:
        self._environment = EnvironmentInfo(
            platform=platform.system().lower(),
            python_version=f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
            cpu=platform.processor() or "unknown",
            cpu_count=cpu_count(),
            memory_gb=round(total_memory_bytes() / (1024**3), 1),
        )

    def end_session(self) -> None:
        self._session.completed_at = datetime.now(UTC).isoformat()

    def add_report(self, report: BenchmarkReport) -> None:
        self._reports.append(report)

    def add_result(self, result: OrchestratorResult) -> None:
        """Add every report from an orchestrator run."""
        self._reports.extend(result.reports)

    @property
    def reports(self) -> list[BenchmarkReport]:
        return self._reports

    @property
    def session(self) -> SessionInfo:
        return self._session

    @property
    def environment(self) -> EnvironmentInfo:
        return self._environment

    def get_reports_by_host(self, host: str) -> list[BenchmarkReport]:
        return [r for r in self._reports if r.host == host]

    def get_reports_by_benchmark(self, benchmark: str) -> list[BenchmarkReport]:
        return [r for r in self._reports if r.benchmark == benchmark]

    def compute_comparisons(self) -> dict[str, dict[str, float]]:
        """Relative per-op cost of each host against the fastest one.

        Returns:
            Dict mapping benchmark name to dict of host -> ratio, where 1.0 is
            the fastest host. Benchmarks sampled on fewer than two hosts
            with a positive cost are omitted.
        """
        comparisons: dict[str, dict[str, float]] = {}

        for bench in dict.fromkeys(r.benchmark for r in self._reports):
            costs = {}
            for r in self.get_reports_by_benchmark(bench):
                if r.ok:
                    cost = per_op_cost(r.estimate)
                    if math.isfinite(cost) and cost > 0:
                        costs[r.host] = cost
            if len(costs) < 2:
                continue

            fastest = min(costs.values())
            comparisons[bench] = {host: round(cost / fastest, 2) for host, cost in costs.items()}

        return comparisons

    def to_dict(self) -> dict[str, Any]:
        """Convert collected data to a JSON-safe dictionary."""
        return _finite({
            "session": asdict(self._session),
            "environment": asdict(self._environment),
            "results": [self._report_to_dict(r) for r in self._reports],
            "comparisons": self.compute_comparisons(),
        })

    def _report_to_dict(self, report: BenchmarkReport) -> dict[str, Any]:
        data: dict[str, Any] = {
            "benchmark": report.benchmark,
            "host": report.host,
            "status": "SUCCESS" if report.ok else "FAILED",
        }
        if report.estimate is not None and is_dataclass(report.estimate):
            estimate = asdict(report.estimate)
            estimate.pop("benchmark", None)
            estimate.pop("host", None)
            data["strategy"] = type(report.estimate).__name__
            data["estimate"] = estimate
        if report.error:
            data["error"] = report.error
        return data
