r"""
Session orchestrator: drive a sampling strategy across hosts.

    from micro_bench.runner import Orchestrator, OrchestratorConfig

    orchestrator = Orchestrator(hosts, config=OrchestratorConfig(pattern="Map"))
    result = orchestrator.run()
"""

import functools
import logging
import re
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

from micro_bench.config import DEFAULT_PROFILE
from micro_bench.exceptions import HostError, InvalidRequest
from micro_bench.protocols import HostClient
from micro_bench.sampling import make_strategy
from micro_bench.stats import MomentAccumulator

__all__ = [
    "BenchmarkReport",
    "Orchestrator",
    "OrchestratorConfig",
    "OrchestratorResult",
    "ProgressCallback",
    "ReportCallback",
    "TrialReporter",
]

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, str, str], None]
ReportCallback = Callable[["BenchmarkReport"], None]
TrialReporter = Callable[[str, str, int, MomentAccumulator], None]


@dataclass
class OrchestratorConfig:
    """Configuration for a sampling session.

    Attributes:
        pattern: Regular expression selecting benchmarks by name.
        strategy: Sampling strategy name.
        profile: Sampling profile name.
        trials: Override the profile's trial count.
        probe: Override the two-point probe count.
        target: Override the two-point overhead target.
        seed: Seed for randomized iteration counts.
        parallel_hosts: Sample hosts concurrently when more than one.
    """

    pattern: str = "."
    strategy: str = "regression"
    profile: str = DEFAULT_PROFILE
    trials: int | None = None
    probe: int | None = None
    target: float | None = None
    seed: int | None = None
    parallel_hosts: bool = True


@dataclass(frozen=True, slots=True)
class BenchmarkReport:
    """Outcome of sampling one benchmark on one host.

    Exactly one of ``estimate`` and ``error`` is set.
    """

    benchmark: str
    host: str
    estimate: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.estimate is not None and not self.estimate.failed


@dataclass
class OrchestratorResult:
    """Reports from one orchestrator run."""

    reports: list[BenchmarkReport] = field(default_factory=list)
    started_at: float = 0.0
    completed_at: float = 0.0
    strategy: str = ""
    profile: str = ""
    hosts: list[str] = field(default_factory=list)
    benchmarks: list[str] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        return self.completed_at - self.started_at

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.reports if r.ok)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.reports if not r.ok)


class Orchestrator:
    """Samples every benchmark common to all hosts."""

    def __init__(self, hosts: list[HostClient], *, config: OrchestratorConfig | None = None) -> None:
        if not hosts:
            raise ValueError("At least one host is required")
        self._hosts = hosts
        self._config = config or OrchestratorConfig()
        self._progress_callback: ProgressCallback | None = None
        self._trial_reporter: TrialReporter | None = None
        self._report_callback: ReportCallback | None = None

        # Fail on bad parameters before touching any host
        make_strategy(
            self._config.strategy,
            profile=self._config.profile,
            trials=self._config.trials,
            probe=self._config.probe,
            target=self._config.target,
        )

    @property
    def config(self) -> OrchestratorConfig:
        return self._config

    def set_progress_callback(self, callback: ProgressCallback) -> None:
        """Set callback for ``(host, benchmark, status)`` updates."""
        self._progress_callback = callback

    def set_trial_reporter(self, reporter: TrialReporter) -> None:
        """Set callback receiving running statistics after every trial."""
        self._trial_reporter = reporter

    def set_report_callback(self, callback: ReportCallback) -> None:
        """Set callback receiving each report as soon as it is complete."""
        self._report_callback = callback

    def benchmarks(self) -> list[str]:
        """Names present on every host that match the configured pattern.

        Raises:
            InvalidRequest: If the pattern does not compile.
        """
        try:
            pattern = re.compile(self._config.pattern)
        except re.error as e:
            raise InvalidRequest(f"invalid benchmark filter {self._config.pattern!r}: {e}") from e

        first, *rest = self._hosts
        common = [name for name in dict.fromkeys(first.list(".")) if pattern.search(name)]
        for host in rest:
            available = set(host.list("."))
            dropped = [name for name in common if name not in available]
            if dropped:
                logger.info("Skipping %d benchmark(s) missing on %s: %s", len(dropped), host.name, ", ".join(dropped))
            common = [name for name in common if name in available]
        return common

    def run(self) -> OrchestratorResult:
        """Sample every selected benchmark on every host.

        Raises:
            InvalidRequest: Bad benchmark filter.
            TransportError: A host went away; the session cannot continue.
        """
        result = OrchestratorResult(
            started_at=time.time(),
            strategy=self._config.strategy,
            profile=self._config.profile,
            hosts=[h.name for h in self._hosts],
        )
        result.benchmarks = self.benchmarks()
        if not result.benchmarks:
            logger.warning("No benchmarks match %r on all hosts", self._config.pattern)

        parallel = self._config.parallel_hosts and len(self._hosts) > 1
        with ThreadPoolExecutor(max_workers=len(self._hosts) if parallel else 1) as pool:
            for benchmark in result.benchmarks:
                if parallel:
                    futures = [pool.submit(self._sample, host, benchmark) for host in self._hosts]
                    result.reports.extend(f.result() for f in futures)
                else:
                    result.reports.extend(self._sample(host, benchmark) for host in self._hosts)

        result.completed_at = time.time()
        return result

    def _sample(self, host: HostClient, benchmark: str) -> BenchmarkReport:
        if self._progress_callback:
            self._progress_callback(host.name, benchmark, "running")

        strategy = make_strategy(
            self._config.strategy,
            profile=self._config.profile,
            trials=self._config.trials,
            probe=self._config.probe,
            target=self._config.target,
            seed=self._config.seed,
        )

        on_trial = None
        if self._trial_reporter:
            on_trial = functools.partial(self._trial_reporter, host.name, benchmark)

        try:
            estimate = strategy.estimate(host, benchmark, on_trial=on_trial)
            report = BenchmarkReport(benchmark=benchmark, host=host.name, estimate=estimate)
        except HostError as e:
            logger.error("%s on %s: %s", benchmark, host.name, e)
            report = BenchmarkReport(benchmark=benchmark, host=host.name, error=str(e))

        if self._progress_callback:
            self._progress_callback(host.name, benchmark, "success" if report.ok else "failed")
        if self._report_callback:
            self._report_callback(report)
        return report
