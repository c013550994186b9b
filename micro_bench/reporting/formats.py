r"""
Report lines and export formats.

Per-trial convergence lines, one summary line per estimate, and whole-session
exports as text or JSON.

    from micro_bench.reporting.formats import JsonExporter, format_report

    for report in result.reports:
        for line in format_report(report):
            print(line)
    JsonExporter().export(collector, "results.json")
"""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from micro_bench.reporting.collector import ResultCollector
from micro_bench.runner import BenchmarkReport
from micro_bench.stats import MomentAccumulator
from micro_bench.types import DoublingEstimate, LadderEstimate, OverheadEstimate, RegressionEstimate

__all__ = [
    "BaseExporter",
    "JsonExporter",
    "TextExporter",
    "format_doubling",
    "format_estimate",
    "format_failure",
    "format_ladder",
    "format_overhead",
    "format_regression",
    "format_report",
    "format_trial",
]


def format_trial(st: MomentAccumulator) -> str:
    """Running statistics after one trial."""
    return f"mean={st.mean():f} skew={st.sample_skew():f} kurtosis={st.sample_kurtosis():f}"


def format_regression(e: RegressionEstimate) -> str:
    return (
        f"{e.benchmark}\tcount={e.count} r2={e.r_squared:.2f} "
        f"slope={e.slope:.2f} slopeerr={e.slope_error:.2f} "
        f"intercept={e.intercept:.2f} intercepterr={e.intercept_error:.2f}"
    )


def format_overhead(e: OverheadEstimate) -> str:
    recommended = e.recommended_iterations if e.recommended_iterations is not None else "unreliable"
    return (
        f"{e.benchmark}\tcount={e.count} code={e.code_mean:.2f}ns overhead={e.overhead_mean:.2f}ns "
        f"target={e.target:g} n={e.target_n:.0f} duration={e.duration_ns:.0f}ns "
        f"recommended={recommended}"
    )


def format_doubling(e: DoublingEstimate) -> str:
    return f"{e.benchmark}\tn={e.iterations} {e.ns_per_op:.2f} ns/op"


def format_ladder(e: LadderEstimate) -> list[str]:
    return [
        f"{e.benchmark}\t{step.duration_ns}ns n={step.iterations} count={step.count} "
        f"mean={step.mean:.2f} variance={step.variance:.2f}"
        for step in e.steps
    ]


def format_estimate(estimate: Any) -> list[str]:
    """Summary line(s) for any estimate record.

    Raises:
        TypeError: For an unknown estimate type.
    """
    if isinstance(estimate, RegressionEstimate):
        return [format_regression(estimate)]
    if isinstance(estimate, OverheadEstimate):
        return [format_overhead(estimate)]
    if isinstance(estimate, DoublingEstimate):
        return [format_doubling(estimate)]
    if isinstance(estimate, LadderEstimate):
        return format_ladder(estimate)
    raise TypeError(f"Unknown estimate type: {type(estimate).__name__}")


def format_failure(report: BenchmarkReport) -> str:
    if report.error:
        reason = report.error
    else:
        reason = f"all {report.estimate.failures} samples failed"
    return f"--- FAIL: {report.benchmark}\t{reason}"


def format_report(report: BenchmarkReport, *, show_host: bool = False) -> list[str]:
    """Lines describing one report; failures become a ``--- FAIL`` line."""
    lines = [format_failure(report)] if not report.ok else format_estimate(report.estimate)
    if show_host:
        lines = [f"[{report.host}] {line}" for line in lines]
    return lines


class BaseExporter(ABC):
    """Base class for session exporters."""

    def export(self, collector: ResultCollector, path: str | Path) -> None:
        """Export the session to a file."""
        Path(path).write_text(self.to_string(collector))

    @abstractmethod
    def to_string(self, collector: ResultCollector) -> str:
        """Export the session to a string."""
        ...


class JsonExporter(BaseExporter):
    """Export the session as JSON."""

    def __init__(self, *, indent: int = 2) -> None:
        self._indent = indent

    def to_string(self, collector: ResultCollector) -> str:
        return json.dumps(collector.to_dict(), indent=self._indent)


class TextExporter(BaseExporter):
    """Export the session as plain report lines with a short header."""

    def to_string(self, collector: ResultCollector) -> str:
        session = collector.session
        env = collector.environment
        lines = [
            f"# session {session.session_id} strategy={session.strategy} profile={session.profile}",
            f"# {env.platform} python {env.python_version} cpus={env.cpu_count} memory={env.memory_gb}GB",
        ]
        show_host = len(session.hosts) > 1
        for report in collector.reports:
            lines.extend(format_report(report, show_host=show_host))

        comparisons = collector.compute_comparisons()
        for bench, ratios in comparisons.items():
            ranked = " ".join(f"{host}={ratio:.2f}x" for host, ratio in sorted(ratios.items(), key=lambda kv: kv[1]))
            lines.append(f"# {bench}: {ranked}")
        return "\n".join(lines) + "\n"
