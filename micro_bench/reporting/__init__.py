r"""
Result collection and reporting.

Aggregates benchmark reports and prints or exports them as text and JSON.

    from micro_bench.reporting import ResultCollector, JsonExporter

    collector = ResultCollector()
    collector.add_result(result)
    JsonExporter().export(collector, "results.json")
"""

from micro_bench.reporting.collector import EnvironmentInfo, ResultCollector, SessionInfo, per_op_cost
from micro_bench.reporting.formats import (
    JsonExporter,
    TextExporter,
    format_estimate,
    format_failure,
    format_report,
    format_trial,
)

__all__ = [
    "EnvironmentInfo",
    "JsonExporter",
    "ResultCollector",
    "SessionInfo",
    "TextExporter",
    "format_estimate",
    "format_failure",
    "format_report",
    "format_trial",
    "per_op_cost",
]
