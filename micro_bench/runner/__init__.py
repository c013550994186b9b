from micro_bench.runner.orchestrator import (
    BenchmarkReport,
    Orchestrator,
    OrchestratorConfig,
    OrchestratorResult,
    ProgressCallback,
    ReportCallback,
    TrialReporter,
)

__all__ = [
    "BenchmarkReport",
    "Orchestrator",
    "OrchestratorConfig",
    "OrchestratorResult",
    "ProgressCallback",
    "ReportCallback",
    "TrialReporter",
]
