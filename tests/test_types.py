r"""
Tests for micro_bench.types module.
"""

import math

import pytest

from micro_bench.exceptions import InvalidRequest
from micro_bench.types import (
    DoublingEstimate,
    LadderEstimate,
    LadderStep,
    OverheadEstimate,
    RegressionEstimate,
    RunOutcome,
    RunRequest,
)


class TestRunRequest:
    def test_defaults(self):
        request = RunRequest("sort", 10)
        assert request.parallelism == 1

    @pytest.mark.parametrize("iterations", [0, -5])
    def test_rejects_non_positive_iterations(self, iterations):
        with pytest.raises(InvalidRequest, match="iterations must be positive"):
            RunRequest("sort", iterations)

    def test_rejects_non_positive_parallelism(self):
        with pytest.raises(InvalidRequest, match="parallelism must be positive"):
            RunRequest("sort", 10, 0)

    def test_is_frozen(self):
        request = RunRequest("sort", 10)
        with pytest.raises(AttributeError):
            request.iterations = 20  # type: ignore[misc]


class TestRunOutcome:
    def test_per_op_values(self):
        outcome = RunOutcome(name="x", iterations=4, elapsed_ns=1000, mem_allocs=8, mem_bytes=400)

        assert outcome.ns_per_op == 250.0
        assert outcome.total_ns == 1000.0
        assert outcome.allocs_per_op == 2.0
        assert outcome.bytes_per_op == 100.0

    def test_mb_per_s(self):
        outcome = RunOutcome(name="x", iterations=1000, elapsed_ns=1_000_000, bytes_processed=1000)
        # 1e6 bytes in 1ms
        assert outcome.mb_per_s == pytest.approx(1000.0)

    def test_zero_iterations_is_nan(self):
        outcome = RunOutcome(name="x", iterations=0, elapsed_ns=0)
        assert math.isnan(outcome.ns_per_op)


class TestEstimates:
    def test_regression_failed_without_samples(self):
        nan = math.nan
        estimate = RegressionEstimate("x", "h", 0, 0, nan, nan, nan, nan, nan, nan, nan, nan, failures=1)
        assert estimate.failed

    def test_overhead_failed_without_samples(self):
        nan = math.nan
        estimate = OverheadEstimate("x", "h", 2, 0, nan, nan, nan, nan, 0.01, nan, nan, False, None)
        assert estimate.failed

    def test_doubling_failed_on_nan(self):
        assert DoublingEstimate("x", "h", 1, math.nan).failed
        assert not DoublingEstimate("x", "h", 64, 12.5).failed

    def test_ladder_failed_when_no_step_has_samples(self):
        empty = LadderStep(duration_ns=1000, iterations=1, count=0, mean=math.nan, variance=math.nan)
        full = LadderStep(duration_ns=1000, iterations=1, count=3, mean=1.0, variance=0.0)

        assert LadderEstimate("x", "h", steps=(empty,)).failed
        assert LadderEstimate("x", "h").failed
        assert not LadderEstimate("x", "h", steps=(empty, full)).failed
