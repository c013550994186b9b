r"""
Tests for micro_bench.sampling module.
"""

import math
import random

import pytest

from conftest import SyntheticHost
from micro_bench.client import LocalHost
from micro_bench.protocols import Estimator
from micro_bench.sampling import (
    STRATEGIES,
    DoublingStrategy,
    LadderStrategy,
    RegressionStrategy,
    TwoPointStrategy,
    make_strategy,
    overhead_from_means,
)


class TestRegressionStrategy:
    def test_is_estimator(self):
        assert isinstance(RegressionStrategy(), Estimator)

    def test_iteration_counts_within_calibrated_range(self, synthetic):
        estimate = RegressionStrategy(trials=50, calibration_seconds=0.001, rng=random.Random(1)).estimate(
            synthetic, "alpha"
        )

        n0 = estimate.calibrated_n
        assert n0 == synthetic.calls[0][1]
        trial_counts = [n for _, n in synthetic.calls[1:]]
        assert len(trial_counts) == 50
        assert all(n0 // 1000 + 1 <= n <= n0 for n in trial_counts)
        assert len(set(trial_counts)) > 1

    def test_constant_cost_fits_flat_line(self):
        host = SyntheticHost(overhead=0, cost=25.0)
        estimate = RegressionStrategy(trials=40, calibration_seconds=0.001, rng=random.Random(2)).estimate(
            host, "alpha"
        )

        assert estimate.count == 40
        assert estimate.slope == pytest.approx(0.0, abs=1e-6)
        assert estimate.intercept == pytest.approx(25.0, rel=1e-3)
        assert estimate.mean == pytest.approx(25.0, rel=1e-3)
        assert not estimate.failed

    def test_reports_every_trial(self, synthetic):
        seen = []
        RegressionStrategy(trials=10, calibration_seconds=0.001).estimate(
            synthetic, "alpha", on_trial=lambda i, st: seen.append((i, st.count))
        )
        assert seen == [(i, i + 1) for i in range(10)]

    def test_failed_samples_are_discarded(self):
        host = SyntheticHost(fail_every=3)
        estimate = RegressionStrategy(trials=30, calibration_seconds=0.001, rng=random.Random(3)).estimate(
            host, "alpha"
        )

        assert estimate.failures == 10
        assert estimate.count == 20
        assert not math.isnan(estimate.mean)
        assert estimate.mean > 0

    def test_failed_calibration(self):
        host = SyntheticHost(fail_every=1)
        estimate = RegressionStrategy(trials=10, calibration_seconds=0.001).estimate(host, "alpha")

        assert estimate.failed
        assert estimate.count == 0
        assert estimate.failures == 1
        assert len(host.calls) == 1
        assert math.isnan(estimate.slope)

    def test_seeded_runs_repeat(self, synthetic):
        first = RegressionStrategy(trials=5, calibration_seconds=0.001, rng=random.Random(9))
        second = RegressionStrategy(trials=5, calibration_seconds=0.001, rng=random.Random(9))
        a, b = SyntheticHost(), SyntheticHost()
        first.estimate(a, "alpha")
        second.estimate(b, "alpha")
        assert a.calls == b.calls

    @pytest.mark.parametrize(("kwargs"), [{"trials": 0}, {"calibration_seconds": 0}])
    def test_rejects_bad_parameters(self, kwargs):
        with pytest.raises(ValueError):
            RegressionStrategy(**kwargs)

    def test_against_real_host(self, host):
        estimate = RegressionStrategy(trials=5, calibration_seconds=0.001).estimate(LocalHost(host), "sum_range")

        assert estimate.count == 5
        assert estimate.host == "local"
        assert estimate.mean > 0


class TestOverheadFromMeans:
    def test_splits_code_and_overhead(self):
        code, overhead, target_n, duration, reliable, recommended = overhead_from_means(110.0, 120.0, 2, 0.01)

        assert code == pytest.approx(10.0)
        assert overhead == pytest.approx(100.0)
        assert target_n == pytest.approx(1000.0)
        assert duration == pytest.approx(10_000.0)
        assert reliable
        assert recommended == math.ceil(target_n)

    def test_larger_probe(self):
        code, overhead, *_ = overhead_from_means(110.0, 140.0, 4, 0.01)
        assert code == pytest.approx(10.0)
        assert overhead == pytest.approx(100.0)

    @pytest.mark.parametrize(("one", "probe"), [(120.0, 110.0), (110.0, 110.0), (math.nan, 110.0)])
    def test_unresolved_cost(self, one, probe):
        _, _, target_n, duration, reliable, recommended = overhead_from_means(one, probe, 2, 0.01)

        assert not reliable
        assert math.isnan(target_n)
        assert math.isnan(duration)
        assert recommended is None

    def test_no_overhead(self):
        *_, reliable, recommended = overhead_from_means(10.0, 20.0, 2, 0.01)

        assert reliable
        assert recommended == 1


class TestTwoPointStrategy:
    def test_recovers_synthetic_model(self, synthetic):
        estimate = TwoPointStrategy(probe=2, trials=20, target=0.01).estimate(synthetic, "alpha")

        assert estimate.count == 20
        assert estimate.mean_one == pytest.approx(110.0)
        assert estimate.mean_probe == pytest.approx(120.0)
        assert estimate.code_mean == pytest.approx(10.0)
        assert estimate.overhead_mean == pytest.approx(100.0)
        assert estimate.target_n == pytest.approx(1000.0)
        assert estimate.recommended_iterations == math.ceil(estimate.target_n)
        assert estimate.duration_ns == pytest.approx(10_000.0)

    def test_observes_total_time(self, synthetic):
        TwoPointStrategy(probe=5, trials=3).estimate(synthetic, "alpha")
        assert sorted({n for _, n in synthetic.calls}) == [1, 5]

    def test_noisy_model(self):
        host = SyntheticHost(overhead=1000, cost=50, noise=0.02, seed=4)
        estimate = TwoPointStrategy(probe=10, trials=200, target=0.05).estimate(host, "alpha")

        assert estimate.reliable
        assert estimate.code_mean == pytest.approx(50, rel=0.2)
        assert estimate.recommended_iterations == math.ceil(estimate.target_n)

    def test_failed_samples_are_discarded(self):
        host = SyntheticHost(fail_every=4)
        estimate = TwoPointStrategy(trials=20).estimate(host, "alpha")

        assert estimate.failures == 10
        assert estimate.code_mean == pytest.approx(10.0)

    @pytest.mark.parametrize(
        "kwargs",
        [{"probe": 1}, {"trials": 0}, {"target": 0}, {"target": 1.5}],
    )
    def test_rejects_bad_parameters(self, kwargs):
        with pytest.raises(ValueError):
            TwoPointStrategy(**kwargs)


class TestDoublingStrategy:
    def test_stops_when_cost_flattens(self):
        host = SyntheticHost(overhead=0, cost=10)
        estimate = DoublingStrategy().estimate(host, "alpha")

        assert estimate.iterations == 2
        assert estimate.ns_per_op == pytest.approx(10.0)

    def test_stops_at_cap(self, synthetic):
        estimate = DoublingStrategy(max_iterations=1 << 10).estimate(synthetic, "alpha")

        assert estimate.iterations == 1 << 10
        assert estimate.ns_per_op == pytest.approx(10 + 100 / 1024, rel=1e-3)

    def test_all_failed(self):
        estimate = DoublingStrategy().estimate(SyntheticHost(fail_every=1), "alpha")

        assert estimate.failed
        assert estimate.failures == 3


class TestLadderStrategy:
    def test_steps(self):
        host = SyntheticHost(overhead=0, cost=10)
        estimate = LadderStrategy(trials=4).estimate(host, "alpha")

        assert [s.iterations for s in estimate.steps] == [10_000_000, 100_000, 1000]
        assert [s.duration_ns for s in estimate.steps] == [100_000_000, 1_000_000, 10_000]
        assert all(s.count == 4 for s in estimate.steps)
        assert all(s.mean == pytest.approx(10.0) for s in estimate.steps)

    def test_slow_benchmark_stops_calibrating(self):
        host = SyntheticHost(overhead=0, cost=1e9)
        estimate = LadderStrategy(trials=2).estimate(host, "alpha")

        assert host.calls[0][1] == 1
        assert [s.iterations for s in estimate.steps] == [1, 1, 1]
        assert len(host.calls) == 1 + 3 * 2

    def test_all_failed(self):
        estimate = LadderStrategy(trials=2).estimate(SyntheticHost(fail_every=1), "alpha")
        assert estimate.failed


class TestMakeStrategy:
    def test_known_names(self):
        assert set(STRATEGIES) == {"regression", "two-point", "doubling", "ladder"}

    def test_profile_defaults(self):
        strategy = make_strategy("regression", profile="quick")

        assert isinstance(strategy, RegressionStrategy)
        assert strategy.trials == 20
        assert strategy.calibration_seconds == 0.5

    def test_overrides(self):
        strategy = make_strategy("two-point", trials=7, probe=3, target=0.05)

        assert isinstance(strategy, TwoPointStrategy)
        assert (strategy.trials, strategy.probe, strategy.target) == (7, 3, 0.05)

    def test_ladder_uses_ladder_trials(self):
        assert make_strategy("ladder", profile="thorough").trials == 200

    @pytest.mark.parametrize(
        ("name", "kwargs"),
        [
            ("regression", {"trials": 0}),
            ("two-point", {"trials": 0}),
            ("two-point", {"probe": 0}),
            ("two-point", {"target": 0.0}),
            ("ladder", {"trials": 0}),
        ],
    )
    def test_explicit_zero_is_not_replaced_by_profile(self, name, kwargs):
        with pytest.raises(ValueError, match="must be"):
            make_strategy(name, **kwargs)

    def test_unknown_strategy(self):
        with pytest.raises(ValueError, match="Unknown strategy"):
            make_strategy("bisect")

    def test_unknown_profile(self):
        with pytest.raises(ValueError, match="Unknown profile"):
            make_strategy("regression", profile="huge")
