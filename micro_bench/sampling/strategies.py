r"""
Sampling strategies that estimate per-operation cost net of fixed overhead.

- regression: random iteration counts up to a calibrated baseline; the slope
  of ns/op against n is the marginal cost, the intercept the overhead.
- two-point: total time at n=1 and n=h; the difference isolates per-iteration
  cost and yields the iteration count that keeps overhead under a target.
- doubling: double n until ns/op stops improving.
- ladder: ns/op distribution at counts calibrated to shrinking durations.

Failed runs are discarded and counted, never recorded as zero.

    from micro_bench.sampling import TwoPointStrategy

    estimate = TwoPointStrategy(probe=2, target=0.01).estimate(host, "dict_lookup")
    if estimate.reliable:
        print(estimate.recommended_iterations)
"""

from __future__ import annotations

import logging
import math
import random

from micro_bench.config import SamplingProfile, get_profile
from micro_bench.protocols import HostClient, TrialCallback
from micro_bench.stats import MomentAccumulator, RegressionAccumulator
from micro_bench.types import (
    DoublingEstimate,
    LadderEstimate,
    LadderStep,
    OverheadEstimate,
    RegressionEstimate,
    RunOutcome,
)

__all__ = [
    "DoublingStrategy",
    "LadderStrategy",
    "RegressionStrategy",
    "STRATEGIES",
    "TwoPointStrategy",
    "make_strategy",
    "overhead_from_means",
]

logger = logging.getLogger(__name__)


def _discard(outcome: RunOutcome, benchmark: str) -> bool:
    if outcome.failed:
        logger.info("Discarding failed sample of %s: %s", benchmark, outcome.error)
        return True
    return False


class RegressionStrategy:
    """Regress ns/op on randomized iteration counts."""

    name = "regression"

    def __init__(
        self,
        *,
        trials: int = 100,
        calibration_seconds: float = 2.0,
        rng: random.Random | None = None,
    ) -> None:
        if trials < 1:
            raise ValueError(f"trials must be positive, got {trials}")
        if calibration_seconds <= 0:
            raise ValueError(f"calibration must be positive, got {calibration_seconds}")
        self.trials = trials
        self.calibration_seconds = calibration_seconds
        self._rng = rng or random.Random()

    def estimate(
        self,
        host: HostClient,
        benchmark: str,
        *,
        on_trial: TrialCallback | None = None,
    ) -> RegressionEstimate:
        calibration = host.run_for(benchmark, self.calibration_seconds)
        st = MomentAccumulator()
        reg = RegressionAccumulator()
        failures = 0
        n0 = 0

        if _discard(calibration, benchmark):
            failures += 1
        else:
            n0 = max(calibration.iterations, 1)
            for trial in range(self.trials):
                n = self._rng.randint(n0 // 1000 + 1, n0)
                outcome = host.run(benchmark, n)
                if _discard(outcome, benchmark):
                    failures += 1
                    continue
                reg.update(float(outcome.iterations), outcome.ns_per_op)
                st.update(outcome.ns_per_op)
                if on_trial:
                    on_trial(trial, st)

        return RegressionEstimate(
            benchmark=benchmark,
            host=host.name,
            calibrated_n=n0,
            count=reg.count,
            r_squared=reg.r_squared(),
            slope=reg.slope(),
            slope_error=reg.slope_standard_error(),
            intercept=reg.intercept(),
            intercept_error=reg.intercept_standard_error(),
            mean=st.mean(),
            skew=st.sample_skew(),
            kurtosis=st.sample_kurtosis(),
            failures=failures,
        )


def overhead_from_means(
    mean_one: float,
    mean_probe: float,
    probe: int,
    target: float,
) -> tuple[float, float, float, float, bool, int | None]:
    """Split mean total times at n=1 and n=probe into code and overhead.

    Returns:
        (code_mean, overhead_mean, target_n, duration_ns, reliable,
        recommended_iterations). When ``code_mean`` is not positive the
        marginal cost is unresolved: ``reliable`` is False and ``target_n``,
        ``duration_ns`` are NaN.
    """
    code_mean = (mean_probe - mean_one) / (probe - 1)
    overhead_mean = mean_one - code_mean

    if math.isnan(code_mean) or code_mean <= 0:
        return code_mean, overhead_mean, math.nan, math.nan, False, None

    target_n = overhead_mean / (code_mean * target)
    duration_ns = target_n * code_mean
    if overhead_mean <= 0:
        # Overhead is already below any target at a single iteration
        return code_mean, overhead_mean, target_n, duration_ns, True, 1
    return code_mean, overhead_mean, target_n, duration_ns, True, max(1, math.ceil(target_n))


class TwoPointStrategy:
    """Difference of total time at n=1 and n=probe."""

    name = "two-point"

    def __init__(self, *, probe: int = 2, trials: int = 100, target: float = 0.01) -> None:
        if probe < 2:
            raise ValueError(f"probe must be at least 2, got {probe}")
        if trials < 1:
            raise ValueError(f"trials must be positive, got {trials}")
        if not 0 < target < 1:
            raise ValueError(f"target must be between 0 and 1, got {target}")
        self.probe = probe
        self.trials = trials
        self.target = target

    def estimate(
        self,
        host: HostClient,
        benchmark: str,
        *,
        on_trial: TrialCallback | None = None,
    ) -> OverheadEstimate:
        points = {1: MomentAccumulator(), self.probe: MomentAccumulator()}
        failures = 0

        for x, st in points.items():
            for trial in range(self.trials):
                outcome = host.run(benchmark, x)
                if _discard(outcome, benchmark):
                    failures += 1
                    continue
                st.update(outcome.total_ns)
                if on_trial:
                    on_trial(trial, st)

        mean_one = points[1].mean()
        mean_probe = points[self.probe].mean()
        code_mean, overhead_mean, target_n, duration_ns, reliable, recommended = overhead_from_means(
            mean_one, mean_probe, self.probe, self.target
        )
        if not reliable:
            logger.warning(
                "%s: per-iteration cost not resolved (code mean %.2f ns); target iterations unreliable",
                benchmark,
                code_mean,
            )

        return OverheadEstimate(
            benchmark=benchmark,
            host=host.name,
            probe=self.probe,
            count=min(st.count for st in points.values()),
            mean_one=mean_one,
            mean_probe=mean_probe,
            code_mean=code_mean,
            overhead_mean=overhead_mean,
            target=self.target,
            target_n=target_n,
            duration_ns=duration_ns,
            reliable=reliable,
            recommended_iterations=recommended,
            failures=failures,
        )


class DoublingStrategy:
    """Double n while the average ns/op of a few runs keeps dropping."""

    name = "doubling"

    def __init__(self, *, repeats: int = 3, max_iterations: int = 1 << 30) -> None:
        if repeats < 1:
            raise ValueError(f"repeats must be positive, got {repeats}")
        self.repeats = repeats
        self.max_iterations = max_iterations

    def estimate(
        self,
        host: HostClient,
        benchmark: str,
        *,
        on_trial: TrialCallback | None = None,
    ) -> DoublingEstimate:
        failures = 0

        def average(n: int) -> float:
            nonlocal failures
            st = MomentAccumulator()
            for _ in range(self.repeats):
                outcome = host.run(benchmark, n)
                if _discard(outcome, benchmark):
                    failures += 1
                    continue
                st.update(outcome.ns_per_op)
            if on_trial and st.count:
                on_trial(n, st)
            return st.mean()

        n = 1
        prev = average(n)
        while not math.isnan(prev) and n < self.max_iterations:
            n <<= 1
            now = average(n)
            if math.isnan(now) or now >= prev:
                break
            prev = now

        return DoublingEstimate(benchmark=benchmark, host=host.name, iterations=n, ns_per_op=prev, failures=failures)


class LadderStrategy:
    """Sample ns/op at iteration counts calibrated to shrinking durations."""

    name = "ladder"

    DURATIONS = (0.1, 0.001, 0.00001)

    def __init__(self, *, trials: int = 50, durations: tuple[float, ...] = DURATIONS) -> None:
        if trials < 1:
            raise ValueError(f"trials must be positive, got {trials}")
        self.trials = trials
        self.durations = tuple(sorted(durations, reverse=True))

    def estimate(
        self,
        host: HostClient,
        benchmark: str,
        *,
        on_trial: TrialCallback | None = None,
    ) -> LadderEstimate:
        failures = 0
        counts = [1] * len(self.durations)
        for i, seconds in enumerate(self.durations):
            outcome = host.run_for(benchmark, seconds)
            if _discard(outcome, benchmark):
                failures += 1
                break
            counts[i] = max(outcome.iterations, 1)
            # One iteration already fills this duration, so shorter ones get one too
            if counts[i] == 1:
                break

        steps = []
        for seconds, n in zip(self.durations, counts):
            st = MomentAccumulator()
            for trial in range(self.trials):
                outcome = host.run(benchmark, n)
                if _discard(outcome, benchmark):
                    failures += 1
                    continue
                st.update(outcome.ns_per_op)
                if on_trial:
                    on_trial(trial, st)
            steps.append(
                LadderStep(
                    duration_ns=round(seconds * 1e9),
                    iterations=n,
                    count=st.count,
                    mean=st.mean(),
                    variance=st.sample_variance(),
                )
            )

        return LadderEstimate(benchmark=benchmark, host=host.name, steps=tuple(steps), failures=failures)


STRATEGIES = {
    RegressionStrategy.name: RegressionStrategy,
    TwoPointStrategy.name: TwoPointStrategy,
    DoublingStrategy.name: DoublingStrategy,
    LadderStrategy.name: LadderStrategy,
}


def make_strategy(
    name: str,
    *,
    profile: str | SamplingProfile = "standard",
    trials: int | None = None,
    probe: int | None = None,
    target: float | None = None,
    seed: int | None = None,
) -> RegressionStrategy | TwoPointStrategy | DoublingStrategy | LadderStrategy:
    """Build a strategy from a profile, with optional overrides.

    Raises:
        ValueError: Unknown strategy or profile name, or invalid parameters.
    """
    if isinstance(profile, str):
        profile = get_profile(profile)

    if name == RegressionStrategy.name:
        return RegressionStrategy(
            trials=profile.trials if trials is None else trials,
            calibration_seconds=profile.calibration_seconds,
            rng=random.Random(seed),
        )
    if name == TwoPointStrategy.name:
        return TwoPointStrategy(
            probe=profile.probe if probe is None else probe,
            trials=profile.trials if trials is None else trials,
            target=profile.target if target is None else target,
        )
    if name == DoublingStrategy.name:
        return DoublingStrategy()
    if name == LadderStrategy.name:
        return LadderStrategy(trials=profile.ladder_trials if trials is None else trials)

    valid = ", ".join(STRATEGIES)
    raise ValueError(f"Unknown strategy '{name}'. Valid strategies: {valid}")
