r"""
Streaming moment statistics.

Single-pass mean, variance, skewness and kurtosis without retaining samples.
Uses Welford's update extended to the third and fourth central moments
(Terriberry), which stays stable for large sample counts.

    from micro_bench.stats import MomentAccumulator

    st = MomentAccumulator()
    for x in samples:
        st.update(x)
    print(st.mean(), st.sample_skew())
"""

import math

__all__ = ["MomentAccumulator"]


class MomentAccumulator:
    """Running count, mean and central-moment sums.

    Undefined statistics (too few samples, zero variance) are NaN.
    """

    __slots__ = ("_n", "_mean", "_m2", "_m3", "_m4", "_min", "_max")

    def __init__(self) -> None:
        self._n = 0
        self._mean = 0.0
        self._m2 = 0.0
        self._m3 = 0.0
        self._m4 = 0.0
        self._min = math.inf
        self._max = -math.inf

    def update(self, x: float) -> None:
        """Add one observation."""
        n1 = self._n
        self._n += 1
        n = self._n
        delta = x - self._mean
        delta_n = delta / n
        delta_n2 = delta_n * delta_n
        term1 = delta * delta_n * n1

        self._mean += delta_n
        self._m4 += term1 * delta_n2 * (n * n - 3 * n + 3) + 6 * delta_n2 * self._m2 - 4 * delta_n * self._m3
        self._m3 += term1 * delta_n * (n - 2) - 3 * delta_n * self._m2
        self._m2 += term1

        self._min = min(self._min, x)
        self._max = max(self._max, x)

    def update_all(self, values) -> None:
        for x in values:
            self.update(x)

    @property
    def count(self) -> int:
        """Number of observations."""
        return self._n

    @property
    def min(self) -> float:
        return self._min if self._n else math.nan

    @property
    def max(self) -> float:
        return self._max if self._n else math.nan

    def mean(self) -> float:
        """Arithmetic mean, NaN when empty."""
        if self._n == 0:
            return math.nan
        return self._mean

    def population_variance(self) -> float:
        if self._n == 0:
            return math.nan
        return self._m2 / self._n

    def sample_variance(self) -> float:
        """Bessel-corrected variance, NaN for fewer than 2 samples."""
        if self._n < 2:
            return math.nan
        return self._m2 / (self._n - 1)

    def sample_standard_deviation(self) -> float:
        return math.sqrt(self.sample_variance())

    def sample_skew(self) -> float:
        """Adjusted Fisher-Pearson skewness, NaN for fewer than 3 samples."""
        n = self._n
        if n < 3 or self._m2 == 0:
            return math.nan
        g1 = math.sqrt(n) * self._m3 / self._m2**1.5
        return math.sqrt(n * (n - 1)) / (n - 2) * g1

    def sample_kurtosis(self) -> float:
        """Sample excess kurtosis, NaN for fewer than 4 samples."""
        n = self._n
        if n < 4 or self._m2 == 0:
            return math.nan
        g2 = n * self._m4 / (self._m2 * self._m2) - 3
        return ((n + 1) * g2 + 6) * (n - 1) / ((n - 2) * (n - 3))

    def __repr__(self) -> str:
        return f"MomentAccumulator(count={self._n}, mean={self.mean():g})"
