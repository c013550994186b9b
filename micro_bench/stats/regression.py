r"""
Streaming ordinary least-squares regression.

    from micro_bench.stats import RegressionAccumulator

    reg = RegressionAccumulator()
    reg.update(n, ns_per_op)
    print(reg.slope(), reg.intercept(), reg.r_squared())
"""

import math

__all__ = ["RegressionAccumulator"]


class RegressionAccumulator:
    """Running sums of x, y, xy, x² and y².

    Fits are derived on demand. Degenerate inputs (fewer than two points, or
    no spread in x) yield NaN instead of dividing by zero.
    """

    __slots__ = ("_n", "_sx", "_sy", "_sxx", "_sxy", "_syy")

    def __init__(self) -> None:
        self._n = 0
        self._sx = 0.0
        self._sy = 0.0
        self._sxx = 0.0
        self._sxy = 0.0
        self._syy = 0.0

    def update(self, x: float, y: float) -> None:
        """Add one (x, y) observation."""
        self._n += 1
        self._sx += x
        self._sy += y
        self._sxx += x * x
        self._sxy += x * y
        self._syy += y * y

    @property
    def count(self) -> int:
        return self._n

    def _sxx_centered(self) -> float:
        return self._sxx - self._sx * self._sx / self._n

    def _syy_centered(self) -> float:
        return self._syy - self._sy * self._sy / self._n

    def _sxy_centered(self) -> float:
        return self._sxy - self._sx * self._sy / self._n

    @property
    def degenerate(self) -> bool:
        """True when slope and intercept are undefined."""
        # Rounding can leave a tiny positive residue when every x is equal
        return self._n < 2 or self._sxx_centered() <= 1e-12 * self._sxx

    def slope(self) -> float:
        if self.degenerate:
            return math.nan
        return self._sxy_centered() / self._sxx_centered()

    def intercept(self) -> float:
        if self.degenerate:
            return math.nan
        return (self._sy - self.slope() * self._sx) / self._n

    def r_squared(self) -> float:
        """Coefficient of determination, NaN when y has no spread."""
        if self.degenerate:
            return math.nan
        syy = self._syy_centered()
        if syy <= 0:
            return math.nan
        sxy = self._sxy_centered()
        return min(1.0, sxy * sxy / (self._sxx_centered() * syy))

    def _residual_variance(self) -> float:
        if self._n < 3 or self.degenerate:
            return math.nan
        sse = self._syy_centered() - self.slope() * self._sxy_centered()
        return max(sse, 0.0) / (self._n - 2)

    def slope_standard_error(self) -> float:
        """Standard error of the slope, NaN for fewer than 3 points."""
        s2 = self._residual_variance()
        if math.isnan(s2):
            return math.nan
        return math.sqrt(s2 / self._sxx_centered())

    def intercept_standard_error(self) -> float:
        """Standard error of the intercept, NaN for fewer than 3 points."""
        s2 = self._residual_variance()
        if math.isnan(s2):
            return math.nan
        mean_x = self._sx / self._n
        return math.sqrt(s2 * (1 / self._n + mean_x * mean_x / self._sxx_centered()))
