r"""
Streaming statistics for benchmark samples.

    from micro_bench.stats import MomentAccumulator, RegressionAccumulator
"""

from micro_bench.stats.moments import MomentAccumulator
from micro_bench.stats.regression import RegressionAccumulator

__all__ = [
    "MomentAccumulator",
    "RegressionAccumulator",
]
