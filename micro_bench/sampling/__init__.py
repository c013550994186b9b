from micro_bench.sampling.strategies import (
    STRATEGIES,
    DoublingStrategy,
    LadderStrategy,
    RegressionStrategy,
    TwoPointStrategy,
    make_strategy,
    overhead_from_means,
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
