r"""
Process-wide worker level and the fan-out/join primitive.

The worker level plays the role of a runtime's max-procs setting: the host
sets it before each run, benchmarks read it through ``B.run_parallel``, and
the host checks afterwards that the benchmark did not leave it changed.

    from micro_bench.host.concurrency import run_across

    run_across(10_000, 4, lambda share: work(share))
"""

import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, wait

from micro_bench.utils.memory import cpu_count

__all__ = [
    "default_max_workers",
    "get_max_workers",
    "set_max_workers",
    "split_iterations",
    "run_across",
]

_lock = threading.Lock()
_max_workers: int | None = None


def default_max_workers() -> int:
    """Default worker level: the logical CPU count."""
    return cpu_count()


def get_max_workers() -> int:
    with _lock:
        if _max_workers is None:
            return default_max_workers()
        return _max_workers


def set_max_workers(n: int | None) -> int:
    """Set the worker level and return the previous one.

    ``None`` restores the default.
    """
    global _max_workers
    if n is not None and n < 1:
        raise ValueError(f"max workers must be positive, got {n}")
    with _lock:
        previous = _max_workers if _max_workers is not None else default_max_workers()
        _max_workers = n
    return previous


def split_iterations(n: int, workers: int) -> list[int]:
    """Split ``n`` iterations into ``workers`` shares differing by at most one.

    Workers beyond ``n`` get nothing and are dropped.
    """
    workers = max(1, min(workers, n))
    base, extra = divmod(n, workers)
    return [base + (1 if i < extra else 0) for i in range(workers)]


def run_across(n: int, workers: int, body: Callable[[int], None]) -> None:
    """Run ``body(share)`` on ``workers`` threads, then join all of them.

    Every worker runs to completion before the first worker exception, if
    any, is re-raised.
    """
    shares = split_iterations(n, workers)
    if len(shares) == 1:
        body(shares[0])
        return

    with ThreadPoolExecutor(max_workers=len(shares)) as executor:
        futures = [executor.submit(body, share) for share in shares]
        wait(futures)

    for future in futures:
        future.result()
