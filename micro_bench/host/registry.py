r"""
Benchmark registry.

Registration happens at import time of a benchmark module. Once a host is
built from a registry the registry is frozen and read without locking.

    from micro_bench.host import benchmark

    @benchmark("sum_range")
    def bench_sum_range(b):
        for _ in range(b.n):
            sum(range(100))
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

from micro_bench.types import BenchmarkDescriptor

__all__ = ["BenchmarkRegistry", "default_registry", "benchmark"]


class BenchmarkRegistry:
    """Ordered, write-once collection of benchmark descriptors.

    Duplicate names are allowed; positions (indices) stay unambiguous.
    """

    def __init__(self) -> None:
        self._benchmarks: list[BenchmarkDescriptor] = []
        self._frozen = False

    def add(self, name: str, func: Callable[[Any], None], *, report_allocs: bool = False) -> BenchmarkDescriptor:
        """Register a benchmark function under ``name``.

        Names travel as single protocol tokens, so they may not be empty,
        contain whitespace, or start with ``#``.

        Raises:
            RuntimeError: If the registry is frozen.
            ValueError: If ``name`` is not a valid benchmark name.
        """
        if self._frozen:
            raise RuntimeError(f"cannot register '{name}': registry is frozen")
        if not name or name.split() != [name] or name.startswith("#"):
            raise ValueError(f"invalid benchmark name {name!r}: must be one token not starting with '#'")
        descriptor = BenchmarkDescriptor(name=name, func=func, report_allocs=report_allocs)
        self._benchmarks.append(descriptor)
        return descriptor

    def register(self, name: str | None = None, *, report_allocs: bool = False) -> Any:
        """Decorator to register a benchmark function.

        The function name is used when ``name`` is omitted.
        """

        def decorator(func: Callable[[Any], None]) -> Callable[[Any], None]:
            self.add(name or func.__name__, func, report_allocs=report_allocs)
            return func

        return decorator

    def freeze(self) -> tuple[BenchmarkDescriptor, ...]:
        """Stop accepting registrations and return the final snapshot."""
        self._frozen = True
        return tuple(self._benchmarks)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def list(self) -> list[str]:
        """List registered benchmark names in registration order."""
        return [b.name for b in self._benchmarks]

    def get(self, name: str) -> BenchmarkDescriptor | None:
        """Get the first benchmark registered under ``name``."""
        for descriptor in self._benchmarks:
            if descriptor.name == name:
                return descriptor
        return None

    def __len__(self) -> int:
        return len(self._benchmarks)

    def __iter__(self) -> Iterator[BenchmarkDescriptor]:
        return iter(self._benchmarks)


default_registry = BenchmarkRegistry()

benchmark = default_registry.register
