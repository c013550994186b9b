"""Utility modules for micro-bench."""

from micro_bench.utils.memory import (
    AllocationCounter,
    allocated_blocks,
    cpu_count,
    total_memory_bytes,
)

__all__ = [
    "AllocationCounter",
    "allocated_blocks",
    "cpu_count",
    "total_memory_bytes",
]
