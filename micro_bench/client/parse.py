r"""
Benchmark result lines.

    BenchmarkSort-4    1000    1523.00 ns/op    24 B/op    1 allocs/op

    from micro_bench.client.parse import format_line, parse_line

    line = format_line(outcome)
    outcome = parse_line(line)
"""

from micro_bench.exceptions import ProtocolError
from micro_bench.types import RunOutcome

__all__ = ["format_line", "format_mem", "parse_line"]


def format_mem(outcome: RunOutcome) -> str:
    """Allocation columns, per iteration."""
    return f"{round(outcome.bytes_per_op)} B/op\t{round(outcome.allocs_per_op)} allocs/op"


def format_line(outcome: RunOutcome, *, mem: bool | None = None) -> str:
    """Format a successful outcome as one tab-separated result line.

    Args:
        outcome: Outcome to format.
        mem: Include allocation columns; defaults to ``outcome.show_alloc_result``.
    """
    if mem is None:
        mem = outcome.show_alloc_result
    fields = [outcome.name, f"{outcome.iterations:8d}", f"{outcome.ns_per_op:12.2f} ns/op"]
    if outcome.bytes_processed > 0:
        fields.append(f"{outcome.mb_per_s:8.2f} MB/s")
    if mem:
        fields.append(format_mem(outcome))
    return "\t".join(fields)


def parse_line(line: str) -> RunOutcome:
    """Parse a result line back into a RunOutcome.

    Totals are reconstructed from the per-iteration columns.

    Raises:
        ProtocolError: If the line is not a benchmark result.
    """
    fields = line.split()
    if len(fields) < 4 or len(fields) % 2 != 0:
        raise ProtocolError(f"malformed benchmark line: {line.rstrip()!r}")

    name = fields[0]
    try:
        n = int(fields[1])
    except ValueError as e:
        raise ProtocolError(f"bad iteration count in line: {line.rstrip()!r}") from e

    values: dict[str, float] = {}
    for value, unit in zip(fields[2::2], fields[3::2]):
        try:
            values[unit] = float(value)
        except ValueError as e:
            raise ProtocolError(f"bad {unit} value {value!r} in line: {line.rstrip()!r}") from e

    if "ns/op" not in values:
        raise ProtocolError(f"missing ns/op in line: {line.rstrip()!r}")

    bytes_processed = 0
    if values.get("MB/s", 0) > 0:
        seconds = values["ns/op"] * n / 1e9
        bytes_processed = round(values["MB/s"] * 1e6 * seconds / n) if n else 0

    return RunOutcome(
        name=name,
        iterations=n,
        elapsed_ns=round(values["ns/op"] * n),
        bytes_processed=bytes_processed,
        mem_allocs=round(values.get("allocs/op", 0) * n),
        mem_bytes=round(values.get("B/op", 0) * n),
        show_alloc_result="allocs/op" in values,
    )
