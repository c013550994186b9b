r"""
Control protocol layer and host-program entry point.

A benchmark program registers its benchmarks, then hands control to ``main``:

    from micro_bench.host import benchmark
    from micro_bench.server import main

    @benchmark("sort_small")
    def bench_sort_small(b):
        data = list(range(100, 0, -1))
        for _ in range(b.n):
            sorted(data)

    if __name__ == "__main__":
        main()

    $ python benches.py --benchserve                  # stdio protocol
    $ python benches.py --benchserve-rpc :9998        # RPC protocol
    $ python benches.py -b sort                       # run once, print results
"""

import importlib.util
import logging
import sys
from pathlib import Path
from typing import Annotated

import typer

from micro_bench.client.parse import format_line
from micro_bench.config import DEFAULT_RPC_ADDRESS, parse_address
from micro_bench.host.executor import BenchmarkHost
from micro_bench.host.registry import BenchmarkRegistry, default_registry
from micro_bench.server.rpc import RpcServer
from micro_bench.server.stdio import StdioServer

__all__ = [
    "RpcServer",
    "StdioServer",
    "load_benchmark_file",
    "main",
    "run_suite",
    "serve_rpc",
    "serve_stdio",
]

logger = logging.getLogger(__name__)


def load_benchmark_file(path: str | Path) -> BenchmarkRegistry:
    """Import a benchmark file and return the registry it populated.

    A module-level ``registry`` attribute wins over the default registry.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ImportError: If the file cannot be imported.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"benchmark file not found: {path}")
    spec = importlib.util.spec_from_file_location(f"_micro_bench_host_{path.stem}", path)
    if spec is None or spec.loader is None:
        raise ImportError(f"cannot import benchmark file: {path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[spec.name] = module
    spec.loader.exec_module(module)
    registry = getattr(module, "registry", None)
    if isinstance(registry, BenchmarkRegistry):
        return registry
    return default_registry


def serve_stdio(host: BenchmarkHost) -> None:
    """Serve the line protocol on stdin/stdout.

    Anything written to stderr is fatal to the client, so only errors are
    logged from here on.
    """
    logging.basicConfig(level=logging.ERROR, force=True)
    StdioServer(host).serve()


def serve_rpc(host: BenchmarkHost, address: str = DEFAULT_RPC_ADDRESS) -> None:
    """Serve the RPC protocol on ``address`` until a client quits."""
    RpcServer(host, parse_address(address or DEFAULT_RPC_ADDRESS)).serve()


def run_suite(host: BenchmarkHost, pattern: str = ".", *, seconds: float = 1.0) -> int:
    """Run each matching benchmark once for about ``seconds`` and print its line.

    Returns:
        Number of failed benchmarks.
    """
    failed = 0
    for index in host.list(pattern):
        outcome = host.run_for(index, int(seconds * 1e9))
        if outcome.warning:
            typer.echo(f"warning: {outcome.warning}", err=True)
        if outcome.failed:
            failed += 1
            typer.echo(f"--- FAIL: {outcome.name}\n    {outcome.error}")
            continue
        typer.echo(format_line(outcome))
    typer.echo("FAIL" if failed else "PASS")
    return failed


def main(registry: BenchmarkRegistry | None = None, argv: list[str] | None = None) -> None:
    """Entry point for benchmark programs."""
    host_app = typer.Typer(add_completion=False)

    @host_app.command()
    def host_main(
        benchserve: Annotated[bool, typer.Option("--benchserve", help="Serve the stdio protocol")] = False,
        benchserve_rpc: Annotated[
            str | None, typer.Option("--benchserve-rpc", help="Serve the RPC protocol on host:port")
        ] = None,
        bench: Annotated[str, typer.Option("-b", "--bench", help="Regexp selecting benchmarks to run")] = ".",
        benchtime: Annotated[float, typer.Option("--benchtime", help="Seconds per benchmark")] = 1.0,
        benchmem: Annotated[bool, typer.Option("--benchmem", help="Report allocation stats")] = False,
    ) -> None:
        host = BenchmarkHost(registry, benchmem=benchmem)
        if benchserve:
            serve_stdio(host)
        elif benchserve_rpc:
            serve_rpc(host, benchserve_rpc)
        elif run_suite(host, bench, seconds=benchtime):
            raise typer.Exit(1)

    host_app(args=sys.argv[1:] if argv is None else argv)
