r"""
Command-line interface for micro-bench.

    micro-bench run benches.py -b sort -s two-point
    micro-bench run tcp://127.0.0.1:9998 other_host --format json
    micro-bench serve benches.py --rpc :9998
    micro-bench list benches.py
"""

import logging
import sys
from pathlib import Path
from typing import Annotated

import typer

from micro_bench.config import DEFAULT_PROFILE, get_env

__all__ = ["app", "main"]

logger = logging.getLogger("micro_bench.cli")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

app = typer.Typer(
    name="micro-bench",
    help="Statistical micro-benchmark sampler.",
    no_args_is_help=True,
)


def _configure_logging(debug: bool) -> None:
    level = "DEBUG" if debug else (get_env("LOG_LEVEL", default="WARNING") or "WARNING").upper()
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr, force=True)


def _target(host: str, rpc: bool) -> str:
    if rpc and not host.startswith("tcp://"):
        return f"tcp://{host}"
    return host


@app.command()
def run(
    hosts: Annotated[list[str], typer.Argument(help="Benchmark file, executable, or tcp://host:port")],
    bench: Annotated[str, typer.Option("-b", "--bench", help="Regexp selecting benchmarks")] = ".",
    strategy: Annotated[
        str, typer.Option("-s", "--strategy", help="Strategy: regression, two-point, doubling, ladder")
    ] = "regression",
    profile: Annotated[
        str | None, typer.Option("-p", "--profile", help="Profile: quick, standard, thorough")
    ] = None,
    trials: Annotated[int | None, typer.Option("--trials", help="Samples per measurement point")] = None,
    probe: Annotated[int | None, typer.Option("--probe", help="Two-point probe iteration count")] = None,
    target: Annotated[float | None, typer.Option("--target", help="Largest overhead fraction")] = None,
    seed: Annotated[int | None, typer.Option("--seed", help="Random seed for iteration counts")] = None,
    rpc: Annotated[bool, typer.Option("--rpc", help="Treat every HOST as an RPC host:port")] = False,
    format_: Annotated[str, typer.Option("-f", "--format", help="Output format: text, json")] = "text",
    output: Annotated[Path | None, typer.Option("-o", "--output", help="Also write the session to a file")] = None,
    debug: Annotated[bool, typer.Option("--debug", help="Log every request and response")] = False,
) -> None:
    """Sample benchmarks common to every HOST."""
    from micro_bench.client import open_host
    from micro_bench.exceptions import HostError, TransportError
    from micro_bench.reporting import JsonExporter, ResultCollector, TextExporter, format_report, format_trial
    from micro_bench.runner import Orchestrator, OrchestratorConfig

    _configure_logging(debug)

    if format_ not in ("text", "json"):
        typer.echo(f"Error: Unknown format '{format_}'. Valid formats: text, json", err=True)
        raise typer.Exit(2)

    config = OrchestratorConfig(
        pattern=bench,
        strategy=strategy,
        profile=profile or get_env("PROFILE", default=DEFAULT_PROFILE) or DEFAULT_PROFILE,
        trials=trials,
        probe=probe,
        target=target,
        seed=seed,
    )

    clients = []
    try:
        for host in hosts:
            clients.append(open_host(_target(host, rpc)))
        orchestrator = Orchestrator(clients, config=config)

        if format_ == "text":
            show_host = len(clients) > 1

            def on_trial(host_name: str, benchmark: str, i: int, st) -> None:
                prefix = f"[{host_name}] " if show_host else ""
                typer.echo(f"{prefix}{format_trial(st)}")

            def on_report(report) -> None:
                for line in format_report(report, show_host=show_host):
                    typer.echo(line)

            def progress(host_name: str, benchmark: str, status: str) -> None:
                if status == "running":
                    typer.echo(f"[{host_name}] {benchmark}" if show_host else benchmark)

            orchestrator.set_trial_reporter(on_trial)
            orchestrator.set_report_callback(on_report)
            orchestrator.set_progress_callback(progress)

        collector = ResultCollector()
        collector.start_session(strategy=config.strategy, profile=config.profile, hosts=[c.name for c in clients])
        result = orchestrator.run()
        collector.add_result(result)
        collector.end_session()
    except (ValueError, HostError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(2)
    except TransportError as e:
        logger.error("%s", e)
        raise typer.Exit(1)
    finally:
        for client in clients:
            client.close()

    exporter = JsonExporter() if format_ == "json" else TextExporter()
    if format_ == "json":
        typer.echo(exporter.to_string(collector), nl=False)
    else:
        typer.echo(f"ok={result.success_count} failed={result.failure_count} in {result.duration_seconds:.1f}s")
    if output:
        exporter.export(collector, output)
        logger.info("Results written to %s", output)

    if result.failure_count:
        raise typer.Exit(1)


@app.command()
def serve(
    file: Annotated[Path, typer.Argument(help="Python file registering benchmarks")],
    rpc: Annotated[str | None, typer.Option("--rpc", help="Serve RPC on host:port instead of stdio")] = None,
    stdio: Annotated[
        bool, typer.Option("--stdio", help="Serve stdio even when MICRO_BENCH_RPC_ADDRESS is set")
    ] = False,
    benchmem: Annotated[bool, typer.Option("--benchmem", help="Always report allocation stats")] = False,
) -> None:
    """Serve the benchmarks in FILE over stdio (default) or RPC.

    Without --rpc or --stdio, MICRO_BENCH_RPC_ADDRESS selects RPC.
    """
    from micro_bench.host import BenchmarkHost
    from micro_bench.server import load_benchmark_file, serve_rpc, serve_stdio

    try:
        registry = load_benchmark_file(file)
    except (FileNotFoundError, ImportError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if stdio and rpc is not None:
        typer.echo("Error: --stdio and --rpc are mutually exclusive", err=True)
        raise typer.Exit(2)

    host = BenchmarkHost(registry, benchmem=benchmem)
    if rpc is None and not stdio:
        rpc = get_env("RPC_ADDRESS")
    if rpc is None:
        serve_stdio(host)
        return

    _configure_logging(False)
    try:
        serve_rpc(host, rpc)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(2)


@app.command("list")
def list_benchmarks(
    host: Annotated[str, typer.Argument(help="Benchmark file, executable, or tcp://host:port")],
    bench: Annotated[str, typer.Option("-b", "--bench", help="Regexp selecting benchmarks")] = ".",
    debug: Annotated[bool, typer.Option("--debug", help="Log every request and response")] = False,
) -> None:
    """List benchmarks available on HOST."""
    from micro_bench.client import open_host
    from micro_bench.exceptions import HostError, TransportError

    _configure_logging(debug)

    try:
        client = open_host(host)
    except TransportError as e:
        logger.error("%s", e)
        raise typer.Exit(1)

    try:
        for name in client.list(bench):
            typer.echo(name)
    except HostError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(2)
    except TransportError as e:
        logger.error("%s", e)
        raise typer.Exit(1)
    finally:
        client.close()


def main() -> None:
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
