r"""
Client-side transports for talking to benchmark hosts.

Both transports offer the same surface (``list``, ``run``, ``run_for``,
``set``, ``close``), so samplers do not care how a host is reached.

    from micro_bench.client import StdioHost, RpcHost, open_host

    host = open_host("benches.py")      # or "tcp://127.0.0.1:9998"
"""

import sys
from pathlib import Path

from micro_bench.client.local import LocalHost
from micro_bench.client.parse import format_line, parse_line
from micro_bench.client.rpc import RpcHost
from micro_bench.client.stdio import StdioHost

__all__ = [
    "LocalHost",
    "RpcHost",
    "StdioHost",
    "format_line",
    "host_command",
    "open_host",
    "parse_line",
]


def host_command(target: str) -> list[str]:
    """Command line that starts ``target`` as a stdio host.

    Python files are served through ``python -m micro_bench serve --stdio``; anything
    else is treated as an executable accepting ``--benchserve``.
    """
    if target.endswith(".py"):
        return [sys.executable, "-m", "micro_bench", "serve", target, "--stdio"]
    return [str(Path(target)), "--benchserve"]


def open_host(target: str) -> StdioHost | RpcHost:
    """Create a started client for ``target``.

    ``tcp://host:port`` connects over RPC, everything else is launched as a
    subprocess.

    Raises:
        TransportError: If the host cannot be reached or started.
    """
    if target.startswith("tcp://"):
        host: StdioHost | RpcHost = RpcHost(target)
    else:
        host = StdioHost(host_command(target), name=target)
    host.start()
    return host
