r"""
Line-oriented control protocol over text streams.

One command per line, exactly one response line per command (``quit`` and
``exit`` excepted). Errors are reported as ``error: ...`` lines and never end
the session.

    from micro_bench.server import StdioServer

    StdioServer(host).serve()    # reads sys.stdin, writes sys.stdout
"""

import json
import logging
import sys
from collections.abc import Callable
from typing import TextIO

from micro_bench.client.parse import format_line
from micro_bench.exceptions import HostError, InvalidRequest
from micro_bench.host.executor import BenchmarkHost, parse_duration

__all__ = ["StdioServer", "READY", "HELP", "split_procs"]

logger = logging.getLogger(__name__)

READY = "PASS"
HELP = "commands: help, list, run, set, quit, exit"


def split_procs(benchmark: str) -> tuple[str, int | None]:
    """Split a ``name-P`` identifier into name and parallelism.

    The suffix after the last ``-`` is only taken as parallelism when it is
    all digits.
    """
    name, sep, procs = benchmark.rpartition("-")
    if sep and name and procs.isdigit():
        return name, int(procs)
    return benchmark, None


class StdioServer:
    """Serves one host over a pair of text streams."""

    def __init__(
        self,
        host: BenchmarkHost,
        *,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
    ) -> None:
        self._host = host
        self._in = stdin if stdin is not None else sys.stdin
        self._out = stdout if stdout is not None else sys.stdout
        self._running = False
        self._commands: dict[str, Callable[[list[str]], None]] = {
            "help": self.cmd_help,
            "quit": self.cmd_quit,
            "exit": self.cmd_quit,
            "list": self.cmd_list,
            "run": self.cmd_run,
            "set": self.cmd_set,
        }

    def _write(self, line: str) -> None:
        self._out.write(line + "\n")
        self._out.flush()

    def serve(self) -> None:
        """Announce readiness, then handle commands until quit or end of input."""
        self._running = True
        self._write(READY)
        for raw in iter(self._in.readline, ""):
            self.handle(raw)
            if not self._running:
                break
        self._running = False

    def handle(self, raw: str) -> None:
        """Dispatch one command line."""
        fields = raw.split()
        if not fields:
            self.cmd_help([])
            return
        cmd = self._commands.get(fields[0])
        if cmd is None:
            logger.debug("unknown command %r", fields[0])
            self.cmd_help([])
            return
        try:
            cmd(fields[1:])
        except HostError as e:
            self._write(f"error: {e}")

    def cmd_help(self, args: list[str]) -> None:
        self._write(HELP)

    def cmd_quit(self, args: list[str]) -> None:
        self._running = False

    def cmd_list(self, args: list[str]) -> None:
        pattern = args[0] if args else "."
        self._write(json.dumps(self._host.names(pattern)))

    def cmd_set(self, args: list[str]) -> None:
        if len(args) < 2:
            raise InvalidRequest("usage: set <key> <value>", command="set")
        self._host.set(args[0], args[1])
        self._write("ok")

    def cmd_run(self, args: list[str]) -> None:
        if len(args) < 2:
            raise InvalidRequest("usage: run <name>[-procs] <iterations|duration>", command="run")

        # A registered name wins over reading its -digits tail as parallelism
        if args[0] in self._host.names("."):
            name, procs = args[0], None
        else:
            name, procs = split_procs(args[0])
        count = args[1]
        duration = parse_duration(count)
        if duration is not None:
            outcome = self._host.run_for(name, duration, procs)
        else:
            try:
                iterations = int(count)
            except ValueError as e:
                raise InvalidRequest(f"iterations must be positive, got {count}", command="run") from e
            outcome = self._host.run(name, iterations, procs)

        if outcome.warning:
            self._write(f"warning: {outcome.warning}")
        if outcome.failed:
            logger.info("%s failed: %s", outcome.name, outcome.error)
            reason = outcome.error.splitlines()[0] if outcome.error else ""
            self._write(f"--- FAIL: {outcome.name}\t{reason}".rstrip())
            return
        self._write(format_line(outcome))
