r"""
Stdio transport: drive a benchmark host subprocess over its pipes.

    from micro_bench.client import StdioHost

    with StdioHost([sys.executable, "benches.py", "--benchserve"]) as host:
        for name in host.list("."):
            print(host.run(name, 1000))

Any output on the host's stderr is fatal: the host is killed and the next
request raises TransportError carrying that output.
"""

from __future__ import annotations

import json
import logging
import subprocess
import threading
from collections.abc import Sequence
from dataclasses import replace

from micro_bench.client.parse import parse_line
from micro_bench.exceptions import BenchmarkNotFound, InvalidRequest, ProtocolError, TransportError
from micro_bench.server.stdio import READY
from micro_bench.types import RunOutcome

__all__ = ["StdioHost", "format_identifier"]

logger = logging.getLogger(__name__)


def format_identifier(benchmark: str | int, parallelism: int = 1) -> str:
    """Protocol identifier for a benchmark: ``name``, ``#index``, plus ``-P``."""
    ident = f"#{benchmark}" if isinstance(benchmark, int) else benchmark
    if parallelism != 1:
        ident = f"{ident}-{parallelism}"
    return ident


def _host_error(message: str, command: str) -> InvalidRequest | BenchmarkNotFound:
    if message.startswith("benchmark not found"):
        return BenchmarkNotFound(message, command=command)
    return InvalidRequest(message, command=command)


class StdioHost:
    """Client for one host subprocess speaking the line protocol."""

    def __init__(self, command: Sequence[str], *, name: str | None = None) -> None:
        self.command = list(command)
        self.name = name or " ".join(self.command)
        self._proc: subprocess.Popen[str] | None = None
        self._fatal: str | None = None
        self._watcher: threading.Thread | None = None
        self._indices: dict[str, int] = {}

    @property
    def connected(self) -> bool:
        return self._proc is not None and self._proc.poll() is None

    def start(self) -> None:
        """Launch the host and wait for its ready sentinel.

        Raises:
            TransportError: If the host cannot be started or exits early.
        """
        if self._proc is not None:
            return
        logger.debug("RUN %s", " ".join(self.command))
        try:
            self._proc = subprocess.Popen(
                self.command,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                bufsize=1,
            )
        except OSError as e:
            raise TransportError(f"Failed to start {self.name}: {e}") from e

        self._watcher = threading.Thread(target=self._watch_stderr, name=f"stderr:{self.name}", daemon=True)
        self._watcher.start()

        # Skip anything the host prints before it is ready
        while True:
            line = self._readline()
            if line.rstrip("\n") == READY:
                break

    def _watch_stderr(self) -> None:
        assert self._proc is not None and self._proc.stderr is not None
        line = self._proc.stderr.readline()
        if not line:
            return
        self._fatal = line.rstrip("\n")
        logger.critical("%s wrote to stderr: %s", self.name, self._fatal)
        self._proc.kill()

    def _check_fatal(self) -> None:
        if self._fatal is not None:
            raise TransportError(f"{self.name}: {self._fatal}")

    def _send(self, line: str) -> None:
        self._check_fatal()
        if self._proc is None or self._proc.stdin is None:
            raise TransportError(f"{self.name} is not running")
        logger.debug("-> %s", line)
        try:
            self._proc.stdin.write(line + "\n")
            self._proc.stdin.flush()
        except (BrokenPipeError, OSError) as e:
            self._check_fatal()
            raise TransportError(f"Send to {self.name} failed: {e}") from e

    def _readline(self) -> str:
        assert self._proc is not None and self._proc.stdout is not None
        line = self._proc.stdout.readline()
        if not line:
            # Give the stderr watcher a chance to record why the stream closed
            if self._watcher is not None:
                self._watcher.join(timeout=1.0)
            self._check_fatal()
            raise TransportError(f"{self.name} closed its output")
        logger.debug("<- %s", line.rstrip("\n"))
        return line

    def list(self, pattern: str = ".") -> list[str]:
        """Names of benchmarks matching ``pattern``.

        Raises:
            InvalidRequest: Bad filter pattern.
            ProtocolError: Response is not a JSON list of names.
        """
        self._send(f"list {pattern}")
        line = self._readline().strip()
        if line.startswith("error:"):
            raise _host_error(line.removeprefix("error:").strip(), "list")
        try:
            names = json.loads(line)
        except json.JSONDecodeError as e:
            raise ProtocolError(f"Invalid list response from {self.name}: {line!r}") from e
        if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
            raise ProtocolError(f"Invalid list response from {self.name}: {line!r}")
        return names

    def _index(self, benchmark: str | int) -> int:
        # Names ending in -digits collide with the parallelism suffix, so
        # runs are always addressed by position in the unfiltered list
        if isinstance(benchmark, int):
            return benchmark
        if benchmark.startswith("#") and benchmark[1:].isdigit():
            return int(benchmark[1:])
        if benchmark not in self._indices:
            for index, name in enumerate(self.list(".")):
                self._indices.setdefault(name, index)
        if benchmark not in self._indices:
            raise BenchmarkNotFound(f"benchmark not found: {benchmark}", command="run")
        return self._indices[benchmark]

    def _run(self, ident: str, count: str, iterations: int) -> RunOutcome:
        self._send(f"run {ident} {count}")
        warning: str | None = None
        while True:
            line = self._readline().rstrip("\n")
            if not line.startswith("warning:"):
                break
            warning = line.removeprefix("warning:").strip()
            logger.warning("%s: %s", self.name, warning)

        if line.startswith("error:"):
            raise _host_error(line.removeprefix("error:").strip(), "run")
        if line.startswith("--- FAIL:"):
            name, _, reason = line.removeprefix("--- FAIL:").strip().partition("\t")
            return RunOutcome(
                name=name,
                iterations=iterations,
                elapsed_ns=0,
                failed=True,
                error=reason or "benchmark failed",
                warning=warning,
            )
        outcome = parse_line(line)
        if warning:
            outcome = replace(outcome, warning=warning)
        return outcome

    def run(self, benchmark: str | int, iterations: int, parallelism: int = 1) -> RunOutcome:
        """Run ``benchmark`` for exactly ``iterations`` iterations."""
        return self._run(format_identifier(self._index(benchmark), parallelism), str(iterations), iterations)

    def run_for(self, benchmark: str | int, seconds: float, parallelism: int = 1) -> RunOutcome:
        """Run ``benchmark`` with an iteration count calibrated to ``seconds``."""
        return self._run(format_identifier(self._index(benchmark), parallelism), f"{int(seconds * 1e9)}ns", 0)

    def set(self, key: str, value: str | bool | int) -> None:
        if isinstance(value, bool):
            value = "true" if value else "false"
        self._send(f"set {key} {value}")
        line = self._readline().strip()
        if line.startswith("error:"):
            raise _host_error(line.removeprefix("error:").strip(), "set")
        if line != "ok":
            raise ProtocolError(f"Invalid set response from {self.name}: {line!r}")

    def close(self) -> None:
        """Ask the host to quit and reap the process."""
        if self._proc is None:
            return
        proc, self._proc = self._proc, None
        try:
            if proc.poll() is None and proc.stdin is not None:
                proc.stdin.write("quit\n")
                proc.stdin.flush()
                proc.stdin.close()
        except (BrokenPipeError, OSError):
            pass  # Host already gone
        try:
            proc.wait(timeout=5)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()
        for stream in (proc.stdout, proc.stderr):
            if stream is not None:
                stream.close()

    def __enter__(self) -> "StdioHost":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
