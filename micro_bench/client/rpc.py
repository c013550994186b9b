r"""
RPC transport: talk to a host serving JSON-RPC over TCP.

    from micro_bench.client import RpcHost

    with RpcHost("127.0.0.1:9998") as host:
        for index in host.benchmarks("."):
            print(host.run(index, 50))
"""

from __future__ import annotations

import itertools
import json
import logging
import socket
from typing import Any

from micro_bench.config import parse_address
from micro_bench.exceptions import BenchmarkNotFound, InvalidRequest, ProtocolError, TransportError
from micro_bench.types import RunOutcome

__all__ = ["RpcHost", "outcome_from_dict"]

logger = logging.getLogger(__name__)


def outcome_from_dict(data: dict[str, Any]) -> RunOutcome:
    """Build a RunOutcome from its wire form.

    Raises:
        ProtocolError: If required fields are missing or mistyped.
    """
    try:
        return RunOutcome(
            name=str(data.get("Name", "")),
            iterations=int(data["N"]),
            elapsed_ns=int(data["T"]),
            bytes_processed=int(data.get("Bytes", 0)),
            mem_allocs=int(data.get("MemAllocs", 0)),
            mem_bytes=int(data.get("MemBytes", 0)),
            failed=bool(data.get("Failed", False)),
            show_alloc_result=bool(data.get("ShowAllocResult", False)),
            error=data.get("Error"),
            warning=data.get("Warning"),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ProtocolError(f"Invalid benchmark result: {data!r}") from e


class RpcHost:
    """Client for one host serving the RPC protocol."""

    def __init__(self, address: str | tuple[str, int], *, name: str | None = None, timeout: float | None = None):
        self.address = parse_address(address) if isinstance(address, str) else address
        self.name = name or f"tcp://{self.address[0]}:{self.address[1]}"
        self.timeout = timeout
        self._sock: socket.socket | None = None
        self._file: Any = None
        self._ids = itertools.count(1)
        self._indices: dict[str, int] = {}

    @property
    def connected(self) -> bool:
        return self._sock is not None

    def start(self) -> None:
        """Connect to the host.

        Raises:
            TransportError: If the host is unreachable.
        """
        if self._sock is not None:
            return
        try:
            self._sock = socket.create_connection(self.address, timeout=self.timeout)
        except OSError as e:
            raise TransportError(f"Failed to connect to {self.name}: {e}") from e
        self._file = self._sock.makefile("rwb")

    def call(self, method: str, params: Any) -> Any:
        """Send one request and return its result.

        Raises:
            BenchmarkNotFound: Unknown benchmark index.
            InvalidRequest: Any other error reported by the host.
            TransportError: Connection lost.
            ProtocolError: Response is not valid JSON-RPC.
        """
        if self._file is None:
            raise TransportError(f"Not connected to {self.name}")
        request_id = next(self._ids)
        payload = json.dumps({"id": request_id, "method": method, "params": [params]})
        logger.debug("-> %s", payload)
        try:
            self._file.write(payload.encode("utf-8") + b"\n")
            self._file.flush()
            raw = self._file.readline()
        except OSError as e:
            raise TransportError(f"Call to {self.name} failed: {e}") from e
        if not raw:
            raise TransportError(f"Connection closed by {self.name}")
        logger.debug("<- %s", raw.decode("utf-8", "replace").rstrip())

        try:
            response = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ProtocolError(f"Invalid JSON response from {self.name}: {e}") from e
        if not isinstance(response, dict) or response.get("id") != request_id:
            raise ProtocolError(f"Unexpected response from {self.name}: {raw!r}")

        error = response.get("error")
        if error:
            if str(error).startswith("benchmark not found"):
                raise BenchmarkNotFound(str(error), command=method)
            raise InvalidRequest(str(error), command=method)
        return response.get("result")

    def benchmarks(self, pattern: str = ".") -> list[int]:
        """Indices of benchmarks matching ``pattern``."""
        result = self.call("Server.Benchmarks", pattern)
        if not isinstance(result, list):
            raise ProtocolError(f"Invalid Benchmarks response from {self.name}: {result!r}")
        return [int(i) for i in result]

    def describe(self, pattern: str = ".") -> list[tuple[int, str]]:
        result = self.call("Server.Describe", pattern)
        if not isinstance(result, list):
            raise ProtocolError(f"Invalid Describe response from {self.name}: {result!r}")
        try:
            pairs = [(int(i), str(name)) for i, name in result]
        except (TypeError, ValueError) as e:
            raise ProtocolError(f"Invalid Describe response from {self.name}: {result!r}") from e
        for index, name in pairs:
            self._indices.setdefault(name, index)
        return pairs

    def list(self, pattern: str = ".") -> list[str]:
        """Names of benchmarks matching ``pattern``."""
        return [name for _, name in self.describe(pattern)]

    def _index(self, benchmark: str | int) -> int:
        if isinstance(benchmark, int):
            return benchmark
        if benchmark.startswith("#") and benchmark[1:].isdigit():
            return int(benchmark[1:])
        if benchmark not in self._indices:
            self.describe(".")
        if benchmark not in self._indices:
            raise BenchmarkNotFound(f"benchmark not found: {benchmark}", command="Server.Run")
        return self._indices[benchmark]

    def run(self, benchmark: str | int, iterations: int, parallelism: int = 1) -> RunOutcome:
        """Run ``benchmark`` for exactly ``iterations`` iterations."""
        result = self.call("Server.Run", {"I": self._index(benchmark), "N": iterations, "P": parallelism})
        if not isinstance(result, dict):
            raise ProtocolError(f"Invalid Run response from {self.name}: {result!r}")
        return outcome_from_dict(result)

    def run_for(self, benchmark: str | int, seconds: float, parallelism: int = 1) -> RunOutcome:
        """Run ``benchmark`` with an iteration count calibrated to ``seconds``."""
        result = self.call("Server.Run", {"I": self._index(benchmark), "D": seconds, "P": parallelism})
        if not isinstance(result, dict):
            raise ProtocolError(f"Invalid Run response from {self.name}: {result!r}")
        return outcome_from_dict(result)

    def set(self, key: str, value: str | bool | int) -> None:
        self.call("Server.Set", {"Key": key, "Value": value})

    def quit(self) -> None:
        """Stop the remote server, then disconnect."""
        self.call("Server.Quit", None)
        self.close()

    def close(self) -> None:
        if self._sock is None:
            return
        try:
            self._file.close()
            self._sock.close()
        except OSError:
            pass  # Ignore close errors
        finally:
            self._sock = None
            self._file = None

    def __enter__(self) -> "RpcHost":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
