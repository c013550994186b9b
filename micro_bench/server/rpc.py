r"""
JSON-RPC control protocol over TCP.

Newline-delimited JSON objects, one request and one response at a time:

    -> {"id": 1, "method": "Server.Benchmarks", "params": ["."]}
    <- {"id": 1, "result": [0, 1, 2], "error": null}
    -> {"id": 2, "method": "Server.Run", "params": [{"I": 0, "N": 50}]}
    <- {"id": 2, "result": {"N": 50, "T": 12345, ...}, "error": null}

Connections are served one after another, so runs never overlap.

    from micro_bench.server import RpcServer

    RpcServer(host, ("127.0.0.1", 9998)).serve()
"""

import json
import logging
import math
import socketserver
from typing import Any

from micro_bench.exceptions import HostError, InvalidRequest
from micro_bench.host.executor import BenchmarkHost
from micro_bench.types import RunOutcome

__all__ = ["RpcServer", "outcome_to_dict"]

logger = logging.getLogger(__name__)


def outcome_to_dict(outcome: RunOutcome) -> dict[str, Any]:
    """Wire form of a RunOutcome."""
    return {
        "Name": outcome.name,
        "N": outcome.iterations,
        "T": outcome.elapsed_ns,
        "Bytes": outcome.bytes_processed,
        "MemAllocs": outcome.mem_allocs,
        "MemBytes": outcome.mem_bytes,
        "Failed": outcome.failed,
        "ShowAllocResult": outcome.show_alloc_result,
        "Error": outcome.error,
        "Warning": outcome.warning,
    }


def _single_param(params: Any) -> Any:
    if isinstance(params, list):
        return params[0] if params else None
    return params


def _int_field(args: dict[str, Any], key: str, *, required: bool = True) -> int | None:
    value = args.get(key)
    if value is None:
        if required:
            raise InvalidRequest(f"missing field {key!r}")
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidRequest(f"field {key!r} must be an integer, got {value!r}")
    return value


class _RpcHandler(socketserver.StreamRequestHandler):
    server: "RpcServer"

    def handle(self) -> None:
        logger.debug("RPC connection from %s", self.client_address)
        for raw in iter(self.rfile.readline, b""):
            if not raw.strip():
                continue
            response = self.server.handle_message(raw)
            self.wfile.write(json.dumps(response).encode("utf-8") + b"\n")
            self.wfile.flush()
            if self.server.quit_requested:
                break
        logger.debug("RPC connection closed: %s", self.client_address)


class RpcServer(socketserver.TCPServer):
    """Serves one host to RPC clients until ``Server.Quit``."""

    allow_reuse_address = True

    def __init__(self, host: BenchmarkHost, address: tuple[str, int]) -> None:
        super().__init__(address, _RpcHandler)
        self.host = host
        self.quit_requested = False
        self._methods = {
            "Server.Benchmarks": self.rpc_benchmarks,
            "Server.Describe": self.rpc_describe,
            "Server.Run": self.rpc_run,
            "Server.Set": self.rpc_set,
            "Server.Quit": self.rpc_quit,
        }

    @property
    def address(self) -> tuple[str, int]:
        """Bound address; useful when listening on port 0."""
        host, port = self.server_address[:2]
        return str(host), int(port)

    def serve(self) -> None:
        """Accept connections one at a time until a client calls ``Server.Quit``."""
        logger.info("Serving benchmarks on %s:%d", *self.address)
        try:
            while not self.quit_requested:
                self.handle_request()
        finally:
            self.server_close()

    def handle_message(self, raw: bytes) -> dict[str, Any]:
        """Decode one request and return the response object."""
        try:
            request = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            return {"id": None, "result": None, "error": f"malformed request: {e}"}
        if not isinstance(request, dict):
            return {"id": None, "result": None, "error": "malformed request: expected an object"}

        request_id = request.get("id")
        name = request.get("method")
        method = self._methods.get(name) if isinstance(name, str) else None
        if method is None:
            return {"id": request_id, "result": None, "error": f"rpc: can't find method {name!r}"}

        try:
            result = method(request.get("params"))
        except HostError as e:
            logger.debug("RPC %s failed: %s", name, e)
            return {"id": request_id, "result": None, "error": str(e)}
        except (TypeError, ValueError, OverflowError) as e:
            logger.debug("RPC %s rejected: %s", name, e)
            return {"id": request_id, "result": None, "error": f"invalid params: {e}"}
        return {"id": request_id, "result": result, "error": None}

    def rpc_benchmarks(self, params: Any) -> list[int]:
        pattern = _single_param(params)
        if pattern is None:
            pattern = "."
        if not isinstance(pattern, str):
            raise InvalidRequest(f"filter must be a string, got {pattern!r}")
        return self.host.list(pattern)

    def rpc_describe(self, params: Any) -> list[list[Any]]:
        pattern = _single_param(params)
        if pattern is None:
            pattern = "."
        if not isinstance(pattern, str):
            raise InvalidRequest(f"filter must be a string, got {pattern!r}")
        return [[i, name] for i, name in self.host.describe(pattern)]

    def rpc_run(self, params: Any) -> dict[str, Any]:
        args = _single_param(params)
        if not isinstance(args, dict):
            raise InvalidRequest("Run expects an object with fields I and N")
        index = _int_field(args, "I")
        parallelism = _int_field(args, "P", required=False)
        duration = args.get("D")
        if duration is not None:
            if not isinstance(duration, (int, float)) or isinstance(duration, bool):
                raise InvalidRequest(f"field 'D' must be a number of seconds, got {duration!r}")
            duration_ns = duration * 1e9
            if not math.isfinite(duration_ns) or duration_ns < 1:
                raise InvalidRequest(f"field 'D' must be a positive finite duration, got {duration!r}")
            outcome = self.host.run_for(index, int(duration_ns), parallelism)
        else:
            outcome = self.host.run(index, _int_field(args, "N"), parallelism)
        return outcome_to_dict(outcome)

    def rpc_set(self, params: Any) -> bool:
        args = _single_param(params)
        if not isinstance(args, dict) or "Key" not in args or "Value" not in args:
            raise InvalidRequest("Set expects an object with fields Key and Value")
        self.host.set(str(args["Key"]), args["Value"])
        return True

    def rpc_quit(self, params: Any) -> bool:
        self.quit_requested = True
        return True
