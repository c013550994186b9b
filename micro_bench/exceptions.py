"""micro-bench exceptions.

Errors local to one command (``HostError``) are recoverable: the host reports
them and keeps serving. Errors that break request/response framing
(``TransportError``) end the session.
"""

__all__ = [
    "MicroBenchError",
    "HostError",
    "BenchmarkNotFound",
    "InvalidRequest",
    "TransportError",
    "ProtocolError",
]


class MicroBenchError(Exception):
    """Base exception for all micro-bench errors."""


class HostError(MicroBenchError):
    """The host rejected a single command; the session continues.

    Attributes:
        command: The command that failed, if known.
    """

    def __init__(self, message: str, command: str | None = None):
        super().__init__(message)
        self.command = command


class BenchmarkNotFound(HostError):
    """No benchmark with the requested name or index."""


class InvalidRequest(HostError):
    """Malformed command, bad filter pattern, bad iteration count or bad setting."""


class TransportError(MicroBenchError):
    """Host unreachable, stream closed or stderr output; fatal to the session."""


class ProtocolError(TransportError):
    """Response could not be parsed; the channel is desynchronized."""
