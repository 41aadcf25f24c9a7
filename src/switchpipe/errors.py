"""Error types raised by the single-instance coordination layer."""

from __future__ import annotations


class SwitchPipeError(Exception):
    """Base for switchpipe errors with a machine-readable code."""

    code: str = "SWITCHPIPE_ERROR"


class ArgumentError(SwitchPipeError, ValueError):
    """Raised for contradictory or out-of-range endpoint settings."""

    code = "ARGUMENT_ERROR"


class EmptyArgsError(SwitchPipeError, ValueError):
    """Raised when a running instance was found but there is nothing to forward."""

    code = "EMPTY_ARGS"

    def __init__(self) -> None:
        super().__init__("No arguments were provided to pass to the already-running instance")


class OversizedMessageError(SwitchPipeError, ValueError):
    """Raised before any I/O when a frame does not fit in one socket buffer."""

    code = "OVERSIZED_MESSAGE"

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"Message of {size} bytes exceeds the {limit}-byte transport buffer")
        self.size = size
        self.limit = limit


class ProbeError(SwitchPipeError, ConnectionError):
    """Raised when probing for a running instance fails for a reason other than absence."""

    code = "PROBE_FAILED"


class LoopFatalError(SwitchPipeError, RuntimeError):
    """Raised when a listener loop faulted and will not be restarted."""

    code = "LOOP_FATAL"

    def __init__(self, transport: str, error: BaseException) -> None:
        super().__init__(
            f"Listener loop for {transport} transport failed: {type(error).__name__}: {error}"
        )
        self.transport = transport
        self.error = error


__all__ = [
    "ArgumentError",
    "EmptyArgsError",
    "LoopFatalError",
    "OversizedMessageError",
    "ProbeError",
    "SwitchPipeError",
]
