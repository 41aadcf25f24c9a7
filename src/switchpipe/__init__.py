"""switchpipe: forward command-line switches to an already-running instance."""

from switchpipe.config import AdvancedConfig, SwitchPipeConfig
from switchpipe.errors import (
    ArgumentError,
    EmptyArgsError,
    LoopFatalError,
    OversizedMessageError,
    ProbeError,
    SwitchPipeError,
)
from switchpipe.ipc import (
    LaunchOutcome,
    SendResult,
    SwitchClient,
    SwitchServer,
    resolve_endpoint,
    run_single_instance,
    try_connect,
    try_send_args,
)

__version__ = "0.1.0"

__all__ = [
    "AdvancedConfig",
    "ArgumentError",
    "EmptyArgsError",
    "LaunchOutcome",
    "LoopFatalError",
    "OversizedMessageError",
    "ProbeError",
    "SendResult",
    "SwitchClient",
    "SwitchPipeConfig",
    "SwitchPipeError",
    "SwitchServer",
    "resolve_endpoint",
    "run_single_instance",
    "try_connect",
    "try_send_args",
]
