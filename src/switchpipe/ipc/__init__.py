"""Framing, endpoints, transports, client handshake and listener loops for switchpipe."""

from __future__ import annotations

from switchpipe.ipc.client import SendResult, SwitchClient, try_connect, try_send_args
from switchpipe.ipc.endpoint import LocalEndpoint, RemoteEndpoint, resolve_endpoint
from switchpipe.ipc.framing import decode_args, encode_args, encode_frame, read_frame
from switchpipe.ipc.server import ListenerLoop, LoopState, SwitchHandler
from switchpipe.ipc.session import Session
from switchpipe.ipc.supervisor import LaunchOutcome, SwitchServer, run_single_instance
from switchpipe.ipc.transports import LocalTransport, RemoteTransport

__all__ = [
    "LaunchOutcome",
    "ListenerLoop",
    "LocalEndpoint",
    "LocalTransport",
    "LoopState",
    "RemoteEndpoint",
    "RemoteTransport",
    "SendResult",
    "Session",
    "SwitchClient",
    "SwitchHandler",
    "SwitchServer",
    "decode_args",
    "encode_args",
    "encode_frame",
    "read_frame",
    "resolve_endpoint",
    "run_single_instance",
    "try_connect",
    "try_send_args",
]
