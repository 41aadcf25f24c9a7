"""Endpoint resolution for the local channel and the optional TCP channel."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from switchpipe.constants import DYNAMIC_PORT_START, MAX_PORT, MIN_PORT
from switchpipe.errors import ArgumentError
from switchpipe.paths import program_identity, socket_path_for

if TYPE_CHECKING:
    from switchpipe.config import SwitchPipeConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LocalEndpoint:
    """A host-local named channel.

    Attributes:
        name: Channel name (explicit, or the program identity).
        path: Unix socket file the name maps to.
    """

    name: str
    path: Path

    @classmethod
    def named(cls, name: str) -> LocalEndpoint:
        return cls(name=name, path=socket_path_for(name))

    def __str__(self) -> str:
        return f"local://{self.name}"


@dataclass(frozen=True, slots=True)
class RemoteEndpoint:
    """An unsecured TCP endpoint."""

    host: str
    port: int

    def __str__(self) -> str:
        return f"tcp://{self.host}:{self.port}"


type Endpoint = LocalEndpoint | RemoteEndpoint


def is_reserved_port(port: int) -> bool:
    """Whether *port* lies below the dynamic/private range."""
    return port < DYNAMIC_PORT_START


def validate_port(port: int) -> int:
    """Check *port* against the TCP range, warning for possibly reserved ports."""
    if not MIN_PORT <= port <= MAX_PORT:
        msg = f"Port {port} is outside the range {MIN_PORT}-{MAX_PORT}"
        raise ArgumentError(msg)
    if is_reserved_port(port):
        logger.warning(
            "Port %d is below %d and may be reserved by another service",
            port,
            DYNAMIC_PORT_START,
        )
    return port


def resolve_endpoint(
    name: str | None = None,
    host: str | None = None,
    port: int = 0,
) -> Endpoint:
    """Resolve a local or remote endpoint from optional name/host/port settings.

    Raises:
        ArgumentError: For a port without a host, or a host with an invalid port.
    """
    if not host or not host.strip():
        if port:
            msg = "Local endpoints do not take a port; specify a host for TCP"
            raise ArgumentError(msg)
        channel = name.strip() if name and name.strip() else program_identity()
        return LocalEndpoint.named(channel)

    if name and name.strip():
        msg = "Remote endpoints do not take a local channel name"
        raise ArgumentError(msg)
    return RemoteEndpoint(host=host.strip(), port=validate_port(port))


def resolve_local(config: SwitchPipeConfig) -> LocalEndpoint:
    """Return the configured local endpoint."""
    endpoint = resolve_endpoint(name=config.pipe_name)
    assert isinstance(endpoint, LocalEndpoint)
    return endpoint


__all__ = [
    "Endpoint",
    "LocalEndpoint",
    "RemoteEndpoint",
    "is_reserved_port",
    "resolve_endpoint",
    "resolve_local",
    "validate_port",
]
