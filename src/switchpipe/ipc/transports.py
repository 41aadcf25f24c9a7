"""Transport implementations for the switch channel.

``LocalTransport`` speaks over a Unix domain socket (POSIX only);
``RemoteTransport`` is the unsecured TCP fallback. Both hand out
:class:`~switchpipe.ipc.session.Session` objects and differ only in how a
connection is opened, how outbound size is bounded, and what happens after
a write has been flushed.
"""

from __future__ import annotations

import asyncio
import contextlib
import errno
import logging
import os
import platform
import socket
import struct
import sys
from typing import TYPE_CHECKING, Protocol

from switchpipe.ipc.session import Session

if TYPE_CHECKING:
    from pathlib import Path

    from switchpipe.config import SwitchPipeConfig
    from switchpipe.ipc.endpoint import Endpoint, LocalEndpoint, RemoteEndpoint

logger = logging.getLogger(__name__)

_BACKLOG = 16
_DRAIN_POLL_SECONDS = 0.005
_STALE_PROBE_SECONDS = 0.1


class Transport(Protocol):
    """Capabilities the client handshake and listener loop rely on."""

    name: str

    @property
    def supports_drain(self) -> bool: ...

    async def connect(self, endpoint: Endpoint, timeout: float | None) -> Session | None: ...

    async def open_listener(self, endpoint: Endpoint) -> Listener: ...

    def buffer_limit(self, session: Session) -> int | None: ...

    async def after_write(self, session: Session) -> None: ...


# ---------------------------------------------------------------------------
# Listener
# ---------------------------------------------------------------------------


class Listener:
    """A bound, listening socket that hands out one session per ``accept``."""

    def __init__(
        self,
        sock: socket.socket,
        *,
        transport: Transport,
        description: str,
        owned_path: Path | None = None,
    ) -> None:
        self._sock = sock
        self._transport = transport
        self._description = description
        self._owned_path = owned_path
        self._owned_inode = _inode(owned_path) if owned_path is not None else None

    def describe(self) -> str:
        return self._description

    async def accept(self, stop_event: asyncio.Event) -> Session | None:
        """Wait for one connection, or return ``None`` once *stop_event* is set."""
        if stop_event.is_set():
            return None
        loop = asyncio.get_running_loop()
        accept_task = asyncio.ensure_future(loop.sock_accept(self._sock))
        stop_task = asyncio.ensure_future(stop_event.wait())
        try:
            await asyncio.wait({accept_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop_task.cancel()
            if not accept_task.done():
                accept_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await accept_task

        if accept_task.cancelled():
            return None
        conn, address = accept_task.result()
        peer = _format_peer(address, fallback=self._description)
        try:
            if self._sock.family == getattr(socket, "AF_UNIX", None):
                reader, writer = await asyncio.open_unix_connection(sock=conn)
            else:
                reader, writer = await asyncio.open_connection(sock=conn)
        except BaseException:
            conn.close()
            raise
        return Session(reader, writer, transport=self._transport, peer=peer)

    async def close(self) -> None:
        self._sock.close()
        if self._owned_path is not None and _inode(self._owned_path) == self._owned_inode:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(self._owned_path)
        logger.debug("Listener on %s closed", self._description)


def _inode(path: Path) -> int | None:
    try:
        return os.stat(path).st_ino
    except OSError:
        return None


def _format_peer(address: object, *, fallback: str) -> str:
    if isinstance(address, tuple) and len(address) >= 2:
        return f"{address[0]}:{address[1]}"
    return fallback


# ---------------------------------------------------------------------------
# Unix socket transport
# ---------------------------------------------------------------------------


def _socket_unread_bytes(sock: object) -> int:
    """Bytes written to a Unix socket that the peer has not consumed yet."""
    import fcntl
    import termios

    raw = fcntl.ioctl(sock.fileno(), termios.TIOCOUTQ, b"\0" * 4)  # type: ignore[attr-defined]
    return struct.unpack("i", raw)[0]


def _platform_has_drain_primitive() -> bool:
    if not sys.platform.startswith("linux"):
        return False
    try:
        import termios
    except ImportError:
        return False
    return hasattr(termios, "TIOCOUTQ")


class LocalTransport:
    """Switch transport over Unix domain sockets.

    Only available on macOS and Linux. On Windows this class raises
    ``NotImplementedError`` at construction time.
    """

    name = "local"

    def __init__(self, config: SwitchPipeConfig) -> None:
        if platform.system() == "Windows":
            msg = "Unix sockets are not supported on Windows"
            raise NotImplementedError(msg)
        self._config = config
        self._supports_drain = _platform_has_drain_primitive()

    @property
    def supports_drain(self) -> bool:
        """Whether the OS can report when the peer has read everything sent."""
        return self._supports_drain

    async def connect(self, endpoint: LocalEndpoint, timeout: float | None) -> Session | None:
        """Connect to *endpoint*, returning ``None`` when nobody is listening."""
        path = str(endpoint.path)
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_unix_connection(path),
                timeout=timeout,
            )
        except TimeoutError:
            logger.debug("Timed out after %ss connecting to %s", timeout, endpoint)
            return None
        except (FileNotFoundError, ConnectionRefusedError):
            logger.debug("Nothing is listening on %s", endpoint)
            return None
        return Session(reader, writer, transport=self, peer=str(endpoint))

    async def open_listener(self, endpoint: LocalEndpoint) -> Listener:
        """Bind a listening Unix socket at the endpoint path.

        A stale socket file left by a dead instance is removed first; a live
        one raises ``OSError(EADDRINUSE)``.
        """
        path = endpoint.path
        path.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(_remove_stale_socket, path)

        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.bind(str(path))
            os.chmod(path, 0o600)
            sock.listen(_BACKLOG)
            sock.setblocking(False)
        except OSError:
            sock.close()
            raise
        logger.info("Unix socket listener bound on %s (%s)", path, endpoint.name)
        return Listener(sock, transport=self, description=str(endpoint), owned_path=path)

    def buffer_limit(self, session: Session) -> int | None:
        return None

    async def after_write(self, session: Session) -> None:
        """Wait for the peer to read what was just flushed.

        With a drain primitive the wait ends as soon as nothing is left
        unread; without one the full grace period is slept.
        """
        grace = self._config.advanced.drain_grace
        if grace <= 0:
            return
        if not self._supports_drain:
            await asyncio.sleep(grace)
            return

        sock = session.writer.get_extra_info("socket")
        if sock is None:
            await asyncio.sleep(grace)
            return
        deadline = asyncio.get_running_loop().time() + grace
        while asyncio.get_running_loop().time() < deadline:
            try:
                if _socket_unread_bytes(sock) == 0:
                    return
            except OSError:
                return
            await asyncio.sleep(_DRAIN_POLL_SECONDS)
        logger.debug("Peer %s had not drained the socket after %ss", session.peer, grace)


def _remove_stale_socket(path: Path) -> None:
    if not path.exists():
        return
    probe = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    probe.settimeout(_STALE_PROBE_SECONDS)
    try:
        probe.connect(str(path))
    except (ConnectionRefusedError, FileNotFoundError, TimeoutError):
        logger.info("Removing stale socket file %s", path)
        with contextlib.suppress(FileNotFoundError):
            os.unlink(path)
        return
    finally:
        probe.close()
    msg = f"Another instance is already listening on {path}"
    raise OSError(errno.EADDRINUSE, msg)


# ---------------------------------------------------------------------------
# TCP transport
# ---------------------------------------------------------------------------


class RemoteTransport:
    """Unsecured switch transport over TCP.

    There is no authentication on this channel. Do not expose it to
    untrusted networks.
    """

    name = "remote"

    def __init__(self, config: SwitchPipeConfig) -> None:
        self._config = config

    @property
    def supports_drain(self) -> bool:
        return False

    async def connect(self, endpoint: RemoteEndpoint, timeout: float | None) -> Session | None:
        """Connect to *endpoint*, returning ``None`` when the host refuses."""
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(
                    endpoint.host,
                    endpoint.port,
                    family=self._config.advanced.address_family,
                ),
                timeout=timeout,
            )
        except ConnectionRefusedError:
            logger.debug("Connection refused by %s", endpoint)
            return None
        except TimeoutError:
            logger.debug("Timed out after %ss connecting to %s", timeout, endpoint)
            return None
        return Session(reader, writer, transport=self, peer=str(endpoint))

    async def open_listener(self, endpoint: RemoteEndpoint) -> Listener:
        """Bind a TCP listener on the endpoint host and port."""
        sock = socket.create_server(
            (endpoint.host, endpoint.port),
            family=_listen_family(endpoint.host),
            backlog=_BACKLOG,
        )
        sock.setblocking(False)
        logger.warning(
            "Unsecured TCP switch listener bound on %s:%d; do not expose it to untrusted networks",
            endpoint.host,
            endpoint.port,
        )
        return Listener(sock, transport=self, description=str(endpoint))

    def buffer_limit(self, session: Session) -> int | None:
        """Smaller of the socket's send and receive buffer sizes."""
        sock = session.writer.get_extra_info("socket")
        if sock is None:
            return None
        sndbuf = sock.getsockopt(socket.SOL_SOCKET, socket.SO_SNDBUF)
        rcvbuf = sock.getsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF)
        return min(sndbuf, rcvbuf)

    async def after_write(self, session: Session) -> None:
        return None


def _listen_family(host: str) -> socket.AddressFamily:
    return socket.AF_INET6 if ":" in host else socket.AF_INET


__all__ = [
    "Listener",
    "LocalTransport",
    "RemoteTransport",
    "Transport",
]
