"""One request/reply exchange over a single connection."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from switchpipe.constants import PREFIX_SIZE
from switchpipe.errors import OversizedMessageError
from switchpipe.ipc.framing import encode_frame, read_frame

if TYPE_CHECKING:
    from switchpipe.ipc.transports import Transport

logger = logging.getLogger(__name__)


class Session:
    """Owns one connection from accept/connect until close.

    A session carries at most one request and one reply. Writes go through
    the owning transport's post-write step, so callers see the same
    ``send``/``receive``/``close`` surface on every transport.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        *,
        transport: Transport,
        peer: str,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._transport = transport
        self._peer = peer

    @property
    def peer(self) -> str:
        """Printable description of the remote end."""
        return self._peer

    @property
    def writer(self) -> asyncio.StreamWriter:
        return self._writer

    @property
    def is_closing(self) -> bool:
        return self._writer.is_closing()

    async def send(self, text: str) -> None:
        """Frame and write *text*, then run the transport's drain step.

        Raises:
            OversizedMessageError: When the transport has a buffer limit and
                the frame exceeds it. Nothing is written in that case.
            OSError: On transport faults while writing.
        """
        frame = encode_frame(text)
        limit = self._transport.buffer_limit(self)
        if limit is not None and len(frame) > limit:
            raise OversizedMessageError(len(frame), limit)

        logger.debug("Sending %d bytes to %s", len(frame) - PREFIX_SIZE, self._peer)
        self._writer.write(frame)
        await self._writer.drain()
        await self._transport.after_write(self)

    async def receive(self) -> str:
        """Read one framed message.

        A peer that closed without sending is a normal empty message. Other
        transport faults are logged and also reported as an empty message.
        """
        try:
            text = await read_frame(self._reader)
        except (asyncio.IncompleteReadError, ConnectionError, OSError, UnicodeDecodeError) as exc:
            logger.warning("%s while reading from %s", type(exc).__name__, self._peer)
            return ""
        logger.debug("Received %d characters from %s", len(text), self._peer)
        return text

    async def close(self) -> None:
        """Close the connection, tolerating a peer that already disconnected."""
        if self._writer.is_closing():
            logger.debug("Connection to %s was already closed by the peer", self._peer)
        try:
            self._writer.close()
            await self._writer.wait_closed()
        except (ConnectionError, OSError):
            logger.debug("Peer %s disconnected before close completed", self._peer)

    async def __aenter__(self) -> Session:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()


__all__ = ["Session"]
