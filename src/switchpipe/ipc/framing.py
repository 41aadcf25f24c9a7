"""Length-prefixed message framing shared by the local and remote transports.

A frame is a ``uint32`` little-endian byte count followed by that many bytes
of UTF-8 text. Requests carry an argument list in which every argument is
followed by a reserved separator character; replies carry literal text.

The separator is not escaped. An argument that itself contains the separator
is split at that point when decoded.
"""

from __future__ import annotations

import asyncio
import struct
from typing import TYPE_CHECKING

from switchpipe.constants import DEFAULT_SEPARATOR, PREFIX_SIZE, TEXT_ENCODING

if TYPE_CHECKING:
    from collections.abc import Iterable

_PREFIX = struct.Struct("<I")


def encode_frame(text: str) -> bytes:
    """Encode *text* as a length-prefixed frame."""
    payload = text.encode(TEXT_ENCODING)
    return _PREFIX.pack(len(payload)) + payload


def frame_size(text: str) -> int:
    """Return the number of bytes :func:`encode_frame` produces for *text*."""
    return PREFIX_SIZE + len(text.encode(TEXT_ENCODING))


async def read_frame(reader: asyncio.StreamReader) -> str:
    """Read one frame from *reader* and return its text.

    A peer that closed without sending anything yields an empty string.
    A prefix or payload cut short by the peer raises
    ``asyncio.IncompleteReadError``.
    """
    try:
        header = await reader.readexactly(PREFIX_SIZE)
    except asyncio.IncompleteReadError as exc:
        if not exc.partial:
            return ""
        raise
    (size,) = _PREFIX.unpack(header)
    if size == 0:
        return ""
    payload = await reader.readexactly(size)
    return payload.decode(TEXT_ENCODING)


def encode_args(args: Iterable[str], separator: str = DEFAULT_SEPARATOR) -> str:
    """Join *args* into one message, each argument followed by *separator*."""
    return "".join(f"{arg}{separator}" for arg in args)


def decode_args(message: str, separator: str = DEFAULT_SEPARATOR) -> list[str]:
    """Split a message back into arguments, discarding empty fragments."""
    return [part for part in message.split(separator) if part]


__all__ = [
    "decode_args",
    "encode_args",
    "encode_frame",
    "frame_size",
    "read_frame",
]
