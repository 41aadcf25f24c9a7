"""Shared protocol constants."""

from __future__ import annotations

PREFIX_SIZE = 4  # uint32 little-endian payload length
DEFAULT_SEPARATOR = "\x14"
TEXT_ENCODING = "utf-8"

MIN_PORT = 1
MAX_PORT = 65535
DYNAMIC_PORT_START = 49152  # IANA dynamic/private range

__all__ = [
    "DEFAULT_SEPARATOR",
    "DYNAMIC_PORT_START",
    "MAX_PORT",
    "MIN_PORT",
    "PREFIX_SIZE",
    "TEXT_ENCODING",
]
