"""Path helpers for switchpipe configuration and local-channel sockets."""

from __future__ import annotations

import hashlib
import os
import re
import sys
from pathlib import Path

from platformdirs import user_config_dir, user_runtime_dir

_APP_NAME = "switchpipe"
_SLUG_MAX_CHARS = 24
_HASH_CHARS = 16
_SOCKET_SUFFIX = ".sock"
_SLUG_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def get_config_dir() -> Path:
    """Get the config directory for switchpipe (config.toml)."""
    override = os.environ.get("SWITCHPIPE_CONFIG_DIR")
    if override:
        return Path(override).resolve()
    return Path(user_config_dir(_APP_NAME))


def get_config_path() -> Path:
    """Get the path to the main config file."""
    return get_config_dir() / "config.toml"


def get_runtime_dir() -> Path:
    """Get the directory that holds local-channel socket files.

    Socket paths are limited to roughly 100 bytes on POSIX, so this should
    stay short. ``SWITCHPIPE_RUNTIME_DIR`` overrides the platform default.
    """
    override = os.environ.get("SWITCHPIPE_RUNTIME_DIR")
    if override:
        return Path(override).resolve()
    return Path(user_runtime_dir(_APP_NAME))


def program_identity() -> str:
    """Return the invoking program's identity, used as the default channel name."""
    argv0 = sys.argv[0] if sys.argv else ""
    if not argv0 or argv0 == "-c":
        return sys.executable
    return str(Path(argv0).resolve())


def _hash_name(name: str) -> str:
    return hashlib.sha256(name.encode("utf-8")).hexdigest()[:_HASH_CHARS]


def _slug(name: str) -> str:
    base = os.path.basename(name.rstrip("/\\")) or "switchpipe"
    slug = _SLUG_UNSAFE.sub("_", base).strip("._") or "switchpipe"
    return slug[:_SLUG_MAX_CHARS]


def socket_path_for(name: str) -> Path:
    """Map a local-channel name to a socket file path.

    An absolute name ending in ``.sock`` is used as-is. Any other name is
    reduced to ``<slug>-<hash>.sock`` inside the runtime directory so that
    program paths of any length map deterministically to a valid socket.
    """
    candidate = Path(name)
    if candidate.is_absolute() and candidate.suffix == _SOCKET_SUFFIX:
        return candidate
    return get_runtime_dir() / f"{_slug(name)}-{_hash_name(name)}{_SOCKET_SUFFIX}"


__all__ = [
    "get_config_dir",
    "get_config_path",
    "get_runtime_dir",
    "program_identity",
    "socket_path_for",
]
