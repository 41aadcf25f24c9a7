"""Pytest fixtures for switchpipe tests."""

from __future__ import annotations

import os
import shutil
import socket
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from hypothesis import Phase, Verbosity, settings

from switchpipe.config import AdvancedConfig, SwitchPipeConfig
from switchpipe.logs import reset_logging

_TEST_BASE_DIR = Path(tempfile.mkdtemp(prefix="sp-", dir="/tmp"))
os.environ["SWITCHPIPE_CONFIG_DIR"] = str(_TEST_BASE_DIR / "config")
os.environ["SWITCHPIPE_RUNTIME_DIR"] = str(_TEST_BASE_DIR / "run")

if TYPE_CHECKING:
    from collections.abc import Generator


settings.register_profile(
    "ci",
    max_examples=100,
    deadline=None,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
)
settings.register_profile(
    "dev",
    max_examples=20,
    deadline=500,
)
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
)
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "dev"))


@pytest.fixture(autouse=True)
def _reset_switchpipe_logging() -> Generator[None, None, None]:
    """Detach handlers installed by configure_logging between tests."""
    yield
    reset_logging()


@pytest.fixture
def short_tmp() -> Generator[Path, None, None]:
    """Create a short temp directory for Unix socket paths (macOS 104-byte limit)."""
    d = tempfile.mkdtemp(prefix="k-", dir="/tmp")
    yield Path(d)
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def socket_config(short_tmp: Path) -> SwitchPipeConfig:
    """Config whose local channel is a socket file inside ``short_tmp``."""
    return SwitchPipeConfig(
        pipe_name=str(short_tmp / "t.sock"),
        advanced=AdvancedConfig(drain_grace_ms=0),
    )


@pytest.fixture
def free_port() -> int:
    """Return a TCP port on the loopback interface that was free a moment ago."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]
