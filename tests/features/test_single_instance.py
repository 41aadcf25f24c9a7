"""Feature tests: a named application forwarding switches to its running instance."""

from __future__ import annotations

import asyncio
import re
import sys
from typing import TYPE_CHECKING

import pytest

from switchpipe.cli.commands.demo import DemoSwitches
from switchpipe.config import AdvancedConfig, SwitchPipeConfig
from switchpipe.ipc.client import SwitchClient
from switchpipe.ipc.server import LoopState
from switchpipe.ipc.supervisor import run_single_instance
from switchpipe.logs import configure_logging
from tests.helpers.wait import wait_until

if TYPE_CHECKING:
    from pathlib import Path

pytestmark = [
    pytest.mark.features,
    pytest.mark.skipif(sys.platform == "win32", reason="Unix sockets unavailable on Windows"),
]


@pytest.fixture
def app1_config(monkeypatch: pytest.MonkeyPatch, short_tmp: Path) -> SwitchPipeConfig:
    monkeypatch.setenv("SWITCHPIPE_RUNTIME_DIR", str(short_tmp))
    return SwitchPipeConfig(pipe_name="app1", advanced=AdvancedConfig(drain_grace_ms=50))


async def test_app1_date_then_quit(app1_config: SwitchPipeConfig) -> None:
    """A serves, B asks for the date, C tells A to quit, A stops listening."""
    switches = DemoSwitches(quit_delay=0.05)
    instance_a = await run_single_instance(switches, app1_config, [])
    server = instance_a.server
    assert server is not None

    try:
        instance_b = await run_single_instance(DemoSwitches(), app1_config, ["--date"])
        assert instance_b.forwarded
        assert re.fullmatch(r"[A-Z][a-z]{2} \d{2}-\d{2}-\d{4}", instance_b.reply)

        instance_c = await run_single_instance(DemoSwitches(), app1_config, ["--quit"])
        assert instance_c.forwarded
        assert instance_c.reply.startswith("Server quitting")

        await asyncio.wait_for(switches.quit_requested.wait(), timeout=5)
        server.request_stop()
        await asyncio.wait_for(server.wait(), timeout=5)
    finally:
        await server.stop()

    await wait_until(
        lambda: all(loop.state is LoopState.STOPPED for loop in server.loops),
        description="loops stopped",
    )
    assert await SwitchClient(app1_config).try_connect() is False


async def test_progress_messages_reach_the_sink(app1_config: SwitchPipeConfig) -> None:
    messages: list[str] = []
    configure_logging(app1_config, sink=lambda _level, msg: messages.append(msg))

    instance = await run_single_instance(DemoSwitches(), app1_config, [])
    assert instance.server is not None
    try:
        await run_single_instance(DemoSwitches(), app1_config, ["--time"])
    finally:
        await instance.server.stop()

    assert "No running instance found" in messages
    assert any(m.startswith("Switch client") and "has connected" in m for m in messages)
    assert "Switches sent, this instance can terminate normally" in messages
