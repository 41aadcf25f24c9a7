"""Unit tests for the demo switch handler."""

from __future__ import annotations

import asyncio
import re

import pytest

from switchpipe.cli.commands.demo import INVALID_REPLY, DemoSwitches

pytestmark = pytest.mark.unit


class TestDemoSwitches:
    def test_date(self) -> None:
        assert re.fullmatch(r"[A-Z][a-z]{2} \d{2}-\d{2}-\d{4}", DemoSwitches()(["--date"]))

    def test_time(self) -> None:
        assert re.fullmatch(r"\d{1,2}:\d{2}:\d{2} \S+", DemoSwitches()(["--time"]))

    def test_switches_are_case_insensitive(self) -> None:
        assert DemoSwitches()(["--DATE"]) != INVALID_REPLY

    @pytest.mark.parametrize("args", [["--bogus"], ["--date", "--time"], []])
    def test_other_input_is_invalid(self, args: list[str]) -> None:
        assert DemoSwitches()(args) == INVALID_REPLY

    async def test_quit_acknowledges_then_signals(self) -> None:
        switches = DemoSwitches(quit_delay=0.01)

        reply = switches(["--quit"])

        assert reply == "Server quitting in 10ms"
        assert not switches.quit_requested.is_set()
        await asyncio.wait_for(switches.quit_requested.wait(), timeout=2)
