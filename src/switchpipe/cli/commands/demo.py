"""Demo application that answers --date, --time and --quit switches."""

from __future__ import annotations

import asyncio
import sys
from datetime import datetime
from typing import TYPE_CHECKING

import click

from switchpipe.errors import LoopFatalError, SwitchPipeError
from switchpipe.ipc.supervisor import run_single_instance

if TYPE_CHECKING:
    from collections.abc import Sequence

    from switchpipe.config import SwitchPipeConfig

DEFAULT_DEMO_NAME = "switchpipe-demo"
INVALID_REPLY = (
    "Invalid argument list, the listening server only accepts a --date, --time, or --quit switch."
)


class DemoSwitches:
    """Switch handler for the demo application.

    ``--quit`` sets :attr:`quit_requested` after *quit_delay* seconds so the
    reply reaches the sender before the server goes away.
    """

    def __init__(self, *, quit_delay: float = 1.0) -> None:
        self.quit_delay = quit_delay
        self.quit_requested = asyncio.Event()

    def __call__(self, args: Sequence[str]) -> str:
        if len(args) != 1:
            return INVALID_REPLY
        switch = args[0].lower()
        now = datetime.now()
        if switch == "--date":
            return now.strftime("%a %m-%d-%Y")
        if switch == "--time":
            return now.strftime("%I:%M:%S %p").lstrip("0")
        if switch == "--quit":
            loop = asyncio.get_running_loop()
            loop.call_later(self.quit_delay, self.quit_requested.set)
            return f"Server quitting in {int(self.quit_delay * 1000)}ms"
        return INVALID_REPLY


async def run_demo(config: SwitchPipeConfig, args: Sequence[str]) -> int:
    """Run the demo as client or server and return the process exit code."""
    switches = DemoSwitches()
    outcome = await run_single_instance(switches, config, args)

    if outcome.forwarded:
        click.echo(outcome.reply or "(no reply)")
        return 0
    if outcome.instance_found:
        click.secho("An instance is already running and there was nothing to send.", fg="yellow")
        return 1

    server = outcome.server
    assert server is not None
    if outcome.initial_reply:
        click.echo(outcome.initial_reply)
    click.secho(f"Listening on {server.local_endpoint}", fg="green", bold=True)
    if server.remote_endpoint is not None:
        click.echo(f"Also listening on {server.remote_endpoint}")
    click.echo("Launch again with --date, --time or --quit.")

    quit_task = asyncio.create_task(switches.quit_requested.wait())
    wait_task = asyncio.create_task(server.wait())
    try:
        await asyncio.wait({quit_task, wait_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        quit_task.cancel()
        await server.stop()

    try:
        await wait_task
    except LoopFatalError as exc:
        click.secho(f"Fatal: {exc}", fg="red", err=True)
        return 2
    click.echo("Server stopped.")
    return 0


@click.command(context_settings={"ignore_unknown_options": True})
@click.option("--name", default=DEFAULT_DEMO_NAME, show_default=True, help="Local channel name")
@click.option("--port", type=int, default=0, help="Also listen for switches on this TCP port")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.pass_obj
def demo(config: SwitchPipeConfig, name: str, port: int, args: tuple[str, ...]) -> None:
    """Run the demo: forward ARGS to a running demo or become the running demo."""
    try:
        demo_config = config.model_copy(update={"pipe_name": name}).with_overrides(
            throw_if_running=False,
            remote_port=port,
        )
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="--port") from exc

    try:
        code = asyncio.run(run_demo(demo_config, list(args)))
    except LoopFatalError as exc:
        click.secho(f"Fatal: {exc}", fg="red", err=True)
        sys.exit(2)
    except SwitchPipeError as exc:
        click.secho(f"Error [{exc.code}]: {exc}", fg="red", err=True)
        sys.exit(1)
    if code:
        sys.exit(code)


__all__ = ["DemoSwitches", "demo", "run_demo"]
