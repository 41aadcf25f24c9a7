"""Send switches to a running instance over TCP."""

from __future__ import annotations

import asyncio
import sys
import time
from typing import TYPE_CHECKING

import click

from switchpipe.errors import ArgumentError, EmptyArgsError, SwitchPipeError
from switchpipe.ipc.client import SwitchClient
from switchpipe.ipc.endpoint import resolve_endpoint

if TYPE_CHECKING:
    from switchpipe.config import SwitchPipeConfig
    from switchpipe.ipc.endpoint import Endpoint


async def _send(config: SwitchPipeConfig, endpoint: Endpoint, args: list[str]) -> int:
    client = SwitchClient(config)
    if not await client.try_connect(endpoint):
        click.secho(f"No instance is listening on {endpoint}.", fg="yellow")
        return 1

    started = time.perf_counter()
    result = await client.try_send_args(args, endpoint)
    elapsed_ms = (time.perf_counter() - started) * 1000
    if not result.delivered:
        click.secho(f"Switches could not be delivered to {endpoint}.", fg="red")
        return 1

    click.echo(result.reply)
    click.echo(f"Round trip: {elapsed_ms:.1f} ms")
    return 0


@click.command(context_settings={"ignore_unknown_options": True})
@click.argument("host")
@click.argument("port", type=int)
@click.argument("args", nargs=-1, required=True, type=click.UNPROCESSED)
@click.pass_obj
def send(config: SwitchPipeConfig, host: str, port: int, args: tuple[str, ...]) -> None:
    """Send ARGS to the instance listening on HOST:PORT and print its reply."""
    try:
        endpoint = resolve_endpoint(host=host, port=port)
    except ArgumentError as exc:
        raise click.BadParameter(str(exc), param_hint="PORT") from exc

    try:
        code = asyncio.run(_send(config, endpoint, list(args)))
    except EmptyArgsError as exc:
        raise click.UsageError(str(exc)) from exc
    except SwitchPipeError as exc:
        click.secho(f"Error [{exc.code}]: {exc}", fg="red", err=True)
        sys.exit(1)
    if code:
        sys.exit(code)


__all__ = ["send"]
