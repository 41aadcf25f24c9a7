"""Root CLI command registration."""

from __future__ import annotations

from pathlib import Path

import click

from switchpipe.config import SwitchPipeConfig
from switchpipe.logs import configure_logging
from switchpipe.version import get_switchpipe_version

from .demo import demo
from .send import send


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version and exit")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Path to a switchpipe config.toml",
)
@click.option("-v", "--verbose", is_flag=True, help="Echo library messages to the console")
@click.pass_context
def cli(ctx: click.Context, version: bool, config_path: Path | None, verbose: bool) -> None:
    """Forward command-line switches to an already-running instance."""
    if version:
        click.echo(f"switchpipe {get_switchpipe_version()}")
        ctx.exit(0)

    config = SwitchPipeConfig.load(config_path)
    if verbose:
        config = config.model_copy(update={"log_to_console": True})
    configure_logging(config)
    ctx.obj = config

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


cli.add_command(send)
cli.add_command(demo)


__all__ = ["cli"]
