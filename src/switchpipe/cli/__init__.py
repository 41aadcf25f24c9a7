"""Command-line interface for switchpipe."""

from switchpipe.cli.commands.root import cli

__all__ = ["cli"]
