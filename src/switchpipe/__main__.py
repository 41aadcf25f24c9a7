"""CLI entry point for switchpipe."""

from __future__ import annotations

from switchpipe.cli import cli


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
