"""utctime CLI entrypoint."""

from __future__ import annotations

import logging
import os
import sys

import click

from utctime import __version__

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    """Send log records to stderr; stdout carries the STDIO protocol."""
    logging.basicConfig(
        level=level.upper(),
        format=LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )


@click.group()
@click.version_option(version=__version__, prog_name="utctime")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=lambda: os.environ.get("LOG_LEVEL", "INFO").upper(),
    show_default="LOG_LEVEL or INFO",
    help="Logging verbosity (logs go to stderr).",
)
def main(log_level: str) -> None:
    """utctime — MCP UTC time server."""
    configure_logging(log_level)


# Register subcommands
from utctime.cli_commands import register_commands  # noqa: E402

register_commands(main)

if __name__ == "__main__":
    main()
