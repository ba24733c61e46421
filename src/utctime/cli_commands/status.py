"""``utctime status`` — query the clock-sync status once."""

from __future__ import annotations

import asyncio
from pathlib import Path  # noqa: TC003

import click

from utctime.cli_commands._output import print_status
from utctime.cli_commands._settings import config_option, load_settings


@click.command()
@config_option
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--timeout", type=float, default=None, help="Override SYNC_TIMEOUT (seconds).")
def status(config_path: Path | None, as_json: bool, timeout: float | None) -> None:
    """Print a fresh clock-synchronization status."""
    from utctime.server import build_monitor
    from utctime.sync.peers import NtpqPeerQuery

    settings = load_settings(config_path)
    monitor = build_monitor(settings, NtpqPeerQuery(settings.peer_command, settings.system_command))
    result = asyncio.run(monitor.query_status(timeout))
    print_status(result, as_json=as_json)
