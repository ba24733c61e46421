"""``utctime call`` — dispatch one JSON-RPC request in-process."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path  # noqa: TC003

import click

from utctime.cli_commands._output import console, print_json
from utctime.cli_commands._settings import config_option, load_settings


@click.command()
@config_option
@click.argument("method")
@click.option("--params", "params_json", default=None, help="JSON object of parameters.")
@click.option(
    "--id", "request_id", default="1", show_default=True, help="Request id; empty sends a notification."
)
def call(config_path: Path | None, method: str, params_json: str | None, request_id: str) -> None:
    """Send METHOD through the dispatcher and print the response.

    For example: ``utctime call tools/call --params '{"name": "get_time"}'``.
    """
    from utctime.server import TimeServer

    params = None
    if params_json is not None:
        try:
            params = json.loads(params_json)
        except json.JSONDecodeError as exc:
            raise click.BadParameter(f"not valid JSON: {exc}", param_hint="--params") from exc

    server = TimeServer.from_settings(load_settings(config_path))
    message = {"jsonrpc": "2.0", "method": method, "params": params, "id": request_id or None}
    reply = asyncio.run(server.dispatcher.handle(message))
    if reply is None:
        console.print("[dim](no response)[/dim]")
        return
    print_json(reply)
    if "error" in reply:
        raise SystemExit(1)
