"""``utctime serve`` — run the STDIO and HTTP transports."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path  # noqa: TC003

import click

from utctime.cli_commands._settings import config_option, load_settings

logger = logging.getLogger(__name__)


@click.command()
@config_option
@click.option("--stdio/--no-stdio", default=None, help="Force the STDIO transport on or off.")
@click.option("--http/--no-http", default=None, help="Force the HTTP transport on or off.")
@click.option("--port", type=int, default=None, help="HTTP port (overrides PORT).")
@click.option("--otel/--no-otel", default=False, help="Export OpenTelemetry spans.")
def serve(
    config_path: Path | None,
    stdio: bool | None,
    http: bool | None,
    port: int | None,
    otel: bool,
) -> None:
    """Run the time server until STDIO closes or the process is stopped."""
    from utctime.server import TimeServer

    settings = load_settings(config_path)
    if port is not None:
        settings = settings.model_copy(update={"http_port": port})

    if otel:
        from utctime.utils.telemetry import configure_telemetry

        configure_telemetry(otlp_endpoint=settings.otlp_endpoint)

    server = TimeServer.from_settings(settings)
    mode = "HTTP only (container mode)" if settings.http_only else "STDIO + HTTP"
    logger.info("Starting mcp-utc-time-server: %s", mode)
    try:
        asyncio.run(server.run(stdio=stdio, http=http))
    except ValueError as exc:
        raise click.UsageError(str(exc)) from exc
    except KeyboardInterrupt:
        logger.info("Interrupted")
