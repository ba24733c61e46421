"""TimeServer — wires settings, sync monitor, registry and transports together.

Lifetime rules:

* STDIO end of input shuts the whole server down (the client owns it).
* A STDIO I/O error closes only STDIO; HTTP keeps serving.
* An HTTP failure (e.g. the port is taken) stops only HTTP.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from utctime.health import HealthExporter
from utctime.protocol.dispatcher import Dispatcher
from utctime.sync.peers import NtpqPeerQuery
from utctime.sync.shm import ShmReader, segment_factory
from utctime.sync.status import SyncMonitor
from utctime.tools import build_registry, legacy_handlers
from utctime.transport.auth import ApiKeyValidator
from utctime.transport.errors import TransportIOError
from utctime.transport.http import HttpServer, create_http_app
from utctime.transport.stdio import StdioServer

if TYPE_CHECKING:
    from fastapi import FastAPI

    from utctime.config import ServerSettings
    from utctime.sync.peers import PeerQuery

logger = logging.getLogger(__name__)


def build_monitor(settings: ServerSettings, peer_query: PeerQuery | None = None) -> SyncMonitor:
    """The default two-tier monitor: SHM segment, then the peer command."""
    reader = ShmReader(segment_factory(path=settings.shm_path, unit=settings.shm_unit))
    return SyncMonitor(
        reader,
        peer_query,
        timeout=settings.sync_timeout,
        max_sample_age=settings.shm_max_age,
        reference=f"SHM({settings.shm_unit})" if settings.shm_path is None else "SHM",
    )


class TimeServer:
    """The composed server. Build with :meth:`from_settings`.

    Usage::

        server = TimeServer.from_settings(ServerSettings.from_env())
        await server.run()
    """

    def __init__(
        self,
        settings: ServerSettings,
        monitor: SyncMonitor,
        peer_query: PeerQuery | None = None,
    ) -> None:
        self.settings = settings
        self.monitor = monitor
        self.registry = build_registry(monitor, peer_query, settings)
        self.dispatcher = Dispatcher(self.registry, legacy=legacy_handlers(monitor, settings))
        self.exporter = HealthExporter(monitor)
        self.validator = ApiKeyValidator(settings.api_keys)

    @classmethod
    def from_settings(cls, settings: ServerSettings) -> TimeServer:
        peer_query = NtpqPeerQuery(settings.peer_command, settings.system_command)
        return cls(settings, build_monitor(settings, peer_query), peer_query)

    def http_app(self) -> FastAPI:
        return create_http_app(
            self.dispatcher,
            self.exporter,
            validator=self.validator,
            request_timeout=self.settings.http_request_timeout,
        )

    async def run(self, *, stdio: bool | None = None, http: bool | None = None) -> None:
        """Run the enabled transports until the server shuts down."""
        run_stdio = self.settings.run_stdio if stdio is None else stdio
        run_http = self.settings.run_http if http is None else http
        if not run_stdio and not run_http:
            msg = "no transport enabled"
            raise ValueError(msg)

        http_server = HttpServer(self.http_app(), self.settings) if run_http else None
        if self.validator.enabled:
            logger.info("API key auth enabled with %d key(s)", len(self.validator))

        http_task = asyncio.create_task(self._serve_http(http_server)) if http_server else None
        try:
            if run_stdio:
                await self._serve_stdio(keep_alive=http_task)
            elif http_task is not None:
                await http_task
        finally:
            if http_server is not None:
                http_server.shutdown()
            if http_task is not None and not http_task.done():
                with contextlib.suppress(asyncio.CancelledError):
                    await http_task
        logger.info("Server stopped")

    async def _serve_stdio(self, *, keep_alive: asyncio.Task[None] | None) -> None:
        try:
            await StdioServer(self.dispatcher).serve()
        except TransportIOError as exc:
            logger.error("%s; closing STDIO", exc)
            if keep_alive is not None:
                await keep_alive
            return
        logger.info("STDIO closed by client; shutting down")

    async def _serve_http(self, server: HttpServer) -> None:
        try:
            await server.serve()
        except TransportIOError as exc:
            logger.error("%s; HTTP transport stopped", exc)
