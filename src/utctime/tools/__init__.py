"""Default tools, prompts and legacy methods of the time server."""

from __future__ import annotations

from typing import TYPE_CHECKING

from utctime.protocol.registry import Registry, RegistryBuilder
from utctime.tools.legacy import legacy_handlers
from utctime.tools.prompts import register_prompts
from utctime.tools.sync_tools import make_sync_tools
from utctime.tools.time_tools import TIME_TOOLS

if TYPE_CHECKING:
    from utctime.config import ServerSettings
    from utctime.sync.peers import PeerQuery
    from utctime.sync.status import SyncMonitor


def build_registry(
    monitor: SyncMonitor,
    peer_query: PeerQuery | None = None,
    settings: ServerSettings | None = None,
) -> Registry:
    """Register every default tool and prompt and freeze the result."""
    builder = RegistryBuilder()
    for descriptor, handler in TIME_TOOLS:
        builder.add_tool(descriptor, handler)
    for descriptor, handler in make_sync_tools(monitor, peer_query, settings):
        builder.add_tool(descriptor, handler)
    register_prompts(builder, monitor)
    return builder.build()


__all__ = ["build_registry", "legacy_handlers"]
