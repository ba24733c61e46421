"""Sync tools — read-only views of the clock-synchronization state."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from utctime.protocol.models import ToolDescriptor
from utctime.sync.errors import PeerQueryError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from utctime.config import ServerSettings
    from utctime.sync.peers import PeerQuery
    from utctime.sync.status import SyncMonitor

logger = logging.getLogger(__name__)

NTP_STATUS_DESCRIPTOR = ToolDescriptor(
    name="get_ntp_status",
    title="NTP status",
    description="Get NTP synchronization status and performance metrics (read-only)",
    input_schema={"type": "object", "properties": {}},
)

NTP_PEERS_DESCRIPTOR = ToolDescriptor(
    name="get_ntp_peers",
    title="NTP peers",
    description="Get information about NTP peers and their status (read-only)",
    input_schema={"type": "object", "properties": {}},
)


async def ntp_status_document(
    monitor: SyncMonitor, settings: ServerSettings | None = None
) -> dict[str, Any]:
    status = await monitor.query_status()
    document = status.to_dict()
    if not status.available:
        document["message"] = "NTP not available or not synchronized"
    if settings is not None:
        document["ntp_servers"] = list(settings.ntp_servers)
        document["hardware"] = settings.hardware
    return document


async def ntp_peers_document(peer_query: PeerQuery | None, timeout: float) -> dict[str, Any]:
    if peer_query is None:
        return {"available": False, "error": "peer query disabled"}
    try:
        peers = await peer_query.query_peers(timeout)
    except PeerQueryError as exc:
        logger.info("Peer query failed: %s", exc)
        return {"available": False, "error": f"NTP daemon not available or peer query failed: {exc}"}

    system_peer = peers.system_peer
    return {
        "available": True,
        "system_peer": system_peer.remote if system_peer is not None else None,
        "peers": [peer.model_dump() for peer in peers.peers],
        "raw_output": peers.raw_output,
    }


def make_sync_tools(
    monitor: SyncMonitor,
    peer_query: PeerQuery | None,
    settings: ServerSettings | None = None,
) -> tuple[tuple[ToolDescriptor, Callable[[dict[str, Any]], Awaitable[Any]]], ...]:
    """Bind the sync tool handlers to *monitor* and *peer_query*."""

    async def get_ntp_status(arguments: dict[str, Any]) -> dict[str, Any]:
        return await ntp_status_document(monitor, settings)

    async def get_ntp_peers(arguments: dict[str, Any]) -> dict[str, Any]:
        return await ntp_peers_document(peer_query, monitor.timeout)

    return (
        (NTP_STATUS_DESCRIPTOR, get_ntp_status),
        (NTP_PEERS_DESCRIPTOR, get_ntp_peers),
    )
