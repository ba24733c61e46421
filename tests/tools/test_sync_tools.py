"""Tests for the NTP status and peer tools."""

from __future__ import annotations

from typing import Any

from utctime.config import ServerSettings
from utctime.sync.errors import PeerQueryError
from utctime.sync.status import SyncMonitor
from utctime.tools.sync_tools import make_sync_tools, ntp_peers_document, ntp_status_document


class TestNtpStatus:
    async def test_synced(self, synced_monitor: SyncMonitor) -> None:
        document = await ntp_status_document(synced_monitor)

        assert document["available"] is True
        assert document["synced"] is True
        assert document["source"] == "PeerQuery"
        assert document["health"] == "healthy"
        assert "message" not in document

    async def test_reports_root_distance(
        self, static_peer_query: Any, ntpq_synced: str, ntpq_rv: str
    ) -> None:
        monitor = SyncMonitor(peer_query=static_peer_query(ntpq_synced, system_output=ntpq_rv))
        document = await ntp_status_document(monitor)

        assert document["precision"] == -23
        assert document["root_delay_ms"] == 12.345
        assert document["root_dispersion_ms"] == 20.456

    async def test_unavailable(self, unavailable_monitor: SyncMonitor) -> None:
        document = await ntp_status_document(unavailable_monitor)

        assert document["available"] is False
        assert document["synced"] is False
        assert document["offset_ms"] == 0.0
        assert document["stratum"] == 16
        assert document["health"] == "unhealthy"
        assert document["message"] == "NTP not available or not synchronized"

    async def test_includes_configuration(self, unavailable_monitor: SyncMonitor) -> None:
        settings = ServerSettings(ntp_servers=("time.example.org",), enable_pps=True)
        document = await ntp_status_document(unavailable_monitor, settings)

        assert document["ntp_servers"] == ["time.example.org"]
        assert document["hardware"]["pps"]["enabled"] is True
        assert document["hardware"]["local_stratum"] == 10


class TestNtpPeers:
    async def test_peers(self, static_peer_query: Any, ntpq_synced: str) -> None:
        document = await ntp_peers_document(static_peer_query(ntpq_synced), 1.0)

        assert document["available"] is True
        assert document["system_peer"] == "162.159.200.1"
        assert [peer["remote"] for peer in document["peers"]] == ["162.159.200.1", "216.239.35.0"]
        assert document["raw_output"] == ntpq_synced

    async def test_no_system_peer(self, static_peer_query: Any, ntpq_unsynced: str) -> None:
        document = await ntp_peers_document(static_peer_query(ntpq_unsynced), 1.0)
        assert document["available"] is True
        assert document["system_peer"] is None

    async def test_query_failure(self, static_peer_query: Any) -> None:
        query = static_peer_query(error=PeerQueryError("ntpq: command not found"))
        document = await ntp_peers_document(query, 1.0)

        assert document["available"] is False
        assert "command not found" in document["error"]

    async def test_disabled(self) -> None:
        assert await ntp_peers_document(None, 1.0) == {"available": False, "error": "peer query disabled"}


class TestMakeSyncTools:
    async def test_handlers_bound_to_monitor(self, static_peer_query: Any, ntpq_synced: str) -> None:
        query = static_peer_query(ntpq_synced)
        monitor = SyncMonitor(peer_query=query, timeout=1.5)
        tools = dict((descriptor.name, handler) for descriptor, handler in make_sync_tools(monitor, query))

        status = await tools["get_ntp_status"]({})
        peers = await tools["get_ntp_peers"]({})

        assert status["reference"] == "162.159.200.1"
        assert peers["system_peer"] == "162.159.200.1"
        assert query.calls[-1] == 1.5
