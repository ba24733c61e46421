"""Tests for the two-tier sync monitor."""

from __future__ import annotations

import asyncio
import stat
import struct
from typing import TYPE_CHECKING, Any

import pytest

from utctime.sync.errors import PeerQueryError, TornReadError
from utctime.sync.models import UNSYNCED_STRATUM, SyncSource, SyncStatus
from utctime.sync.peers import NtpqPeerQuery, PeerList
from utctime.sync.shm import LAYOUT_FORMAT, LAYOUT_SIZE, BufferSegment, ShmReader
from utctime.sync.status import REFCLOCK_STRATUM, SyncMonitor

if TYPE_CHECKING:
    from pathlib import Path

_NOW = 1_700_000_000.0


def _reader(receive_sec: int = 1_700_000_000, offset_usec: int = 1_500, valid: int = 1) -> ShmReader:
    buf = bytearray(LAYOUT_SIZE)
    struct.pack_into(
        LAYOUT_FORMAT, buf, 0,
        1, 2, receive_sec, offset_usec, receive_sec, 0, 0, -20, 3, valid, offset_usec * 1_000, 0,
        *([0] * 8),
    )
    return ShmReader(lambda: BufferSegment(buf))


class _BrokenReader:
    def read_sample(self) -> Any:
        raise TornReadError(3)


class _SlowReader:
    def read_sample(self) -> Any:
        import time

        time.sleep(1.0)
        raise AssertionError("should have timed out")


class _HangingPeers:
    async def query_peers(self, timeout: float) -> PeerList:
        await asyncio.sleep(60)
        return PeerList()


class TestSharedMemoryTier:
    async def test_fresh_sample(self) -> None:
        monitor = SyncMonitor(_reader(), clock=lambda: _NOW)
        status = await monitor.query_status()

        assert status.available
        assert status.synced
        assert status.source is SyncSource.SHARED_MEMORY
        assert status.stratum == REFCLOCK_STRATUM
        assert status.offset_ms == pytest.approx(1.5)
        assert status.precision == -20
        assert status.health == "healthy"

    async def test_stale_sample_falls_through(self, static_peer_query: Any, ntpq_synced: str) -> None:
        monitor = SyncMonitor(
            _reader(receive_sec=1_600_000_000),
            static_peer_query(ntpq_synced),
            clock=lambda: _NOW,
        )
        status = await monitor.query_status()
        assert status.source is SyncSource.PEER_QUERY


    async def test_invalid_sample_falls_through(self, static_peer_query: Any, ntpq_synced: str) -> None:
        monitor = SyncMonitor(_reader(valid=0), static_peer_query(ntpq_synced), clock=lambda: _NOW)
        status = await monitor.query_status()
        assert status.source is SyncSource.PEER_QUERY

    async def test_invalid_sample_alone_is_unavailable(self) -> None:
        status = await SyncMonitor(_reader(valid=0), clock=lambda: _NOW).query_status()

        assert not status.available
        assert status.error is not None
        assert "not marked valid" in status.error


class TestPeerTier:
    async def test_system_peer(self, static_peer_query: Any, ntpq_synced: str) -> None:
        status = await SyncMonitor(peer_query=static_peer_query(ntpq_synced)).query_status()

        assert status.available and status.synced
        assert status.source is SyncSource.PEER_QUERY
        assert status.stratum == 3
        assert status.offset_ms == pytest.approx(-0.123)
        assert status.reference == "162.159.200.1"

    async def test_no_system_peer(self, static_peer_query: Any, ntpq_unsynced: str) -> None:
        status = await SyncMonitor(peer_query=static_peer_query(ntpq_unsynced)).query_status()

        assert status.available
        assert not status.synced
        assert status.stratum == UNSYNCED_STRATUM
        assert status.health == "degraded"

    async def test_system_variables_are_merged(
        self, static_peer_query: Any, ntpq_synced: str, ntpq_rv: str
    ) -> None:
        peers = static_peer_query(ntpq_synced, system_output=ntpq_rv)
        status = await SyncMonitor(peer_query=peers).query_status()

        assert status.synced
        assert status.precision == -23
        assert status.root_delay_ms == pytest.approx(12.345)
        assert status.root_dispersion_ms == pytest.approx(20.456)
        assert status.to_dict()["root_dispersion_ms"] == pytest.approx(20.456)

    async def test_missing_system_variables_are_omitted(
        self, static_peer_query: Any, ntpq_synced: str
    ) -> None:
        status = await SyncMonitor(peer_query=static_peer_query(ntpq_synced)).query_status()

        assert status.synced
        assert status.root_delay_ms is None
        assert "root_delay_ms" not in status.to_dict()

    async def test_used_after_shm_failure(self, static_peer_query: Any, ntpq_synced: str) -> None:
        peers = static_peer_query(ntpq_synced)
        status = await SyncMonitor(_BrokenReader(), peers).query_status()  # type: ignore[arg-type]

        assert status.source is SyncSource.PEER_QUERY
        assert len(peers.calls) == 1


class TestDegradation:
    async def test_no_tiers(self) -> None:
        status = await SyncMonitor().query_status()

        assert status == SyncStatus.unavailable(sampled_at=status.sampled_at)
        assert status.available is False
        assert status.synced is False
        assert status.offset_ms == 0.0
        assert status.stratum == UNSYNCED_STRATUM
        assert status.source is SyncSource.UNAVAILABLE

    async def test_all_tiers_fail(self, static_peer_query: Any) -> None:
        monitor = SyncMonitor(_BrokenReader(), static_peer_query(error=PeerQueryError("ntpq missing")))  # type: ignore[arg-type]
        status = await monitor.query_status()

        assert not status.available
        assert status.error is not None
        assert "Inconsistent" in status.error
        assert "ntpq missing" in status.error

    async def test_deadline_bounds_slow_shm(self) -> None:
        monitor = SyncMonitor(_SlowReader(), timeout=0.1)  # type: ignore[arg-type]
        loop = asyncio.get_running_loop()
        start = loop.time()

        status = await monitor.query_status()

        assert loop.time() - start < 0.9
        assert not status.available
        assert status.error is not None
        assert "timed out" in status.error

    async def test_deadline_bounds_hanging_peers(self) -> None:
        monitor = SyncMonitor(peer_query=_HangingPeers(), timeout=0.1)
        status = await asyncio.wait_for(monitor.query_status(), timeout=2.0)
        assert status.source is SyncSource.UNAVAILABLE

    async def test_per_call_timeout_override(self) -> None:
        monitor = SyncMonitor(peer_query=_HangingPeers(), timeout=30.0)
        status = await asyncio.wait_for(monitor.query_status(timeout=0.05), timeout=2.0)
        assert not status.available

    async def test_timed_out_peer_command_is_killed(self, tmp_path: Path) -> None:
        marker = tmp_path / "alive"
        script = tmp_path / "fake-ntpq"
        script.write_text(f"#!/bin/sh\nwhile true; do touch '{marker}'; sleep 0.1; done\n")
        script.chmod(script.stat().st_mode | stat.S_IXUSR)
        monitor = SyncMonitor(None, NtpqPeerQuery(str(script)), timeout=0.5)

        status = await monitor.query_status()

        assert not status.available
        marker.unlink(missing_ok=True)
        await asyncio.sleep(0.5)
        assert not marker.exists()
