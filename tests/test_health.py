"""Tests for the health report and metrics exposition."""

from __future__ import annotations

from typing import Any

import pytest

from utctime import __version__
from utctime.health import HealthExporter, build_health, render_metrics
from utctime.sync.models import SyncSource, SyncStatus
from utctime.sync.status import SyncMonitor
from utctime.timeservice import TimeSnapshot, UnixTime

_SNAPSHOT = TimeSnapshot(unix=UnixTime.from_nanos(1_710_074_096_123_456_789))


def _synced(offset_ms: float = 0.5) -> SyncStatus:
    return SyncStatus(
        available=True,
        synced=True,
        offset_ms=offset_ms,
        stratum=2,
        source=SyncSource.PEER_QUERY,
    )


class _FailingMonitor:
    async def query_status(self, timeout: float | None = None) -> SyncStatus:
        raise RuntimeError("monitor exploded")


def _samples(text: str) -> dict[str, str]:
    """Map ``name{labels}`` to value for every sample line."""
    samples: dict[str, str] = {}
    for line in text.splitlines():
        if line.startswith("#"):
            continue
        key, value = line.rsplit(" ", 1)
        samples[key] = value
    return samples


class TestBuildHealth:
    def test_healthy(self) -> None:
        report = build_health(_SNAPSHOT, _synced(), uptime_seconds=12.34567)

        assert report.status == "healthy"
        assert report.version == __version__
        assert report.timestamp == "2024-03-10T12:34:56.123456789Z"
        assert report.unix_seconds == 1_710_074_096
        assert report.uptime_seconds == 12.346
        assert report.sync["source"] == "PeerQuery"

    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            (_synced(150.0), "degraded"),
            (_synced(-100.0), "degraded"),
            (_synced(99.9), "healthy"),
            (SyncStatus.unavailable("no daemon"), "unhealthy"),
        ],
    )
    def test_status_thresholds(self, status: SyncStatus, expected: str) -> None:
        assert build_health(_SNAPSHOT, status).status == expected


class TestRenderMetrics:
    def test_samples(self) -> None:
        samples = _samples(render_metrics(_SNAPSHOT, _synced(-1.25), uptime_seconds=3.0))

        assert samples["mcp_time_seconds"] == "1710074096"
        assert samples["mcp_time_nanos"] == "123456789"
        assert samples["mcp_sync_available"] == "1"
        assert samples["mcp_sync_synced"] == "1"
        assert samples["mcp_sync_offset_ms"] == "-1.25"
        assert samples["mcp_sync_stratum"] == "2"
        assert samples['mcp_sync_source{source="PeerQuery"}'] == "1"
        assert samples['mcp_sync_source{source="SharedMemory"}'] == "0"
        assert samples["mcp_uptime_seconds"] == "3.0"

    def test_every_metric_has_help_and_type(self) -> None:
        text = render_metrics(_SNAPSHOT, SyncStatus.unavailable())
        names = {key.split("{")[0] for key in _samples(text)}

        assert len(names) == 8
        for name in names:
            assert f"# HELP {name} " in text
            assert f"# TYPE {name} " in text
        assert "# TYPE mcp_uptime_seconds counter" in text
        assert text.endswith("\n")

    def test_unavailable(self) -> None:
        samples = _samples(render_metrics(_SNAPSHOT, SyncStatus.unavailable()))
        assert samples["mcp_sync_available"] == "0"
        assert samples["mcp_sync_stratum"] == "16"
        assert samples['mcp_sync_source{source="Unavailable"}'] == "1"


class TestHealthExporter:
    async def test_uptime_from_clock(self, unavailable_monitor: SyncMonitor) -> None:
        ticks = iter([100.0, 142.5])
        exporter = HealthExporter(unavailable_monitor, clock=lambda: next(ticks))
        assert exporter.uptime_seconds == 42.5

    async def test_health(self, synced_monitor: SyncMonitor) -> None:
        report = await HealthExporter(synced_monitor).health()
        assert report.status == "healthy"
        assert report.sync["reference"] == "162.159.200.1"

    async def test_failing_monitor_degrades(self, caplog: Any) -> None:
        exporter = HealthExporter(_FailingMonitor())  # type: ignore[arg-type]

        report = await exporter.health()

        assert report.status == "unhealthy"
        assert report.sync["error"] == "monitor exploded"
        assert "Sync status query failed" in caplog.text

    async def test_metrics(self, unavailable_monitor: SyncMonitor) -> None:
        text = await HealthExporter(unavailable_monitor).metrics()
        assert "mcp_sync_available 0" in text
