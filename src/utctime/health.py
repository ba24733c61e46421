"""Health and metrics — JSON health report and Prometheus text exposition.

Every scrape composes a fresh time snapshot and a fresh sync status; nothing
is cached between scrapes.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from utctime import __version__
from utctime.protocol.models import SERVER_NAME
from utctime.sync.models import HealthState, SyncSource, SyncStatus
from utctime.timeservice import TimeSnapshot, snapshot_time

if TYPE_CHECKING:
    from collections.abc import Callable

    from utctime.sync.status import SyncMonitor

logger = logging.getLogger(__name__)

METRICS_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


class HealthReport(BaseModel):
    """The ``/health`` document."""

    status: HealthState
    version: str
    service: str = SERVER_NAME
    timestamp: str
    unix_seconds: int
    uptime_seconds: float
    sync: dict[str, Any]


def build_health(
    snapshot: TimeSnapshot,
    status: SyncStatus,
    *,
    uptime_seconds: float = 0.0,
    version: str = __version__,
) -> HealthReport:
    return HealthReport(
        status=status.health,
        version=version,
        timestamp=snapshot.iso8601(),
        unix_seconds=snapshot.unix.seconds,
        uptime_seconds=round(uptime_seconds, 3),
        sync=status.to_dict(),
    )


def render_metrics(snapshot: TimeSnapshot, status: SyncStatus, *, uptime_seconds: float = 0.0) -> str:
    """Render the Prometheus text exposition format, one sample per line."""
    lines: list[str] = []

    def metric(name: str, kind: str, help_text: str, samples: list[tuple[str, Any]]) -> None:
        lines.append(f"# HELP {name} {help_text}")
        lines.append(f"# TYPE {name} {kind}")
        for labels, value in samples:
            lines.append(f"{name}{labels} {value}")

    metric(
        "mcp_time_seconds",
        "gauge",
        "Current Unix time in seconds",
        [("", snapshot.unix.seconds)],
    )
    metric(
        "mcp_time_nanos",
        "gauge",
        "Nanosecond part of the current Unix time",
        [("", snapshot.unix.nanos)],
    )
    metric(
        "mcp_sync_available",
        "gauge",
        "Whether clock sync status could be determined (1 = yes)",
        [("", int(status.available))],
    )
    metric(
        "mcp_sync_synced",
        "gauge",
        "Whether the clock is synchronized (1 = yes)",
        [("", int(status.synced))],
    )
    metric(
        "mcp_sync_offset_ms",
        "gauge",
        "Clock offset from the reference in milliseconds",
        [("", _number(status.offset_ms))],
    )
    metric(
        "mcp_sync_stratum",
        "gauge",
        "Stratum of the local clock (16 = unsynchronized)",
        [("", status.stratum)],
    )
    metric(
        "mcp_sync_source",
        "gauge",
        "Source of the sync status (1 for the active source)",
        [(f'{{source="{source.value}"}}', int(source is status.source)) for source in SyncSource],
    )
    metric(
        "mcp_uptime_seconds",
        "counter",
        "Seconds since the server started",
        [("", _number(uptime_seconds))],
    )
    return "\n".join(lines) + "\n"


def _number(value: float) -> str:
    return repr(float(value))


class HealthExporter:
    """Collects a fresh snapshot and sync status for each scrape.

    Usage::

        exporter = HealthExporter(monitor)
        report = await exporter.health()
        text = await exporter.metrics()
    """

    def __init__(self, monitor: SyncMonitor, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._monitor = monitor
        self._clock = clock
        self._started = clock()

    @property
    def uptime_seconds(self) -> float:
        return max(self._clock() - self._started, 0.0)

    async def collect(self) -> tuple[TimeSnapshot, SyncStatus]:
        """Fresh snapshot and status; a failing monitor degrades to unavailable."""
        snapshot = snapshot_time()
        try:
            status = await self._monitor.query_status()
        except Exception as exc:
            logger.exception("Sync status query failed during scrape")
            status = SyncStatus.unavailable(str(exc) or type(exc).__name__)
        return snapshot, status

    async def health(self) -> HealthReport:
        snapshot, status = await self.collect()
        return build_health(snapshot, status, uptime_seconds=self.uptime_seconds)

    async def metrics(self) -> str:
        snapshot, status = await self.collect()
        return render_metrics(snapshot, status, uptime_seconds=self.uptime_seconds)
