"""Data models for clock-sync status."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

UNSYNCED_STRATUM = 16
OFFSET_DEGRADED_MS = 100.0

HealthState = Literal["healthy", "degraded", "unhealthy"]


class SyncSource(str, Enum):
    """Which tier produced a :class:`SyncStatus`."""

    SHARED_MEMORY = "SharedMemory"
    PEER_QUERY = "PeerQuery"
    UNAVAILABLE = "Unavailable"


class SyncStatus(BaseModel):
    """Clock synchronization status, computed fresh for every query."""

    model_config = {"frozen": True}

    available: bool
    synced: bool
    offset_ms: float = 0.0
    stratum: int = Field(default=UNSYNCED_STRATUM, ge=0, le=UNSYNCED_STRATUM)
    source: SyncSource
    sampled_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    precision: int | None = None
    root_delay_ms: float | None = None
    root_dispersion_ms: float | None = None
    leap: int | None = None
    reference: str | None = None
    error: str | None = None

    @classmethod
    def unavailable(cls, error: str | None = None, *, sampled_at: datetime | None = None) -> SyncStatus:
        """The degraded result used when no tier produced a reading."""
        return cls(
            available=False,
            synced=False,
            offset_ms=0.0,
            stratum=UNSYNCED_STRATUM,
            source=SyncSource.UNAVAILABLE,
            sampled_at=sampled_at or datetime.now(timezone.utc),
            error=error,
        )

    @property
    def health(self) -> HealthState:
        if not self.available:
            return "unhealthy"
        if self.synced and abs(self.offset_ms) < OFFSET_DEGRADED_MS:
            return "healthy"
        return "degraded"

    def to_dict(self) -> dict[str, Any]:
        data = self.model_dump(mode="json", exclude_none=True)
        data["health"] = self.health
        return data
