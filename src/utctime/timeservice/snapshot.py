"""TimeSnapshot — one consistent reading of the wall clock.

All derived fields (ISO strings, calendar components, millisecond counts) are
computed from the same ``(seconds, nanos)`` pair, so two fields of one
snapshot can never disagree about the instant they describe.
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import BaseModel, Field

from utctime.timeservice.timezones import resolve_timezone

_NANOS_PER_SECOND = 1_000_000_000

UNIX_DATE = "%a %b %e %H:%M:%S %Z %Y"
SYSLOG = "%b %d %H:%M:%S"
APACHE_LOG = "%d/%b/%Y:%H:%M:%S %z"


class UnixTime(BaseModel):
    """Unix epoch time with nanosecond precision."""

    model_config = {"frozen": True}

    seconds: int
    nanos: int = Field(ge=0, lt=_NANOS_PER_SECOND)
    nanos_since_epoch: int

    @classmethod
    def from_nanos(cls, total: int) -> UnixTime:
        seconds, nanos = divmod(total, _NANOS_PER_SECOND)
        return cls(seconds=seconds, nanos=nanos, nanos_since_epoch=total)

    def to_microseconds(self) -> int:
        return self.seconds * 1_000_000 + self.nanos // 1_000

    def to_milliseconds(self) -> int:
        return self.seconds * 1_000 + self.nanos // 1_000_000


class TimeSnapshot(BaseModel):
    """An immutable instant, optionally viewed through an IANA timezone."""

    model_config = {"frozen": True}

    unix: UnixTime
    timezone: str = "UTC"

    @property
    def utc(self) -> datetime:
        base = datetime.fromtimestamp(self.unix.seconds, tz=timezone.utc)
        return base + timedelta(microseconds=self.unix.nanos // 1_000)

    @property
    def local(self) -> datetime:
        return self.utc.astimezone(resolve_timezone(self.timezone))

    @property
    def offset_seconds(self) -> int:
        offset = self.local.utcoffset()
        return int(offset.total_seconds()) if offset is not None else 0

    def iso8601(self) -> str:
        """RFC 3339 with the full nanosecond fraction (``Z`` for UTC)."""
        local = self.local
        base = local.strftime("%Y-%m-%dT%H:%M:%S")
        suffix = "Z" if self.offset_seconds == 0 else local.isoformat()[-6:]
        return f"{base}.{self.unix.nanos:09d}{suffix}"

    def rfc3339(self) -> str:
        return self.local.isoformat()

    def rfc2822(self) -> str:
        return self.local.strftime("%a, %d %b %Y %H:%M:%S %z")

    def to_dict(self) -> dict[str, Any]:
        """Flat JSON view used by ``get_time`` and ``time/get``."""
        local = self.local
        # Imported lazily: formatting depends on this module for the type.
        from utctime.timeservice.formatting import format_time

        return {
            "unix": self.unix.model_dump(),
            "iso8601": self.iso8601(),
            "rfc3339": self.rfc3339(),
            "rfc2822": self.rfc2822(),
            "ctime": local.strftime("%c"),
            "nanos_since_epoch": self.unix.nanos_since_epoch,
            "seconds": self.unix.seconds,
            "microseconds": self.unix.to_microseconds(),
            "milliseconds": self.unix.to_milliseconds(),
            "year": local.year,
            "month": local.month,
            "day": local.day,
            "hour": local.hour,
            "minute": local.minute,
            "second": local.second,
            "nanosecond": self.unix.nanos,
            "timezone": self.timezone,
            "offset": self.offset_seconds,
            "weekday": local.strftime("%A"),
            "week_of_year": int(local.strftime("%U")),
            "day_of_year": local.timetuple().tm_yday,
            "custom_formats": {
                "unix_date": format_time(self, UNIX_DATE),
                "syslog": format_time(self, SYSLOG),
                "apache_log": format_time(self, APACHE_LOG),
                "unix_timestamp": str(self.unix.seconds),
            },
        }


def snapshot_time(tz: str = "UTC") -> TimeSnapshot:
    """Read the clock once and return an immutable snapshot.

    Raises :class:`~utctime.timeservice.errors.TimezoneError` for an unknown
    timezone name.
    """
    resolve_timezone(tz)
    return TimeSnapshot(unix=UnixTime.from_nanos(time.time_ns()), timezone=tz)
