"""IANA timezone lookup and conversion."""

from __future__ import annotations

from datetime import datetime, timezone
from functools import lru_cache
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError, available_timezones

from utctime.timeservice.errors import TimezoneError


@lru_cache(maxsize=512)
def resolve_timezone(name: str) -> ZoneInfo:
    """Return the :class:`ZoneInfo` for *name* or raise :class:`TimezoneError`."""
    if name.upper() == "UTC":
        return ZoneInfo("UTC")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError) as exc:
        raise TimezoneError(name) from exc


@lru_cache(maxsize=1)
def list_timezones() -> tuple[str, ...]:
    """All IANA zone names known to the runtime, sorted."""
    return tuple(sorted(available_timezones()))


def convert_timestamp(timestamp: int, to_tz: str, from_tz: str = "UTC") -> dict[str, Any]:
    """Express a Unix timestamp in *to_tz*.

    *from_tz* only labels the input; a Unix timestamp is zone-independent.
    """
    source = resolve_timezone(from_tz)
    target = resolve_timezone(to_tz)
    try:
        instant = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        msg = f"Invalid timestamp: {timestamp}"
        raise ValueError(msg) from exc

    converted = instant.astimezone(target)
    offset = converted.utcoffset()
    return {
        "original": {
            "timestamp": timestamp,
            "timezone": from_tz,
            "formatted": instant.astimezone(source).isoformat(),
        },
        "converted": {
            "timestamp": int(converted.timestamp()),
            "timezone": to_tz,
            "formatted": converted.isoformat(),
            "offset": int(offset.total_seconds()) if offset is not None else 0,
        },
    }
