"""Time service — clock snapshots, formatting and timezone conversion."""

from utctime.timeservice.errors import FormatError, TimeServiceError, TimezoneError
from utctime.timeservice.formatting import format_time
from utctime.timeservice.snapshot import TimeSnapshot, UnixTime, snapshot_time
from utctime.timeservice.timezones import convert_timestamp, list_timezones, resolve_timezone

__all__ = [
    "FormatError",
    "TimeServiceError",
    "TimeSnapshot",
    "TimezoneError",
    "UnixTime",
    "convert_timestamp",
    "format_time",
    "list_timezones",
    "resolve_timezone",
    "snapshot_time",
]
