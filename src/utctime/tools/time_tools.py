"""Time tools — clock snapshots, formatting and timezone conversion.

Each ``*_document`` function builds the JSON document shared by a tool and its
legacy ``time/*`` twin; the tool handlers only unpack arguments.
"""

from __future__ import annotations

import logging
from typing import Any

from utctime.protocol.errors import InvalidParamsError
from utctime.protocol.models import ToolDescriptor
from utctime.timeservice import (
    convert_timestamp,
    format_time,
    list_timezones,
    snapshot_time,
)

logger = logging.getLogger(__name__)

_NO_ARGS: dict[str, Any] = {"type": "object", "properties": {}}


# ---------------------------------------------------------------------------
# Argument helpers
# ---------------------------------------------------------------------------


def require_str(arguments: dict[str, Any], name: str) -> str:
    """Return the non-empty string argument *name* or raise InvalidParams."""
    value = arguments.get(name)
    if not isinstance(value, str) or not value:
        raise InvalidParamsError(f"Missing or invalid '{name}' parameter")
    return value


def optional_str(arguments: dict[str, Any], name: str, default: str) -> str:
    value = arguments.get(name)
    if value is None:
        return default
    if not isinstance(value, str) or not value:
        raise InvalidParamsError(f"Invalid '{name}' parameter")
    return value


def require_int(arguments: dict[str, Any], name: str) -> int:
    value = arguments.get(name)
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidParamsError(f"Missing or invalid '{name}' parameter")
    return value


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


def time_document(timezone: str = "UTC") -> dict[str, Any]:
    return snapshot_time(timezone).to_dict()


def unix_document() -> dict[str, Any]:
    return snapshot_time().unix.model_dump()


def nanos_document() -> dict[str, Any]:
    unix = snapshot_time().unix
    return {
        "nanoseconds": unix.nanos_since_epoch,
        "seconds": unix.seconds,
        "subsec_nanos": unix.nanos,
    }


def formatted_document(spec: str, timezone: str = "UTC") -> dict[str, Any]:
    snapshot = snapshot_time(timezone)
    return {
        "formatted": format_time(snapshot, spec),
        "format": spec,
        "timezone": timezone,
        "unix_seconds": snapshot.unix.seconds,
        "unix_nanos": snapshot.unix.nanos,
    }


def timezones_document() -> dict[str, Any]:
    zones = list_timezones()
    return {"timezones": list(zones), "count": len(zones)}


def conversion_document(timestamp: int, to_tz: str, from_tz: str = "UTC") -> dict[str, Any]:
    return convert_timestamp(timestamp, to_tz, from_tz)


# ---------------------------------------------------------------------------
# Tool handlers
# ---------------------------------------------------------------------------


async def get_time(arguments: dict[str, Any]) -> dict[str, Any]:
    return time_document()


async def get_unix_time(arguments: dict[str, Any]) -> dict[str, Any]:
    return unix_document()


async def get_nanos(arguments: dict[str, Any]) -> dict[str, Any]:
    return nanos_document()


async def get_time_formatted(arguments: dict[str, Any]) -> dict[str, Any]:
    spec = require_str(arguments, "format")
    logger.debug("get_time_formatted with format %r", spec)
    return formatted_document(spec, optional_str(arguments, "timezone", "UTC"))


async def get_time_with_timezone(arguments: dict[str, Any]) -> dict[str, Any]:
    return time_document(require_str(arguments, "timezone"))


async def list_timezones_tool(arguments: dict[str, Any]) -> dict[str, Any]:
    return timezones_document()


async def convert_time(arguments: dict[str, Any]) -> dict[str, Any]:
    timestamp = require_int(arguments, "timestamp")
    to_tz = require_str(arguments, "to_timezone")
    from_tz = optional_str(arguments, "from_timezone", "UTC")
    logger.debug("convert_time from %s to %s", from_tz, to_tz)
    return conversion_document(timestamp, to_tz, from_tz)


TIME_TOOLS = (
    (
        ToolDescriptor(
            name="get_time",
            title="Current UTC time",
            description="Get current UTC time with full Unix/POSIX details",
            input_schema=_NO_ARGS,
        ),
        get_time,
    ),
    (
        ToolDescriptor(
            name="get_unix_time",
            title="Unix time",
            description="Get Unix epoch time with nanosecond precision",
            input_schema=_NO_ARGS,
        ),
        get_unix_time,
    ),
    (
        ToolDescriptor(
            name="get_nanos",
            title="Nanoseconds since epoch",
            description="Get nanoseconds since Unix epoch",
            input_schema=_NO_ARGS,
        ),
        get_nanos,
    ),
    (
        ToolDescriptor(
            name="get_time_formatted",
            title="Formatted time",
            description="Get time formatted with strftime format string (e.g., '%Y-%m-%d %H:%M:%S')",
            input_schema={
                "type": "object",
                "properties": {
                    "format": {"type": "string", "description": "strftime format string"},
                    "timezone": {"type": "string", "description": "IANA timezone (default UTC)"},
                },
                "required": ["format"],
            },
        ),
        get_time_formatted,
    ),
    (
        ToolDescriptor(
            name="get_time_with_timezone",
            title="Time in timezone",
            description="Get time in specified timezone (IANA name like 'America/New_York')",
            input_schema={
                "type": "object",
                "properties": {
                    "timezone": {"type": "string", "description": "IANA timezone name"},
                },
                "required": ["timezone"],
            },
        ),
        get_time_with_timezone,
    ),
    (
        ToolDescriptor(
            name="list_timezones",
            title="List timezones",
            description="List all available IANA timezones",
            input_schema=_NO_ARGS,
        ),
        list_timezones_tool,
    ),
    (
        ToolDescriptor(
            name="convert_time",
            title="Convert time",
            description="Convert Unix timestamp between timezones",
            input_schema={
                "type": "object",
                "properties": {
                    "timestamp": {"type": "integer", "description": "Unix timestamp in seconds"},
                    "to_timezone": {"type": "string", "description": "Target IANA timezone"},
                    "from_timezone": {"type": "string", "description": "Source IANA timezone (default UTC)"},
                },
                "required": ["timestamp", "to_timezone"],
            },
        ),
        convert_time,
    ),
)
