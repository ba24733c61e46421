"""Legacy ``time/*`` methods — direct JSON-RPC twins of the time tools.

Unlike ``tools/call``, these report failures as top-level JSON-RPC errors:
bad or missing parameters give ``-32602`` and time-service failures ``-32000``.
"""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING, Any

from utctime.protocol import errors as rpc_errors
from utctime.timeservice import TimeServiceError
from utctime.tools import time_tools
from utctime.tools.sync_tools import ntp_status_document

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from utctime.config import ServerSettings
    from utctime.sync.status import SyncMonitor


def _time_errors(
    func: Callable[[dict[str, Any]], Awaitable[dict[str, Any]]],
) -> Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]:
    """Translate time-service failures into ``-32000`` protocol errors."""

    @functools.wraps(func)
    async def wrapper(params: dict[str, Any]) -> dict[str, Any]:
        try:
            return await func(params)
        except (TimeServiceError, ValueError) as exc:
            raise rpc_errors.TimeServiceError(str(exc)) from exc

    return wrapper


@_time_errors
async def time_get(params: dict[str, Any]) -> dict[str, Any]:
    return time_tools.time_document()


@_time_errors
async def time_get_with_format(params: dict[str, Any]) -> dict[str, Any]:
    spec = time_tools.require_str(params, "format")
    document = time_tools.formatted_document(spec)
    return {"formatted": document["formatted"], "format": spec}


@_time_errors
async def time_get_with_timezone(params: dict[str, Any]) -> dict[str, Any]:
    return time_tools.time_document(time_tools.require_str(params, "timezone"))


@_time_errors
async def time_get_unix(params: dict[str, Any]) -> dict[str, Any]:
    return time_tools.unix_document()


@_time_errors
async def time_get_nanos(params: dict[str, Any]) -> dict[str, Any]:
    return time_tools.nanos_document()


@_time_errors
async def time_list_timezones(params: dict[str, Any]) -> dict[str, Any]:
    return time_tools.timezones_document()


@_time_errors
async def time_convert(params: dict[str, Any]) -> dict[str, Any]:
    return time_tools.conversion_document(
        time_tools.require_int(params, "timestamp"),
        time_tools.require_str(params, "to_timezone"),
        time_tools.optional_str(params, "from_timezone", "UTC"),
    )


def legacy_handlers(
    monitor: SyncMonitor, settings: ServerSettings | None = None
) -> dict[str, Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]]:
    """The ``time/*`` method table, keyed by exact method name."""

    async def time_ntp_status(params: dict[str, Any]) -> dict[str, Any]:
        return await ntp_status_document(monitor, settings)

    return {
        "time/get": time_get,
        "time/get_with_format": time_get_with_format,
        "time/get_with_timezone": time_get_with_timezone,
        "time/get_unix": time_get_unix,
        "time/get_nanos": time_get_nanos,
        "time/list_timezones": time_list_timezones,
        "time/convert": time_convert,
        "time/ntp_status": time_ntp_status,
    }
