"""Prompt templates served by ``prompts/list`` and ``prompts/get``."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from utctime.protocol.errors import InvalidParamsError
from utctime.protocol.models import PromptArgument, PromptDescriptor
from utctime.timeservice import TimeServiceError
from utctime.tools.time_tools import formatted_document, time_document, unix_document

if TYPE_CHECKING:
    from utctime.protocol.registry import RegistryBuilder
    from utctime.sync.status import SyncMonitor


def _pretty(document: dict[str, Any]) -> str:
    return json.dumps(document, indent=2, default=str)


async def _time_context(arguments: dict[str, str]) -> dict[str, str]:
    return {"document": _pretty(time_document())}


async def _unix_context(arguments: dict[str, str]) -> dict[str, str]:
    return {"document": _pretty(unix_document())}


async def _time_in_context(arguments: dict[str, str]) -> dict[str, str]:
    try:
        return {"document": _pretty(time_document(arguments["timezone"]))}
    except TimeServiceError as exc:
        raise InvalidParamsError(str(exc)) from exc


async def _format_context(arguments: dict[str, str]) -> dict[str, str]:
    try:
        document = formatted_document(arguments["format"])
    except TimeServiceError as exc:
        raise InvalidParamsError(str(exc)) from exc
    document.pop("unix_nanos")
    return {"document": _pretty(document)}


def register_prompts(builder: RegistryBuilder, monitor: SyncMonitor) -> RegistryBuilder:
    """Add the default prompts to *builder*."""

    async def sync_context(arguments: dict[str, str]) -> dict[str, str]:
        status = await monitor.query_status()
        return {"document": _pretty(status.to_dict()), "health": status.health}

    builder.add_prompt(
        PromptDescriptor(
            name="time",
            title="Current time",
            description="Get current UTC time with detailed information",
        ),
        "Here is the current UTC time:\n\n$document",
        context=_time_context,
    )
    builder.add_prompt(
        PromptDescriptor(
            name="unix_time",
            title="Unix time",
            description="Get current Unix timestamp with nanosecond precision",
        ),
        "Here is the current Unix timestamp:\n\n$document",
        context=_unix_context,
    )
    builder.add_prompt(
        PromptDescriptor(
            name="time_in",
            title="Time in timezone",
            description="Get current time in a specific timezone (IANA name)",
            arguments=(
                PromptArgument(
                    name="timezone",
                    description="IANA timezone name, e.g. Europe/Paris",
                    required=True,
                ),
            ),
        ),
        "Here is the current time in $timezone:\n\n$document",
        description_template="Current time in $timezone",
        context=_time_in_context,
    )
    builder.add_prompt(
        PromptDescriptor(
            name="format_time",
            title="Formatted time",
            description="Get current time in a custom strftime format",
            arguments=(
                PromptArgument(
                    name="format",
                    description="strftime format string, e.g. %Y-%m-%d",
                    required=True,
                ),
            ),
        ),
        "Here is the current time formatted as '$format':\n\n$document",
        context=_format_context,
    )
    builder.add_prompt(
        PromptDescriptor(
            name="sync_status",
            title="Clock sync status",
            description="Get the clock synchronization status of this server",
        ),
        "The server clock is $health. Synchronization status:\n\n$document",
        context=sync_context,
    )
    return builder
