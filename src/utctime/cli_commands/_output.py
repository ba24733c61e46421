"""Shared CLI output formatters."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

if TYPE_CHECKING:
    from utctime.protocol.models import PromptDescriptor, ToolDescriptor
    from utctime.sync.models import SyncStatus

console = Console()

_HEALTH_STYLES = {"healthy": "green", "degraded": "yellow", "unhealthy": "red"}


def print_json(data: Any) -> None:
    console.print_json(json.dumps(data, default=str))


def print_status(status: SyncStatus, *, as_json: bool = False) -> None:
    """Pretty-print a sync status."""
    if as_json:
        print_json(status.to_dict())
        return

    style = _HEALTH_STYLES[status.health]
    console.print(f"\n[bold]Clock sync:[/bold] [{style}]{status.health}[/{style}]")
    console.print(f"  Source:    {status.source.value}")
    console.print(f"  Available: {status.available}")
    console.print(f"  Synced:    {status.synced}")
    console.print(f"  Offset:    {status.offset_ms:.3f} ms")
    console.print(f"  Stratum:   {status.stratum}")
    if status.reference:
        console.print(f"  Reference: {escape(status.reference)}")
    if status.error:
        console.print(f"  [dim]Error: {escape(status.error)}[/dim]")


def print_tools_table(tools: tuple[ToolDescriptor, ...]) -> None:
    """Pretty-print tool descriptors as a table."""
    table = Table(title="Tools")
    table.add_column("Name", style="cyan")
    table.add_column("Arguments")
    table.add_column("Description")

    for tool in tools:
        properties = tool.input_schema.get("properties", {})
        required = set(tool.input_schema.get("required", []))
        args = ", ".join(name + ("" if name in required else "?") for name in properties) or "-"
        table.add_row(tool.name, args, _truncate(tool.description))

    console.print(table)


def print_prompts_table(prompts: tuple[PromptDescriptor, ...]) -> None:
    """Pretty-print prompt descriptors as a table."""
    table = Table(title="Prompts")
    table.add_column("Name", style="cyan")
    table.add_column("Arguments")
    table.add_column("Description")

    for prompt in prompts:
        args = ", ".join(arg.name + ("" if arg.required else "?") for arg in prompt.arguments) or "-"
        table.add_row(prompt.name, args, _truncate(prompt.description))

    console.print(table)


def _truncate(text: str, max_len: int = 80) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
