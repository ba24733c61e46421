"""``utctime tools`` — inspect the registered tools and prompts."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from utctime.cli_commands._output import print_json, print_prompts_table, print_tools_table

if TYPE_CHECKING:
    from utctime.protocol.registry import Registry


def _registry() -> Registry:
    from utctime.config import ServerSettings
    from utctime.sync.status import SyncMonitor
    from utctime.tools import build_registry

    # Listing needs descriptors only; no sync tier is ever queried.
    return build_registry(SyncMonitor(), None, ServerSettings())


@click.group()
def tools() -> None:
    """Inspect tools and prompts."""


@tools.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def list_tools(as_json: bool) -> None:
    """List the tools advertised by tools/list."""
    registry = _registry()
    if as_json:
        print_json([tool.to_wire() for tool in registry.tools()])
        return
    print_tools_table(registry.tools())


@tools.command("prompts")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def list_prompts(as_json: bool) -> None:
    """List the prompts advertised by prompts/list."""
    registry = _registry()
    if as_json:
        print_json([prompt.to_wire() for prompt in registry.prompts()])
        return
    print_prompts_table(registry.prompts())
