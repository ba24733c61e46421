"""utctime — MCP time server with clock-synchronization status."""

from __future__ import annotations

from typing import TYPE_CHECKING

__version__ = "0.1.0"

if TYPE_CHECKING:
    from utctime.server import TimeServer as TimeServer

_LAZY_EXPORTS = {
    "TimeServer": "utctime.server",
}


def __getattr__(name: str) -> object:
    module_path = _LAZY_EXPORTS.get(name)
    if module_path is not None:
        import importlib

        mod = importlib.import_module(module_path)
        return getattr(mod, name)
    raise AttributeError(f"module 'utctime' has no attribute {name!r}")
