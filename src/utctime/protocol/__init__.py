"""Protocol layer — JSON-RPC envelopes, registry and dispatcher."""

from utctime.protocol.dispatcher import Dispatcher, MethodFamily, classify
from utctime.protocol.errors import (
    InvalidParamsError,
    InvalidRequestError,
    MethodNotFoundError,
    ParseError,
    PromptNotFoundError,
    ProtocolError,
    ToolError,
    ToolNotFoundError,
)
from utctime.protocol.registry import Registry, RegistryBuilder

__all__ = [
    "Dispatcher",
    "InvalidParamsError",
    "InvalidRequestError",
    "MethodFamily",
    "MethodNotFoundError",
    "ParseError",
    "PromptNotFoundError",
    "ProtocolError",
    "Registry",
    "RegistryBuilder",
    "ToolError",
    "ToolNotFoundError",
    "classify",
]
