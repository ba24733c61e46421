"""JSON-RPC error taxonomy for the protocol layer.

Every :class:`ProtocolError` carries its JSON-RPC ``code`` and becomes a
top-level ``error`` member. Tool failures are deliberately outside this tree:
``tools/call`` reports them in the result payload with ``isError: true``.
"""

from __future__ import annotations

from typing import Any

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
TIME_SERVICE_ERROR = -32000
REQUEST_TIMEOUT = -32001


class ProtocolError(Exception):
    """Base error for failures reported as a JSON-RPC ``error`` object."""

    code = INTERNAL_ERROR

    def __init__(self, message: str, data: Any = None) -> None:
        self.message = message
        self.data = data
        super().__init__(message)


class ParseError(ProtocolError):
    """The payload is not valid JSON."""

    code = PARSE_ERROR

    def __init__(self, detail: str = "") -> None:
        super().__init__("Parse error" + (f": {detail}" if detail else ""))


class InvalidRequestError(ProtocolError):
    """The payload is JSON but not a valid JSON-RPC 2.0 request."""

    code = INVALID_REQUEST

    def __init__(self, detail: str = "") -> None:
        super().__init__("Invalid Request" + (f": {detail}" if detail else ""))


class MethodNotFoundError(ProtocolError):
    """No method with this exact name exists."""

    code = METHOD_NOT_FOUND

    def __init__(self, method: str) -> None:
        self.method = method
        super().__init__(f"Method not found: {method}")


class InvalidParamsError(ProtocolError):
    """Required parameters are missing or malformed."""

    code = INVALID_PARAMS


class PromptNotFoundError(InvalidParamsError):
    """``prompts/get`` named a prompt that is not registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown prompt: {name}")


class PromptArgumentMissingError(InvalidParamsError):
    """A required prompt argument was not supplied."""

    def __init__(self, prompt: str, argument: str) -> None:
        self.prompt = prompt
        self.argument = argument
        super().__init__(f"Missing required argument '{argument}' for prompt '{prompt}'")


class InternalError(ProtocolError):
    """An unexpected failure while handling a request."""

    code = INTERNAL_ERROR


class TimeServiceError(ProtocolError):
    """The time service rejected a legacy ``time/*`` request."""

    code = TIME_SERVICE_ERROR

    def __init__(self, detail: str) -> None:
        super().__init__(f"Time error: {detail}")


class RequestTimeoutError(ProtocolError):
    """The request exceeded its server-side deadline."""

    code = REQUEST_TIMEOUT

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"Request timed out after {timeout}s")


# ---------------------------------------------------------------------------
# Tool failures (reported in-band, never as protocol errors)
# ---------------------------------------------------------------------------


class ToolError(Exception):
    """Base error for failures reported via a tool result's ``isError`` flag."""


class ToolNotFoundError(ToolError):
    """Requested tool does not exist in the registry."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown tool: {name}")


class ToolExecutionError(ToolError):
    """A tool handler failed."""

    def __init__(self, name: str, detail: str = "") -> None:
        self.name = name
        self.detail = detail
        super().__init__(f"Tool execution failed: {name}" + (f": {detail}" if detail else ""))
