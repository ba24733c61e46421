"""Protocol models: JSON-RPC 2.0 envelopes and MCP descriptors.

Implements the message shapes used for the lifecycle (``initialize``), tool
(``tools/list``, ``tools/call``) and prompt (``prompts/list``,
``prompts/get``) methods.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, StrictFloat, StrictInt, StrictStr

PROTOCOL_VERSION = "2025-06-18"
SERVER_NAME = "mcp-utc-time-server"

RequestId = StrictInt | StrictFloat | StrictStr | None

# ---------------------------------------------------------------------------
# JSON-RPC 2.0 envelope
# ---------------------------------------------------------------------------


class JsonRpcRequest(BaseModel):
    """A JSON-RPC 2.0 request; ``id is None`` marks a notification."""

    model_config = {"extra": "ignore"}

    jsonrpc: Literal["2.0"]
    method: StrictStr
    params: dict[str, Any] | None = None
    id: RequestId = None

    @property
    def is_notification(self) -> bool:
        return self.id is None


class JsonRpcError(BaseModel):
    """A JSON-RPC 2.0 error object."""

    code: int
    message: str
    data: Any = None


class JsonRpcResponse(BaseModel):
    """A JSON-RPC 2.0 response: exactly one of ``result`` or ``error``."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: RequestId = None
    result: dict[str, Any] | None = None
    error: JsonRpcError | None = None

    @classmethod
    def success(cls, result: dict[str, Any], request_id: Any) -> JsonRpcResponse:
        return cls(id=request_id, result=result)

    @classmethod
    def failure(
        cls, code: int, message: str, request_id: Any = None, data: Any = None
    ) -> JsonRpcResponse:
        return cls(id=request_id, error=JsonRpcError(code=code, message=message, data=data))

    def to_wire(self) -> dict[str, Any]:
        """Serialize with only the member that applies."""
        body: dict[str, Any] = {"jsonrpc": self.jsonrpc}
        if self.error is not None:
            body["error"] = self.error.model_dump(exclude_none=True)
        else:
            body["result"] = self.result if self.result is not None else {}
        body["id"] = self.id
        return body


# ---------------------------------------------------------------------------
# MCP payloads
# ---------------------------------------------------------------------------


class ToolDescriptor(BaseModel):
    """A tool as advertised by ``tools/list``."""

    model_config = {"frozen": True, "populate_by_name": True}

    name: str = Field(min_length=1)
    title: str | None = None
    description: str = Field(min_length=1)
    input_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}},
        alias="inputSchema",
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class PromptArgument(BaseModel):
    """One named argument of a prompt template."""

    model_config = {"frozen": True}

    name: str = Field(min_length=1)
    description: str | None = None
    required: bool = False


class PromptDescriptor(BaseModel):
    """A prompt as advertised by ``prompts/list``."""

    model_config = {"frozen": True}

    name: str = Field(min_length=1)
    title: str
    description: str
    arguments: tuple[PromptArgument, ...] = ()

    def to_wire(self) -> dict[str, Any]:
        data = self.model_dump(exclude_none=True)
        data["arguments"] = [arg.model_dump(exclude_none=True) for arg in self.arguments]
        return data


class TextContent(BaseModel):
    """A ``{"type": "text"}`` content block."""

    type: Literal["text"] = "text"
    text: str


class ToolCallResult(BaseModel):
    """Result payload of ``tools/call``."""

    model_config = {"populate_by_name": True}

    content: list[TextContent]
    is_error: bool = Field(default=False, alias="isError")

    @classmethod
    def text(cls, text: str, *, is_error: bool = False) -> ToolCallResult:
        return cls(content=[TextContent(text=text)], is_error=is_error)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class PromptMessage(BaseModel):
    """One message of a rendered prompt."""

    role: Literal["user", "assistant"] = "user"
    content: TextContent


class ServerCapabilities(BaseModel):
    """The static capability set declared at ``initialize``."""

    model_config = {"frozen": True}

    tools: dict[str, bool] = Field(default_factory=lambda: {"listChanged": False})
    prompts: dict[str, bool] = Field(default_factory=lambda: {"listChanged": False})
