"""Dispatcher — turns one JSON-RPC message into zero or one responses.

Methods are classified into a closed set of families (lifecycle, tools,
prompts, legacy) before routing. The tool and prompt families have different
failure contracts: an unknown or failing tool yields a *result* flagged with
``isError``, while an unknown prompt or missing prompt argument yields a
top-level JSON-RPC ``error``.
"""

from __future__ import annotations

import enum
import json
import logging
from typing import TYPE_CHECKING, Any, assert_never

from pydantic import ValidationError

from utctime import __version__
from utctime.protocol.errors import (
    InternalError,
    InvalidParamsError,
    InvalidRequestError,
    MethodNotFoundError,
    ParseError,
    PromptNotFoundError,
    ProtocolError,
    ToolExecutionError,
    ToolNotFoundError,
)
from utctime.protocol.models import (
    PROTOCOL_VERSION,
    SERVER_NAME,
    JsonRpcRequest,
    JsonRpcResponse,
    ServerCapabilities,
    ToolCallResult,
)
from utctime.utils.telemetry import (
    ATTR_PROMPT_NAME,
    ATTR_RPC_ERROR_CODE,
    ATTR_RPC_FAMILY,
    ATTR_RPC_METHOD,
    ATTR_TOOL_NAME,
    get_tracer,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from utctime.protocol.registry import Registry

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

INSTRUCTIONS = (
    "MCP UTC Time Server - provides high-precision time, timezone, and clock "
    "synchronization status.\n\n"
    "Time tools: get_time, get_unix_time, get_nanos, get_time_formatted, "
    "get_time_with_timezone, list_timezones, convert_time\n"
    "Sync tools: get_ntp_status, get_ntp_peers\n"
    "Prompts: /time, /unix_time, /time_in <timezone>, /format_time <format>, /sync_status"
)


class MethodFamily(enum.Enum):
    """Closed classification of JSON-RPC method names."""

    LIFECYCLE = "lifecycle"
    TOOLS = "tools"
    PROMPTS = "prompts"
    LEGACY = "legacy"
    UNKNOWN = "unknown"


LIFECYCLE_METHODS = frozenset({"initialize", "ping"})
TOOL_METHODS = frozenset({"tools/list", "tools/call"})
PROMPT_METHODS = frozenset({"prompts/list", "prompts/get"})
NOTIFICATION_PREFIX = "notifications/"


def classify(method: str, legacy_methods: Mapping[str, Any] | frozenset[str] = frozenset()) -> MethodFamily:
    """Classify *method* by exact, case-sensitive name."""
    if method in LIFECYCLE_METHODS or method.startswith(NOTIFICATION_PREFIX):
        return MethodFamily.LIFECYCLE
    if method in TOOL_METHODS:
        return MethodFamily.TOOLS
    if method in PROMPT_METHODS:
        return MethodFamily.PROMPTS
    if method in legacy_methods:
        return MethodFamily.LEGACY
    return MethodFamily.UNKNOWN


class Dispatcher:
    """Routes JSON-RPC requests to the registry and builds responses.

    Usage::

        dispatcher = Dispatcher(registry, legacy=legacy_handlers(monitor))
        line = await dispatcher.handle_raw(b'{"jsonrpc":"2.0","method":"ping","id":1}')

    Stateless apart from the read-only registry, so a single instance serves
    both transports concurrently.
    """

    def __init__(
        self,
        registry: Registry,
        *,
        legacy: Mapping[str, Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]] | None = None,
        server_version: str = __version__,
        capabilities: ServerCapabilities | None = None,
    ) -> None:
        self._registry = registry
        self._legacy = dict(legacy or {})
        self._server_version = server_version
        self._capabilities = capabilities or ServerCapabilities()

    @property
    def registry(self) -> Registry:
        return self._registry

    @property
    def legacy_methods(self) -> tuple[str, ...]:
        return tuple(self._legacy)

    async def handle_raw(self, data: bytes | str) -> bytes | None:
        """Handle one serialized message; return the serialized response, if any."""
        try:
            text = data.decode("utf-8") if isinstance(data, bytes) else data
            message = json.loads(text)
        except (ValueError, RecursionError) as exc:
            logger.warning("Unparsable request: %s", exc)
            error = ParseError(str(exc))
            response = JsonRpcResponse.failure(error.code, error.message, None)
            return self.encode(response.to_wire())

        reply = await self.handle(message)
        return None if reply is None else self.encode(reply)

    async def handle(self, message: Any) -> dict[str, Any] | None:
        """Handle one decoded message; ``None`` means no response is sent."""
        try:
            request = self._validate(message)
        except InvalidRequestError as exc:
            logger.warning("Invalid request: %s", exc.message)
            return JsonRpcResponse.failure(exc.code, exc.message, recover_id(message)).to_wire()

        family = classify(request.method, self._legacy)
        with _tracer.start_as_current_span("rpc.dispatch") as span:
            span.set_attribute(ATTR_RPC_METHOD, request.method)
            span.set_attribute(ATTR_RPC_FAMILY, family.value)
            response = await self._respond(request, family)
            if response.error is not None:
                span.set_attribute(ATTR_RPC_ERROR_CODE, response.error.code)

        if request.is_notification:
            logger.debug("Notification %s handled; no response sent", request.method)
            return None
        return response.to_wire()

    @staticmethod
    def encode(body: dict[str, Any]) -> bytes:
        return json.dumps(body, separators=(",", ":"), default=str).encode("utf-8")

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    async def _respond(self, request: JsonRpcRequest, family: MethodFamily) -> JsonRpcResponse:
        params = request.params or {}
        try:
            result = await self._route(request.method, family, params)
        except ProtocolError as exc:
            logger.info("%s failed: %s", request.method, exc.message)
            return JsonRpcResponse.failure(exc.code, exc.message, request.id, exc.data)
        except Exception:
            logger.exception("Unhandled error in %s", request.method)
            error = InternalError("Internal error")
            return JsonRpcResponse.failure(error.code, error.message, request.id)
        return JsonRpcResponse.success(result, request.id)

    async def _route(self, method: str, family: MethodFamily, params: dict[str, Any]) -> dict[str, Any]:
        if family is MethodFamily.LIFECYCLE:
            if method == "initialize":
                return self._initialize(params)
            # ping and notifications/* carry no payload.
            return {}
        if family is MethodFamily.TOOLS:
            if method == "tools/list":
                return {"tools": [tool.to_wire() for tool in self._registry.tools()]}
            return await self._call_tool(params)
        if family is MethodFamily.PROMPTS:
            if method == "prompts/list":
                return {"prompts": [prompt.to_wire() for prompt in self._registry.prompts()]}
            return await self._get_prompt(params)
        if family is MethodFamily.LEGACY:
            return await self._legacy[method](params)
        if family is MethodFamily.UNKNOWN:
            raise MethodNotFoundError(method)
        assert_never(family)

    def _initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        client = params.get("clientInfo") or {}
        logger.info(
            "Initialize from %s %s (requested protocol %s)",
            client.get("name", "unknown-client") if isinstance(client, dict) else "unknown-client",
            client.get("version", "") if isinstance(client, dict) else "",
            params.get("protocolVersion", "unspecified"),
        )
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "serverInfo": {"name": SERVER_NAME, "version": self._server_version},
            "capabilities": self._capabilities.model_dump(),
            "instructions": INSTRUCTIONS,
        }

    async def _call_tool(self, params: dict[str, Any]) -> dict[str, Any]:
        name = params.get("name")
        if not isinstance(name, str) or not name:
            msg = "tools/call requires a string 'name'"
            raise InvalidParamsError(msg)
        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            msg = "tools/call 'arguments' must be an object"
            raise InvalidParamsError(msg)

        with _tracer.start_as_current_span("rpc.tool") as span:
            span.set_attribute(ATTR_TOOL_NAME, name)
            entry = self._registry.resolve_tool(name)
            if entry is None:
                logger.info("tools/call for unknown tool %s", name)
                return ToolCallResult.text(str(ToolNotFoundError(name)), is_error=True).to_wire()
            try:
                value = await entry.handler(arguments)
            except Exception as exc:
                logger.info("%s", ToolExecutionError(name, str(exc)))
                return ToolCallResult.text(f"Error: {exc}", is_error=True).to_wire()

        text = value if isinstance(value, str) else json.dumps(value, indent=2, default=str)
        return ToolCallResult.text(text).to_wire()

    async def _get_prompt(self, params: dict[str, Any]) -> dict[str, Any]:
        name = params.get("name")
        if not isinstance(name, str) or not name:
            msg = "prompts/get requires a string 'name'"
            raise InvalidParamsError(msg)
        arguments = params.get("arguments")
        if arguments is not None and not isinstance(arguments, dict):
            msg = "prompts/get 'arguments' must be an object"
            raise InvalidParamsError(msg)

        with _tracer.start_as_current_span("rpc.prompt") as span:
            span.set_attribute(ATTR_PROMPT_NAME, name)
            entry = self._registry.resolve_prompt(name)
            if entry is None:
                raise PromptNotFoundError(name)
            return await entry.render(arguments)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _validate(message: Any) -> JsonRpcRequest:
        if isinstance(message, list):
            msg = "batch requests are not supported"
            raise InvalidRequestError(msg)
        if not isinstance(message, dict):
            msg = "request must be a JSON object"
            raise InvalidRequestError(msg)
        try:
            return JsonRpcRequest.model_validate(message)
        except ValidationError as exc:
            first = exc.errors()[0]
            field = ".".join(str(part) for part in first["loc"]) or "request"
            raise InvalidRequestError(f"{field}: {first['msg']}") from exc


def recover_id(message: Any) -> Any:
    """Best-effort id for error responses to malformed requests."""
    if not isinstance(message, dict):
        return None
    request_id = message.get("id")
    if isinstance(request_id, bool) or not isinstance(request_id, int | float | str):
        return None
    return request_id
