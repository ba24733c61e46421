"""HTTP transport — FastAPI application and its uvicorn runner.

Endpoints:

* ``GET /health`` and ``GET /metrics`` — open, fresh per scrape.
* ``POST /mcp`` — JSON-RPC over HTTP; a notification gets ``204``.
* ``POST /time/{name}`` — REST mirror of the legacy ``time/*`` methods.
* ``GET /api/time`` — time snapshot, optionally in ``?timezone=``.

The last three require an API key when any are configured.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any

import uvicorn
from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from utctime import __version__
from utctime.health import METRICS_CONTENT_TYPE
from utctime.protocol import errors as rpc_errors
from utctime.protocol.dispatcher import recover_id
from utctime.protocol.models import SERVER_NAME, JsonRpcResponse
from utctime.timeservice import TimezoneError, snapshot_time
from utctime.transport.auth import ApiKeyValidator, AuthenticationError
from utctime.transport.errors import TransportIOError

if TYPE_CHECKING:
    from utctime.config import ServerSettings
    from utctime.health import HealthExporter
    from utctime.protocol.dispatcher import Dispatcher

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"

# JSON-RPC error code -> HTTP status for the REST mirror.
_REST_STATUS = {
    rpc_errors.METHOD_NOT_FOUND: 404,
    rpc_errors.INVALID_PARAMS: 400,
    rpc_errors.INVALID_REQUEST: 400,
    rpc_errors.PARSE_ERROR: 400,
    rpc_errors.TIME_SERVICE_ERROR: 400,
    rpc_errors.REQUEST_TIMEOUT: 504,
}


async def authentication_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, AuthenticationError)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"message": exc.message, "type": "invalid_api_key"}},
        headers={"WWW-Authenticate": "Bearer"},
    )


def create_http_app(
    dispatcher: Dispatcher,
    exporter: HealthExporter,
    *,
    validator: ApiKeyValidator | None = None,
    request_timeout: float = 5.0,
) -> FastAPI:
    """Build the FastAPI application around a shared dispatcher."""
    validator = validator or ApiKeyValidator()
    require_key = Depends(validator.dependency())

    app = FastAPI(
        title="MCP UTC Time Server",
        description="High-precision time and clock-synchronization status",
        version=__version__,
        docs_url=None,
        redoc_url=None,
    )
    app.add_exception_handler(AuthenticationError, authentication_error_handler)

    @app.get("/health")
    async def health() -> JSONResponse:
        report = await exporter.health()
        return JSONResponse(content=report.model_dump())

    @app.get("/metrics")
    async def metrics() -> PlainTextResponse:
        text = await exporter.metrics()
        return PlainTextResponse(content=text, media_type=METRICS_CONTENT_TYPE)

    @app.post("/mcp", dependencies=[require_key])
    async def mcp(request: Request) -> Response:
        body = await request.body()
        try:
            reply = await asyncio.wait_for(dispatcher.handle_raw(body), timeout=request_timeout)
        except TimeoutError:
            logger.warning("JSON-RPC request exceeded %.1fs", request_timeout)
            error = rpc_errors.RequestTimeoutError(request_timeout)
            failure = JsonRpcResponse.failure(error.code, error.message, _peek_id(body))
            return Response(
                content=dispatcher.encode(failure.to_wire()),
                status_code=504,
                media_type=JSON_CONTENT_TYPE,
            )
        if reply is None:
            return Response(status_code=204)
        return Response(content=reply, media_type=JSON_CONTENT_TYPE)

    @app.post("/time/{name}", dependencies=[require_key])
    async def legacy_time(name: str, request: Request) -> JSONResponse:
        body = await request.body()
        params: Any = {}
        if body.strip():
            try:
                params = json.loads(body)
            except (ValueError, RecursionError) as exc:
                return _rest_error(rpc_errors.PARSE_ERROR, f"Parse error: {exc}")
        message = {"jsonrpc": "2.0", "method": f"time/{name}", "params": params, "id": 0}
        try:
            reply = await asyncio.wait_for(dispatcher.handle(message), timeout=request_timeout)
        except TimeoutError:
            return _rest_error(rpc_errors.REQUEST_TIMEOUT, f"Request timed out after {request_timeout}s")

        assert reply is not None
        if "error" in reply:
            return _rest_error(reply["error"]["code"], reply["error"]["message"])
        return JSONResponse(content=reply["result"])

    @app.get("/api/time", dependencies=[require_key])
    async def api_time(timezone: str = Query("UTC")) -> JSONResponse:
        try:
            snapshot = snapshot_time(timezone)
        except TimezoneError as exc:
            return JSONResponse(status_code=400, content={"error": str(exc)})
        return JSONResponse(content=snapshot.to_dict())

    @app.get("/")
    async def index() -> JSONResponse:
        return JSONResponse(
            content={
                "service": SERVER_NAME,
                "version": __version__,
                "endpoints": ["/health", "/metrics", "/mcp", "/time/{name}", "/api/time"],
            }
        )

    return app


def _rest_error(code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=_REST_STATUS.get(code, 500),
        content={"error": {"code": code, "message": message}},
    )


def _peek_id(body: bytes) -> Any:
    try:
        return recover_id(json.loads(body))
    except (ValueError, RecursionError):
        return None


class HttpServer:
    """Runs the FastAPI app with uvicorn inside the current event loop."""

    def __init__(self, app: FastAPI, settings: ServerSettings) -> None:
        config = uvicorn.Config(
            app,
            host=settings.http_host,
            port=settings.http_port,
            log_level=settings.log_level.lower(),
            log_config=None,
            lifespan="off",
        )
        self._server = uvicorn.Server(config)
        self._address = f"{settings.http_host}:{settings.http_port}"

    @property
    def address(self) -> str:
        return self._address

    async def serve(self) -> None:
        """Serve until :meth:`shutdown`; raises TransportIOError on startup failure."""
        logger.info("HTTP transport listening on %s", self._address)
        try:
            await self._server.serve()
        except SystemExit as exc:
            # uvicorn exits the process when it can't bind.
            raise TransportIOError("http", f"server on {self._address} failed to start") from exc
        except OSError as exc:
            raise TransportIOError("http", str(exc)) from exc

    def shutdown(self) -> None:
        self._server.should_exit = True
