"""Tests for the HTTP transport."""

from __future__ import annotations

import asyncio
import json
import socket
from typing import Any

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from utctime.config import ApiKey, ServerSettings
from utctime.health import HealthExporter
from utctime.protocol.dispatcher import Dispatcher
from utctime.protocol.models import ToolDescriptor
from utctime.protocol.registry import RegistryBuilder
from utctime.sync.status import SyncMonitor
from utctime.transport.auth import ApiKeyValidator
from utctime.transport.errors import TransportIOError
from utctime.transport.http import HttpServer, create_http_app


def _rpc(method: str, params: dict[str, Any] | None = None, request_id: Any = 1) -> dict[str, Any]:
    message: dict[str, Any] = {"jsonrpc": "2.0", "method": method, "id": request_id}
    if params is not None:
        message["params"] = params
    return message


@pytest.fixture
def app(dispatcher: Dispatcher, synced_monitor: SyncMonitor) -> FastAPI:
    return create_http_app(dispatcher, HealthExporter(synced_monitor))


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


class TestHealthEndpoints:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["service"] == "mcp-utc-time-server"
        assert body["sync"]["source"] == "PeerQuery"

    def test_health_unavailable_is_still_200(self, dispatcher: Dispatcher, unavailable_monitor: SyncMonitor) -> None:
        client = TestClient(create_http_app(dispatcher, HealthExporter(unavailable_monitor)))
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "unhealthy"

    def test_metrics(self, client: TestClient) -> None:
        response = client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "mcp_sync_synced 1" in response.text

    def test_index(self, client: TestClient) -> None:
        assert "/mcp" in client.get("/").json()["endpoints"]


class TestMcpEndpoint:
    def test_request(self, client: TestClient) -> None:
        response = client.post("/mcp", json=_rpc("tools/list", request_id=9))

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == 9
        assert len(body["result"]["tools"]) == 9

    def test_notification_gets_204(self, client: TestClient) -> None:
        response = client.post("/mcp", json={"jsonrpc": "2.0", "method": "notifications/initialized"})
        assert response.status_code == 204
        assert response.content == b""

    def test_parse_error(self, client: TestClient) -> None:
        response = client.post("/mcp", content=b"{not json", headers={"content-type": "application/json"})

        assert response.status_code == 200
        assert response.json()["error"]["code"] == -32700
        assert response.json()["id"] is None

    def test_tool_failure_is_in_band(self, client: TestClient) -> None:
        response = client.post(
            "/mcp",
            json=_rpc("tools/call", {"name": "get_time_with_timezone", "arguments": {"timezone": "Bad/Zone"}}),
        )
        result = response.json()["result"]
        assert result["isError"] is True
        assert "Invalid timezone" in result["content"][0]["text"]

    async def test_concurrent_requests_pair_ids(self, app: FastAPI) -> None:
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
            responses = await asyncio.gather(
                *(http.post("/mcp", json=_rpc("tools/call", {"name": "get_nanos"}, i)) for i in range(50))
            )

        assert [r.json()["id"] for r in responses] == list(range(50))
        for response in responses:
            payload = json.loads(response.json()["result"]["content"][0]["text"])
            assert payload["nanoseconds"] > 0
            assert payload["seconds"] * 1_000_000_000 + payload["subsec_nanos"] == payload["nanoseconds"]

    def test_timeout_gives_504(self, synced_monitor: SyncMonitor) -> None:
        async def stall(arguments: dict[str, Any]) -> str:
            await asyncio.sleep(5)
            return "late"

        registry = (
            RegistryBuilder()
            .add_tool(ToolDescriptor(name="stall", description="Never finishes in time"), stall)
            .build()
        )
        app = create_http_app(Dispatcher(registry), HealthExporter(synced_monitor), request_timeout=0.1)

        response = TestClient(app).post("/mcp", json=_rpc("tools/call", {"name": "stall"}, "slow-1"))

        assert response.status_code == 504
        assert response.json()["error"]["code"] == -32001
        assert response.json()["id"] == "slow-1"


class TestRestMirror:
    def test_get(self, client: TestClient) -> None:
        response = client.post("/time/get")
        assert response.status_code == 200
        assert response.json()["timezone"] == "UTC"

    def test_with_params(self, client: TestClient) -> None:
        response = client.post("/time/get_with_timezone", json={"timezone": "Europe/Berlin"})
        assert response.json()["timezone"] == "Europe/Berlin"

    def test_time_error_is_400(self, client: TestClient) -> None:
        response = client.post("/time/get_with_timezone", json={"timezone": "Bad/Zone"})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == -32000

    def test_missing_param_is_400(self, client: TestClient) -> None:
        response = client.post("/time/get_with_format", json={})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == -32602

    def test_unknown_method_is_404(self, client: TestClient) -> None:
        response = client.post("/time/nope")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == -32601

    def test_bad_body_is_400(self, client: TestClient) -> None:
        response = client.post("/time/get", content=b"{oops")
        assert response.status_code == 400
        assert response.json()["error"]["code"] == -32700

    def test_api_time(self, client: TestClient) -> None:
        assert client.get("/api/time").json()["timezone"] == "UTC"
        assert client.get("/api/time", params={"timezone": "Asia/Tokyo"}).json()["offset"] == 32_400

    def test_api_time_bad_timezone(self, client: TestClient) -> None:
        response = client.get("/api/time", params={"timezone": "Bad/Zone"})
        assert response.status_code == 400
        assert "Invalid timezone" in response.json()["error"]


class TestAuthentication:
    @pytest.fixture
    def secured(self, dispatcher: Dispatcher, synced_monitor: SyncMonitor) -> TestClient:
        validator = ApiKeyValidator([ApiKey(key="s3cret")])
        return TestClient(create_http_app(dispatcher, HealthExporter(synced_monitor), validator=validator))

    def test_health_and_metrics_are_open(self, secured: TestClient) -> None:
        assert secured.get("/health").status_code == 200
        assert secured.get("/metrics").status_code == 200

    def test_missing_key(self, secured: TestClient) -> None:
        response = secured.post("/mcp", json=_rpc("ping"))

        assert response.status_code == 401
        assert response.json()["error"]["type"] == "invalid_api_key"
        assert response.headers["www-authenticate"] == "Bearer"

    def test_header_key(self, secured: TestClient) -> None:
        response = secured.post("/mcp", json=_rpc("ping"), headers={"X-API-Key": "s3cret"})
        assert response.status_code == 200

    def test_bearer_key(self, secured: TestClient) -> None:
        response = secured.get("/api/time", headers={"Authorization": "Bearer s3cret"})
        assert response.status_code == 200

    def test_wrong_key(self, secured: TestClient) -> None:
        response = secured.post("/time/get", headers={"X-API-Key": "nope"})
        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Invalid API key"


class TestHttpServer:
    async def test_port_in_use(self, app: FastAPI) -> None:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as busy:
            busy.bind(("127.0.0.1", 0))
            busy.listen()
            port = busy.getsockname()[1]
            server = HttpServer(app, ServerSettings(http_host="127.0.0.1", http_port=port))

            with pytest.raises(TransportIOError) as exc_info:
                await server.serve()

        assert exc_info.value.channel == "http"
        assert server.address == f"127.0.0.1:{port}"
