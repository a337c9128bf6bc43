from __future__ import annotations

import asyncio

import pytest
from aiohttp import test_utils

from tests.fakes import FakeProvisioner, FakeTransport
from watchparty.gateway.http_server import HTTPServer
from watchparty.gateway.lifecycle import SessionLifecycleManager
from watchparty.gateway.provisioning import ProvisioningTimeout, ProvisioningUnavailable
from watchparty.gateway.registry import ConnectionRegistry
from watchparty.observability.metrics import RelayMetrics

pytestmark = pytest.mark.anyio


@pytest.fixture
def http_server(
    lifecycle: SessionLifecycleManager, registry: ConnectionRegistry, metrics: RelayMetrics
) -> HTTPServer:
    return HTTPServer(lifecycle, registry, port=0, cors_origin="https://party.test", metrics=metrics)


async def test_create_then_destroy_round_trip(
    http_server: HTTPServer, registry: ConnectionRegistry
) -> None:
    transport = FakeTransport()
    registry.admit(transport)

    async with test_utils.TestClient(test_utils.TestServer(http_server.app)) as client:
        created = await client.post("/api/create-session")
        assert created.status == 200
        assert await created.json() == {
            "success": True,
            "sessionId": "vm-1",
            "embedUrl": "https://embed.test/vm-1",
        }

        current = await client.get("/api/session")
        assert (await current.json())["sessionId"] == "vm-1"

        destroyed = await client.post("/api/destroy-session", json={"sessionId": "vm-1"})
        assert destroyed.status == 200
        assert (await destroyed.json())["success"] is True

        current = await client.get("/api/session")
        assert await current.json() == {"active": False}

    assert transport.types() == ["session_info", "session_destroyed"]


async def test_destroy_requires_session_id(http_server: HTTPServer) -> None:
    async with test_utils.TestClient(test_utils.TestServer(http_server.app)) as client:
        missing = await client.post("/api/destroy-session", json={})
        not_json = await client.post("/api/destroy-session", data="sessionId=vm-1")
        not_utf8 = await client.post(
            "/api/destroy-session", data=b"\xff\xfe\x00{", headers={"Content-Type": "application/json"}
        )

    assert missing.status == 400
    assert not_json.status == 400
    assert not_utf8.status == 400


async def test_destroy_errors_map_to_statuses(http_server: HTTPServer) -> None:
    async with test_utils.TestClient(test_utils.TestServer(http_server.app)) as client:
        idle = await client.post("/api/destroy-session", json={"sessionId": "vm-1"})
        await client.post("/api/create-session")
        wrong = await client.post("/api/destroy-session", json={"sessionId": "other"})

        assert idle.status == 404
        assert wrong.status == 409
        body = await wrong.json()
        assert body["success"] is False
        assert "not the active session" in body["error"]


@pytest.mark.parametrize(
    ("error", "status"),
    [(ProvisioningUnavailable("down"), 502), (ProvisioningTimeout("slow"), 504)],
)
async def test_provisioning_failures_map_to_gateway_errors(
    http_server: HTTPServer, provisioner: FakeProvisioner, error: Exception, status: int
) -> None:
    provisioner.create_error = error
    async with test_utils.TestClient(test_utils.TestServer(http_server.app)) as client:
        response = await client.post("/api/create-session")
        body = await response.json()

    assert response.status == status
    assert body == {"success": False, "error": "Failed to create session"}


async def test_busy_lifecycle_returns_conflict(
    http_server: HTTPServer, lifecycle: SessionLifecycleManager, provisioner: FakeProvisioner
) -> None:
    provisioner.gate = asyncio.Event()
    pending = asyncio.create_task(lifecycle.create_session())
    await asyncio.sleep(0)

    async with test_utils.TestClient(test_utils.TestServer(http_server.app)) as client:
        response = await client.post("/api/create-session")
        assert response.status == 409

    provisioner.gate.set()
    assert (await pending).success


async def test_cors_headers_and_preflight(http_server: HTTPServer) -> None:
    async with test_utils.TestClient(test_utils.TestServer(http_server.app)) as client:
        preflight = await client.options("/api/create-session")
        health = await client.get("/api/health")
        missing = await client.get("/api/nope")

        assert preflight.status == 204
        assert preflight.headers["Access-Control-Allow-Origin"] == "https://party.test"
        assert health.headers["Access-Control-Allow-Origin"] == "https://party.test"
        assert missing.status == 404
        assert (await health.json())["session"] == "idle"


async def test_metrics_endpoint_reports_relay_counters(
    http_server: HTTPServer, metrics: RelayMetrics
) -> None:
    metrics.record_event("chat_message", delivered=3)
    async with test_utils.TestClient(test_utils.TestServer(http_server.app)) as client:
        response = await client.get("/api/metrics")
        stats = await response.json()

    assert stats["relay"]["events"] == {"chat_message": 1}
    assert stats["relay"]["deliveries"] == 3
