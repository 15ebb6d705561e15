"""Tests for the /metrics HTTP endpoint."""

import aiohttp
import pytest
from aiohttp.test_utils import TestClient, TestServer

from port_exporter.core.types import Target
from port_exporter.observability.metrics import MetricState
from port_exporter.observability.prometheus_server import MetricsServer


@pytest.mark.asyncio
async def test_metrics_endpoint_serves_state() -> None:
    state = MetricState()
    state.update(Target("127.0.0.1", "9999", "closed", "local"), False)
    server = MetricsServer(state)

    async with TestClient(TestServer(server.app)) as client:
        resp = await client.get("/metrics")
        body = await resp.text()

    assert resp.status == 200
    assert resp.headers["Content-Type"].startswith("text/plain")
    assert "# TYPE port_status gauge" in body
    assert 'host="127.0.0.1"' in body
    assert 'port="9999"' in body


@pytest.mark.asyncio
async def test_metrics_endpoint_reflects_later_updates() -> None:
    state = MetricState()
    target = Target("10.0.0.1", "22", "ssh", "")
    server = MetricsServer(state)

    async with TestClient(TestServer(server.app)) as client:
        before = await (await client.get("/metrics")).text()
        state.update(target, True)
        after = await (await client.get("/metrics")).text()

    assert 'host="10.0.0.1"' not in before
    assert 'host="10.0.0.1"' in after


@pytest.mark.asyncio
async def test_health_endpoint() -> None:
    server = MetricsServer(MetricState())

    async with TestClient(TestServer(server.app)) as client:
        resp = await client.get("/health")
        assert resp.status == 200
        assert await resp.text() == "OK"


@pytest.mark.asyncio
async def test_start_binds_and_stop_releases() -> None:
    state = MetricState()
    state.update(Target("10.0.0.1", "22"), True)
    server = MetricsServer(state, port=0, host="127.0.0.1")

    await server.start()
    try:
        assert server.port != 0
        async with aiohttp.ClientSession() as session:
            async with session.get(f"http://127.0.0.1:{server.port}/metrics") as resp:
                assert resp.status == 200
                assert "port_status" in await resp.text()
    finally:
        await server.stop()

    assert server.runner is None


@pytest.mark.asyncio
async def test_start_raises_when_port_is_taken(listening_port) -> None:
    server = MetricsServer(MetricState(), port=listening_port, host="127.0.0.1")

    with pytest.raises(OSError):
        await server.start()

    assert server.runner is None
