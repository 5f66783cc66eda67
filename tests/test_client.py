"""
PortLeaseClient against the app in-process, and against nothing at all.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from portlease.client import DEFAULT_URL, PortLeaseClient, default_url
from portlease.engine import (
    DaemonUnreachable,
    InvalidLeaseRequest,
    LeaseNotFound,
    PoolExhausted,
    ServiceNotFound,
    StoreUnavailable,
)

from conftest import POOL_MAX, POOL_MIN


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http_client:
        async with PortLeaseClient(base_url="http://test", http_client=http_client) as client:
            yield client


@pytest.mark.asyncio
async def test_allocate_heartbeat_release(client, clock):
    lease = await client.allocate("web", ttl_seconds=60, tags=["blue"])
    assert lease.port == POOL_MIN
    assert lease.tags == ["blue"]

    clock.advance(20)
    renewed = await client.heartbeat(lease.port)
    assert renewed.last_heartbeat > lease.last_heartbeat

    assert await client.release(lease.port) is True
    assert await client.release(lease.port) is False
    assert await client.list_active() == []


@pytest.mark.asyncio
async def test_lookup_and_get(client):
    first = await client.allocate("api")
    second = await client.allocate("api")

    result = await client.lookup("api")
    assert sorted(result.all_ports) == [first.port, second.port]
    assert result.port in result.all_ports

    lease = await client.get(first.port)
    assert lease.service_name == "api"


@pytest.mark.asyncio
async def test_error_codes_map_to_exceptions(client):
    with pytest.raises(LeaseNotFound) as exc_info:
        await client.heartbeat(POOL_MAX)
    assert exc_info.value.port == POOL_MAX

    with pytest.raises(ServiceNotFound):
        await client.lookup("ghost")

    with pytest.raises(LeaseNotFound):
        await client.get(POOL_MAX)

    with pytest.raises(InvalidLeaseRequest):
        await client.allocate("web", ttl_seconds=0)


@pytest.mark.asyncio
async def test_pool_exhausted_keeps_daemon_message(client):
    for i in range(POOL_MAX - POOL_MIN + 1):
        await client.allocate(f"svc-{i}")

    with pytest.raises(PoolExhausted) as exc_info:
        await client.allocate("extra")

    assert exc_info.value.code == "POOL_EXHAUSTED"
    assert str(POOL_MIN) in exc_info.value.message
    assert (exc_info.value.pool_min, exc_info.value.pool_max) == (POOL_MIN, POOL_MAX)


@pytest.mark.asyncio
async def test_store_failure_maps_to_store_unavailable(client, manager, monkeypatch):
    async def offline():
        raise StoreUnavailable("list_all", "disk I/O error")

    monkeypatch.setattr(manager.store, "list_all", offline)

    with pytest.raises(StoreUnavailable):
        await client.list_active()


@pytest.mark.asyncio
async def test_unreachable_daemon():
    async with PortLeaseClient(base_url="http://127.0.0.1:1", timeout=2.0) as client:
        with pytest.raises(DaemonUnreachable) as exc_info:
            await client.list_active()

    assert exc_info.value.code == "DAEMON_UNREACHABLE"


def test_default_url_from_environment(monkeypatch):
    monkeypatch.delenv("PORTLEASE_URL", raising=False)
    assert default_url() == DEFAULT_URL

    monkeypatch.setenv("PORTLEASE_URL", "http://localhost:4000")
    assert default_url() == "http://localhost:4000"


def test_pool_exhausted_without_bounds():
    error = PoolExhausted()

    assert error.pool_min is None and error.pool_max is None
    assert error.message == "No free port in pool"
