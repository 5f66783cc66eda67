"""
Pytest fixtures for portlease tests.
"""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from portlease.config import Settings
from portlease.db import LeaseStore, close_db, create_engine, create_session_factory, init_db
from portlease.engine import LeaseManager
from portlease.models import Lease
from portlease.observability.metrics import metrics

POOL_MIN = 9000
POOL_MAX = 9009


class FakeClock:
    """Manually advanced UTC clock for TTL tests."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def make_lease(
    port: int,
    service_name: str = "svc",
    ttl_seconds: int = 60,
    now: datetime | None = None,
    tags: list[str] | None = None,
) -> Lease:
    now = now or datetime.now(timezone.utc)
    return Lease(
        port=port,
        service_name=service_name,
        allocated_at=now,
        last_heartbeat=now,
        ttl_seconds=ttl_seconds,
        tags=tags or [],
    )


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset()
    yield


@pytest.fixture
def database_path(tmp_path):
    return tmp_path / "portlease" / "leases.db"


@pytest.fixture
async def engine(database_path):
    """Create a SQLite engine on a fresh file with the schema in place."""
    engine = create_engine(database_path)
    await init_db(engine)
    yield engine
    await close_db(engine)


@pytest.fixture
def store(engine) -> LeaseStore:
    return LeaseStore(create_session_factory(engine))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def manager(store, clock) -> LeaseManager:
    """Manager over a ten-port pool driven by the fake clock."""
    return LeaseManager(
        store,
        pool_min=POOL_MIN,
        pool_max=POOL_MAX,
        default_ttl_seconds=300,
        clock=clock,
    )


@pytest.fixture
def settings(database_path) -> Settings:
    return Settings(
        pool_min=POOL_MIN,
        pool_max=POOL_MAX,
        default_ttl_seconds=300,
        sweep_interval_seconds=0.1,
        database_path=database_path,
    )


@pytest.fixture
def app(settings, manager):
    """Application wired to the test manager, lifespan bypassed."""
    from portlease.main import create_app

    app = create_app(settings)
    app.state.manager = manager
    return app


@pytest.fixture
async def api_client(app):
    """Async test client talking to the app in-process."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
