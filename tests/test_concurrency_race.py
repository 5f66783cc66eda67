"""
Concurrency and race condition tests.
"""

import asyncio
from collections import Counter

import pytest

from portlease.db import LeaseStore, create_session_factory
from portlease.engine import LeaseManager, PoolExhausted
from portlease.observability.metrics import metrics

from conftest import POOL_MAX, POOL_MIN


@pytest.mark.asyncio
async def test_concurrent_allocations_never_share_a_port(manager):
    """More callers than free ports: every winner gets a distinct port, the rest see exhaustion."""
    pool_size = POOL_MAX - POOL_MIN + 1
    results = await asyncio.gather(
        *[manager.allocate(f"svc-{i}") for i in range(pool_size + 15)],
        return_exceptions=True,
    )

    leases = [r for r in results if not isinstance(r, BaseException)]
    failures = [r for r in results if isinstance(r, BaseException)]

    assert len(leases) == pool_size
    assert len({lease.port for lease in leases}) == pool_size
    assert all(isinstance(f, PoolExhausted) for f in failures)
    assert len(failures) == 15

    stored = Counter(lease.port for lease in await manager.store.list_all())
    assert all(count == 1 for count in stored.values())


@pytest.mark.asyncio
async def test_two_managers_on_one_database_do_not_double_allocate(engine, clock):
    """Managers in separate 'processes' share only the database file."""
    manager_a = LeaseManager(LeaseStore(create_session_factory(engine)), POOL_MIN, POOL_MAX, 300, clock=clock)
    manager_b = LeaseManager(LeaseStore(create_session_factory(engine)), POOL_MIN, POOL_MAX, 300, clock=clock)

    results = await asyncio.gather(
        *[(manager_a if i % 2 else manager_b).allocate(f"svc-{i}") for i in range(10)],
    )

    assert sorted(lease.port for lease in results) == list(range(POOL_MIN, POOL_MAX + 1))


@pytest.mark.asyncio
async def test_release_racing_sweep_is_harmless(manager, clock):
    lease = await manager.allocate("racer", ttl_seconds=1)
    clock.advance(2)

    released, swept = await asyncio.gather(manager.release(lease.port), manager.sweep())

    # Exactly one of them removed the record, neither failed
    assert released + len(swept) == 1
    assert await manager.store.list_all() == []


@pytest.mark.asyncio
async def test_sweep_does_not_evict_a_port_reallocated_after_its_snapshot(manager, clock, monkeypatch):
    """The late owner releases and a new caller takes the port between the sweep's read and delete."""
    old = await manager.allocate("old", ttl_seconds=1)
    clock.advance(2)

    remove_if_unchanged = manager.store.remove_if_unchanged
    reallocated = []

    async def release_and_reallocate_first(lease):
        await manager.release(old.port)
        reallocated.append(await manager.allocate("new"))
        return await remove_if_unchanged(lease)

    monkeypatch.setattr(manager.store, "remove_if_unchanged", release_and_reallocate_first)
    assert await manager.sweep() == []
    monkeypatch.undo()

    new = reallocated[0]
    assert new.port == old.port
    third = await manager.allocate("third")

    assert third.port != new.port
    assert [lease.service_name for lease in await manager.list_active()] == ["new", "third"]


@pytest.mark.asyncio
async def test_heartbeat_between_sweep_snapshot_and_delete_keeps_lease(manager, clock, monkeypatch):
    """
    A renewal that lands after the sweep read the expired record wins.

    The delete only matches the record exactly as it was read, so the renewed
    lease stays and its owner keeps the port.
    """
    lease = await manager.allocate("late", ttl_seconds=1)
    clock.advance(2)

    remove_if_unchanged = manager.store.remove_if_unchanged

    async def heartbeat_first(snapshot):
        await manager.heartbeat(snapshot.port)
        return await remove_if_unchanged(snapshot)

    monkeypatch.setattr(manager.store, "remove_if_unchanged", heartbeat_first)
    assert await manager.sweep() == []
    monkeypatch.undo()

    assert (await manager.get(lease.port)).service_name == "late"
    assert metrics.counter("leases.expired") == 0
