"""portlease core engine - allocation policy, TTL lifecycle and sweep."""

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Iterable

from portlease.engine.errors import (
    InvalidLeaseRequest,
    LeaseConflict,
    LeaseNotFound,
    PoolExhausted,
)
from portlease.models import Lease
from portlease.observability.metrics import metrics
from portlease.utils.time import utc_now

if TYPE_CHECKING:
    from portlease.db.store import LeaseStore

logger = logging.getLogger("portlease.engine")


class LeaseManager:
    """
    Single authority that decides whether a port is free.

    The manager owns no lock of its own. Two callers racing for the same port
    are separated by the store's atomic insert: the loser gets LeaseConflict
    and moves on to the next candidate.
    """

    def __init__(
        self,
        store: "LeaseStore",
        pool_min: int,
        pool_max: int,
        default_ttl_seconds: int,
        clock: Callable[[], datetime] = utc_now,
    ):
        if pool_min > pool_max:
            raise ValueError(f"pool_min ({pool_min}) must not exceed pool_max ({pool_max})")
        if default_ttl_seconds <= 0:
            raise ValueError("default_ttl_seconds must be positive")
        self.store = store
        self.pool_min = pool_min
        self.pool_max = pool_max
        self.default_ttl_seconds = default_ttl_seconds
        self.clock = clock

    # =========================================================================
    # Lifecycle operations
    # =========================================================================

    async def allocate(
        self,
        service_name: str,
        ttl_seconds: int | None = None,
        tags: Iterable[str] | None = None,
    ) -> Lease:
        """
        Lease the lowest free port in the pool.

        Selection rules:
        - Any port with a record in the store is occupied, including records
          whose TTL lapsed but which the sweep has not removed yet
        - Lowest-numbered remaining port wins
        - Losing an insert race marks that port as taken and retries

        Raises:
            PoolExhausted: If every port in the pool is occupied
            InvalidLeaseRequest: If service_name is empty or ttl_seconds is not positive
        """
        if not service_name:
            raise InvalidLeaseRequest("service_name must not be empty")
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            raise InvalidLeaseRequest(f"ttl_seconds must be positive, got {ttl}")
        tag_list = list(dict.fromkeys(tags or []))

        lost: set[int] = set()
        while True:
            occupied = {lease.port for lease in await self.store.list_all()}
            occupied |= lost
            port = self._first_free(occupied)
            if port is None:
                metrics.inc_counter("leases.exhausted")
                raise PoolExhausted(self.pool_min, self.pool_max)

            now = self.clock()
            lease = Lease(
                port=port,
                service_name=service_name,
                allocated_at=now,
                last_heartbeat=now,
                ttl_seconds=ttl,
                tags=tag_list,
            )
            try:
                lease = await self.store.insert(lease)
            except LeaseConflict:
                metrics.inc_counter("leases.allocate.conflicts")
                lost.add(port)
                continue

            metrics.inc_counter("leases.allocated")
            logger.info(f"Allocated port {port} to {service_name} (ttl {ttl}s)")
            return lease

    async def release(self, port: int) -> bool:
        """
        Release a port.

        Releasing a port with no record succeeds, so cleanup calls can race
        the sweep or be repeated. Returns whether a record was removed.
        """
        removed = await self.store.remove(port)
        if removed:
            metrics.inc_counter("leases.released")
            logger.info(f"Released port {port}")
        else:
            logger.debug(f"Release of port {port} found no lease")
        return removed

    async def heartbeat(self, port: int) -> Lease:
        """
        Extend a lease by moving last_heartbeat to now.

        A record whose TTL lapsed but which the sweep has not removed yet is
        renewed and becomes live again. Once removed, the port is gone and the
        heartbeat raises LeaseNotFound, as it does for a port outside the pool.
        """
        if not self.in_pool(port):
            raise LeaseNotFound(port)
        lease = await self.store.update_heartbeat(port, self.clock())
        metrics.inc_counter("leases.heartbeats")
        return lease

    # =========================================================================
    # Queries (liveness evaluated at read time)
    # =========================================================================

    async def get(self, port: int) -> Lease:
        """Get the live lease on a port."""
        lease = await self.store.get(port)
        if not self._is_active(lease, self.clock()):
            raise LeaseNotFound(port)
        return lease

    async def lookup(self, service_name: str) -> list[Lease]:
        """Return every live lease held under service_name, ordered by port."""
        return [
            lease
            for lease in await self.list_active()
            if lease.service_name == service_name
        ]

    async def list_active(self) -> list[Lease]:
        """Return every live lease, ordered by port."""
        now = self.clock()
        return [lease for lease in await self.store.list_all() if self._is_active(lease, now)]

    # =========================================================================
    # Sweep
    # =========================================================================

    async def sweep(self) -> list[int]:
        """
        Remove every record that is no longer live, or whose port lies outside
        the pool.

        Each removal only matches the record as it was read, so a lease renewed
        or re-allocated in the meantime survives. A failure to remove one
        record is logged and skipped; it is retried on the next pass. Returns
        the ports that were evicted.
        """
        now = self.clock()
        expired = [lease for lease in await self.store.list_all() if not self._is_active(lease, now)]
        evicted = []

        for lease in expired:
            try:
                removed = await self.store.remove_if_unchanged(lease)
            except Exception as e:
                logger.error(f"Failed to evict expired lease on port {lease.port}: {e}", exc_info=True)
                metrics.inc_counter("leases.expired.failed")
                continue

            if removed:
                evicted.append(lease.port)
                metrics.inc_counter("leases.expired")
                logger.info(f"Released expired port {lease.port} ({lease.service_name})")
            else:
                logger.debug(f"Lease on port {lease.port} changed since read, not evicted")

        return evicted

    def in_pool(self, port: int) -> bool:
        return self.pool_min <= port <= self.pool_max

    def out_of_pool(self, leases: Iterable[Lease]) -> list[Lease]:
        """Return the leases whose port lies outside [pool_min, pool_max]."""
        return [lease for lease in leases if not self.in_pool(lease.port)]

    def _is_active(self, lease: Lease, now: datetime) -> bool:
        return self.in_pool(lease.port) and lease.is_live(now)

    def _first_free(self, occupied: set[int]) -> int | None:
        for port in range(self.pool_min, self.pool_max + 1):
            if port not in occupied:
                return port
        return None
