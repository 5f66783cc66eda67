"""Lease store - durable map of leases keyed by port."""

import logging
from datetime import datetime

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from portlease.db.base import session_scope
from portlease.db.repositories import LeaseRepository
from portlease.engine.errors import LeaseConflict, LeaseNotFound, StoreUnavailable
from portlease.models import Lease

logger = logging.getLogger("portlease.store")


class LeaseStore:
    """
    Authoritative, persistent set of lease records.

    Every method runs in its own transaction, so each mutation is atomic and
    no partial write is ever visible to another caller. The store never
    interprets TTLs; expired records stay until someone removes them.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def insert(self, lease: Lease) -> Lease:
        """Insert a new lease; raises LeaseConflict if the port has any record."""
        try:
            async with session_scope(self.session_factory) as session:
                return await LeaseRepository(session).insert(lease)
        except IntegrityError as e:
            logger.debug(f"Insert lost race for port {lease.port}")
            raise LeaseConflict(lease.port) from e
        except DBAPIError as e:
            raise StoreUnavailable("insert", str(e.orig)) from e

    async def get(self, port: int) -> Lease:
        """Get the record for a port; raises LeaseNotFound."""
        try:
            async with session_scope(self.session_factory) as session:
                lease = await LeaseRepository(session).get(port)
        except DBAPIError as e:
            raise StoreUnavailable("get", str(e.orig)) from e
        if lease is None:
            raise LeaseNotFound(port)
        return lease

    async def update_heartbeat(self, port: int, now: datetime) -> Lease:
        """
        Bump last_heartbeat for a port.

        Succeeds for a record whose TTL already lapsed but which has not been
        removed yet. Raises LeaseNotFound when no record exists.
        """
        try:
            async with session_scope(self.session_factory) as session:
                lease = await LeaseRepository(session).touch(port, now)
        except DBAPIError as e:
            raise StoreUnavailable("update_heartbeat", str(e.orig)) from e
        if lease is None:
            raise LeaseNotFound(port)
        return lease

    async def remove(self, port: int) -> bool:
        """Remove the record for a port. Removing a missing port is not an error."""
        try:
            async with session_scope(self.session_factory) as session:
                return await LeaseRepository(session).delete(port)
        except DBAPIError as e:
            raise StoreUnavailable("remove", str(e.orig)) from e

    async def remove_if_unchanged(self, lease: Lease) -> bool:
        """
        Remove the record for lease.port only if it is still the one given.

        Returns False when the record is gone or was renewed or replaced since
        it was read.
        """
        try:
            async with session_scope(self.session_factory) as session:
                return await LeaseRepository(session).delete_if_unchanged(lease)
        except DBAPIError as e:
            raise StoreUnavailable("remove_if_unchanged", str(e.orig)) from e

    async def list_all(self) -> list[Lease]:
        """Snapshot of every record, ordered by port."""
        try:
            async with session_scope(self.session_factory) as session:
                return await LeaseRepository(session).list_all()
        except DBAPIError as e:
            raise StoreUnavailable("list_all", str(e.orig)) from e
