"""Database repositories for portlease entities."""

from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from portlease.db.tables import LeaseTable
from portlease.models import Lease


class LeaseRepository:
    """Repository for lease rows, bound to one session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def insert(self, lease: Lease) -> Lease:
        """
        Insert a lease row.

        The port primary key rejects a second row for the same port, so the
        caller sees an IntegrityError on flush when it lost a race.
        """
        row = LeaseTable(
            port=lease.port,
            service_name=lease.service_name,
            allocated_at=lease.allocated_at,
            last_heartbeat=lease.last_heartbeat,
            ttl_seconds=lease.ttl_seconds,
            tags=list(lease.tags),
        )
        self.session.add(row)
        await self.session.flush()
        return self._row_to_model(row)

    async def get(self, port: int) -> Lease | None:
        """Get the lease row for a port."""
        result = await self.session.execute(
            select(LeaseTable).where(LeaseTable.port == port)
        )
        row = result.scalar_one_or_none()
        return self._row_to_model(row) if row else None

    async def touch(self, port: int, now: datetime) -> Lease | None:
        """Set last_heartbeat; returns None when the row does not exist."""
        result = await self.session.execute(
            update(LeaseTable)
            .where(LeaseTable.port == port)
            .values(last_heartbeat=now)
        )
        if result.rowcount == 0:
            return None
        return await self.get(port)

    async def delete(self, port: int) -> bool:
        """Delete the lease row for a port."""
        result = await self.session.execute(
            delete(LeaseTable).where(LeaseTable.port == port)
        )
        return result.rowcount > 0

    async def delete_if_unchanged(self, lease: Lease) -> bool:
        """
        Delete the row for lease.port only if it still matches the given lease.

        A row that was renewed or re-allocated since the lease was read has a
        different last_heartbeat or allocated_at and is left alone.
        """
        result = await self.session.execute(
            delete(LeaseTable).where(
                LeaseTable.port == lease.port,
                LeaseTable.allocated_at == lease.allocated_at,
                LeaseTable.last_heartbeat == lease.last_heartbeat,
            )
        )
        return result.rowcount > 0

    async def list_all(self) -> list[Lease]:
        """List every lease row, live or not, ordered by port."""
        result = await self.session.execute(
            select(LeaseTable).order_by(LeaseTable.port.asc())
        )
        return [self._row_to_model(r) for r in result.scalars().all()]

    def _row_to_model(self, row: LeaseTable) -> Lease:
        """Convert database row to model."""
        return Lease(
            port=row.port,
            service_name=row.service_name,
            allocated_at=row.allocated_at,
            last_heartbeat=row.last_heartbeat,
            ttl_seconds=row.ttl_seconds,
            tags=list(row.tags or []),
        )
