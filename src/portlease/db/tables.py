"""SQLAlchemy table definitions."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Index, Integer, String, TypeDecorator
from sqlalchemy.orm import Mapped, mapped_column

from portlease.db.base import Base
from portlease.utils.time import as_utc


class UTCDateTime(TypeDecorator):
    """DateTime column that always hands back timezone-aware UTC values.

    SQLite has no timezone storage, so values are written as naive UTC and
    re-tagged on the way out.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("Refusing to store a naive datetime")
        return as_utc(value).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return as_utc(value)


class LeaseTable(Base):
    """Leases table - one row per allocated port."""

    __tablename__ = "leases"

    # The primary key is the uniqueness guarantee for allocation
    port: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    service_name: Mapped[str] = mapped_column(String(255), nullable=False)
    allocated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    last_heartbeat: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    ttl_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    __table_args__ = (
        # Index for lookup by service name
        Index("idx_leases_service", "service_name"),
    )
