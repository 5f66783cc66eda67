"""Lease model - a time-bounded claim on one port."""

from datetime import datetime, timedelta

from pydantic import BaseModel, Field

from portlease.utils.time import utc_now


class Lease(BaseModel):
    """Represents a service's exclusive, renewable claim on a port."""

    port: int
    service_name: str
    allocated_at: datetime
    last_heartbeat: datetime
    ttl_seconds: int
    tags: list[str] = Field(default_factory=list)

    @property
    def expires_at(self) -> datetime:
        """Instant at which the lease stops being live unless renewed."""
        return self.last_heartbeat + timedelta(seconds=self.ttl_seconds)

    def is_live(self, now: datetime | None = None) -> bool:
        """Check whether the TTL window measured from the last heartbeat is still open."""
        if now is None:
            now = utc_now()
        return now < self.expires_at
