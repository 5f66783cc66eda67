"""API request/response schemas."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


# ============================================================================
# Shared schemas
# ============================================================================


class LeaseSchema(BaseModel):
    """Lease as seen on the wire."""

    port: int
    service_name: str
    allocated_at: datetime
    last_heartbeat: datetime
    ttl_seconds: int
    tags: list[str] = Field(default_factory=list)


class ErrorDetail(BaseModel):
    """Error payload carried in the `detail` field of error responses."""

    code: str
    message: str


# ============================================================================
# Lease lifecycle
# ============================================================================


class AllocateRequest(BaseModel):
    """Allocate request."""

    service_name: str = Field(..., min_length=1, description="Owner of the lease")
    ttl_seconds: Optional[int] = Field(None, ge=1, description="Lease TTL (server default if omitted)")
    tags: Optional[list[str]] = Field(None, description="Informational tags")


class AllocateResponse(BaseModel):
    """Allocate response."""

    port: int
    lease: LeaseSchema


class ReleaseRequest(BaseModel):
    """Release request."""

    port: int = Field(..., ge=1, le=65535)


class ReleaseResponse(BaseModel):
    """Release response; ok even when nothing was held."""

    ok: bool = True
    released: bool


class HeartbeatRequest(BaseModel):
    """Heartbeat request."""

    port: int = Field(..., ge=1, le=65535)


class HeartbeatResponse(BaseModel):
    """Heartbeat response."""

    ok: bool = True
    lease: LeaseSchema


class LookupResponse(BaseModel):
    """Lookup response; `port` and `lease` describe the lowest matching port."""

    service_name: str
    port: int
    all_ports: list[int]
    lease: LeaseSchema


# ============================================================================
# Service
# ============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str


class ConfigResponse(BaseModel):
    """Effective server configuration."""

    pool_min: int
    pool_max: int
    default_ttl_seconds: int
    sweep_interval_seconds: float


class MetricsResponse(BaseModel):
    """Metrics snapshot."""

    counters: dict[str, int]
    histograms: dict[str, dict[str, Any]]
