"""REST API router."""

from fastapi import APIRouter, Depends, HTTPException, Query

from portlease import __version__
from portlease.api.deps import get_manager, get_settings
from portlease.api.schemas import (
    AllocateRequest,
    AllocateResponse,
    ConfigResponse,
    HealthResponse,
    HeartbeatRequest,
    HeartbeatResponse,
    LeaseSchema,
    LookupResponse,
    MetricsResponse,
    ReleaseRequest,
    ReleaseResponse,
)
from portlease.config import Settings
from portlease.engine import (
    InvalidLeaseRequest,
    LeaseManager,
    LeaseNotFound,
    PoolExhausted,
    PortLeaseError,
    ServiceNotFound,
    StoreUnavailable,
)
from portlease.models import Lease
from portlease.observability.metrics import metrics

router = APIRouter(prefix="/v1")


def _error(status_code: int, error: PortLeaseError) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={"code": error.code, "message": error.message},
    )


def _lease_schema(lease: Lease) -> LeaseSchema:
    return LeaseSchema(**lease.model_dump())


# ============================================================================
# Health & Config
# ============================================================================


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="healthy", version=__version__)


@router.get("/config", response_model=ConfigResponse)
async def get_config(settings: Settings = Depends(get_settings)):
    """Get server configuration."""
    return ConfigResponse(
        pool_min=settings.pool_min,
        pool_max=settings.pool_max,
        default_ttl_seconds=settings.default_ttl_seconds,
        sweep_interval_seconds=settings.sweep_interval_seconds,
    )


@router.get("/metrics", response_model=MetricsResponse)
async def get_metrics():
    """Get in-process counters and query timings."""
    return MetricsResponse(**metrics.snapshot())


# ============================================================================
# Lease lifecycle
# ============================================================================


@router.post("/alloc", response_model=AllocateResponse)
async def allocate(
    request: AllocateRequest,
    manager: LeaseManager = Depends(get_manager),
):
    """Allocate the lowest free port."""
    try:
        lease = await manager.allocate(
            service_name=request.service_name,
            ttl_seconds=request.ttl_seconds,
            tags=request.tags,
        )
    except PoolExhausted as e:
        raise _error(409, e)
    except InvalidLeaseRequest as e:
        raise _error(422, e)
    except StoreUnavailable as e:
        raise _error(503, e)

    return AllocateResponse(port=lease.port, lease=_lease_schema(lease))


@router.post("/release", response_model=ReleaseResponse)
async def release(
    request: ReleaseRequest,
    manager: LeaseManager = Depends(get_manager),
):
    """Release a port. Unknown ports are released trivially."""
    try:
        released = await manager.release(request.port)
    except StoreUnavailable as e:
        raise _error(503, e)

    return ReleaseResponse(released=released)


@router.post("/heartbeat", response_model=HeartbeatResponse)
async def heartbeat(
    request: HeartbeatRequest,
    manager: LeaseManager = Depends(get_manager),
):
    """Renew a lease."""
    try:
        lease = await manager.heartbeat(request.port)
    except LeaseNotFound as e:
        raise _error(404, e)
    except StoreUnavailable as e:
        raise _error(503, e)

    return HeartbeatResponse(lease=_lease_schema(lease))


# ============================================================================
# Queries
# ============================================================================


@router.get("/list", response_model=list[LeaseSchema])
async def list_leases(manager: LeaseManager = Depends(get_manager)):
    """List all live leases."""
    try:
        leases = await manager.list_active()
    except StoreUnavailable as e:
        raise _error(503, e)

    return [_lease_schema(lease) for lease in leases]


@router.get("/lookup", response_model=LookupResponse)
async def lookup(
    service: str = Query(..., min_length=1),
    manager: LeaseManager = Depends(get_manager),
):
    """Find the live leases held under a service name."""
    try:
        leases = await manager.lookup(service)
    except StoreUnavailable as e:
        raise _error(503, e)

    if not leases:
        raise _error(404, ServiceNotFound(service))

    first = leases[0]
    return LookupResponse(
        service_name=service,
        port=first.port,
        all_ports=[lease.port for lease in leases],
        lease=_lease_schema(first),
    )


@router.get("/leases/{port}", response_model=LeaseSchema)
async def get_lease(
    port: int,
    manager: LeaseManager = Depends(get_manager),
):
    """Get the live lease on a port."""
    try:
        lease = await manager.get(port)
    except LeaseNotFound as e:
        raise _error(404, e)
    except StoreUnavailable as e:
        raise _error(503, e)

    return _lease_schema(lease)
