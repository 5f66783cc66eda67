"""portlease engine - lease lifecycle and allocation policy."""

from portlease.engine.core import LeaseManager
from portlease.engine.errors import (
    DaemonUnreachable,
    InvalidLeaseRequest,
    LeaseConflict,
    LeaseNotFound,
    PoolExhausted,
    PortLeaseError,
    ServiceNotFound,
    StoreUnavailable,
)

__all__ = [
    "DaemonUnreachable",
    "InvalidLeaseRequest",
    "LeaseConflict",
    "LeaseManager",
    "LeaseNotFound",
    "PoolExhausted",
    "PortLeaseError",
    "ServiceNotFound",
    "StoreUnavailable",
]
