"""portlease errors."""


class PortLeaseError(Exception):
    """Base error for portlease operations."""

    def __init__(self, message: str, code: str = "PORTLEASE_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class PoolExhausted(PortLeaseError):
    """No free port is left in the pool."""

    def __init__(self, pool_min: int | None = None, pool_max: int | None = None):
        if pool_min is None or pool_max is None:
            message = "No free port in pool"
        else:
            message = f"No free port in pool {pool_min}-{pool_max}"
        super().__init__(message, "POOL_EXHAUSTED")
        self.pool_min = pool_min
        self.pool_max = pool_max


class LeaseNotFound(PortLeaseError):
    """No lease record exists for the port."""

    def __init__(self, port: int):
        super().__init__(f"No lease for port {port}", "LEASE_NOT_FOUND")
        self.port = port


class ServiceNotFound(PortLeaseError):
    """No live lease carries the service name."""

    def __init__(self, service_name: str):
        super().__init__(f"No live lease for service: {service_name}", "SERVICE_NOT_FOUND")
        self.service_name = service_name


class LeaseConflict(PortLeaseError):
    """Another caller inserted a lease for the port first."""

    def __init__(self, port: int):
        super().__init__(f"Port {port} is already leased", "LEASE_CONFLICT")
        self.port = port


class InvalidLeaseRequest(PortLeaseError):
    """Request arguments are out of range."""

    def __init__(self, message: str):
        super().__init__(message, "INVALID_LEASE_REQUEST")


class StoreUnavailable(PortLeaseError):
    """The lease database could not complete the operation."""

    def __init__(self, operation: str, reason: str = ""):
        message = f"Lease store failed during {operation}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, "STORE_UNAVAILABLE")
        self.operation = operation


class DaemonUnreachable(PortLeaseError):
    """The portlease daemon could not be reached over HTTP."""

    def __init__(self, url: str, reason: str = ""):
        message = f"Cannot reach portlease daemon at {url}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, "DAEMON_UNREACHABLE")
        self.url = url
