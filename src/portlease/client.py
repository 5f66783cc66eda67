"""HTTP client for the portlease daemon."""

import logging
import os
import re
from typing import Any, Iterable, Optional

import httpx

from portlease.api.schemas import LookupResponse
from portlease.engine.errors import (
    DaemonUnreachable,
    InvalidLeaseRequest,
    LeaseNotFound,
    PoolExhausted,
    PortLeaseError,
    ServiceNotFound,
    StoreUnavailable,
)
from portlease.models import Lease

logger = logging.getLogger("portlease.client")

DEFAULT_URL = "http://127.0.0.1:3030"

_POOL_BOUNDS = re.compile(r"(\d+)-(\d+)")


def default_url() -> str:
    """Daemon URL from PORTLEASE_URL, falling back to the local default."""
    return os.environ.get("PORTLEASE_URL", DEFAULT_URL)


class PortLeaseClient:
    """Async client for the lease API, mapping error responses onto portlease errors."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or default_url()).rstrip("/")
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "PortLeaseClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def allocate(
        self,
        service_name: str,
        ttl_seconds: Optional[int] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> Lease:
        """Allocate a port for service_name."""
        payload: dict[str, Any] = {"service_name": service_name}
        if ttl_seconds is not None:
            payload["ttl_seconds"] = ttl_seconds
        if tags is not None:
            payload["tags"] = list(tags)
        data = await self._request("POST", "/v1/alloc", json=payload)
        return Lease.model_validate(data["lease"])

    async def release(self, port: int) -> bool:
        """Release a port; returns whether the daemon held a lease for it."""
        data = await self._request("POST", "/v1/release", json={"port": port}, port=port)
        return data["released"]

    async def heartbeat(self, port: int) -> Lease:
        """Renew the lease on a port."""
        data = await self._request("POST", "/v1/heartbeat", json={"port": port}, port=port)
        return Lease.model_validate(data["lease"])

    async def list_active(self) -> list[Lease]:
        """List all live leases."""
        data = await self._request("GET", "/v1/list")
        return [Lease.model_validate(item) for item in data]

    async def lookup(self, service_name: str) -> LookupResponse:
        """Find the live ports of a service; `port` is the lowest of them."""
        data = await self._request(
            "GET", "/v1/lookup", params={"service": service_name}, service_name=service_name
        )
        return LookupResponse.model_validate(data)

    async def get(self, port: int) -> Lease:
        """Get the live lease on a port."""
        data = await self._request("GET", f"/v1/leases/{port}", port=port)
        return Lease.model_validate(data)

    async def _request(
        self,
        method: str,
        path: str,
        port: Optional[int] = None,
        service_name: Optional[str] = None,
        **kwargs,
    ) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            raise DaemonUnreachable(self.base_url, str(e)) from e

        if response.is_success:
            return response.json()

        error = self._error_from_response(response, port, service_name)
        logger.debug(f"{method} {path} -> {response.status_code} {error.code}")
        raise error

    def _error_from_response(
        self,
        response: httpx.Response,
        port: Optional[int],
        service_name: Optional[str],
    ) -> PortLeaseError:
        try:
            detail = response.json().get("detail")
        except ValueError:
            detail = None
        if isinstance(detail, dict):
            code, message = detail.get("code"), detail.get("message", "")
        else:
            code, message = None, str(detail or response.text)

        if code == "POOL_EXHAUSTED":
            bounds = _POOL_BOUNDS.search(message or "")
            if bounds:
                error: PortLeaseError = PoolExhausted(int(bounds.group(1)), int(bounds.group(2)))
            else:
                error = PoolExhausted()
        elif code == "LEASE_NOT_FOUND":
            error = LeaseNotFound(port if port is not None else -1)
        elif code == "SERVICE_NOT_FOUND":
            error = ServiceNotFound(service_name or "")
        elif code == "STORE_UNAVAILABLE" or response.status_code == 503:
            error = StoreUnavailable("request", message)
        elif response.status_code == 422:
            error = InvalidLeaseRequest(message)
        else:
            return PortLeaseError(f"HTTP {response.status_code}: {message}", code or "HTTP_ERROR")

        # The daemon's wording carries the pool bounds and the failing operation
        if message:
            error.message = message
            error.args = (message,)
        return error
