"""
Process-bound leases.

Run a child process under a port lease: allocate before spawning, hand the
port to the child through an environment variable, heartbeat while it runs,
and release once it exits. If the wrapper itself is killed outright the
daemon's sweep reclaims the port after one TTL.
"""

import asyncio
import logging
import os
from typing import Iterable, Optional, Protocol, Sequence

from portlease.engine.errors import LeaseNotFound, PortLeaseError
from portlease.models import Lease

logger = logging.getLogger("portlease.runner")

DEFAULT_ENV_NAME = "PORT"
MIN_HEARTBEAT_INTERVAL = 1.0


class LeaseClient(Protocol):
    """What the runner needs from a lease backend (HTTP client or in-process manager)."""

    async def allocate(
        self,
        service_name: str,
        ttl_seconds: Optional[int] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> Lease: ...

    async def heartbeat(self, port: int) -> Lease: ...

    async def release(self, port: int) -> bool: ...


def heartbeat_interval_for(ttl_seconds: int) -> float:
    """Renew at a third of the TTL so one missed tick still leaves slack."""
    return max(MIN_HEARTBEAT_INTERVAL, ttl_seconds / 3)


async def heartbeat_loop(client: LeaseClient, port: int, interval: float) -> None:
    """
    Renew the lease on port every interval seconds until cancelled.

    Transient failures are logged and retried on the next tick. The loop ends
    by itself only when the daemon no longer knows the lease.
    """
    while True:
        await asyncio.sleep(interval)
        try:
            await client.heartbeat(port)
            logger.debug(f"Heartbeat sent for port {port}")
        except LeaseNotFound:
            logger.error(f"Lease on port {port} no longer exists, stopping heartbeats")
            return
        except PortLeaseError as e:
            logger.warning(f"Heartbeat for port {port} failed: {e}")
        except Exception as e:
            logger.error(f"Unexpected error sending heartbeat for port {port}: {e}", exc_info=True)


async def _release(client: LeaseClient, port: int) -> None:
    try:
        await client.release(port)
        logger.info(f"Released port {port}")
    except PortLeaseError as e:
        # The sweep reclaims the port once the TTL lapses
        logger.warning(f"Failed to release port {port}: {e}")


async def _stop(task: asyncio.Task) -> None:
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)


async def run_with_lease(
    client: LeaseClient,
    service_name: str,
    command: Sequence[str],
    ttl_seconds: Optional[int] = None,
    env_name: str = DEFAULT_ENV_NAME,
    tags: Optional[Iterable[str]] = None,
    heartbeat_interval: Optional[float] = None,
) -> int:
    """
    Run command with a leased port exported as env_name.

    Returns the child's exit code. A spawn failure releases the lease and
    re-raises the OSError.
    """
    if not command:
        raise ValueError("No command specified")

    lease = await client.allocate(service_name, ttl_seconds=ttl_seconds, tags=tags)
    port = lease.port
    interval = heartbeat_interval or heartbeat_interval_for(lease.ttl_seconds)
    logger.info(f"Allocated port {port} for service '{service_name}'")

    env = dict(os.environ)
    env[env_name] = str(port)

    try:
        try:
            process = await asyncio.create_subprocess_exec(*command, env=env)
        except OSError as e:
            logger.error(f"Failed to run command {command[0]!r}: {e}")
            raise

        logger.info(f"Running {list(command)} with {env_name}={port}")
        heartbeats = asyncio.create_task(heartbeat_loop(client, port, interval))
        try:
            return await process.wait()
        finally:
            await _stop(heartbeats)
            if process.returncode is None:
                # Wrapper interrupted while the child is still up
                process.terminate()
                await process.wait()
    finally:
        await _release(client, port)


async def keep_alive(
    client: LeaseClient,
    service_name: str,
    ttl_seconds: Optional[int] = None,
    tags: Optional[Iterable[str]] = None,
    heartbeat_interval: Optional[float] = None,
) -> Lease:
    """
    Allocate a port and heartbeat it until the lease is lost or the caller cancels.

    On cancellation the lease is released before the cancellation propagates.
    """
    lease = await client.allocate(service_name, ttl_seconds=ttl_seconds, tags=tags)
    interval = heartbeat_interval or heartbeat_interval_for(lease.ttl_seconds)
    logger.info(f"Allocated port {lease.port}, heartbeating every {interval:.1f}s")

    try:
        await heartbeat_loop(client, lease.port, interval)
    except asyncio.CancelledError:
        await _release(client, lease.port)
        raise
    return lease
