"""Lease expiry sweep background task."""

import asyncio
import logging

from portlease.engine import LeaseManager

logger = logging.getLogger("portlease.sweep")


class LeaseSweeper:
    """
    Background loop that evicts expired leases on a fixed interval.

    This is the backstop for clients that died without releasing: any record
    whose TTL lapsed is removed on the next pass. The first pass runs as soon
    as the loop starts, so leases that expired while the daemon was down are
    reclaimed at startup.
    """

    def __init__(self, manager: LeaseManager, interval_seconds: float, stop_timeout: float = 10.0):
        self.manager = manager
        self.interval_seconds = interval_seconds
        self.stop_timeout = stop_timeout
        self._task: asyncio.Task | None = None
        self._shutdown_event: asyncio.Event | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run(self) -> None:
        logger.info(f"Lease sweep loop started (interval: {self.interval_seconds}s)")

        while not self._shutdown_event.is_set():
            try:
                evicted = await self.manager.sweep()
                if evicted:
                    logger.info(f"Evicted {len(evicted)} expired lease(s): {evicted}")
            except Exception as e:
                logger.error(f"Lease sweep error: {e}", exc_info=True)

            # Wait for next sweep interval or shutdown
            try:
                await asyncio.wait_for(
                    self._shutdown_event.wait(),
                    timeout=self.interval_seconds,
                )
            except asyncio.TimeoutError:
                pass

        logger.info("Lease sweep loop stopped")

    def start(self) -> None:
        """Start the sweep loop on the running event loop."""
        if self.running:
            return
        self._shutdown_event = asyncio.Event()
        self._task = asyncio.create_task(self.run())

    async def stop(self) -> None:
        """Stop the sweep loop, letting an in-flight pass finish."""
        if self._shutdown_event:
            self._shutdown_event.set()

        if self._task:
            try:
                await asyncio.wait_for(self._task, timeout=self.stop_timeout)
            except asyncio.TimeoutError:
                logger.warning("Lease sweep task did not stop gracefully, cancelling")
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass

        self._task = None
        self._shutdown_event = None
