"""Periodic runner for age-based priority boosts.

The coordinator only promotes items when asked; this loop asks on a fixed
interval for every client that currently has pending work.
"""

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

from handoff_queue.queue import QueueCoordinator

logger = logging.getLogger(__name__)


class BoostScheduler:
    """Calls ``apply_priority_boosts`` for each active client on a timer."""

    def __init__(
        self,
        coordinator: QueueCoordinator,
        list_clients: Callable[[], Awaitable[list[str]]],
        poll_interval: float = 60.0,
    ):
        self.coordinator = coordinator
        self.list_clients = list_clients
        self.poll_interval = poll_interval
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the boost loop in the background."""
        if self._task is not None:
            logger.debug("Boost scheduler already running")
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(f"Boost scheduler started (interval {self.poll_interval}s)")

    async def stop(self) -> None:
        """Stop the boost loop and wait for it to finish."""
        self._running = False
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        logger.info("Boost scheduler stopped")

    async def run_once(self) -> dict[str, int]:
        """Run one boost pass over every client; returns boosted counts per client."""
        boosted: dict[str, int] = {}
        for client_id in await self.list_clients():
            result = await self.coordinator.apply_priority_boosts(client_id)
            boosted[client_id] = result.boosted_count
            if not result.completed:
                logger.warning(f"Boost pass for client {client_id} incomplete: {result.error}")
        return boosted

    async def _loop(self) -> None:
        while self._running:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Boost pass error: {e}")

            await asyncio.sleep(self.poll_interval)
