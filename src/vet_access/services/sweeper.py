"""
Background expiry sweep for overdue requests and lapsed grants.

Correctness never depends on the sweep: deadlines are evaluated against the
clock at read time. The sweep only makes stored statuses catch up.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from ..utils.config import AccessSettings
from .grants import AccessGrantStore
from .registry import AccessRequestRegistry

logger = logging.getLogger(__name__)


@dataclass
class SweepStats:
    """Rows transitioned by one sweep cycle."""

    expired_requests: int = 0
    expired_grants: int = 0

    @property
    def total(self) -> int:
        return self.expired_requests + self.expired_grants


class ExpirySweeper:
    """Polling loop that expires overdue requests and lapsed grants."""

    def __init__(
        self,
        registry: AccessRequestRegistry,
        grants: AccessGrantStore,
        settings: AccessSettings,
    ):
        self.registry = registry
        self.grants = grants
        self.settings = settings
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background loop if enabled by configuration."""
        if not self.settings.sweep_enabled:
            logger.info("Expiry sweep disabled by configuration")
            return
        if self.running:
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run_loop(), name="vet-access-expiry-sweep")
        logger.info(
            f"Expiry sweep started (interval={self.settings.sweep_interval_seconds}s)"
        )

    async def stop(self) -> None:
        """Signal the loop to stop and wait for the current cycle to finish."""
        self._stop_event.set()
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        finally:
            self._task = None
        logger.info("Expiry sweep stopped")

    async def run_once(self) -> SweepStats:
        """Run one sweep cycle; each expiry commits in its own unit of work."""
        stats = SweepStats()
        stats.expired_requests = await self.registry.expire_overdue()
        stats.expired_grants = await self.grants.expire_lapsed()
        return stats

    async def _run_loop(self) -> None:
        loop = asyncio.get_running_loop()
        while not self._stop_event.is_set():
            started_at = loop.time()
            try:
                stats = await self.run_once()
                if stats.total:
                    logger.info(
                        f"Expiry sweep: requests={stats.expired_requests} "
                        f"grants={stats.expired_grants}"
                    )
            except Exception:
                logger.exception("Expiry sweep cycle failed")

            elapsed = loop.time() - started_at
            sleep_seconds = max(0.0, self.settings.sweep_interval_seconds - elapsed)
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=sleep_seconds)
            except asyncio.TimeoutError:
                continue
