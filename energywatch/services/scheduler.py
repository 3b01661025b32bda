"""
Background ingestion scheduler.

On start, and every ``interval_s`` seconds afterwards, the scheduler lists
every device (across all owners) and records one generated sample per
device concurrently. The schedule is an owned object with an explicit
start()/stop() lifecycle, created in the FastAPI lifespan.

Failure handling:
- A device whose sample cannot be generated or persisted is logged and
  recorded in the tick result; the other devices are still persisted.
- A tick that fails before dispatching per-device work is logged; the
  schedule continues on the next period.
- If the previous tick is still running when a period elapses, the new
  tick is skipped and counted in ``skipped_ticks``.

CHANGELOG:
- 2026-10-16: Document that tick_count includes failed ticks
- 2026-10-15: Skip ticks while the previous tick is still running
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import random
from typing import TYPE_CHECKING

from energywatch.services.generator import ON_DEMAND_INTERVAL_H
from energywatch.services.ingestion import update_devices
from energywatch.services.query import list_all_devices

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from energywatch.cache.redis_client import SnapshotCache
    from energywatch.db.models import Sample
    from energywatch.services.fanout import BatchResult

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_S = 300


class IngestionScheduler:
    """Periodic one-sample-per-device ingestion task.

    Attributes:
        interval_s: Seconds between tick dispatches.
        energy_interval_h: Interval (hours) used for the energy of every
            scheduled sample.
        tick_count: Number of ticks that finished, successfully or not.
        skipped_ticks: Number of ticks skipped because one was in flight.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        interval_s: float = DEFAULT_INTERVAL_S,
        energy_interval_h: float = ON_DEMAND_INTERVAL_H,
        cache: SnapshotCache | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.interval_s = interval_s
        self.energy_interval_h = energy_interval_h
        self._cache = cache
        self._rng = rng
        self._shutdown_event = asyncio.Event()
        self._loop_task: asyncio.Task[None] | None = None
        self._tick_task: asyncio.Task[None] | None = None
        self.tick_count = 0
        self.skipped_ticks = 0

    @property
    def is_running(self) -> bool:
        """True while the schedule loop is active."""
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def tick_in_progress(self) -> bool:
        """True while a dispatched tick has not finished."""
        return self._tick_task is not None and not self._tick_task.done()

    async def tick(self) -> BatchResult[Sample]:
        """Record one sample for every device in the system.

        Returns:
            BatchResult: Persisted samples and per-device failures.

        Raises:
            Exception: If listing devices fails (no per-device work started).
        """
        async with self._session_factory() as session:
            devices = list(await list_all_devices(session))

        result = await update_devices(
            self._session_factory,
            devices,
            rng=self._rng,
            interval_h=self.energy_interval_h,
            operation="scheduled ingestion",
        )

        if self._cache is not None and result.succeeded:
            written = {s.device_id for s in result.succeeded}
            await self._cache.invalidate(
                d.owner_id for d in devices if d.id in written
            )

        logger.info(
            "Ingestion tick recorded %d/%d sample(s)",
            len(result.succeeded),
            len(devices),
        )
        return result

    async def _run_tick(self) -> None:
        """Run one tick, logging instead of raising."""
        try:
            await self.tick()
        except Exception:
            logger.error("Ingestion tick failed", exc_info=True)
        finally:
            self.tick_count += 1

    def _dispatch_tick(self) -> None:
        """Start a tick unless the previous one is still running."""
        if self.tick_in_progress:
            self.skipped_ticks += 1
            logger.warning(
                "Previous ingestion tick still running, skipping this one "
                "(skipped=%d)",
                self.skipped_ticks,
            )
            return
        self._tick_task = asyncio.create_task(self._run_tick())

    async def _loop(self) -> None:
        """Dispatch ticks every interval_s until shutdown."""
        logger.info("Ingestion scheduler started (interval=%ss)", self.interval_s)
        while not self._shutdown_event.is_set():
            self._dispatch_tick()
            # Use wait with timeout so we can check shutdown between periods
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(
                    self._shutdown_event.wait(),
                    timeout=self.interval_s,
                )
        logger.info("Ingestion scheduler stopped")

    def start(self) -> None:
        """Start the schedule loop. The first tick is dispatched immediately.

        Raises:
            RuntimeError: If the scheduler is already running.
        """
        if self.is_running:
            raise RuntimeError("Ingestion scheduler already running")
        self._shutdown_event.clear()
        self._loop_task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        """Stop the loop and wait for any in-flight tick to resolve."""
        self._shutdown_event.set()
        if self._loop_task is not None:
            await self._loop_task
            self._loop_task = None
        if self._tick_task is not None:
            await self._tick_task
            self._tick_task = None
