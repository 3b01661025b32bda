"""
Per-device fan-out with failure isolation.

Runs one unit of work per device concurrently, each in its own database
session, and joins on every unit. A failing unit is logged and recorded;
it never discards results already produced by other devices. This single
policy backs the scheduler tick, update-all and crop-data.

CHANGELOG:
- 2026-10-14: Initial creation

TODO:
- None
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from energywatch.db.models import Device

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class BatchResult(Generic[T]):
    """Outcome of a per-device fan-out.

    Attributes:
        succeeded: Results of the units that completed, in device order.
        failed: Mapping of device_id -> exception for units that raised.
    """

    succeeded: list[T] = field(default_factory=list)
    failed: dict[str, BaseException] = field(default_factory=dict)

    @property
    def all_failed(self) -> bool:
        """True when there was at least one unit and none succeeded."""
        return bool(self.failed) and not self.succeeded


async def fan_out(
    session_factory: async_sessionmaker[AsyncSession],
    devices: Sequence[Device],
    work: Callable[[AsyncSession, Device], Awaitable[T]],
    *,
    operation: str,
) -> BatchResult[T]:
    """Run ``work`` for every device concurrently and collect the outcomes.

    Args:
        session_factory: Factory used to open one session per device.
        devices: Devices to process.
        work: Coroutine function called as ``work(session, device)``.
        operation: Short name used in log messages.

    Returns:
        BatchResult: Successful results and per-device failures.
    """

    async def _unit(device: Device) -> T:
        async with session_factory() as session:
            return await work(session, device)

    outcomes = await asyncio.gather(
        *(_unit(device) for device in devices),
        return_exceptions=True,
    )

    batch: BatchResult[T] = BatchResult()
    for device, outcome in zip(devices, outcomes, strict=True):
        if isinstance(outcome, asyncio.CancelledError):
            raise outcome
        if isinstance(outcome, BaseException):
            logger.error(
                "%s failed for device %s",
                operation,
                device.id,
                exc_info=outcome,
            )
            batch.failed[device.id] = outcome
        else:
            batch.succeeded.append(outcome)

    if batch.failed:
        logger.warning(
            "%s finished with %d success(es) and %d failure(s)",
            operation,
            len(batch.succeeded),
            len(batch.failed),
        )
    return batch
