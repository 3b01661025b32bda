"""
Ingestion service for generated telemetry samples.

Persists one generated SampleReading per device as an independent
single-row insert. The on-demand single-device path additionally runs
age-based retention for that device; bulk paths fan out per device with
failure isolation.

CHANGELOG:
- 2026-10-14: Bulk update uses isolated per-device fan-out
- 2026-10-13: Initial creation

TODO:
- None
"""

import logging
import random
from collections.abc import Sequence
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from energywatch.db.models import Device, Sample
from energywatch.services.fanout import BatchResult, fan_out
from energywatch.services.generator import ON_DEMAND_INTERVAL_H, generate_sample
from energywatch.services.retention import DEFAULT_MAX_AGE_H, prune_expired

logger = logging.getLogger(__name__)


async def record_sample(
    db: AsyncSession,
    device: Device,
    *,
    rng: random.Random | None = None,
    interval_h: float = ON_DEMAND_INTERVAL_H,
    ts: datetime | None = None,
) -> Sample:
    """Generate one sample for ``device`` and insert it.

    Args:
        db: Async SQLAlchemy session.
        device: Device to sample.
        rng: Random source for the generator.
        interval_h: Sampling interval used for the sample energy.
        ts: Sample timestamp. Defaults to now (UTC).

    Returns:
        Sample: The persisted sample.
    """
    reading = generate_sample(
        device.id, device.type, ts=ts, rng=rng, interval_h=interval_h
    )
    sample = Sample(**reading.model_dump())
    db.add(sample)
    await db.commit()

    logger.debug(
        "Recorded sample for device %s: power_w=%.1f",
        device.id,
        sample.power_w,
    )
    return sample


async def update_device(
    db: AsyncSession,
    device: Device,
    *,
    rng: random.Random | None = None,
    max_age_h: float = DEFAULT_MAX_AGE_H,
) -> Sample:
    """Record an on-demand sample for one device, then prune its old history.

    Args:
        db: Async SQLAlchemy session.
        device: Device to sample (ownership already checked by the caller).
        rng: Random source for the generator.
        max_age_h: Samples older than this many hours are deleted afterwards.

    Returns:
        Sample: The persisted sample.
    """
    sample = await record_sample(db, device, rng=rng)
    await prune_expired(db, device.id, max_age_h=max_age_h)
    return sample


async def update_devices(
    session_factory: async_sessionmaker[AsyncSession],
    devices: Sequence[Device],
    *,
    rng: random.Random | None = None,
    interval_h: float = ON_DEMAND_INTERVAL_H,
    operation: str = "update-all",
) -> BatchResult[Sample]:
    """Record one sample per device concurrently.

    Args:
        session_factory: Factory used to open one session per device.
        devices: Devices to sample.
        rng: Random source for the generator.
        interval_h: Sampling interval used for the sample energy.
        operation: Name used in log messages.

    Returns:
        BatchResult: Persisted samples and per-device failures.
    """

    async def _work(session: AsyncSession, device: Device) -> Sample:
        return await record_sample(session, device, rng=rng, interval_h=interval_h)

    return await fan_out(session_factory, devices, _work, operation=operation)
