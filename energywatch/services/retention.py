"""
Retention policy for stored telemetry samples.

Two independent per-device mechanisms:

- ``prune_expired``: age-based, deletes every sample older than a cutoff.
  Runs after each on-demand single-device update.
- ``crop_oldest``: count-based, deletes exactly the N oldest samples of a
  device that holds more than N samples. Runs on explicit operator request.

Both select the target sample ids first and then delete by id, so rows
inserted concurrently are never swept up by the delete.

CHANGELOG:
- 2026-10-14: Skip devices holding N or fewer samples in crop_oldest
- 2026-10-13: Initial creation

TODO:
- None
"""

import logging
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from energywatch.db.models import Device, Sample
from energywatch.services.fanout import BatchResult, fan_out

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE_H = 24.0
DEFAULT_CROP_SIZE = 10


async def _delete_ids(db: AsyncSession, ids: list[str]) -> int:
    """Delete samples by id and commit. Returns the number of rows removed."""
    if not ids:
        return 0
    result = await db.execute(delete(Sample).where(Sample.id.in_(ids)))
    await db.commit()
    return result.rowcount


async def prune_expired(
    db: AsyncSession,
    device_id: str,
    *,
    max_age_h: float = DEFAULT_MAX_AGE_H,
    now: datetime | None = None,
) -> int:
    """Delete all samples of a device older than ``max_age_h`` hours.

    Args:
        db: Async SQLAlchemy session.
        device_id: Device whose history is pruned.
        max_age_h: Maximum sample age in hours.
        now: Reference time. Defaults to now (UTC).

    Returns:
        int: Number of samples deleted.
    """
    if now is None:
        now = datetime.now(tz=UTC)
    cutoff = now - timedelta(hours=max_age_h)

    result = await db.execute(
        select(Sample.id).where(Sample.device_id == device_id, Sample.ts < cutoff)
    )
    deleted = await _delete_ids(db, list(result.scalars().all()))

    if deleted:
        logger.info(
            "Pruned %d sample(s) older than %sh for device %s",
            deleted,
            max_age_h,
            device_id,
        )
    return deleted


async def crop_oldest(
    db: AsyncSession,
    device_id: str,
    *,
    count: int = DEFAULT_CROP_SIZE,
) -> int:
    """Delete the ``count`` oldest samples of a device.

    A device holding ``count`` samples or fewer is left untouched. Ties on
    timestamp are broken by sample id so repeated calls pick the same rows.

    Args:
        db: Async SQLAlchemy session.
        device_id: Device to crop.
        count: Number of oldest samples to remove.

    Returns:
        int: Number of samples deleted (0 or ``count``).
    """
    total = await db.scalar(
        select(func.count()).select_from(Sample).where(Sample.device_id == device_id)
    )
    if not total or total <= count:
        logger.debug(
            "Crop skipped for device %s (%s sample(s) <= %d)",
            device_id,
            total,
            count,
        )
        return 0

    result = await db.execute(
        select(Sample.id)
        .where(Sample.device_id == device_id)
        .order_by(Sample.ts.asc(), Sample.id.asc())
        .limit(count)
    )
    deleted = await _delete_ids(db, list(result.scalars().all()))

    logger.info("Cropped %d oldest sample(s) for device %s", deleted, device_id)
    return deleted


async def crop_devices(
    session_factory: async_sessionmaker[AsyncSession],
    devices: Sequence[Device],
    *,
    count: int = DEFAULT_CROP_SIZE,
) -> BatchResult[int]:
    """Run crop_oldest for every device concurrently.

    Args:
        session_factory: Factory used to open one session per device.
        devices: Devices to crop.
        count: Number of oldest samples to remove per device.

    Returns:
        BatchResult: Per-device deleted counts and per-device failures.
    """

    async def _work(session: AsyncSession, device: Device) -> int:
        return await crop_oldest(session, device.id, count=count)

    return await fan_out(session_factory, devices, _work, operation="crop-data")
