"""
Query layer for owned devices and their telemetry.

Every query is scoped to the devices owned by the requesting user: a
device owned by somebody else behaves exactly like a device that does
not exist.

- ``current_snapshot``: latest sample per owned device (top-1 per device
  via ``row_number()``), devices without samples omitted.
- ``sample_history``: samples within the last N hours for one owned device
  or all owned devices, newest first.

CHANGELOG:
- 2026-10-16: Clamp history windows reaching before year 1
- 2026-10-14: Break timestamp ties by sample id in the snapshot
- 2026-10-13: Initial creation

TODO:
- None
"""

import logging
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from energywatch.db.models import Device, Sample
from energywatch.exceptions import DeviceNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_HOURS = 24.0
MAX_HISTORY_HOURS = 87600.0

_EARLIEST = datetime.min.replace(tzinfo=UTC)


async def get_owned_device(
    db: AsyncSession,
    device_id: str,
    owner_id: str,
) -> Device:
    """Return a device owned by ``owner_id``.

    Raises:
        DeviceNotFoundError: If the device does not exist or has another owner.
    """
    device = await db.scalar(
        select(Device).where(Device.id == device_id, Device.owner_id == owner_id)
    )
    if device is None:
        raise DeviceNotFoundError(device_id)
    return device


async def list_owned_devices(db: AsyncSession, owner_id: str) -> Sequence[Device]:
    """Return all devices of ``owner_id``, oldest registration first."""
    result = await db.execute(
        select(Device)
        .where(Device.owner_id == owner_id)
        .order_by(Device.registered_at.asc(), Device.id.asc())
    )
    return result.scalars().all()


async def list_all_devices(db: AsyncSession) -> Sequence[Device]:
    """Return every device across all owners."""
    result = await db.execute(select(Device).order_by(Device.registered_at.asc()))
    return result.scalars().all()


async def latest_sample(db: AsyncSession, device_id: str) -> Sample | None:
    """Return the most recent sample of a single device, if any."""
    return await db.scalar(
        select(Sample)
        .where(Sample.device_id == device_id)
        .order_by(Sample.ts.desc(), Sample.id.desc())
        .limit(1)
    )


async def current_snapshot(db: AsyncSession, owner_id: str) -> Sequence[Sample]:
    """Return the latest sample of every device owned by ``owner_id``.

    Devices with no samples are omitted. The result is ordered newest first.
    """
    ranked = (
        select(
            Sample,
            func.row_number()
            .over(
                partition_by=Sample.device_id,
                order_by=(Sample.ts.desc(), Sample.id.desc()),
            )
            .label("rn"),
        )
        .join(Device, Device.id == Sample.device_id)
        .where(Device.owner_id == owner_id)
        .subquery()
    )
    latest = aliased(Sample, ranked)

    result = await db.execute(
        select(latest).where(ranked.c.rn == 1).order_by(latest.ts.desc())
    )
    samples = result.scalars().all()

    logger.debug(
        "Current snapshot: owner_id=%s devices_with_data=%d",
        owner_id,
        len(samples),
    )
    return samples


async def sample_history(
    db: AsyncSession,
    owner_id: str,
    *,
    device_id: str | None = None,
    hours: float | None = None,
    default_hours: float = DEFAULT_HISTORY_HOURS,
    now: datetime | None = None,
) -> Sequence[Sample]:
    """Return samples from the last ``hours`` hours, newest first.

    Args:
        db: Async SQLAlchemy session.
        owner_id: Requesting user.
        device_id: Restrict to this device. ``None`` means all owned devices.
        hours: Window size. Falsy values fall back to ``default_hours``.
        default_hours: Window used when ``hours`` is absent or zero.
        now: Reference time. Defaults to now (UTC).

    Returns:
        Sequence[Sample]: Samples ordered by timestamp descending.

    Raises:
        DeviceNotFoundError: If ``device_id`` is not owned by ``owner_id``.
    """
    if now is None:
        now = datetime.now(tz=UTC)
    try:
        cutoff = now - timedelta(hours=hours or default_hours)
    except OverflowError:
        cutoff = _EARLIEST

    stmt = select(Sample).where(Sample.ts >= cutoff)
    if device_id is not None:
        await get_owned_device(db, device_id, owner_id)
        stmt = stmt.where(Sample.device_id == device_id)
    else:
        owned_ids = select(Device.id).where(Device.owner_id == owner_id)
        stmt = stmt.where(Sample.device_id.in_(owned_ids))

    result = await db.execute(stmt.order_by(Sample.ts.desc(), Sample.id.desc()))
    samples = result.scalars().all()

    logger.debug(
        "History query: owner_id=%s device_id=%s hours=%s rows=%d",
        owner_id,
        device_id,
        hours or default_hours,
        len(samples),
    )
    return samples
