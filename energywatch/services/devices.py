"""
Device registry: ownership-scoped create and delete.

Deleting a device removes its samples explicitly before the device row,
so no orphan sample survives even on databases where the foreign key
cascade is not enforced (e.g. SQLite without ``PRAGMA foreign_keys``).

CHANGELOG:
- 2026-10-12: Initial creation
"""

import logging

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from energywatch.db.models import Device, DeviceType, Sample
from energywatch.services.query import get_owned_device

logger = logging.getLogger(__name__)


async def create_device(
    db: AsyncSession,
    owner_id: str,
    *,
    name: str,
    device_type: DeviceType | str,
    location: str | None = None,
) -> Device:
    """Register a new device for ``owner_id``.

    Args:
        db: Async SQLAlchemy session.
        owner_id: Owning user.
        name: Display name.
        device_type: One of the DeviceType values.
        location: Optional location.

    Returns:
        Device: The persisted device.

    Raises:
        ValueError: If ``device_type`` is not a known DeviceType.
    """
    device = Device(
        name=name,
        type=DeviceType(device_type).value,
        location=location,
        owner_id=owner_id,
    )
    db.add(device)
    await db.commit()

    logger.info(
        "Registered %s device %s for owner %s", device.type, device.id, owner_id
    )
    return device


async def delete_device(db: AsyncSession, device_id: str, owner_id: str) -> int:
    """Delete an owned device together with all of its samples.

    Returns:
        int: Number of samples deleted with the device.

    Raises:
        DeviceNotFoundError: If the device is not owned by ``owner_id``.
    """
    device = await get_owned_device(db, device_id, owner_id)

    result = await db.execute(delete(Sample).where(Sample.device_id == device.id))
    await db.delete(device)
    await db.commit()

    logger.info(
        "Deleted device %s and %d sample(s) for owner %s",
        device_id,
        result.rowcount,
        owner_id,
    )
    return result.rowcount
