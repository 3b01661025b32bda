"""
Device registry endpoints.

Register, list, inspect and delete devices owned by the authenticated
user. Deleting a device also deletes all of its samples.

CHANGELOG:
- 2026-10-12: Initial creation

TODO:
- None
"""

import logging
from datetime import datetime

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict, Field

from energywatch.api.data import SampleOut
from energywatch.api.deps import Cache, CurrentUser, DbSession
from energywatch.db.models import DeviceType
from energywatch.services.devices import create_device, delete_device
from energywatch.services.query import (
    get_owned_device,
    latest_sample,
    list_owned_devices,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/devices", tags=["devices"])


class DeviceIn(BaseModel):
    """Payload for registering a device."""

    name: str = Field(min_length=1, max_length=200)
    type: DeviceType
    location: str | None = None


class DeviceOut(BaseModel):
    """Registered device."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    type: DeviceType
    location: str | None
    owner_id: str
    registered_at: datetime


class DeviceDetailOut(DeviceOut):
    """Registered device with its most recent sample, if any."""

    latest_sample: SampleOut | None = None


class MessageResponse(BaseModel):
    """Plain confirmation message."""

    message: str


@router.post("", response_model=DeviceOut, status_code=201)
async def register(payload: DeviceIn, user_id: CurrentUser, db: DbSession) -> DeviceOut:
    """Register a device for the authenticated user."""
    device = await create_device(
        db,
        user_id,
        name=payload.name,
        device_type=payload.type,
        location=payload.location,
    )
    return DeviceOut.model_validate(device)


@router.get("", response_model=list[DeviceOut])
async def list_devices(user_id: CurrentUser, db: DbSession) -> list[DeviceOut]:
    """Return every device owned by the authenticated user."""
    devices = await list_owned_devices(db, user_id)
    return [DeviceOut.model_validate(d) for d in devices]


@router.get("/{device_id}", response_model=DeviceDetailOut)
async def get_device(
    device_id: str, user_id: CurrentUser, db: DbSession
) -> DeviceDetailOut:
    """Return an owned device together with its latest sample."""
    device = await get_owned_device(db, device_id, user_id)
    sample = await latest_sample(db, device.id)
    detail = DeviceDetailOut.model_validate(device)
    if sample is not None:
        detail.latest_sample = SampleOut.model_validate(sample)
    return detail


@router.delete("/{device_id}", response_model=MessageResponse)
async def remove_device(
    device_id: str, user_id: CurrentUser, db: DbSession, cache: Cache
) -> MessageResponse:
    """Delete an owned device and all of its samples."""
    await delete_device(db, device_id, user_id)
    await cache.invalidate([user_id])
    return MessageResponse(message="Device deleted successfully")
