"""
Telemetry endpoints: on-demand sampling, current snapshot, history, crop.

All routes require Bearer auth and only ever touch devices owned by the
authenticated user. A device owned by somebody else is reported as 404.

Bulk routes (update-all, crop-data) fan out per device and isolate
failures: successful devices are returned, failed ones are logged, and
the request only fails when every device failed.

CHANGELOG:
- 2026-10-16: Treat empty history query values as absent; bound hours
- 2026-10-15: Serve the current snapshot through the Redis cache
- 2026-10-14: Isolate per-device failures in update-all and crop-data
- 2026-10-13: Initial creation

TODO:
- None
"""

import logging
import math
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from energywatch.api.deps import (
    AppSettings,
    Cache,
    CurrentUser,
    DbSession,
    Rng,
    SessionFactory,
)
from energywatch.exceptions import BatchFailedError
from energywatch.services.ingestion import update_device, update_devices
from energywatch.services.query import (
    MAX_HISTORY_HOURS,
    current_snapshot,
    get_owned_device,
    list_owned_devices,
    sample_history,
)
from energywatch.services.retention import crop_devices

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/data", tags=["data"])


# ---------------------------------------------------------------------------
# Pydantic response models
# ---------------------------------------------------------------------------


class SampleOut(BaseModel):
    """Single telemetry sample.

    Attributes:
        id: Sample identifier.
        device_id: Device the sample belongs to.
        ts: Sample timestamp (UTC).
        power_w: Signed power in watts. Negative = generation.
        voltage_v: Voltage in volts.
        current_a: Current in amperes.
        energy_wh: Energy over the sampling interval in watt-hours.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    device_id: str
    ts: datetime
    power_w: float
    voltage_v: float
    current_a: float
    energy_wh: float


class CropResponse(BaseModel):
    """Response from the crop-data endpoint."""

    deleted_count: int = Field(serialization_alias="deletedCount")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _parse_hours(raw: str | None) -> float | None:
    """Parse the ``hours`` query value.

    Returns:
        float | None: The window in hours, or None when absent or empty.

    Raises:
        HTTPException: 422 if the value is not a finite number between 0 and
            MAX_HISTORY_HOURS.
    """
    if raw is None or not raw.strip():
        return None
    try:
        hours = float(raw)
    except ValueError:
        raise HTTPException(
            status_code=422, detail="hours must be a number"
        ) from None
    if not math.isfinite(hours) or hours < 0 or hours > MAX_HISTORY_HOURS:
        raise HTTPException(
            status_code=422,
            detail=f"hours must be between 0 and {MAX_HISTORY_HOURS:g}",
        )
    return hours


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.post("/update/{device_id}", response_model=SampleOut)
async def update_one(
    device_id: str,
    user_id: CurrentUser,
    db: DbSession,
    settings: AppSettings,
    cache: Cache,
    rng: Rng,
) -> SampleOut:
    """Generate and store one sample for an owned device.

    Samples of the device older than RETENTION_MAX_AGE_H are pruned
    afterwards.

    Raises:
        DeviceNotFoundError: If the device is not owned by the caller.
    """
    device = await get_owned_device(db, device_id, user_id)
    sample = await update_device(
        db, device, rng=rng, max_age_h=settings.retention_max_age_h
    )
    await cache.invalidate([user_id])
    return SampleOut.model_validate(sample)


@router.post("/update-all", response_model=list[SampleOut])
async def update_all(
    user_id: CurrentUser,
    db: DbSession,
    session_factory: SessionFactory,
    cache: Cache,
    rng: Rng,
) -> list[SampleOut]:
    """Generate and store one sample for every owned device.

    Raises:
        BatchFailedError: If every device failed.
    """
    devices = await list_owned_devices(db, user_id)
    result = await update_devices(session_factory, devices, rng=rng)
    if result.all_failed:
        raise BatchFailedError("update-all", result.failed)

    if result.succeeded:
        await cache.invalidate([user_id])
    return [SampleOut.model_validate(s) for s in result.succeeded]


@router.get("/current", response_model=list[SampleOut])
async def current(
    user_id: CurrentUser,
    db: DbSession,
    cache: Cache,
) -> list[SampleOut]:
    """Return the latest sample of every owned device that has data."""
    cached = await cache.get(user_id)
    if cached is not None:
        return [SampleOut.model_validate(item) for item in cached]

    samples = [SampleOut.model_validate(s) for s in await current_snapshot(db, user_id)]
    await cache.set(user_id, [s.model_dump(mode="json") for s in samples])
    return samples


@router.get("/history", response_model=list[SampleOut])
async def history(
    user_id: CurrentUser,
    db: DbSession,
    settings: AppSettings,
    device_id: Annotated[
        str | None,
        Query(alias="deviceId", description="Restrict to one owned device."),
    ] = None,
    hours: Annotated[
        str | None,
        Query(description="Window size in hours (default 24)."),
    ] = None,
) -> list[SampleOut]:
    """Return samples from the last ``hours`` hours, newest first.

    Empty ``deviceId`` and ``hours`` values count as absent.

    Raises:
        DeviceNotFoundError: If ``deviceId`` is not owned by the caller.
        HTTPException: 422 if ``hours`` is not a number in range.
    """
    samples = await sample_history(
        db,
        user_id,
        device_id=device_id or None,
        hours=_parse_hours(hours),
        default_hours=settings.history_default_hours,
    )
    return [SampleOut.model_validate(s) for s in samples]


@router.post("/crop-data", response_model=CropResponse)
async def crop_data(
    user_id: CurrentUser,
    db: DbSession,
    session_factory: SessionFactory,
    settings: AppSettings,
    cache: Cache,
) -> CropResponse:
    """Delete the oldest CROP_BATCH_SIZE samples of every owned device.

    Devices holding CROP_BATCH_SIZE samples or fewer are left untouched.

    Raises:
        BatchFailedError: If every device failed.
    """
    devices = await list_owned_devices(db, user_id)
    result = await crop_devices(
        session_factory, devices, count=settings.crop_batch_size
    )
    if result.all_failed:
        raise BatchFailedError("crop-data", result.failed)

    deleted = sum(result.succeeded)
    if deleted:
        await cache.invalidate([user_id])

    logger.info("crop-data removed %d sample(s) for user %s", deleted, user_id)
    return CropResponse(deleted_count=deleted)
