"""
Tests for the retention policy against a SQLite database.

Tests verify:
- prune_expired removes only samples older than the cutoff, for one device.
- crop_oldest leaves devices with N <= 10 samples untouched.
- crop_oldest removes exactly the 10 oldest samples when N > 10.
- crop_devices aggregates per-device counts and isolates failures.

CHANGELOG:
- 2026-10-14: Add crop_devices fan-out tests
- 2026-10-13: Initial creation
"""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Session

from conftest import NOW, USER_A, seed_device, seed_samples
from energywatch.db.models import Sample
from energywatch.services.retention import crop_devices, crop_oldest, prune_expired


async def _sample_ids(db: AsyncSession, device_id: str) -> set[str]:
    result = await db.execute(select(Sample.id).where(Sample.device_id == device_id))
    return set(result.scalars().all())


class TestPruneExpired:
    """Age-based retention."""

    @pytest.mark.asyncio
    async def test_removes_samples_older_than_cutoff(
        self, sync_session: Session, db: AsyncSession
    ) -> None:
        """Samples older than 24 h are deleted, newer ones kept."""
        device = seed_device(sync_session)
        samples = seed_samples(sync_session, device, 30, step=timedelta(hours=1))
        # Timestamps span NOW-29h .. NOW; 24h cutoff keeps NOW-24h .. NOW.
        expected_kept = {s.id for s in samples if s.ts >= NOW - timedelta(hours=24)}

        deleted = await prune_expired(db, device.id, max_age_h=24, now=NOW)

        assert deleted == 30 - len(expected_kept)
        assert await _sample_ids(db, device.id) == expected_kept

    @pytest.mark.asyncio
    async def test_other_devices_untouched(
        self, sync_session: Session, db: AsyncSession
    ) -> None:
        """Pruning one device never touches another device's samples."""
        target = seed_device(sync_session)
        other = seed_device(sync_session, name="Meter")
        seed_samples(sync_session, target, 3, end=NOW - timedelta(days=3))
        other_samples = seed_samples(sync_session, other, 3, end=NOW - timedelta(days=3))

        deleted = await prune_expired(db, target.id, now=NOW)

        assert deleted == 3
        assert await _sample_ids(db, target.id) == set()
        assert await _sample_ids(db, other.id) == {s.id for s in other_samples}

    @pytest.mark.asyncio
    async def test_nothing_to_prune_returns_zero(
        self, sync_session: Session, db: AsyncSession
    ) -> None:
        """Fresh samples are not deleted."""
        device = seed_device(sync_session)
        seed_samples(sync_session, device, 5)

        assert await prune_expired(db, device.id, now=NOW) == 0
        assert len(await _sample_ids(db, device.id)) == 5


class TestCropOldest:
    """Count-based retention."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count", [0, 1, 9, 10])
    async def test_ten_or_fewer_samples_untouched(
        self, sync_session: Session, db: AsyncSession, count: int
    ) -> None:
        """A device with N <= 10 samples loses nothing."""
        device = seed_device(sync_session)
        seed_samples(sync_session, device, count)

        assert await crop_oldest(db, device.id) == 0
        assert len(await _sample_ids(db, device.id)) == count

    @pytest.mark.asyncio
    async def test_fifteen_samples_keeps_five_newest(
        self, sync_session: Session, db: AsyncSession
    ) -> None:
        """15 samples with increasing timestamps: the 10 oldest are removed."""
        device = seed_device(sync_session)
        samples = seed_samples(sync_session, device, 15)

        deleted = await crop_oldest(db, device.id)

        assert deleted == 10
        assert await _sample_ids(db, device.id) == {s.id for s in samples[-5:]}

    @pytest.mark.asyncio
    async def test_eleven_samples_removes_exactly_ten(
        self, sync_session: Session, db: AsyncSession
    ) -> None:
        """N = 11 leaves only the newest sample."""
        device = seed_device(sync_session)
        samples = seed_samples(sync_session, device, 11)

        assert await crop_oldest(db, device.id) == 10
        assert await _sample_ids(db, device.id) == {samples[-1].id}

    @pytest.mark.asyncio
    async def test_custom_count(self, sync_session: Session, db: AsyncSession) -> None:
        """The crop size is configurable."""
        device = seed_device(sync_session)
        samples = seed_samples(sync_session, device, 6)

        assert await crop_oldest(db, device.id, count=4) == 4
        assert await _sample_ids(db, device.id) == {s.id for s in samples[-2:]}


class TestCropDevices:
    """Per-device crop fan-out."""

    @pytest.mark.asyncio
    async def test_sums_per_device_counts(
        self,
        sync_session: Session,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        """Each device is cropped independently; results are per device."""
        big = seed_device(sync_session, name="Big")
        small = seed_device(sync_session, name="Small")
        seed_samples(sync_session, big, 25)
        seed_samples(sync_session, small, 4)

        result = await crop_devices(session_factory, [big, small])

        assert sorted(result.succeeded) == [0, 10]
        assert result.failed == {}

    @pytest.mark.asyncio
    async def test_failure_is_isolated(
        self,
        sync_session: Session,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        """A device whose crop raises does not discard other devices' counts."""
        good = seed_device(sync_session, name="Good", owner_id=USER_A)
        bad = seed_device(sync_session, name="Bad", owner_id=USER_A)
        seed_samples(sync_session, good, 12)

        from energywatch.services import retention

        real_crop = retention.crop_oldest

        async def _crop(db, device_id, *, count):
            if device_id == bad.id:
                raise RuntimeError("disk full")
            return await real_crop(db, device_id, count=count)

        with patch.object(retention, "crop_oldest", AsyncMock(side_effect=_crop)):
            result = await crop_devices(session_factory, [good, bad])

        assert result.succeeded == [10]
        assert list(result.failed) == [bad.id]
        assert not result.all_failed
