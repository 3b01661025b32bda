"""
Tests for the Device and Sample SQLAlchemy models.

Validates table names, columns, nullability, the device type constraint,
the (device_id, ts) index, the cascading foreign key, and repr.

CHANGELOG:
- 2026-10-13: Add index and foreign key tests
- 2026-10-11: Initial creation

TODO:
- None
"""

import datetime

import pytest
from sqlalchemy import CheckConstraint, DateTime, Double, inspect
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from conftest import seed_device
from energywatch.db.models import Base, Device, DeviceType, Sample


class TestDevice:
    """Device model."""

    def test_tablename(self) -> None:
        """Device maps to the devices table."""
        assert Device.__tablename__ == "devices"

    def test_columns(self) -> None:
        """Device defines exactly the registry columns."""
        columns = {col.key for col in inspect(Device).column_attrs}
        assert columns == {"id", "name", "type", "location", "owner_id", "registered_at"}

    def test_location_is_only_nullable_column(self) -> None:
        """Only location may be NULL."""
        nullable = {c.name for c in Device.__table__.columns if c.nullable}
        assert nullable == {"location"}

    def test_type_check_constraint(self) -> None:
        """The type column is restricted to the DeviceType values."""
        checks = [
            c for c in Device.__table__.constraints if isinstance(c, CheckConstraint)
        ]
        assert len(checks) == 1
        for member in DeviceType:
            assert f"'{member.value}'" in str(checks[0].sqltext)

    def test_owner_id_indexed(self) -> None:
        """Ownership lookups are indexed."""
        assert Device.__table__.c.owner_id.index is True

    def test_defaults_on_insert(self, sync_session: Session) -> None:
        """id and registered_at are filled in on insert."""
        device = seed_device(sync_session)
        assert len(device.id) == 36
        assert isinstance(device.registered_at, datetime.datetime)

    def test_unknown_type_rejected_by_database(self, sync_session: Session) -> None:
        """The check constraint refuses types outside the enum."""
        sync_session.add(Device(name="x", type="boiler", owner_id="u"))
        with pytest.raises(IntegrityError):
            sync_session.commit()
        sync_session.rollback()

    def test_repr(self) -> None:
        """repr shows id, type and owner."""
        device = Device(id="d-1", name="Roof", type="solar", owner_id="u-1")
        assert repr(device) == "Device(id='d-1', type='solar', owner_id='u-1')"


class TestSample:
    """Sample model."""

    def test_tablename(self) -> None:
        """Sample maps to the samples table."""
        assert Sample.__tablename__ == "samples"

    def test_columns_and_types(self) -> None:
        """Measurement columns are doubles; ts is timezone-aware."""
        table = Sample.__table__
        for name in ("power_w", "voltage_v", "current_a", "energy_wh"):
            assert isinstance(table.c[name].type, Double)
            assert table.c[name].nullable is False
        assert isinstance(table.c.ts.type, DateTime)
        assert table.c.ts.type.timezone is True

    def test_device_ts_index(self) -> None:
        """A composite (device_id, ts) index exists."""
        indexes = {ix.name: [c.name for c in ix.columns] for ix in Sample.__table__.indexes}
        assert indexes["ix_samples_device_id_ts"] == ["device_id", "ts"]

    def test_foreign_key_cascades(self) -> None:
        """device_id references devices.id with ON DELETE CASCADE."""
        (fk,) = Sample.__table__.c.device_id.foreign_keys
        assert fk.target_fullname == "devices.id"
        assert fk.ondelete == "CASCADE"

    def test_repr(self) -> None:
        """repr shows device, timestamp and power."""
        ts = datetime.datetime(2026, 10, 15, tzinfo=datetime.UTC)
        sample = Sample(device_id="d-1", ts=ts, power_w=-1200.0)
        assert repr(sample).startswith("Sample(device_id='d-1', ts=")
        assert "power_w=-1200.0" in repr(sample)


def test_metadata_contains_both_tables() -> None:
    """Base.metadata knows both tables for migrations and create_all."""
    assert set(Base.metadata.tables) == {"devices", "samples"}
