"""
SQLAlchemy ORM models for the energywatch database.

Defines the Device model (owned, typed energy device) and the Sample model
(append-only telemetry reading). Samples reference their device with
ON DELETE CASCADE and are indexed on (device_id, ts) so that latest-per-device
and windowed history queries do not degrade into sequential scans.

CHANGELOG:
- 2026-10-13: Add (device_id, ts) index for latest-per-device queries
- 2026-10-11: Initial creation

TODO:
- None
"""

import datetime
import enum
import uuid

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Double,
    ForeignKey,
    Index,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class DeviceType(enum.StrEnum):
    """Kind of energy device; determines the sample envelope."""

    SOLAR = "solar"
    METER = "meter"
    APPLIANCE = "appliance"


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(tz=datetime.UTC)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all energywatch ORM models."""

    pass


class Device(Base):
    """An energy device registered by a user.

    Attributes:
        id: Opaque unique identifier (UUID string).
        name: Display name.
        type: One of ``solar``, ``meter``, ``appliance``. Immutable.
        location: Optional free-text location.
        owner_id: Identifier of the owning user.
        registered_at: Registration timestamp in UTC.
    """

    __tablename__ = "devices"
    __table_args__ = (
        CheckConstraint(
            "type IN ('solar', 'meter', 'appliance')",
            name="ck_devices_type",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[str | None] = mapped_column(Text, nullable=True)
    owner_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    registered_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    def __repr__(self) -> str:
        """Return string representation of the Device."""
        return (
            f"Device(id={self.id!r}, type={self.type!r}, "
            f"owner_id={self.owner_id!r})"
        )


class Sample(Base):
    """Telemetry reading for a device.

    Samples are never updated after insertion. ``current_a`` is derived from
    the base load and nominal voltage at generation time and stored as-is.

    Attributes:
        id: Opaque unique identifier (UUID string).
        device_id: Owning device.
        ts: Measurement timestamp in UTC.
        power_w: Signed power in watts. Negative = generation.
        voltage_v: Measured voltage in volts.
        current_a: Current in amperes.
        energy_wh: Energy over the sampling interval in watt-hours.
    """

    __tablename__ = "samples"
    __table_args__ = (Index("ix_samples_device_id_ts", "device_id", "ts"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    device_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("devices.id", ondelete="CASCADE"),
        nullable=False,
    )
    ts: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    power_w: Mapped[float] = mapped_column(Double, nullable=False)
    voltage_v: Mapped[float] = mapped_column(Double, nullable=False)
    current_a: Mapped[float] = mapped_column(Double, nullable=False)
    energy_wh: Mapped[float] = mapped_column(Double, nullable=False)

    def __repr__(self) -> str:
        """Return string representation of the Sample."""
        return (
            f"Sample(device_id={self.device_id!r}, "
            f"ts={self.ts!r}, power_w={self.power_w!r})"
        )
