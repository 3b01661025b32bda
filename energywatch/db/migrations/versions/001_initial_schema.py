"""
Initial schema: devices and samples.

Creates the devices table (owner-scoped, type-constrained) and the samples
table referencing it with ON DELETE CASCADE, plus the (device_id, ts) index
backing latest-per-device and windowed history queries.

Revision ID: 001
Revises: None
Create Date: 2026-10-11

CHANGELOG:
- 2026-10-13: Add ix_samples_device_id_ts
- 2026-10-11: Initial creation
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# Revision identifiers used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create devices, samples and their indexes."""
    op.create_table(
        "devices",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("location", sa.Text(), nullable=True),
        sa.Column("owner_id", sa.Text(), nullable=False),
        sa.Column("registered_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "type IN ('solar', 'meter', 'appliance')",
            name="ck_devices_type",
        ),
    )
    op.create_index("ix_devices_owner_id", "devices", ["owner_id"])

    op.create_table(
        "samples",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("device_id", sa.String(36), nullable=False),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        sa.Column("power_w", sa.Double(), nullable=False),
        sa.Column("voltage_v", sa.Double(), nullable=False),
        sa.Column("current_a", sa.Double(), nullable=False),
        sa.Column("energy_wh", sa.Double(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["device_id"], ["devices.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_samples_device_id_ts", "samples", ["device_id", "ts"])


def downgrade() -> None:
    """Drop samples and devices."""
    op.drop_index("ix_samples_device_id_ts", table_name="samples")
    op.drop_table("samples")
    op.drop_index("ix_devices_owner_id", table_name="devices")
    op.drop_table("devices")
