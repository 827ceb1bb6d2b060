"""create resource bookings and activity logs

Revision ID: 20261018_0002
Revises: 20261018_0001
Create Date: 2026-10-18 00:10:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261018_0002"
down_revision = "20261018_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    resource_kind = sa.Enum("teacher", "room", name="resource_kind")

    op.create_table(
        "resource_bookings",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("day_index", sa.Integer(), nullable=False),
        sa.Column("slot_id", sa.String(length=36), nullable=False),
        sa.Column("resource_kind", resource_kind, nullable=False),
        sa.Column("resource_id", sa.String(length=36), nullable=False),
        sa.Column("commitment_id", sa.String(length=36), nullable=False),
        sa.UniqueConstraint(
            "day_index",
            "slot_id",
            "resource_kind",
            "resource_id",
            name="uq_resource_bookings_cell_resource",
        ),
    )
    op.create_index("ix_resource_bookings_resource", "resource_bookings", ["resource_kind", "resource_id"])
    op.create_index("ix_resource_bookings_commitment_id", "resource_bookings", ["commitment_id"])

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("actor", sa.String(length=100), nullable=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("scope", sa.String(length=50), nullable=True),
        sa.Column("entity_type", sa.String(length=50), nullable=True),
        sa.Column("entity_id", sa.String(length=100), nullable=True),
        sa.Column("affected_teacher_ids", sa.JSON(), nullable=False),
        sa.Column("affected_room_ids", sa.JSON(), nullable=False),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_activity_logs_action", "activity_logs", ["action"])
    op.create_index("ix_activity_logs_scope", "activity_logs", ["scope"])


def downgrade() -> None:
    op.drop_index("ix_activity_logs_scope", table_name="activity_logs")
    op.drop_index("ix_activity_logs_action", table_name="activity_logs")
    op.drop_table("activity_logs")
    op.drop_index("ix_resource_bookings_commitment_id", table_name="resource_bookings")
    op.drop_index("ix_resource_bookings_resource", table_name="resource_bookings")
    op.drop_table("resource_bookings")
    sa.Enum(name="resource_kind").drop(op.get_bind(), checkfirst=True)
