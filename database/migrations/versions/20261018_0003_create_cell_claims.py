"""create cell claims

Revision ID: 20261018_0003
Revises: 20261018_0002
Create Date: 2026-10-18 00:20:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261018_0003"
down_revision = "20261018_0002"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "cell_claims",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("program_code", sa.String(length=20), nullable=False),
        sa.Column("semester", sa.Integer(), nullable=False),
        sa.Column("section", sa.String(length=10), nullable=False),
        sa.Column("day_index", sa.Integer(), nullable=False),
        sa.Column("slot_id", sa.String(length=36), nullable=False),
        sa.Column("lane", sa.String(length=3), nullable=False),
        sa.Column("routine_slot_id", sa.String(length=36), nullable=False),
        sa.UniqueConstraint(
            "program_code",
            "semester",
            "section",
            "day_index",
            "slot_id",
            "lane",
            name="uq_cell_claims_scope_cell_lane",
        ),
    )
    op.create_index("ix_cell_claims_routine_slot_id", "cell_claims", ["routine_slot_id"])


def downgrade() -> None:
    op.drop_index("ix_cell_claims_routine_slot_id", table_name="cell_claims")
    op.drop_table("cell_claims")
