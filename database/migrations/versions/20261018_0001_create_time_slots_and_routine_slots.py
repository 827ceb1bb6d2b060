"""create time slots and routine slots

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    day_type = sa.Enum("regular", "friday", "special", name="day_type")
    class_type = sa.Enum("lecture", "practical", "tutorial", name="class_type")
    lab_group = sa.Enum("A", "B", "C", "D", "ALL", name="lab_group")

    op.create_table(
        "time_slots",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("label", sa.String(length=50), nullable=False),
        sa.Column("day_type", day_type, nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("is_break", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("applicable_days", sa.JSON(), nullable=False),
    )
    op.create_index("ix_time_slots_sort_order", "time_slots", ["sort_order"])

    op.create_table(
        "routine_slots",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("program_code", sa.String(length=20), nullable=False),
        sa.Column("semester", sa.Integer(), nullable=False),
        sa.Column("section", sa.String(length=10), nullable=False),
        sa.Column("day_index", sa.Integer(), nullable=False),
        sa.Column("slot_id", sa.String(length=36), nullable=False),
        sa.Column("subject_id", sa.String(length=36), nullable=False),
        sa.Column("class_type", class_type, nullable=False),
        sa.Column("teacher_ids", sa.JSON(), nullable=False),
        sa.Column("room_id", sa.String(length=36), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("span_id", sa.String(length=36), nullable=True),
        sa.Column("span_master", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("lab_group", lab_group, nullable=True),
        sa.Column("lab_lane", sa.String(length=3), nullable=False, server_default=""),
        sa.Column("is_alternative_week", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("alternate_group_data", sa.JSON(), nullable=True),
        sa.Column("is_elective_class", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("elective_group_id", sa.String(length=36), nullable=True),
        sa.Column("cross_section_scheduled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("commitment_id", sa.String(length=36), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint(
            "program_code",
            "semester",
            "section",
            "day_index",
            "slot_id",
            "lab_lane",
            name="uq_routine_slots_scope_cell_lane",
        ),
    )
    op.create_index("ix_routine_slots_program_code", "routine_slots", ["program_code"])
    op.create_index("ix_routine_slots_span_id", "routine_slots", ["span_id"])
    op.create_index("ix_routine_slots_elective_group_id", "routine_slots", ["elective_group_id"])
    op.create_index("ix_routine_slots_commitment_id", "routine_slots", ["commitment_id"])


def downgrade() -> None:
    op.drop_index("ix_routine_slots_commitment_id", table_name="routine_slots")
    op.drop_index("ix_routine_slots_elective_group_id", table_name="routine_slots")
    op.drop_index("ix_routine_slots_span_id", table_name="routine_slots")
    op.drop_index("ix_routine_slots_program_code", table_name="routine_slots")
    op.drop_table("routine_slots")
    op.drop_index("ix_time_slots_sort_order", table_name="time_slots")
    op.drop_table("time_slots")
    sa.Enum(name="lab_group").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="class_type").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="day_type").drop(op.get_bind(), checkfirst=True)
