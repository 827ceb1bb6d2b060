from __future__ import annotations

import logging
import uuid

from sqlalchemy import insert, inspect, text

import app.models  # noqa: F401  registers every table on Base.metadata
from app.core.config import get_settings
from app.db.base import Base
from app.db.session import engine
from app.models.cell_claim import CellClaim, claimed_lanes

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "time_slots": {"id", "label", "sort_order", "is_break", "applicable_days"},
    "routine_slots": {
        "id",
        "program_code",
        "semester",
        "section",
        "day_index",
        "slot_id",
        "lab_lane",
        "commitment_id",
    },
    "resource_bookings": {"id", "day_index", "slot_id", "resource_kind", "resource_id", "commitment_id"},
    "cell_claims": {"id", "section", "day_index", "slot_id", "lane", "routine_slot_id"},
    "activity_logs": {"id", "actor", "action", "scope", "affected_teacher_ids"},
}


def _ensure_routine_slots_lab_lane_column() -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        if "routine_slots" not in set(inspector.get_table_names()):
            return
        column_names = {item["name"] for item in inspector.get_columns("routine_slots")}
        if "lab_lane" in column_names:
            return
        connection.execute(text("ALTER TABLE routine_slots ADD COLUMN lab_lane VARCHAR(3) NOT NULL DEFAULT ''"))
        lab_group_expression = "lab_group::text" if connection.dialect.name == "postgresql" else "lab_group"
        connection.execute(
            text(
                "UPDATE routine_slots "
                f"SET lab_lane = {lab_group_expression} "
                f"WHERE lab_group IS NOT NULL AND {lab_group_expression} <> 'ALL'"
            )
        )


def _ensure_routine_slots_commitment_id_column() -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        if "routine_slots" not in set(inspector.get_table_names()):
            return
        column_names = {item["name"] for item in inspector.get_columns("routine_slots")}
        if "commitment_id" in column_names:
            return
        connection.execute(text("ALTER TABLE routine_slots ADD COLUMN commitment_id VARCHAR(36)"))
        # Elective replicas share their group's bookings; every other row owns its own.
        connection.execute(text("UPDATE routine_slots SET commitment_id = COALESCE(elective_group_id, id)"))
        if connection.dialect.name == "postgresql":
            connection.execute(text("ALTER TABLE routine_slots ALTER COLUMN commitment_id SET NOT NULL"))
        connection.execute(
            text("CREATE INDEX IF NOT EXISTS ix_routine_slots_commitment_id ON routine_slots (commitment_id)")
        )


def _ensure_activity_logs_routine_columns() -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        if "activity_logs" not in set(inspector.get_table_names()):
            return
        column_names = {item["name"] for item in inspector.get_columns("activity_logs")}
        if "actor" not in column_names:
            connection.execute(text("ALTER TABLE activity_logs ADD COLUMN actor VARCHAR(100)"))
        if "scope" not in column_names:
            connection.execute(text("ALTER TABLE activity_logs ADD COLUMN scope VARCHAR(50)"))
        json_type, empty_list = ("JSONB", "'[]'::jsonb") if connection.dialect.name == "postgresql" else ("JSON", "'[]'")
        for column_name in ("affected_teacher_ids", "affected_room_ids"):
            if column_name not in column_names:
                connection.execute(
                    text(f"ALTER TABLE activity_logs ADD COLUMN {column_name} {json_type} NOT NULL DEFAULT {empty_list}")
                )


def _backfill_cell_claims() -> None:
    settings = get_settings()
    with engine.begin() as connection:
        table_names = set(inspect(connection).get_table_names())
        if not {"routine_slots", "cell_claims"} <= table_names:
            return
        rows = connection.execute(
            text(
                "SELECT id, program_code, semester, section, day_index, slot_id, lab_lane FROM routine_slots "
                "WHERE id NOT IN (SELECT routine_slot_id FROM cell_claims)"
            )
        ).all()
        claims = [
            {
                "id": str(uuid.uuid4()),
                "program_code": row.program_code,
                "semester": row.semester,
                "section": row.section,
                "day_index": row.day_index,
                "slot_id": row.slot_id,
                "lane": lane,
                "routine_slot_id": row.id,
            }
            for row in rows
            for lane in claimed_lanes(row.lab_lane or "", settings.lab_groups_for_section(row.section))
        ]
        if claims:
            connection.execute(insert(CellClaim), claims)
            logger.info("Backfilled %d cell claims for %d routine entries", len(claims), len(rows))


def _assert_required_columns() -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        table_names = set(inspector.get_table_names())
        missing_tables = [name for name in REQUIRED_COLUMNS if name not in table_names]
        if missing_tables:
            raise RuntimeError(f"Missing required tables: {', '.join(sorted(missing_tables))}")

        missing_columns: list[str] = []
        for table_name, required in REQUIRED_COLUMNS.items():
            existing = {item["name"] for item in inspector.get_columns(table_name)}
            for column_name in sorted(required - existing):
                missing_columns.append(f"{table_name}.{column_name}")
        if missing_columns:
            raise RuntimeError(f"Missing required columns: {', '.join(missing_columns)}")


def ensure_runtime_schema_compatibility() -> None:
    try:
        # Ensure missing tables are present before additive compatibility patches.
        Base.metadata.create_all(bind=engine)
        _ensure_routine_slots_lab_lane_column()
        _ensure_routine_slots_commitment_id_column()
        _ensure_activity_logs_routine_columns()
        _backfill_cell_claims()
        _assert_required_columns()
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Runtime schema compatibility bootstrap failed")
        raise RuntimeError("Runtime schema compatibility bootstrap failed") from exc
