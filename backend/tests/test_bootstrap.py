import pytest
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.pool import StaticPool

from app.db import bootstrap


def _raise_error(message: str):
    raise RuntimeError(message)


def test_runtime_schema_bootstrap_raises_on_validation_failure(monkeypatch):
    monkeypatch.setattr(bootstrap.Base.metadata, "create_all", lambda bind: None)
    monkeypatch.setattr(bootstrap, "_ensure_routine_slots_lab_lane_column", lambda: None)
    monkeypatch.setattr(bootstrap, "_ensure_routine_slots_commitment_id_column", lambda: None)
    monkeypatch.setattr(bootstrap, "_ensure_activity_logs_routine_columns", lambda: None)
    monkeypatch.setattr(bootstrap, "_backfill_cell_claims", lambda: None)
    monkeypatch.setattr(
        bootstrap,
        "_assert_required_columns",
        lambda: _raise_error("missing required schema"),
    )

    with pytest.raises(RuntimeError, match="Runtime schema compatibility bootstrap failed"):
        bootstrap.ensure_runtime_schema_compatibility()


def test_commitment_id_backfill_prefers_elective_group(monkeypatch):
    engine = create_engine("sqlite+pysqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    with engine.begin() as connection:
        connection.execute(
            text("CREATE TABLE routine_slots (id VARCHAR(36) PRIMARY KEY, elective_group_id VARCHAR(36))")
        )
        connection.execute(text("INSERT INTO routine_slots VALUES ('r1', NULL), ('r2', 'g1')"))
    monkeypatch.setattr(bootstrap, "engine", engine)

    bootstrap._ensure_routine_slots_commitment_id_column()

    with engine.connect() as connection:
        assert "commitment_id" in {column["name"] for column in inspect(connection).get_columns("routine_slots")}
        rows = connection.execute(text("SELECT id, commitment_id FROM routine_slots ORDER BY id")).all()
    assert [tuple(row) for row in rows] == [("r1", "r1"), ("r2", "g1")]


def test_bootstrap_creates_missing_tables(monkeypatch):
    engine = create_engine("sqlite+pysqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    monkeypatch.setattr(bootstrap, "engine", engine)

    bootstrap.ensure_runtime_schema_compatibility()

    with engine.connect() as connection:
        tables = set(inspect(connection).get_table_names())
    assert {"time_slots", "routine_slots", "resource_bookings", "cell_claims", "activity_logs"} <= tables


def test_cell_claims_backfill_covers_existing_entries(monkeypatch):
    engine = create_engine("sqlite+pysqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    bootstrap.Base.metadata.create_all(bind=engine)
    with engine.begin() as connection:
        connection.execute(
            text(
                "INSERT INTO routine_slots (id, program_code, semester, section, day_index, slot_id, subject_id, "
                "class_type, teacher_ids, room_id, span_master, lab_lane, is_alternative_week, is_elective_class, "
                "cross_section_scheduled, commitment_id) VALUES "
                "('r1', 'BCT', 5, 'AB', 1, '1', 'MATH101', 'lecture', '[\"T1\"]', 'R1', 0, '', 0, 0, 0, 'r1'), "
                "('r2', 'BCT', 5, 'CD', 1, '1', 'CHEM101', 'practical', '[\"T2\"]', 'LAB1', 0, 'C', 0, 0, 0, 'r2')"
            )
        )
    monkeypatch.setattr(bootstrap, "engine", engine)

    bootstrap._backfill_cell_claims()
    bootstrap._backfill_cell_claims()

    with engine.connect() as connection:
        rows = connection.execute(text("SELECT routine_slot_id, lane FROM cell_claims ORDER BY routine_slot_id, lane")).all()
    assert [tuple(row) for row in rows] == [("r1", ""), ("r1", "A"), ("r1", "B"), ("r2", "C")]
