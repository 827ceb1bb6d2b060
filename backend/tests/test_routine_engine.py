import pytest
from sqlalchemy import func, select

from app.core.exceptions import (
    BreakSlotViolationError,
    GroupIntegrityViolationError,
    InvalidAssignmentError,
    InvalidSlotReferenceError,
    ResourceNotFoundError,
    RoomConflictError,
    TeacherConflictError,
)
from app.models.activity_log import ActivityLog
from app.models.cell_claim import CellClaim
from app.models.resource_booking import ResourceBooking, ResourceKind
from app.models.routine_slot import ClassType, LabGroup, RoutineSlot
from app.services.routine_engine import ClassAssignment, RoutineEngine
from app.services.slot_identity import RoutineScope

AB = RoutineScope.of("BCT", 5, "AB")
CD = RoutineScope.of("BCT", 5, "CD")


def lecture(subject="MATH101", teachers=("T1",), room="R1", **kwargs) -> ClassAssignment:
    return ClassAssignment(subject_id=subject, teacher_ids=tuple(teachers), room_id=room, **kwargs)


def practical(subject="CHEM101", teachers=("T1",), room="LAB1", **kwargs) -> ClassAssignment:
    return ClassAssignment(
        subject_id=subject, teacher_ids=tuple(teachers), room_id=room, class_type=ClassType.practical, **kwargs
    )


def count(db, model, *criteria) -> int:
    return db.execute(select(func.count()).select_from(model).where(*criteria)).scalar_one()


def scope_rows(db, scope: RoutineScope) -> list[RoutineSlot]:
    return list(
        db.execute(
            select(RoutineSlot).where(
                RoutineSlot.program_code == scope.program_code,
                RoutineSlot.semester == scope.semester,
                RoutineSlot.section == scope.section,
            )
        ).scalars()
    )


@pytest.fixture()
def engine(db_session):
    return RoutineEngine(db_session, actor="coordinator")


def test_assign_single_writes_entry_bookings_and_audit(db_session, engine):
    result = engine.assign_single(AB, 1, "01", lecture())

    assert len(result.entries) == 1
    entry = result.entries[0]
    assert entry.slot_id == "1"
    assert entry.commitment_id == entry.id
    assert result.affected_teacher_ids == ["T1"]
    assert result.affected_room_ids == ["R1"]
    assert count(db_session, ResourceBooking) == 2
    log = db_session.execute(select(ActivityLog)).scalars().one()
    assert log.action == "routine.assign"
    assert log.actor == "coordinator"
    assert log.scope == "BCT/5/AB"
    assert log.affected_teacher_ids == ["T1"]
    assert log.affected_room_ids == ["R1"]


def test_teacher_double_booking_across_sections_is_rejected(db_session, engine):
    engine.assign_single(AB, 1, 1, lecture(subject="MATH101", teachers=("T1",), room="R1"))

    with pytest.raises(TeacherConflictError) as exc_info:
        engine.assign_single(CD, 1, "1", lecture(subject="PHYS101", teachers=("T1",), room="R2"))

    error = exc_info.value
    assert error.resource_id == "T1"
    assert error.conflicting_entry["subject_id"] == "MATH101"
    assert error.conflicting_entry["section"] == "AB"
    assert error.details["kind"] == "teacher"
    assert scope_rows(db_session, CD) == []


def test_room_conflict_is_reported_when_teachers_differ(engine):
    engine.assign_single(AB, 2, 3, lecture(teachers=("T1",), room="R7"))

    with pytest.raises(RoomConflictError) as exc_info:
        engine.assign_single(CD, 2, 3, lecture(subject="PHYS101", teachers=("T2",), room="R7"))
    assert exc_info.value.resource_id == "R7"


def test_teacher_is_checked_before_room(engine):
    engine.assign_single(AB, 2, 3, lecture(teachers=("T1",), room="R7"))

    with pytest.raises(TeacherConflictError):
        engine.assign_single(CD, 2, 3, lecture(subject="PHYS101", teachers=("T1",), room="R7"))


def test_same_teacher_in_different_slots_is_allowed(db_session, engine):
    engine.assign_single(AB, 1, 1, lecture())
    engine.assign_single(CD, 1, 2, lecture(room="R2"))
    engine.assign_single(CD, 2, 1, lecture(room="R3"))

    assert count(db_session, RoutineSlot) == 3


def test_break_and_unknown_slots_are_rejected(db_session, engine):
    with pytest.raises(BreakSlotViolationError):
        engine.assign_single(AB, 1, 4, lecture())
    with pytest.raises(InvalidSlotReferenceError):
        engine.assign_single(AB, 1, "42", lecture())
    with pytest.raises(InvalidSlotReferenceError):
        engine.assign_single(AB, 3, "9", lecture())
    with pytest.raises(InvalidSlotReferenceError):
        engine.assign_single(AB, 7, "1", lecture())

    assert count(db_session, RoutineSlot) == 0


def test_reassigning_a_cell_replaces_previous_entry(db_session, engine):
    engine.assign_single(AB, 1, 2, lecture(subject="MATH101", teachers=("T1",)))
    result = engine.assign_single(AB, 1, "02", lecture(subject="PHYS101", teachers=("T2",)))

    assert result.replaced_count == 1
    assert set(result.affected_teacher_ids) == {"T1", "T2"}
    rows = scope_rows(db_session, AB)
    assert [row.subject_id for row in rows] == ["PHYS101"]
    # T1 is free again at that cell.
    engine.assign_single(CD, 1, 2, lecture(teachers=("T1",), room="R2"))


def test_replacing_own_teacher_does_not_conflict_with_itself(engine):
    engine.assign_single(AB, 1, 2, lecture(subject="MATH101"))
    result = engine.assign_single(AB, 1, 2, lecture(subject="MATH102"))

    assert result.replaced_count == 1


def test_request_level_validation(engine):
    with pytest.raises(InvalidAssignmentError):
        engine.assign_single(AB, 1, 1, lecture(teachers=()))
    with pytest.raises(InvalidAssignmentError):
        engine.assign_single(AB, 1, 1, lecture(lab_group=LabGroup.A))
    with pytest.raises(InvalidAssignmentError):
        engine.assign_single(AB, 1, 1, practical(lab_group=LabGroup.C))
    with pytest.raises(InvalidAssignmentError):
        engine.assign_single(RoutineScope.of("BCT", 9, "AB"), 1, 1, lecture())
    with pytest.raises(InvalidAssignmentError):
        engine.assign_single(RoutineScope.of("BCT", 5, "EF"), 1, 1, lecture())


def test_spanned_assignment_is_atomic_when_middle_slot_conflicts(db_session, engine):
    engine.assign_single(CD, 2, 2, lecture(subject="PHYS101", teachers=("T5",), room="R9"))

    with pytest.raises(TeacherConflictError):
        engine.assign_spanned(AB, 2, [1, 2, 3], lecture(subject="DBMS", teachers=("T5",), room="R1"))

    assert scope_rows(db_session, AB) == []
    assert count(db_session, ResourceBooking, ResourceBooking.resource_id == "R1") == 0


def test_spanned_assignment_orders_members_and_marks_master(engine):
    result = engine.assign_spanned(AB, 3, ["3", 1, "02"], lecture())

    assert [entry.slot_id for entry in result.entries] == ["1", "2", "3"]
    assert [entry.span_master for entry in result.entries] == [True, False, False]
    assert len({entry.span_id for entry in result.entries}) == 1
    assert result.span_ids == [result.entries[0].span_id]


def test_spanned_assignment_shape_errors(engine):
    with pytest.raises(GroupIntegrityViolationError):
        engine.assign_spanned(AB, 1, [1], lecture())
    with pytest.raises(GroupIntegrityViolationError):
        engine.assign_spanned(AB, 1, [1, 3], lecture())
    with pytest.raises(GroupIntegrityViolationError):
        engine.assign_spanned(AB, 1, [1, "01"], lecture())
    with pytest.raises(BreakSlotViolationError):
        engine.assign_spanned(AB, 1, [3, 4, 5], lecture())


def test_spanned_assignment_requires_free_cells(engine):
    engine.assign_single(AB, 1, 2, lecture(subject="MATH101"))

    with pytest.raises(GroupIntegrityViolationError):
        engine.assign_spanned(AB, 1, [1, 2], lecture(subject="DBMS", teachers=("T2",), room="R2"))


def test_clear_span_group_removes_every_member(db_session, engine):
    result = engine.assign_spanned(AB, 1, [5, 6, 7], lecture(teachers=("T1", "T2")))
    span_id = result.span_ids[0]

    cleared = engine.clear_group(span_id)

    assert cleared.deleted_count == 3
    assert cleared.group_type == "span_group"
    assert cleared.affected_teacher_ids == ["T1", "T2"]
    assert count(db_session, RoutineSlot) == 0
    assert count(db_session, ResourceBooking) == 0


def test_span_members_cannot_be_cleared_or_replaced_individually(db_session, engine):
    engine.assign_spanned(AB, 1, [1, 2, 3], lecture())

    with pytest.raises(GroupIntegrityViolationError):
        engine.clear_slot(AB, 1, 2)
    with pytest.raises(GroupIntegrityViolationError):
        engine.assign_single(AB, 1, 2, lecture(subject="PHYS101", teachers=("T2",), room="R2"))

    assert count(db_session, RoutineSlot) == 3


def test_lab_pair_over_three_slots_writes_two_span_groups(db_session, engine):
    result = engine.assign_lab_pair(
        AB,
        2,
        [5, 6, 7],
        practical(teachers=("T1",), room="LAB1"),
        practical(teachers=("T2",), room="LAB2"),
    )

    assert len(result.entries) == 6
    assert len(result.span_ids) == 2
    by_group = {}
    for entry in result.entries:
        by_group.setdefault(entry.lab_group, []).append(entry)
    assert set(by_group) == {LabGroup.A, LabGroup.B}
    assert all(len(entries) == 3 for entries in by_group.values())
    assert all(entry.class_type == ClassType.practical for entry in result.entries)
    assert count(db_session, ResourceBooking) == 12


def test_lab_pair_uses_section_groups(engine):
    result = engine.assign_lab_pair(
        CD, 2, ["1"], practical(teachers=("T1",), room="LAB1"), practical(teachers=("T2",), room="LAB2")
    )

    assert sorted(entry.lab_group.value for entry in result.entries) == ["C", "D"]
    assert result.span_ids == []


def test_lab_pair_groups_cannot_share_a_teacher(db_session, engine):
    with pytest.raises(TeacherConflictError):
        engine.assign_lab_pair(
            AB, 2, [5, 6], practical(teachers=("T1",), room="LAB1"), practical(teachers=("T1",), room="LAB2")
        )
    assert count(db_session, RoutineSlot) == 0


def test_complementary_lab_groups_share_a_cell(db_session, engine):
    engine.assign_single(AB, 0, 1, practical(teachers=("T1",), room="LAB1", lab_group=LabGroup.A))
    engine.assign_single(AB, 0, 1, practical(teachers=("T2",), room="LAB2", lab_group=LabGroup.B))
    assert len(scope_rows(db_session, AB)) == 2

    result = engine.assign_single(AB, 0, 1, lecture(teachers=("T3",), room="R1"))

    assert result.replaced_count == 2
    assert [row.subject_id for row in scope_rows(db_session, AB)] == ["MATH101"]


def test_lettered_group_displaces_whole_cell_entry(db_session, engine):
    engine.assign_single(AB, 0, 1, lecture(teachers=("T3",), room="R1"))
    result = engine.assign_single(AB, 0, 1, practical(teachers=("T1",), room="LAB1", lab_group=LabGroup.A))

    assert result.replaced_count == 1
    assert [row.lab_group for row in scope_rows(db_session, AB)] == [LabGroup.A]


def test_clear_slot_on_lab_pair_requires_group(db_session, engine):
    engine.assign_lab_pair(
        AB, 2, [1], practical(teachers=("T1",), room="LAB1"), practical(teachers=("T2",), room="LAB2")
    )

    with pytest.raises(GroupIntegrityViolationError):
        engine.clear_slot(AB, 2, 1)

    cleared = engine.clear_slot(AB, 2, 1, LabGroup.B)
    assert cleared.affected_teacher_ids == ["T2"]
    assert [row.lab_group for row in scope_rows(db_session, AB)] == [LabGroup.A]


def test_alternate_week_entry_books_both_groups(db_session, engine):
    assignment = practical(
        subject="PHY-LAB",
        teachers=("T1",),
        room="LAB1",
        is_alternative_week=True,
        alternate_group_data={
            "A": {"subject_id": "PHY-LAB", "teacher_ids": ["T1"], "room_id": "LAB1"},
            "b": {"subject_id": "CHEM-LAB", "teacher_ids": ["T2"], "room_id": "LAB2"},
        },
    )
    result = engine.assign_single(AB, 3, 5, assignment)

    entry = result.entries[0]
    assert entry.lab_group == LabGroup.ALL
    assert set(entry.alternate_group_data) == {"A", "B"}
    assert result.affected_teacher_ids == ["T1", "T2"]
    assert result.affected_room_ids == ["LAB1", "LAB2"]
    with pytest.raises(TeacherConflictError):
        engine.assign_single(CD, 3, 5, lecture(teachers=("T2",), room="R1"))


def test_alternate_week_requires_both_section_groups(engine):
    with pytest.raises(InvalidAssignmentError):
        engine.assign_single(
            AB,
            3,
            5,
            practical(is_alternative_week=True, alternate_group_data={"A": {"teacher_ids": ["T1"]}}),
        )


def test_elective_fans_out_to_sections_with_shared_bookings(db_session, engine):
    result = engine.assign_elective([AB, CD], 4, 2, lecture(subject="CT785", teachers=("T9",), room="R5"))

    assert len(result.entries) == 2
    group_id = result.elective_group_id
    assert {entry.section for entry in result.entries} == {"AB", "CD"}
    assert all(entry.elective_group_id == group_id for entry in result.entries)
    assert all(entry.is_elective_class and entry.cross_section_scheduled for entry in result.entries)
    assert count(db_session, ResourceBooking, ResourceBooking.resource_kind == ResourceKind.teacher) == 1
    assert count(db_session, ResourceBooking, ResourceBooking.resource_kind == ResourceKind.room) == 1

    other = RoutineScope.of("BEX", 3, "AB")
    with pytest.raises(TeacherConflictError):
        engine.assign_single(other, 4, 2, lecture(teachers=("T9",), room="R1"))

    cleared = engine.clear_group(group_id)
    assert cleared.deleted_count == 2
    assert cleared.group_type == "elective_group"
    assert count(db_session, ResourceBooking) == 0
    engine.assign_single(other, 4, 2, lecture(teachers=("T9",), room="R1"))


def test_elective_replica_cannot_be_edited_alone(engine):
    engine.assign_elective([AB, CD], 4, 2, lecture(subject="CT785", teachers=("T9",), room="R5"))

    with pytest.raises(GroupIntegrityViolationError):
        engine.assign_single(AB, 4, 2, lecture(subject="CT700", teachers=("T9",), room="R5"))
    with pytest.raises(GroupIntegrityViolationError):
        engine.clear_slot(CD, 4, 2)


def test_elective_target_validation(engine):
    with pytest.raises(InvalidAssignmentError):
        engine.assign_elective([AB], 4, 2, lecture())
    with pytest.raises(InvalidAssignmentError):
        engine.assign_elective([AB, RoutineScope.of("BCT", 6, "CD")], 4, 2, lecture())
    with pytest.raises(InvalidAssignmentError):
        engine.assign_elective([AB, AB], 4, 2, lecture())


def test_elective_requires_free_cells_in_every_section(db_session, engine):
    engine.assign_single(CD, 4, 2, lecture(teachers=("T1",), room="R1"))

    with pytest.raises(GroupIntegrityViolationError):
        engine.assign_elective([AB, CD], 4, 2, lecture(subject="CT785", teachers=("T9",), room="R5"))
    assert scope_rows(db_session, AB) == []


def test_clear_scope_keeps_elective_siblings_in_other_sections(db_session, engine):
    engine.assign_elective([AB, CD], 4, 2, lecture(subject="CT785", teachers=("T9",), room="R5"))
    engine.assign_single(AB, 1, 1, lecture(teachers=("T1",), room="R1"))

    cleared = engine.clear_scope(AB)

    assert cleared.deleted_count == 2
    assert scope_rows(db_session, AB) == []
    assert len(scope_rows(db_session, CD)) == 1
    # The remaining replica still holds the elective teacher.
    assert count(db_session, ResourceBooking, ResourceBooking.resource_id == "T9") == 1
    assert count(db_session, ResourceBooking, ResourceBooking.resource_id == "T1") == 0


def test_missing_targets_raise_not_found(engine):
    with pytest.raises(ResourceNotFoundError):
        engine.clear_slot(AB, 1, 1)
    with pytest.raises(ResourceNotFoundError):
        engine.clear_group("no-such-group")
    with pytest.raises(ResourceNotFoundError):
        engine.clear_scope(AB)
    with pytest.raises(ResourceNotFoundError):
        engine.clear_span_group("no-such-span")


def test_storage_constraint_rejects_double_booking_that_skipped_validation(db_session, engine, monkeypatch):
    engine.assign_single(CD, 1, 1, lecture(subject="PHYS101", teachers=("T1",), room="R2"))
    # Simulate a concurrent commit landing between validation and write.
    monkeypatch.setattr(engine.validator, "validate", lambda *args, **kwargs: None)

    with pytest.raises(TeacherConflictError) as exc_info:
        engine.assign_single(AB, 1, 1, lecture(subject="MATH101", teachers=("T1",), room="R1"))

    assert exc_info.value.conflicting_entry["subject_id"] == "PHYS101"
    assert scope_rows(db_session, AB) == []
    assert count(db_session, ResourceBooking) == 2


def test_cell_claims_follow_the_entry_shape(db_session, engine):
    whole_id = engine.assign_single(AB, 1, 1, lecture()).entries[0].id
    lettered = engine.assign_single(CD, 1, 1, practical(teachers=("T2",), room="LAB2", lab_group=LabGroup.C)).entries[0]

    def lanes(row_id: str) -> list[str]:
        return sorted(db_session.execute(select(CellClaim.lane).where(CellClaim.routine_slot_id == row_id)).scalars())

    assert lanes(whole_id) == ["", "A", "B"]
    assert lanes(lettered.id) == ["C"]

    engine.clear_slot(AB, 1, 1)
    assert lanes(whole_id) == []


def test_storage_constraint_rejects_mixed_cell_shape_that_skipped_the_cell_read(db_session, engine, monkeypatch):
    engine.assign_single(AB, 2, 1, practical(teachers=("T1",), room="LAB1", lab_group=LabGroup.A))
    # Simulate a concurrent writer that read the cell before the lab-group entry committed.
    monkeypatch.setattr(engine.index, "scope_cell", lambda *args, **kwargs: [])

    with pytest.raises(GroupIntegrityViolationError):
        engine.assign_single(AB, 2, 1, lecture(teachers=("T5",), room="R5"))

    rows = scope_rows(db_session, AB)
    assert [(row.lab_lane, row.subject_id) for row in rows] == [("A", "CHEM101")]
    assert count(db_session, ResourceBooking, ResourceBooking.resource_id == "T5") == 0


def test_clear_elective_group_releases_shared_bookings(db_session, engine):
    result = engine.assign_elective([AB, CD], 4, 2, lecture(subject="CT785", teachers=("T9", "T8"), room="R5"))

    cleared = engine.clear_elective_group(result.elective_group_id)

    assert cleared.deleted_count == 2
    assert cleared.group_type == "elective_group"
    assert cleared.affected_teacher_ids == ["T9", "T8"]
    assert cleared.affected_room_ids == ["R5"]
    assert count(db_session, ResourceBooking) == 0
    assert count(db_session, CellClaim) == 0
    log = db_session.execute(select(ActivityLog).where(ActivityLog.action == "routine.clear_elective_group")).scalars().one()
    assert log.scope == "BCT/5"
    with pytest.raises(ResourceNotFoundError):
        engine.clear_elective_group(result.elective_group_id)


def test_spanned_elective_shares_one_span_and_one_commitment(db_session, engine):
    result = engine.assign_elective_spanned([AB, CD], 2, [6, 5], lecture(subject="CT785", teachers=("T9",), room="R5"))

    assert len(result.entries) == 4
    assert len(result.span_ids) == 1
    span_id = result.span_ids[0]
    assert all(entry.span_id == span_id for entry in result.entries)
    assert all(entry.elective_group_id == result.elective_group_id for entry in result.entries)
    masters = sorted((entry.section, entry.slot_id) for entry in result.entries if entry.span_master)
    assert masters == [("AB", "5"), ("CD", "5")]
    # One teacher and one room booking per period, shared by both sections.
    assert count(db_session, ResourceBooking) == 4

    with pytest.raises(GroupIntegrityViolationError):
        engine.clear_slot(AB, 2, 5)

    cleared = engine.clear_group(span_id)
    assert cleared.deleted_count == 4
    assert count(db_session, ResourceBooking) == 0


def test_spanned_elective_is_atomic_when_one_period_conflicts(db_session, engine):
    engine.assign_single(RoutineScope.of("BEX", 3, "AB"), 2, 6, lecture(teachers=("T9",), room="R1"))

    with pytest.raises(TeacherConflictError):
        engine.assign_elective_spanned([AB, CD], 2, [5, 6], lecture(subject="CT785", teachers=("T9",), room="R5"))

    assert scope_rows(db_session, AB) == []
    assert scope_rows(db_session, CD) == []


def test_check_elective_reports_every_conflict_without_writing(db_session, engine):
    engine.assign_single(CD, 4, 2, lecture(subject="MATH101", teachers=("T1",), room="R1"))
    engine.assign_single(RoutineScope.of("BEX", 3, "AB"), 4, 2, lecture(subject="DBMS", teachers=("T9",), room="R5"))

    conflicts = engine.check_elective([AB, CD], 4, [2], lecture(subject="CT785", teachers=("T9",), room="R5"))

    assert sorted(conflict["kind"] for conflict in conflicts) == ["cell_occupied", "room", "teacher"]
    occupied = next(conflict for conflict in conflicts if conflict["kind"] == "cell_occupied")
    assert occupied["conflicting_entry"]["section"] == "CD"
    assert scope_rows(db_session, AB) == []
    assert count(db_session, ActivityLog, ActivityLog.action == "routine.assign_elective") == 0

    assert engine.check_elective([AB, CD], 1, [1, 2], lecture(subject="CT785", teachers=("T9",), room="R5")) == []
