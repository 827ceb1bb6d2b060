from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_actor, get_db
from app.models.routine_slot import LabGroup
from app.schemas.routine import (
    AssignmentOut,
    AssignRequest,
    AvailabilityOut,
    ClassPayload,
    ClearOut,
    ElectiveAssignRequest,
    ElectiveCheckOut,
    ElectiveCheckRequest,
    ElectiveSpannedAssignRequest,
    LabGroupClassPayload,
    LabPairAssignRequest,
    RoutineGridOut,
    RoutineSlotOut,
    SpannedAssignRequest,
    VacantRoomsOut,
    VacantTeachersOut,
)
from app.services.conflict_index import ConflictIndex
from app.services.grid_assembler import build_grid
from app.services.routine_engine import ClassAssignment, RoutineEngine
from app.services.slot_identity import RoutineScope, normalize_day_index, normalize_slot_id

router = APIRouter()


def _to_assignment(payload: ClassPayload) -> ClassAssignment:
    alternate = None
    if payload.alternate_group_data:
        alternate = {group: data.model_dump() for group, data in payload.alternate_group_data.items()}
    return ClassAssignment(
        subject_id=payload.subject_id,
        teacher_ids=tuple(payload.teacher_ids),
        room_id=payload.room_id,
        class_type=payload.class_type,
        notes=payload.notes,
        lab_group=payload.lab_group,
        is_alternative_week=payload.is_alternative_week,
        alternate_group_data=alternate,
    )


def _to_group_assignment(payload: LabGroupClassPayload) -> ClassAssignment:
    return ClassAssignment(
        subject_id=payload.subject_id,
        teacher_ids=tuple(payload.teacher_ids),
        room_id=payload.room_id,
        notes=payload.notes,
    )


# Fixed-prefix routes are declared before the /{program_code}/{semester}/{section} routes.


@router.get("/teachers/vacant", response_model=VacantTeachersOut)
def vacant_teachers(
    day_index: int = Query(ge=0, le=6),
    slot_id: str = Query(min_length=1),
    teacher_ids: list[str] = Query(),
    db: Session = Depends(get_db),
) -> VacantTeachersOut:
    vacant = ConflictIndex(db).vacant_teachers(day_index, slot_id, teacher_ids)
    return VacantTeachersOut(
        day_index=normalize_day_index(day_index), slot_id=normalize_slot_id(slot_id), teacher_ids=vacant
    )


@router.get("/teachers/{teacher_id}/availability", response_model=AvailabilityOut)
def teacher_availability(
    teacher_id: str,
    day_index: int = Query(ge=0, le=6),
    slot_id: str = Query(min_length=1),
    db: Session = Depends(get_db),
) -> AvailabilityOut:
    return AvailabilityOut(**ConflictIndex(db).teacher_availability(teacher_id, day_index, slot_id))


@router.get("/teachers/{teacher_id}/schedule", response_model=list[RoutineSlotOut])
def teacher_schedule(teacher_id: str, db: Session = Depends(get_db)) -> list[RoutineSlotOut]:
    return [RoutineSlotOut.model_validate(entry) for entry in ConflictIndex(db).teacher_schedule(teacher_id)]


@router.get("/rooms/vacant", response_model=VacantRoomsOut)
def vacant_rooms(
    day_index: int = Query(ge=0, le=6),
    slot_id: str = Query(min_length=1),
    room_ids: list[str] = Query(),
    db: Session = Depends(get_db),
) -> VacantRoomsOut:
    vacant = ConflictIndex(db).vacant_rooms(day_index, slot_id, room_ids)
    return VacantRoomsOut(day_index=normalize_day_index(day_index), slot_id=normalize_slot_id(slot_id), room_ids=vacant)


@router.get("/rooms/{room_id}/schedule", response_model=list[RoutineSlotOut])
def room_schedule(room_id: str, db: Session = Depends(get_db)) -> list[RoutineSlotOut]:
    return [RoutineSlotOut.model_validate(entry) for entry in ConflictIndex(db).room_schedule(room_id)]


@router.get("/rooms/{room_id}/availability", response_model=AvailabilityOut)
def room_availability(
    room_id: str,
    day_index: int = Query(ge=0, le=6),
    slot_id: str = Query(min_length=1),
    db: Session = Depends(get_db),
) -> AvailabilityOut:
    return AvailabilityOut(**ConflictIndex(db).room_availability(room_id, day_index, slot_id))


@router.post("/electives/assign", response_model=AssignmentOut, status_code=status.HTTP_201_CREATED)
def assign_elective(
    payload: ElectiveAssignRequest,
    actor: str | None = Depends(get_actor),
    db: Session = Depends(get_db),
) -> AssignmentOut:
    scopes = [RoutineScope.of(payload.program_code, payload.semester, section) for section in payload.sections]
    result = RoutineEngine(db, actor=actor).assign_elective(
        scopes, payload.day_index, payload.slot_id, _to_assignment(payload)
    )
    return AssignmentOut.model_validate(result, from_attributes=True)


@router.post("/electives/assign-spanned", response_model=AssignmentOut, status_code=status.HTTP_201_CREATED)
def assign_elective_spanned(
    payload: ElectiveSpannedAssignRequest,
    actor: str | None = Depends(get_actor),
    db: Session = Depends(get_db),
) -> AssignmentOut:
    scopes = [RoutineScope.of(payload.program_code, payload.semester, section) for section in payload.sections]
    result = RoutineEngine(db, actor=actor).assign_elective_spanned(
        scopes, payload.day_index, payload.slot_ids, _to_assignment(payload)
    )
    return AssignmentOut.model_validate(result, from_attributes=True)


@router.post("/electives/check", response_model=ElectiveCheckOut)
def check_elective(payload: ElectiveCheckRequest, db: Session = Depends(get_db)) -> ElectiveCheckOut:
    scopes = [RoutineScope.of(payload.program_code, payload.semester, section) for section in payload.sections]
    conflicts = RoutineEngine(db).check_elective(scopes, payload.day_index, payload.slot_ids, _to_assignment(payload))
    return ElectiveCheckOut(has_conflicts=bool(conflicts), conflicts=conflicts)


@router.delete("/groups/{group_id}", response_model=ClearOut)
def clear_group(
    group_id: str,
    actor: str | None = Depends(get_actor),
    db: Session = Depends(get_db),
) -> ClearOut:
    result = RoutineEngine(db, actor=actor).clear_group(group_id)
    return ClearOut.model_validate(result, from_attributes=True)


@router.get("/{program_code}/{semester}/{section}", response_model=RoutineGridOut)
def get_routine(program_code: str, semester: int, section: str, db: Session = Depends(get_db)) -> RoutineGridOut:
    return build_grid(db, RoutineScope.of(program_code, semester, section))


@router.post("/{program_code}/{semester}/{section}/assign", response_model=AssignmentOut, status_code=status.HTTP_201_CREATED)
def assign_class(
    program_code: str,
    semester: int,
    section: str,
    payload: AssignRequest,
    actor: str | None = Depends(get_actor),
    db: Session = Depends(get_db),
) -> AssignmentOut:
    scope = RoutineScope.of(program_code, semester, section)
    result = RoutineEngine(db, actor=actor).assign_single(scope, payload.day_index, payload.slot_id, _to_assignment(payload))
    return AssignmentOut.model_validate(result, from_attributes=True)


@router.post(
    "/{program_code}/{semester}/{section}/assign-spanned",
    response_model=AssignmentOut,
    status_code=status.HTTP_201_CREATED,
)
def assign_spanned_class(
    program_code: str,
    semester: int,
    section: str,
    payload: SpannedAssignRequest,
    actor: str | None = Depends(get_actor),
    db: Session = Depends(get_db),
) -> AssignmentOut:
    scope = RoutineScope.of(program_code, semester, section)
    result = RoutineEngine(db, actor=actor).assign_spanned(
        scope, payload.day_index, payload.slot_ids, _to_assignment(payload)
    )
    return AssignmentOut.model_validate(result, from_attributes=True)


@router.post(
    "/{program_code}/{semester}/{section}/assign-lab-pair",
    response_model=AssignmentOut,
    status_code=status.HTTP_201_CREATED,
)
def assign_lab_pair(
    program_code: str,
    semester: int,
    section: str,
    payload: LabPairAssignRequest,
    actor: str | None = Depends(get_actor),
    db: Session = Depends(get_db),
) -> AssignmentOut:
    scope = RoutineScope.of(program_code, semester, section)
    result = RoutineEngine(db, actor=actor).assign_lab_pair(
        scope,
        payload.day_index,
        payload.slot_ids,
        _to_group_assignment(payload.first_group),
        _to_group_assignment(payload.second_group),
    )
    return AssignmentOut.model_validate(result, from_attributes=True)


@router.delete("/{program_code}/{semester}/{section}/slots/{day_index}/{slot_id}", response_model=ClearOut)
def clear_slot(
    program_code: str,
    semester: int,
    section: str,
    day_index: int,
    slot_id: str,
    lab_group: LabGroup | None = Query(default=None),
    actor: str | None = Depends(get_actor),
    db: Session = Depends(get_db),
) -> ClearOut:
    scope = RoutineScope.of(program_code, semester, section)
    result = RoutineEngine(db, actor=actor).clear_slot(scope, day_index, slot_id, lab_group)
    return ClearOut.model_validate(result, from_attributes=True)


@router.delete("/{program_code}/{semester}/{section}/clear-all", response_model=ClearOut)
def clear_routine(
    program_code: str,
    semester: int,
    section: str,
    actor: str | None = Depends(get_actor),
    db: Session = Depends(get_db),
) -> ClearOut:
    result = RoutineEngine(db, actor=actor).clear_scope(RoutineScope.of(program_code, semester, section))
    return ClearOut.model_validate(result, from_attributes=True)
