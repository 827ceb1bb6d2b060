"""Commit engine for weekly routine entries.

Every public operation runs validate-then-write inside one session transaction. Rows of a
logical unit (span group, lab-group pair, elective replica set) are written or removed
together; any failure rolls the whole unit back. Resource bookings are written in the same
transaction and their unique constraint rejects double bookings that slipped past the
validator because of a concurrent commit; cell claims do the same for the shape of a
section cell (one whole-cell entry, or complementary lab groups side by side).
"""
from __future__ import annotations

import dataclasses
import logging
import uuid
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.exceptions import (
    AppError,
    GroupIntegrityViolationError,
    InvalidAssignmentError,
    ResourceNotFoundError,
)
from app.models.cell_claim import CellClaim, claimed_lanes
from app.models.resource_booking import ResourceBooking, ResourceKind
from app.models.routine_slot import ClassType, LabGroup, RoutineSlot, lab_lane_for
from app.services.assignment_validator import AssignmentValidator, ResourceLabels
from app.services.audit import log_activity
from app.services.conflict_index import ConflictIndex, occupies_lane
from app.services.slot_identity import RoutineScope, normalize_day_index, normalize_slot_id
from app.services.time_grid import TimeGrid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassAssignment:
    subject_id: str
    teacher_ids: tuple[str, ...]
    room_id: str
    class_type: ClassType = ClassType.lecture
    notes: str | None = None
    lab_group: LabGroup | None = None
    is_alternative_week: bool = False
    alternate_group_data: dict | None = None


@dataclass
class AssignmentResult:
    entries: list[RoutineSlot]
    replaced_count: int = 0
    span_ids: list[str] = field(default_factory=list)
    elective_group_id: str | None = None
    affected_teacher_ids: list[str] = field(default_factory=list)
    affected_room_ids: list[str] = field(default_factory=list)


@dataclass
class ClearResult:
    deleted_count: int
    affected_teacher_ids: list[str] = field(default_factory=list)
    affected_room_ids: list[str] = field(default_factory=list)
    group_type: str | None = None


@dataclass(frozen=True)
class _PendingBooking:
    commitment_id: str
    day_index: int
    slot_id: str
    kind: ResourceKind
    resource_id: str


def _distinct(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(value for value in values if value))


def _affected(rows: Iterable[RoutineSlot]) -> tuple[list[str], list[str]]:
    rows = list(rows)
    teachers = _distinct(teacher_id for row in rows for teacher_id in row.booked_teacher_ids())
    rooms = _distinct(room_id for row in rows for room_id in row.booked_room_ids())
    return teachers, rooms


class RoutineEngine:
    def __init__(
        self,
        db: Session,
        *,
        actor: str | None = None,
        settings: Settings | None = None,
        labels: ResourceLabels | None = None,
        grid: TimeGrid | None = None,
    ):
        self.db = db
        self.actor = actor
        self.settings = settings or get_settings()
        self.index = ConflictIndex(db)
        self.grid = grid if grid is not None else TimeGrid.load(db)
        self.validator = AssignmentValidator(self.index, self.grid, labels)
        self._pending: list[_PendingBooking] = []

    # ------------------------------------------------------------------ assignment

    def assign_single(
        self, scope: RoutineScope, day_index: object, slot_id: object, assignment: ClassAssignment
    ) -> AssignmentResult:
        day = normalize_day_index(day_index)
        key = normalize_slot_id(slot_id)
        lab_group = self._check_assignment(scope, assignment)

        with self._transaction("assign"):
            partner = self._partner(scope, lab_group)
            displaced = [
                entry for entry in self.index.scope_cell(scope, day, key) if occupies_lane(entry, lab_group, partner)
            ]
            grouped = next((entry for entry in displaced if entry.is_grouped), None)
            if grouped is not None:
                raise GroupIntegrityViolationError(
                    f"Day {day}, slot {key} of {scope} belongs to a grouped class; clear the group first",
                    details={"span_id": grouped.span_id, "elective_group_id": grouped.elective_group_id},
                )

            row = self._build_row(scope, day, key, assignment, lab_group)
            self.validator.validate([row], ignore_commitments={entry.commitment_id for entry in displaced})
            replaced_teachers, replaced_rooms = self._remove(displaced)
            self._write([row])
            teachers, rooms = _affected([row])
            teachers = _distinct([*replaced_teachers, *teachers])
            rooms = _distinct([*replaced_rooms, *rooms])
            log_activity(
                self.db,
                actor=self.actor,
                action="routine.assign",
                scope=scope,
                entity_type="routine_slot",
                entity_id=row.id,
                teacher_ids=teachers,
                room_ids=rooms,
                details={"day_index": day, "slot_id": key, "replaced": len(displaced)},
            )

        logger.info("Assigned %s to %s day=%s slot=%s (replaced %d)", assignment.subject_id, scope, day, key, len(displaced))
        return AssignmentResult(
            entries=[row],
            replaced_count=len(displaced),
            affected_teacher_ids=teachers,
            affected_room_ids=rooms,
        )

    def assign_spanned(
        self, scope: RoutineScope, day_index: object, slot_ids: Sequence[object], assignment: ClassAssignment
    ) -> AssignmentResult:
        day = normalize_day_index(day_index)
        lab_group = self._check_assignment(scope, assignment)
        keys = self._span_slots(day, slot_ids)

        with self._transaction("assign_spanned"):
            span_id = str(uuid.uuid4())
            rows = [
                self._build_row(scope, day, key, assignment, lab_group, span_id=span_id, span_master=position == 0)
                for position, key in enumerate(keys)
            ]
            self._require_free_cells(rows)
            self.validator.validate(rows)
            self._write(rows)
            teachers, rooms = _affected(rows)
            log_activity(
                self.db,
                actor=self.actor,
                action="routine.assign_spanned",
                scope=scope,
                entity_type="span_group",
                entity_id=span_id,
                teacher_ids=teachers,
                room_ids=rooms,
                details={"day_index": day, "slot_ids": keys},
            )

        logger.info("Assigned span %s (%d periods) to %s day=%s", span_id, len(rows), scope, day)
        return AssignmentResult(
            entries=rows, span_ids=[span_id], affected_teacher_ids=teachers, affected_room_ids=rooms
        )

    def assign_lab_pair(
        self,
        scope: RoutineScope,
        day_index: object,
        slot_ids: Sequence[object],
        first_group: ClassAssignment,
        second_group: ClassAssignment,
    ) -> AssignmentResult:
        """Schedule both lab groups of a section side by side in the same period(s)."""
        day = normalize_day_index(day_index)
        group_names = self.settings.lab_groups_for_section(scope.section)
        if len(slot_ids) == 1:
            keys = [normalize_slot_id(slot_ids[0])]
        else:
            keys = self._span_slots(day, slot_ids)

        plans = []
        for group_name, assignment in zip(group_names, (first_group, second_group)):
            group_assignment = dataclasses.replace(
                assignment,
                class_type=ClassType.practical,
                lab_group=LabGroup(group_name),
                is_alternative_week=False,
                alternate_group_data=None,
            )
            plans.append((self._check_assignment(scope, group_assignment), group_assignment))

        with self._transaction("assign_lab_pair"):
            rows: list[RoutineSlot] = []
            span_ids: list[str] = []
            for lab_group, group_assignment in plans:
                span_id = str(uuid.uuid4()) if len(keys) > 1 else None
                if span_id is not None:
                    span_ids.append(span_id)
                rows.extend(
                    self._build_row(
                        scope,
                        day,
                        key,
                        group_assignment,
                        lab_group,
                        span_id=span_id,
                        span_master=span_id is not None and position == 0,
                    )
                    for position, key in enumerate(keys)
                )
            self._require_free_cells(rows)
            self.validator.validate(rows)
            self._write(rows)
            teachers, rooms = _affected(rows)
            log_activity(
                self.db,
                actor=self.actor,
                action="routine.assign_lab_pair",
                scope=scope,
                entity_type="lab_group_pair",
                entity_id=span_ids[0] if span_ids else rows[0].id,
                teacher_ids=teachers,
                room_ids=rooms,
                details={"day_index": day, "slot_ids": keys, "groups": list(group_names)},
            )

        logger.info("Assigned lab groups %s to %s day=%s slots=%s", "/".join(group_names), scope, day, keys)
        return AssignmentResult(entries=rows, span_ids=span_ids, affected_teacher_ids=teachers, affected_room_ids=rooms)

    def assign_elective(
        self, scopes: Sequence[RoutineScope], day_index: object, slot_id: object, assignment: ClassAssignment
    ) -> AssignmentResult:
        day = normalize_day_index(day_index)
        key = normalize_slot_id(slot_id)
        lab_group = self._check_elective_targets(scopes, assignment)

        with self._transaction("assign_elective"):
            elective_group_id = str(uuid.uuid4())
            rows = [
                self._build_row(scope, day, key, assignment, lab_group, elective_group_id=elective_group_id)
                for scope in scopes
            ]
            self._require_free_cells(rows)
            self.validator.validate(rows)
            self._write(rows)
            teachers, rooms = _affected(rows)
            log_activity(
                self.db,
                actor=self.actor,
                action="routine.assign_elective",
                scope=f"{scopes[0].program_code}/{scopes[0].semester}",
                entity_type="elective_group",
                entity_id=elective_group_id,
                teacher_ids=teachers,
                room_ids=rooms,
                details={"sections": [scope.section for scope in scopes], "day_index": day, "slot_id": key},
            )

        logger.info("Assigned elective group %s to %d sections day=%s slot=%s", elective_group_id, len(rows), day, key)
        return AssignmentResult(
            entries=rows,
            elective_group_id=elective_group_id,
            affected_teacher_ids=teachers,
            affected_room_ids=rooms,
        )

    def assign_elective_spanned(
        self,
        scopes: Sequence[RoutineScope],
        day_index: object,
        slot_ids: Sequence[object],
        assignment: ClassAssignment,
    ) -> AssignmentResult:
        """Fan a multi-period elective out to every section.

        All rows share one span id and one elective group id, so either id clears the whole
        set and the replicas hold a single booking per teacher and room at each period.
        """
        day = normalize_day_index(day_index)
        lab_group = self._check_elective_targets(scopes, assignment)
        keys = self._span_slots(day, slot_ids)

        with self._transaction("assign_elective_spanned"):
            elective_group_id = str(uuid.uuid4())
            span_id = str(uuid.uuid4())
            rows = [
                self._build_row(
                    scope,
                    day,
                    key,
                    assignment,
                    lab_group,
                    span_id=span_id,
                    span_master=position == 0,
                    elective_group_id=elective_group_id,
                )
                for scope in scopes
                for position, key in enumerate(keys)
            ]
            self._require_free_cells(rows)
            self.validator.validate(rows)
            self._write(rows)
            teachers, rooms = _affected(rows)
            log_activity(
                self.db,
                actor=self.actor,
                action="routine.assign_elective_spanned",
                scope=f"{scopes[0].program_code}/{scopes[0].semester}",
                entity_type="elective_group",
                entity_id=elective_group_id,
                teacher_ids=teachers,
                room_ids=rooms,
                details={
                    "sections": [scope.section for scope in scopes],
                    "day_index": day,
                    "slot_ids": keys,
                    "span_id": span_id,
                },
            )

        logger.info(
            "Assigned spanned elective group %s to %d sections day=%s slots=%s",
            elective_group_id,
            len(scopes),
            day,
            keys,
        )
        return AssignmentResult(
            entries=rows,
            span_ids=[span_id],
            elective_group_id=elective_group_id,
            affected_teacher_ids=teachers,
            affected_room_ids=rooms,
        )

    def check_elective(
        self,
        scopes: Sequence[RoutineScope],
        day_index: object,
        slot_ids: Sequence[object],
        assignment: ClassAssignment,
    ) -> list[dict]:
        """List every conflict an elective placement would hit; nothing is written."""
        day = normalize_day_index(day_index)
        lab_group = self._check_elective_targets(scopes, assignment)
        if len(slot_ids) == 1:
            keys = [normalize_slot_id(slot_ids[0])]
        else:
            keys = self._span_slots(day, slot_ids)

        elective_group_id = str(uuid.uuid4())
        rows = [
            self._build_row(scope, day, key, assignment, lab_group, elective_group_id=elective_group_id)
            for scope in scopes
            for key in keys
        ]
        conflicts = []
        for row in rows:
            for entry in self._occupants(row):
                conflicts.append(
                    {
                        "kind": "cell_occupied",
                        "message": f"{entry.scope_label} already has a class at day {row.day_index}, slot {row.slot_id}",
                        "conflicting_entry": entry.diagnostic(),
                    }
                )
        # Replicas hold the same bookings, so one section's rows cover every resource check.
        for error in self.validator.collect([row for row in rows if row.section == scopes[0].section]):
            conflicts.append({"message": error.message, **error.details})
        logger.info("Elective check for %d sections day=%s slots=%s found %d conflicts", len(scopes), day, keys, len(conflicts))
        return conflicts

    # ------------------------------------------------------------------ removal

    def clear_slot(
        self, scope: RoutineScope, day_index: object, slot_id: object, lab_group: LabGroup | None = None
    ) -> ClearResult:
        day = normalize_day_index(day_index)
        key = normalize_slot_id(slot_id)

        with self._transaction("clear_slot"):
            occupants = self.index.scope_cell(scope, day, key)
            if lab_group is not None:
                lane = lab_lane_for(lab_group)
                occupants = [entry for entry in occupants if entry.lab_lane == lane]
            if not occupants:
                raise ResourceNotFoundError("Routine slot", f"{scope}/{day}/{key}")
            if len(occupants) > 1:
                raise GroupIntegrityViolationError(
                    f"Day {day}, slot {key} of {scope} holds a lab-group pair; specify the lab group to clear",
                    details={"lab_groups": [entry.lab_lane for entry in occupants]},
                )
            entry = occupants[0]
            if entry.is_grouped:
                raise GroupIntegrityViolationError(
                    "Entry belongs to a multi-period or elective group; use the group clear instead",
                    details={"span_id": entry.span_id, "elective_group_id": entry.elective_group_id},
                )
            entry_id = entry.id
            teachers, rooms = self._remove([entry])
            log_activity(
                self.db,
                actor=self.actor,
                action="routine.clear_slot",
                scope=scope,
                entity_type="routine_slot",
                entity_id=entry_id,
                teacher_ids=teachers,
                room_ids=rooms,
                details={"day_index": day, "slot_id": key},
            )

        logger.info("Cleared %s day=%s slot=%s", scope, day, key)
        return ClearResult(deleted_count=1, affected_teacher_ids=teachers, affected_room_ids=rooms)

    def clear_span_group(self, span_id: str) -> ClearResult:
        with self._transaction("clear_span_group"):
            result = self._clear_members(self.index.span_members(span_id), "span_group", span_id)
        logger.info("Cleared span group %s (%d periods)", span_id, result.deleted_count)
        return result

    def clear_elective_group(self, elective_group_id: str) -> ClearResult:
        with self._transaction("clear_elective_group"):
            result = self._clear_members(
                self.index.elective_members(elective_group_id), "elective_group", elective_group_id
            )
        logger.info("Cleared elective group %s (%d sections)", elective_group_id, result.deleted_count)
        return result

    def clear_group(self, group_id: str) -> ClearResult:
        """Clear a span group or an elective replica set, whichever ``group_id`` names."""
        with self._transaction("clear_group"):
            members = self.index.span_members(group_id)
            group_type = "span_group"
            if not members:
                members = self.index.elective_members(group_id)
                group_type = "elective_group"
            if not members:
                raise ResourceNotFoundError("Group", group_id)
            result = self._clear_members(members, group_type, group_id)
        logger.info("Cleared %s %s (%d rows)", group_type, group_id, result.deleted_count)
        return result

    def clear_scope(self, scope: RoutineScope) -> ClearResult:
        with self._transaction("clear_scope"):
            entries = self.index.scope_entries(scope)
            if not entries:
                raise ResourceNotFoundError("Routine", str(scope))
            deleted = len(entries)
            teachers, rooms = self._remove(entries)
            log_activity(
                self.db,
                actor=self.actor,
                action="routine.clear_scope",
                scope=scope,
                entity_type="routine",
                entity_id=str(scope),
                teacher_ids=teachers,
                room_ids=rooms,
                details={"deleted_count": deleted},
            )

        logger.info("Cleared routine %s (%d entries)", scope, deleted)
        return ClearResult(deleted_count=deleted, affected_teacher_ids=teachers, affected_room_ids=rooms)

    # ------------------------------------------------------------------ internals

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[None]:
        self._pending = []
        try:
            yield
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning("Storage constraint rejected %s", operation)
            raise self._translate_integrity_error() from exc
        except AppError:
            self.db.rollback()
            raise
        except Exception:
            self.db.rollback()
            logger.exception("Unexpected failure during %s; transaction rolled back", operation)
            raise

    def _translate_integrity_error(self) -> AppError:
        for pending in self._pending:
            booking = self.index.booking(pending.kind, pending.resource_id, pending.day_index, pending.slot_id)
            if booking is None or booking.commitment_id == pending.commitment_id:
                continue
            holder = self.db.execute(
                select(RoutineSlot).where(RoutineSlot.commitment_id == booking.commitment_id).limit(1)
            ).scalars().first()
            return self.validator.conflict(pending.kind, pending.resource_id, holder)
        return GroupIntegrityViolationError("Target cell was changed by a concurrent request; reload and retry")

    def _check_assignment(self, scope: RoutineScope, assignment: ClassAssignment) -> LabGroup | None:
        """Validate request-level rules and return the effective lab group."""
        if scope.section not in self.settings.sections:
            raise InvalidAssignmentError(f"Unknown section {scope.section}")
        if not 1 <= scope.semester <= self.settings.max_semester:
            raise InvalidAssignmentError(f"Semester must be between 1 and {self.settings.max_semester}")
        if not assignment.subject_id or not assignment.room_id:
            raise InvalidAssignmentError("Subject and room are required")
        if not _distinct(assignment.teacher_ids):
            raise InvalidAssignmentError("At least one teacher must be assigned")

        if assignment.class_type != ClassType.practical:
            if assignment.lab_group is not None or assignment.is_alternative_week:
                raise InvalidAssignmentError("Lab groups and alternate weeks apply to practical classes only")
            return None

        lab_group = assignment.lab_group or LabGroup.ALL
        section_groups = self.settings.lab_groups_for_section(scope.section)
        if lab_group != LabGroup.ALL and lab_group.value not in section_groups:
            raise InvalidAssignmentError(
                f"Lab group {lab_group.value} is not valid for section {scope.section}",
                details={"allowed": [*section_groups, LabGroup.ALL.value]},
            )
        if assignment.is_alternative_week:
            if lab_group != LabGroup.ALL:
                raise InvalidAssignmentError("An alternate-week lab holds both groups in one entry; use lab group ALL")
            self._normalize_alternate_data(section_groups, assignment.alternate_group_data)
        return lab_group

    def _check_elective_targets(self, scopes: Sequence[RoutineScope], assignment: ClassAssignment) -> LabGroup | None:
        if len(scopes) < 2:
            raise InvalidAssignmentError("An elective must target at least two sections")
        if len({(scope.program_code, scope.semester) for scope in scopes}) != 1:
            raise InvalidAssignmentError("Elective sections must share program and semester")
        if len({scope.section for scope in scopes}) != len(scopes):
            raise InvalidAssignmentError("Elective target sections must be distinct")
        lab_group = {self._check_assignment(scope, assignment) for scope in scopes}.pop()
        if lab_group not in (None, LabGroup.ALL):
            raise InvalidAssignmentError("Cross-section electives cannot target a single lab group")
        return lab_group

    @staticmethod
    def _normalize_alternate_data(section_groups: Sequence[str], data: dict | None) -> dict:
        data = data or {}
        keys = {str(key).upper() for key in data}
        if keys != set(section_groups):
            raise InvalidAssignmentError(
                f"Alternate-week data must describe groups {' and '.join(section_groups)}",
                details={"received": sorted(keys)},
            )
        normalized = {}
        for key, value in data.items():
            value = value or {}
            normalized[str(key).upper()] = {
                "subject_id": value.get("subject_id"),
                "teacher_ids": _distinct(value.get("teacher_ids") or []),
                "room_id": value.get("room_id"),
            }
        return normalized

    def _partner(self, scope: RoutineScope, lab_group: LabGroup | None) -> str | None:
        lane = lab_lane_for(lab_group)
        if not lane:
            return None
        first, second = self.settings.lab_groups_for_section(scope.section)
        return second if lane == first else first

    def _span_slots(self, day: int, slot_ids: Sequence[object]) -> list[str]:
        keys = [normalize_slot_id(slot_id) for slot_id in slot_ids]
        if len(keys) < 2:
            raise GroupIntegrityViolationError("A multi-period class needs at least two slots")
        if len(set(keys)) != len(keys):
            raise GroupIntegrityViolationError("A multi-period class cannot repeat a slot", details={"slot_ids": keys})
        for key in keys:
            self.grid.require_assignable(day, key)
        ordered = self.grid.sort_ids(day, keys)
        if not self.grid.is_contiguous(day, ordered):
            raise GroupIntegrityViolationError(
                "Multi-period slots must be consecutive periods", details={"slot_ids": ordered}
            )
        return ordered

    def _build_row(
        self,
        scope: RoutineScope,
        day: int,
        slot_id: str,
        assignment: ClassAssignment,
        lab_group: LabGroup | None,
        *,
        span_id: str | None = None,
        span_master: bool = False,
        elective_group_id: str | None = None,
    ) -> RoutineSlot:
        row_id = str(uuid.uuid4())
        alternate = None
        if assignment.is_alternative_week:
            alternate = self._normalize_alternate_data(
                self.settings.lab_groups_for_section(scope.section), assignment.alternate_group_data
            )
        return RoutineSlot(
            id=row_id,
            program_code=scope.program_code,
            semester=scope.semester,
            section=scope.section,
            day_index=day,
            slot_id=slot_id,
            subject_id=assignment.subject_id,
            class_type=assignment.class_type,
            teacher_ids=_distinct(assignment.teacher_ids),
            room_id=assignment.room_id,
            notes=assignment.notes,
            span_id=span_id,
            span_master=span_master,
            lab_group=lab_group,
            lab_lane=lab_lane_for(lab_group),
            is_alternative_week=assignment.is_alternative_week,
            alternate_group_data=alternate,
            is_elective_class=elective_group_id is not None,
            elective_group_id=elective_group_id,
            cross_section_scheduled=elective_group_id is not None,
            commitment_id=elective_group_id or row_id,
        )

    def _occupants(self, row: RoutineSlot) -> list[RoutineSlot]:
        scope = RoutineScope(row.program_code, row.semester, row.section)
        partner = self._partner(scope, row.lab_group)
        return [
            entry
            for entry in self.index.scope_cell(scope, row.day_index, row.slot_id)
            if occupies_lane(entry, row.lab_group, partner)
        ]

    def _require_free_cells(self, rows: Sequence[RoutineSlot]) -> None:
        for row in rows:
            occupied = self._occupants(row)
            if occupied:
                scope = RoutineScope(row.program_code, row.semester, row.section)
                raise GroupIntegrityViolationError(
                    f"{scope} already has a class at day {row.day_index}, slot {row.slot_id}; clear it first",
                    details={"occupied_by": occupied[0].diagnostic()},
                )

    def _write(self, rows: Sequence[RoutineSlot]) -> None:
        self.db.add_all(rows)
        for row in rows:
            section_groups = self.settings.lab_groups_for_section(row.section)
            self.db.add_all(
                CellClaim(
                    program_code=row.program_code,
                    semester=row.semester,
                    section=row.section,
                    day_index=row.day_index,
                    slot_id=row.slot_id,
                    lane=lane,
                    routine_slot_id=row.id,
                )
                for lane in claimed_lanes(row.lab_lane, section_groups)
            )
        seen: set[_PendingBooking] = set()
        for row in rows:
            resources = [(ResourceKind.teacher, teacher_id) for teacher_id in row.booked_teacher_ids()]
            resources += [(ResourceKind.room, room_id) for room_id in row.booked_room_ids()]
            for kind, resource_id in resources:
                pending = _PendingBooking(row.commitment_id, row.day_index, row.slot_id, kind, resource_id)
                if pending in seen:
                    continue
                seen.add(pending)
                self._pending.append(pending)
                self.db.add(
                    ResourceBooking(
                        day_index=row.day_index,
                        slot_id=row.slot_id,
                        resource_kind=kind,
                        resource_id=resource_id,
                        commitment_id=row.commitment_id,
                    )
                )
        self.db.flush()

    def _remove(self, rows: Sequence[RoutineSlot]) -> tuple[list[str], list[str]]:
        if not rows:
            return [], []
        teachers, rooms = _affected(rows)
        row_ids = [row.id for row in rows]
        commitments = {row.commitment_id for row in rows}
        self.db.execute(delete(RoutineSlot).where(RoutineSlot.id.in_(row_ids)))
        self.db.execute(delete(CellClaim).where(CellClaim.routine_slot_id.in_(row_ids)))
        self._release(commitments)
        return teachers, rooms

    def _release(self, commitments: set[str]) -> None:
        """Drop bookings of commitments that no longer have any row (elective siblings keep theirs)."""
        remaining = set(
            self.db.execute(
                select(RoutineSlot.commitment_id).where(RoutineSlot.commitment_id.in_(list(commitments)))
            ).scalars()
        )
        orphaned = commitments - remaining
        if orphaned:
            self.db.execute(delete(ResourceBooking).where(ResourceBooking.commitment_id.in_(list(orphaned))))

    def _clear_members(self, members: list[RoutineSlot], group_type: str, group_id: str) -> ClearResult:
        if not members:
            raise ResourceNotFoundError(group_type.replace("_", " ").capitalize(), group_id)
        deleted = len(members)
        sections = sorted({member.section for member in members})
        scope = f"{members[0].program_code}/{members[0].semester}"
        if len(sections) == 1:
            scope = f"{scope}/{sections[0]}"
        teachers, rooms = self._remove(members)
        log_activity(
            self.db,
            actor=self.actor,
            action=f"routine.clear_{group_type}",
            scope=scope,
            entity_type=group_type,
            entity_id=group_id,
            teacher_ids=teachers,
            room_ids=rooms,
            details={"deleted_count": deleted, "sections": sections},
        )
        return ClearResult(
            deleted_count=deleted, affected_teacher_ids=teachers, affected_room_ids=rooms, group_type=group_type
        )
