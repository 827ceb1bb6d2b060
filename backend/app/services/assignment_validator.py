from __future__ import annotations

import logging
from collections.abc import Collection, Mapping, Sequence
from dataclasses import dataclass, field

from app.core.exceptions import RoomConflictError, ScheduleConflictError, TeacherConflictError
from app.models.resource_booking import ResourceKind
from app.models.routine_slot import RoutineSlot
from app.services.conflict_index import ConflictIndex
from app.services.time_grid import TimeGrid

logger = logging.getLogger(__name__)


@dataclass
class ResourceLabels:
    """Optional display names for diagnostics; the engine itself only stores ids."""

    teachers: Mapping[str, str] = field(default_factory=dict)
    rooms: Mapping[str, str] = field(default_factory=dict)
    subjects: Mapping[str, str] = field(default_factory=dict)

    def teacher(self, teacher_id: str) -> str:
        return self.teachers.get(teacher_id, teacher_id)

    def room(self, room_id: str) -> str:
        return self.rooms.get(room_id, room_id)

    def subject(self, subject_id: str) -> str:
        return self.subjects.get(subject_id, subject_id)


class AssignmentValidator:
    """Checks candidate entries against the time grid and the conflict index.

    Candidates are checked in submission order: break/slot validity, then every teacher,
    then the room. The first failure aborts the whole batch.
    """

    def __init__(self, index: ConflictIndex, grid: TimeGrid, labels: ResourceLabels | None = None):
        self.index = index
        self.grid = grid
        self.labels = labels or ResourceLabels()

    def validate(self, candidates: Sequence[RoutineSlot], *, ignore_commitments: Collection[str] = ()) -> None:
        accepted: list[RoutineSlot] = []
        for candidate in candidates:
            self.grid.require_assignable(candidate.day_index, candidate.slot_id)
            for teacher_id in candidate.booked_teacher_ids():
                self._check_resource(candidate, ResourceKind.teacher, teacher_id, accepted, ignore_commitments)
            for room_id in candidate.booked_room_ids():
                self._check_resource(candidate, ResourceKind.room, room_id, accepted, ignore_commitments)
            accepted.append(candidate)
            logger.debug(
                "Candidate %s day=%s slot=%s passed validation",
                candidate.subject_id,
                candidate.day_index,
                candidate.slot_id,
            )

    def collect(
        self, candidates: Sequence[RoutineSlot], *, ignore_commitments: Collection[str] = ()
    ) -> list[ScheduleConflictError]:
        """Run the same checks as ``validate`` but return every failure instead of the first."""
        conflicts: list[ScheduleConflictError] = []
        accepted: list[RoutineSlot] = []
        for candidate in candidates:
            try:
                self.grid.require_assignable(candidate.day_index, candidate.slot_id)
            except ScheduleConflictError as exc:
                conflicts.append(exc)
                continue
            resources = [(ResourceKind.teacher, teacher_id) for teacher_id in candidate.booked_teacher_ids()]
            resources += [(ResourceKind.room, room_id) for room_id in candidate.booked_room_ids()]
            for kind, resource_id in resources:
                try:
                    self._check_resource(candidate, kind, resource_id, accepted, ignore_commitments)
                except ScheduleConflictError as exc:
                    conflicts.append(exc)
            accepted.append(candidate)
        return conflicts

    def _check_resource(
        self,
        candidate: RoutineSlot,
        kind: ResourceKind,
        resource_id: str,
        accepted: Sequence[RoutineSlot],
        ignore_commitments: Collection[str],
    ) -> None:
        holder = self.index.holder(
            kind,
            resource_id,
            candidate.day_index,
            candidate.slot_id,
            ignore_commitments=ignore_commitments,
        )
        if holder is None:
            # Members of the same commitment (elective replicas) share their bookings.
            holder = next(
                (
                    other
                    for other in accepted
                    if other.commitment_id != candidate.commitment_id
                    and other.day_index == candidate.day_index
                    and other.slot_id == candidate.slot_id
                    and resource_id in self._resources_of(other, kind)
                ),
                None,
            )
        if holder is not None:
            raise self.conflict(kind, resource_id, holder)

    @staticmethod
    def _resources_of(entry: RoutineSlot, kind: ResourceKind) -> list[str]:
        return entry.booked_teacher_ids() if kind == ResourceKind.teacher else entry.booked_room_ids()

    def conflict(self, kind: ResourceKind, resource_id: str, holder: RoutineSlot | None) -> ScheduleConflictError:
        diagnostic = holder.diagnostic() if holder is not None else None
        if diagnostic is not None:
            diagnostic["subject_name"] = self.labels.subject(holder.subject_id)
            diagnostic["room_name"] = self.labels.room(holder.room_id)
            diagnostic["teacher_names"] = [self.labels.teacher(item) for item in holder.teacher_ids or []]
            where = (
                f" by {diagnostic['subject_name']} ({holder.scope_label})"
                f" on day {holder.day_index}, slot {holder.slot_id}"
            )
        else:
            where = ""
        if kind == ResourceKind.teacher:
            error_cls, message = TeacherConflictError, f"Teacher {self.labels.teacher(resource_id)} is already booked{where}"
        else:
            error_cls, message = RoomConflictError, f"Room {self.labels.room(resource_id)} is already booked{where}"
        logger.warning("Rejected assignment: %s", message)
        return error_cls(message, resource_id=resource_id, conflicting_entry=diagnostic)
