from __future__ import annotations

from collections.abc import Collection, Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.resource_booking import ResourceBooking, ResourceKind
from app.models.routine_slot import RoutineSlot, lab_lane_for
from app.services.slot_identity import RoutineScope, normalize_day_index, normalize_slot_id
from app.services.time_grid import TimeGrid


class ConflictIndex:
    """Institution-wide view of who holds which teacher and room at each (day, slot).

    Backed by indexed queries on ``resource_bookings`` inside the caller's session, so it
    always reads the same transactional snapshot the commit engine writes to.
    """

    def __init__(self, db: Session):
        self.db = db

    def lookup(self, day_index: object, slot_id: object) -> list[RoutineSlot]:
        day = normalize_day_index(day_index)
        key = normalize_slot_id(slot_id)
        stmt = (
            select(RoutineSlot)
            .where(RoutineSlot.day_index == day, RoutineSlot.slot_id == key)
            .order_by(RoutineSlot.program_code, RoutineSlot.semester, RoutineSlot.section, RoutineSlot.lab_lane)
        )
        return list(self.db.execute(stmt).scalars())

    def holder(
        self,
        kind: ResourceKind,
        resource_id: str,
        day_index: int,
        slot_id: str,
        *,
        ignore_commitments: Collection[str] = (),
    ) -> RoutineSlot | None:
        """First committed entry holding ``resource_id`` at the cell, or ``None`` if it is free."""
        stmt = (
            select(RoutineSlot)
            .join(ResourceBooking, ResourceBooking.commitment_id == RoutineSlot.commitment_id)
            .where(
                ResourceBooking.day_index == day_index,
                ResourceBooking.slot_id == slot_id,
                ResourceBooking.resource_kind == kind,
                ResourceBooking.resource_id == resource_id,
                RoutineSlot.day_index == day_index,
                RoutineSlot.slot_id == slot_id,
            )
            .order_by(RoutineSlot.created_at, RoutineSlot.id)
            .limit(1)
        )
        if ignore_commitments:
            stmt = stmt.where(ResourceBooking.commitment_id.not_in(list(ignore_commitments)))
        return self.db.execute(stmt).scalars().first()

    def booking(self, kind: ResourceKind, resource_id: str, day_index: int, slot_id: str) -> ResourceBooking | None:
        stmt = select(ResourceBooking).where(
            ResourceBooking.day_index == day_index,
            ResourceBooking.slot_id == slot_id,
            ResourceBooking.resource_kind == kind,
            ResourceBooking.resource_id == resource_id,
        )
        return self.db.execute(stmt).scalars().first()

    def scope_cell(self, scope: RoutineScope, day_index: int, slot_id: str) -> list[RoutineSlot]:
        stmt = (
            select(RoutineSlot)
            .where(
                RoutineSlot.program_code == scope.program_code,
                RoutineSlot.semester == scope.semester,
                RoutineSlot.section == scope.section,
                RoutineSlot.day_index == day_index,
                RoutineSlot.slot_id == slot_id,
            )
            .order_by(RoutineSlot.lab_lane)
        )
        return list(self.db.execute(stmt).scalars())

    def scope_entries(self, scope: RoutineScope) -> list[RoutineSlot]:
        stmt = (
            select(RoutineSlot)
            .where(
                RoutineSlot.program_code == scope.program_code,
                RoutineSlot.semester == scope.semester,
                RoutineSlot.section == scope.section,
            )
            .order_by(RoutineSlot.day_index, RoutineSlot.slot_id, RoutineSlot.lab_lane)
        )
        return list(self.db.execute(stmt).scalars())

    def span_members(self, span_id: str) -> list[RoutineSlot]:
        stmt = select(RoutineSlot).where(RoutineSlot.span_id == span_id).order_by(RoutineSlot.day_index)
        return list(self.db.execute(stmt).scalars())

    def elective_members(self, elective_group_id: str) -> list[RoutineSlot]:
        stmt = select(RoutineSlot).where(RoutineSlot.elective_group_id == elective_group_id).order_by(RoutineSlot.section)
        return list(self.db.execute(stmt).scalars())

    def availability(self, kind: ResourceKind, resource_id: str, day_index: object, slot_id: object) -> dict:
        day = normalize_day_index(day_index)
        key = normalize_slot_id(slot_id)
        entry = self.holder(kind, resource_id, day, key)
        return {
            "resource_kind": kind.value,
            "resource_id": resource_id,
            "day_index": day,
            "slot_id": key,
            "is_available": entry is None,
            "conflict": entry.diagnostic() if entry is not None else None,
        }

    def teacher_availability(self, teacher_id: str, day_index: object, slot_id: object) -> dict:
        return self.availability(ResourceKind.teacher, teacher_id, day_index, slot_id)

    def room_availability(self, room_id: str, day_index: object, slot_id: object) -> dict:
        return self.availability(ResourceKind.room, room_id, day_index, slot_id)

    def vacant(self, kind: ResourceKind, day_index: object, slot_id: object, resource_ids: Iterable[str]) -> list[str]:
        """Subset of ``resource_ids`` with no booking at the cell, in the order given."""
        day = normalize_day_index(day_index)
        key = normalize_slot_id(slot_id)
        candidates = list(dict.fromkeys(resource_ids))
        if not candidates:
            return []
        stmt = select(ResourceBooking.resource_id).where(
            ResourceBooking.day_index == day,
            ResourceBooking.slot_id == key,
            ResourceBooking.resource_kind == kind,
            ResourceBooking.resource_id.in_(candidates),
        )
        occupied = set(self.db.execute(stmt).scalars())
        return [resource_id for resource_id in candidates if resource_id not in occupied]

    def vacant_rooms(self, day_index: object, slot_id: object, room_ids: Iterable[str]) -> list[str]:
        return self.vacant(ResourceKind.room, day_index, slot_id, room_ids)

    def vacant_teachers(self, day_index: object, slot_id: object, teacher_ids: Iterable[str]) -> list[str]:
        return self.vacant(ResourceKind.teacher, day_index, slot_id, teacher_ids)

    def schedule(self, kind: ResourceKind, resource_id: str, grid: TimeGrid | None = None) -> list[RoutineSlot]:
        """Entries holding a teacher or room, ordered by day and then by catalog position."""
        stmt = (
            select(RoutineSlot)
            .join(ResourceBooking, ResourceBooking.commitment_id == RoutineSlot.commitment_id)
            .where(
                ResourceBooking.resource_kind == kind,
                ResourceBooking.resource_id == resource_id,
                ResourceBooking.day_index == RoutineSlot.day_index,
                ResourceBooking.slot_id == RoutineSlot.slot_id,
            )
        )
        entries = list(self.db.execute(stmt).scalars().unique())
        grid = grid if grid is not None else TimeGrid.load(self.db)
        return sorted(
            entries,
            key=lambda entry: (
                entry.day_index,
                grid.sort_key(entry.day_index, entry.slot_id),
                entry.program_code,
                entry.semester,
                entry.section,
                entry.lab_lane,
            ),
        )

    def teacher_schedule(self, teacher_id: str, grid: TimeGrid | None = None) -> list[RoutineSlot]:
        return self.schedule(ResourceKind.teacher, teacher_id, grid)

    def room_schedule(self, room_id: str, grid: TimeGrid | None = None) -> list[RoutineSlot]:
        return self.schedule(ResourceKind.room, room_id, grid)


def occupies_lane(existing: RoutineSlot, lab_group, partner_group: str | None) -> bool:
    """True when ``existing`` cannot share a cell with a new entry for ``lab_group``.

    Only a lettered entry and its complementary partner may co-reside.
    """
    lane = lab_lane_for(lab_group)
    if not lane or not existing.lab_lane:
        return True
    return existing.lab_lane != partner_group
