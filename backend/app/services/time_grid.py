from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.exceptions import BreakSlotViolationError, InvalidSlotReferenceError
from app.models.time_slot import TimeSlot
from app.services.slot_identity import normalize_day_index, normalize_slot_id


class TimeGrid:
    """Ordered view of the period catalog used for break, day and adjacency checks."""

    def __init__(self, slots: Iterable[TimeSlot]):
        self._slots = sorted(slots, key=lambda slot: (slot.sort_order, slot.id))
        self._by_id = {normalize_slot_id(slot.id): slot for slot in self._slots}

    @classmethod
    def load(cls, db: Session) -> "TimeGrid":
        return cls(db.execute(select(TimeSlot).order_by(TimeSlot.sort_order)).scalars())

    def __len__(self) -> int:
        return len(self._slots)

    def get(self, slot_id: object) -> TimeSlot:
        key = normalize_slot_id(slot_id)
        slot = self._by_id.get(key)
        if slot is None:
            raise InvalidSlotReferenceError(f"Time slot {key} does not exist", slot_id=key)
        return slot

    def slots_for_day(self, day_index: int) -> list[TimeSlot]:
        return [slot for slot in self._slots if slot.applies_to(day_index)]

    def ordered_ids(self, day_index: int | None = None) -> list[str]:
        slots = self._slots if day_index is None else self.slots_for_day(day_index)
        return [normalize_slot_id(slot.id) for slot in slots]

    def require_assignable(self, day_index: object, slot_id: object) -> TimeSlot:
        day = normalize_day_index(day_index)
        slot = self.get(slot_id)
        if not slot.applies_to(day):
            raise InvalidSlotReferenceError(
                f"Time slot {slot.id} is not scheduled on day {day}",
                slot_id=slot.id,
                day_index=day,
            )
        if slot.is_break:
            raise BreakSlotViolationError(slot.id, day)
        return slot

    def position(self, day_index: int, slot_id: object) -> int:
        key = normalize_slot_id(slot_id)
        ordered = self.ordered_ids(day_index)
        if key not in ordered:
            raise InvalidSlotReferenceError(
                f"Time slot {key} is not scheduled on day {day_index}", slot_id=key, day_index=day_index
            )
        return ordered.index(key)

    def sort_ids(self, day_index: int, slot_ids: Iterable[object]) -> list[str]:
        keys = [normalize_slot_id(slot_id) for slot_id in slot_ids]
        return sorted(keys, key=lambda key: self.position(day_index, key))

    def is_contiguous(self, day_index: int, slot_ids: Iterable[object]) -> bool:
        keys = [normalize_slot_id(slot_id) for slot_id in slot_ids]
        if not keys or len(set(keys)) != len(keys):
            return False
        positions = sorted(self.position(day_index, key) for key in keys)
        return positions[-1] - positions[0] == len(positions) - 1

    def sort_key(self, day_index: int, slot_id: object) -> tuple[int, str]:
        """Ordering key that tolerates slots missing from the catalog (they sort last)."""
        key = normalize_slot_id(slot_id)
        ordered = self.ordered_ids(day_index)
        return (ordered.index(key) if key in ordered else len(ordered), key)
