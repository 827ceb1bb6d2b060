"""Seed the period catalog used by the routine grid.

Run:
  PYTHONPATH=backend python scripts/seed_time_slots.py
"""

from __future__ import annotations

import logging
import os

from app.core.config import get_settings
from app.db.bootstrap import ensure_runtime_schema_compatibility
from app.db.session import SessionLocal
from app.models.time_slot import DayType, TimeSlot
from app.services.slot_identity import normalize_slot_id

logger = logging.getLogger("seed_time_slots")

RESET_EXISTING = os.getenv("SEED_RESET_TIME_SLOTS", "false").strip().lower() in {"1", "true", "yes", "on"}

PERIODS = [
    ("1", "10:15", "11:05", False),
    ("2", "11:05", "11:55", False),
    ("3", "11:55", "12:45", False),
    ("4", "12:45", "13:35", True),
    ("5", "13:35", "14:25", False),
    ("6", "14:25", "15:15", False),
    ("7", "15:15", "16:05", False),
    ("8", "16:05", "16:55", False),
]


def seed_time_slots() -> int:
    settings = get_settings()
    created = 0
    with SessionLocal() as db:
        for sort_order, (slot_id, start_time, end_time, is_break) in enumerate(PERIODS, start=1):
            key = normalize_slot_id(slot_id)
            slot = db.get(TimeSlot, key)
            if slot is not None and not RESET_EXISTING:
                continue
            if slot is None:
                slot = TimeSlot(id=key)
                db.add(slot)
                created += 1
            slot.label = "Lunch Break" if is_break else f"{start_time}-{end_time}"
            slot.day_type = DayType.regular
            slot.start_time = start_time
            slot.end_time = end_time
            slot.sort_order = sort_order
            slot.is_break = is_break
            slot.applicable_days = list(settings.default_applicable_days)
        db.commit()
    return created


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    ensure_runtime_schema_compatibility()
    created = seed_time_slots()
    logger.info("Seeded %d new time slots (%d in catalog)", created, len(PERIODS))


if __name__ == "__main__":
    main()
