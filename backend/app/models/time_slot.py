from enum import Enum

from sqlalchemy import Boolean, Enum as SAEnum, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class DayType(str, Enum):
    regular = "Regular"
    friday = "Friday"
    special = "Special"


class TimeSlot(Base):
    """Read-only period catalog. ``id`` is always the canonical slot id (see ``normalize_slot_id``)."""

    __tablename__ = "time_slots"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    label: Mapped[str] = mapped_column(String(50), nullable=False)
    day_type: Mapped[DayType] = mapped_column(
        SAEnum(DayType, name="day_type"), nullable=False, default=DayType.regular
    )
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    is_break: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    applicable_days: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)

    def applies_to(self, day_index: int) -> bool:
        # An empty list means the slot runs every day.
        return not self.applicable_days or day_index in self.applicable_days

    @property
    def time_range(self) -> str:
        return f"{self.start_time} - {self.end_time}"
