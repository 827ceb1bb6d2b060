import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, Integer, JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base


class ClassType(str, Enum):
    lecture = "L"
    practical = "P"
    tutorial = "T"


class LabGroup(str, Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    ALL = "ALL"


# Display order inside a merged lab cell: first groups, then second groups, ALL last.
LAB_GROUP_ORDER = {"A": 0, "C": 0, "B": 1, "D": 1, "ALL": 2}


def lab_lane_for(lab_group: "LabGroup | str | None") -> str:
    """Cell lane used by the scope uniqueness constraint.

    Lettered groups get their own lane so a complementary pair can share one cell;
    ``ALL`` and non-lab entries occupy the whole cell.
    """
    if lab_group is None:
        return ""
    value = lab_group.value if isinstance(lab_group, LabGroup) else str(lab_group)
    return "" if value == LabGroup.ALL.value else value


class RoutineSlot(Base):
    __tablename__ = "routine_slots"
    __table_args__ = (
        UniqueConstraint(
            "program_code",
            "semester",
            "section",
            "day_index",
            "slot_id",
            "lab_lane",
            name="uq_routine_slots_scope_cell_lane",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    program_code: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    semester: Mapped[int] = mapped_column(Integer, nullable=False)
    section: Mapped[str] = mapped_column(String(10), nullable=False)
    day_index: Mapped[int] = mapped_column(Integer, nullable=False)
    slot_id: Mapped[str] = mapped_column(String(36), nullable=False)

    subject_id: Mapped[str] = mapped_column(String(36), nullable=False)
    class_type: Mapped[ClassType] = mapped_column(SAEnum(ClassType, name="class_type"), nullable=False)
    teacher_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    room_id: Mapped[str] = mapped_column(String(36), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    span_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    span_master: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    lab_group: Mapped[LabGroup | None] = mapped_column(SAEnum(LabGroup, name="lab_group"), nullable=True)
    lab_lane: Mapped[str] = mapped_column(String(3), nullable=False, default="")
    is_alternative_week: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    alternate_group_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    is_elective_class: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    elective_group_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    cross_section_scheduled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Resource bookings are owned by the commitment: the elective group for replicas, else the row itself.
    commitment_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    @property
    def is_grouped(self) -> bool:
        return self.span_id is not None or self.elective_group_id is not None

    @property
    def scope_label(self) -> str:
        return f"{self.program_code} semester {self.semester} section {self.section}"

    def booked_teacher_ids(self) -> list[str]:
        """Teachers held at this cell, including per-group teachers of an alternate-week row."""
        seen: list[str] = []
        for teacher_id in self.teacher_ids or []:
            if teacher_id not in seen:
                seen.append(teacher_id)
        for group in (self.alternate_group_data or {}).values():
            for teacher_id in group.get("teacher_ids") or []:
                if teacher_id not in seen:
                    seen.append(teacher_id)
        return seen

    def booked_room_ids(self) -> list[str]:
        seen = [self.room_id] if self.room_id else []
        for group in (self.alternate_group_data or {}).values():
            room_id = group.get("room_id")
            if room_id and room_id not in seen:
                seen.append(room_id)
        return seen

    def diagnostic(self) -> dict:
        return {
            "id": self.id,
            "program_code": self.program_code,
            "semester": self.semester,
            "section": self.section,
            "day_index": self.day_index,
            "slot_id": self.slot_id,
            "subject_id": self.subject_id,
            "class_type": self.class_type.value if self.class_type is not None else None,
            "teacher_ids": list(self.teacher_ids or []),
            "room_id": self.room_id,
            "lab_group": self.lab_group.value if self.lab_group is not None else None,
            "span_id": self.span_id,
            "elective_group_id": self.elective_group_id,
        }
