from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from app.models.routine_slot import ClassType, LabGroup
from app.services.slot_identity import SlotId


def _clean_ids(values: list[str]) -> list[str]:
    cleaned = []
    for value in values:
        item = value.strip()
        if item and item not in cleaned:
            cleaned.append(item)
    return cleaned


class AlternateGroupPayload(BaseModel):
    subject_id: str | None = Field(default=None, max_length=36)
    teacher_ids: list[str] = Field(default_factory=list, max_length=10)
    room_id: str | None = Field(default=None, max_length=36)

    @field_validator("teacher_ids")
    @classmethod
    def clean_teacher_ids(cls, values: list[str]) -> list[str]:
        return _clean_ids(values)


class ClassPayload(BaseModel):
    subject_id: str = Field(min_length=1, max_length=36)
    teacher_ids: list[str] = Field(min_length=1, max_length=10)
    room_id: str = Field(min_length=1, max_length=36)
    class_type: ClassType = ClassType.lecture
    notes: str | None = Field(default=None, max_length=500)
    lab_group: LabGroup | None = None
    is_alternative_week: bool = False
    alternate_group_data: dict[str, AlternateGroupPayload] | None = None

    @field_validator("teacher_ids")
    @classmethod
    def clean_teacher_ids(cls, values: list[str]) -> list[str]:
        cleaned = _clean_ids(values)
        if not cleaned:
            raise ValueError("At least one teacher is required")
        return cleaned

    @model_validator(mode="after")
    def validate_alternate_week(self) -> "ClassPayload":
        if self.is_alternative_week and not self.alternate_group_data:
            raise ValueError("alternate_group_data is required for alternate-week classes")
        if self.alternate_group_data and not self.is_alternative_week:
            raise ValueError("alternate_group_data is only allowed for alternate-week classes")
        return self


class AssignRequest(ClassPayload):
    day_index: int = Field(ge=0, le=6)
    slot_id: SlotId


class SpannedAssignRequest(ClassPayload):
    day_index: int = Field(ge=0, le=6)
    slot_ids: list[SlotId] = Field(min_length=2, max_length=12)


class LabGroupClassPayload(BaseModel):
    subject_id: str = Field(min_length=1, max_length=36)
    teacher_ids: list[str] = Field(min_length=1, max_length=10)
    room_id: str = Field(min_length=1, max_length=36)
    notes: str | None = Field(default=None, max_length=500)

    @field_validator("teacher_ids")
    @classmethod
    def clean_teacher_ids(cls, values: list[str]) -> list[str]:
        return _clean_ids(values)


class LabPairAssignRequest(BaseModel):
    day_index: int = Field(ge=0, le=6)
    slot_ids: list[SlotId] = Field(min_length=1, max_length=12)
    first_group: LabGroupClassPayload
    second_group: LabGroupClassPayload


class ElectiveTargetPayload(ClassPayload):
    program_code: str = Field(min_length=1, max_length=20)
    semester: int = Field(ge=1)
    sections: list[str] = Field(min_length=2, max_length=10)
    day_index: int = Field(ge=0, le=6)

    @field_validator("sections")
    @classmethod
    def normalize_sections(cls, values: list[str]) -> list[str]:
        sections = [value.strip().upper() for value in values if value.strip()]
        if len(set(sections)) != len(sections):
            raise ValueError("Elective sections must be distinct")
        return sections


class ElectiveAssignRequest(ElectiveTargetPayload):
    slot_id: SlotId


class ElectiveSpannedAssignRequest(ElectiveTargetPayload):
    slot_ids: list[SlotId] = Field(min_length=2, max_length=12)


class ElectiveCheckRequest(ElectiveTargetPayload):
    slot_ids: list[SlotId] = Field(min_length=1, max_length=12)


class RoutineSlotOut(BaseModel):
    id: str
    program_code: str
    semester: int
    section: str
    day_index: int
    slot_id: str
    subject_id: str
    class_type: ClassType
    teacher_ids: list[str]
    room_id: str
    notes: str | None = None
    span_id: str | None = None
    span_master: bool = False
    lab_group: LabGroup | None = None
    is_alternative_week: bool = False
    alternate_group_data: dict | None = None
    is_elective_class: bool = False
    elective_group_id: str | None = None
    cross_section_scheduled: bool = False

    model_config = {"from_attributes": True}


class AssignmentOut(BaseModel):
    entries: list[RoutineSlotOut]
    replaced_count: int = 0
    span_ids: list[str] = Field(default_factory=list)
    elective_group_id: str | None = None
    affected_teacher_ids: list[str] = Field(default_factory=list)
    affected_room_ids: list[str] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class ClearOut(BaseModel):
    deleted_count: int
    affected_teacher_ids: list[str] = Field(default_factory=list)
    affected_room_ids: list[str] = Field(default_factory=list)
    group_type: str | None = None

    model_config = {"from_attributes": True}


class GridEntryOut(BaseModel):
    id: str
    subject_id: str | None = None
    class_type: ClassType
    teacher_ids: list[str] = Field(default_factory=list)
    room_id: str | None = None
    notes: str | None = None
    lab_group: str | None = None
    is_elective_class: bool = False
    elective_group_id: str | None = None
    span_id: str | None = None
    span_length: int = 1


class GridCellOut(BaseModel):
    kind: Literal["single", "lab_pair", "alternating_week"]
    entries: list[GridEntryOut]
    span_length: int = 1
    span_id: str | None = None
    row_count: int = 1


class CoveredCellOut(BaseModel):
    day_index: int
    slot_id: str
    span_id: str
    lab_group: str | None = None


class RoutineGridOut(BaseModel):
    program_code: str
    semester: int
    section: str
    slot_order: list[str]
    days: dict[int, dict[str, GridCellOut]]
    covered: list[CoveredCellOut] = Field(default_factory=list)


class AvailabilityOut(BaseModel):
    resource_kind: Literal["teacher", "room"]
    resource_id: str
    day_index: int
    slot_id: str
    is_available: bool
    conflict: dict | None = None


class VacantRoomsOut(BaseModel):
    day_index: int
    slot_id: str
    room_ids: list[str]


class VacantTeachersOut(BaseModel):
    day_index: int
    slot_id: str
    teacher_ids: list[str]


class ElectiveCheckOut(BaseModel):
    has_conflicts: bool
    conflicts: list[dict] = Field(default_factory=list)
