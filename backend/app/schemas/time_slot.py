import re

from pydantic import BaseModel, Field, field_validator, model_validator

from app.models.time_slot import DayType
from app.services.slot_identity import SlotId

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def parse_time_to_minutes(value: str) -> int:
    if not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM 24-hour format")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


class TimeSlotBase(BaseModel):
    label: str = Field(min_length=1, max_length=50)
    day_type: DayType = DayType.regular
    start_time: str
    end_time: str
    sort_order: int = Field(ge=0)
    is_break: bool = False
    applicable_days: list[int] = Field(default_factory=list, max_length=7)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time_format(cls, value: str) -> str:
        if not TIME_PATTERN.match(value):
            raise ValueError("Time must be in HH:MM 24-hour format")
        return value

    @field_validator("applicable_days")
    @classmethod
    def validate_days(cls, values: list[int]) -> list[int]:
        if any(value < 0 or value > 6 for value in values):
            raise ValueError("Applicable days must be between 0 and 6")
        return sorted(set(values))

    @model_validator(mode="after")
    def validate_order(self) -> "TimeSlotBase":
        if parse_time_to_minutes(self.end_time) <= parse_time_to_minutes(self.start_time):
            raise ValueError("end_time must be after start_time")
        return self


class TimeSlotCreate(TimeSlotBase):
    id: SlotId


class TimeSlotOut(TimeSlotBase):
    id: str

    model_config = {"from_attributes": True}
