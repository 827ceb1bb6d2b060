"""Canonical identities for the routine grid.

Slot ids reach the engine as ints, floats, zero-padded strings or plain labels depending
on the caller. Every lookup and every stored row uses the string form returned by
``normalize_slot_id`` so that ``1``, ``"1"`` and ``"01"`` address the same cell.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Annotated

from pydantic import BeforeValidator

from app.core.exceptions import InvalidSlotReferenceError

DAY_INDEXES = range(7)

_INTEGER_TEXT = re.compile(r"^[+-]?\d+(?:\.0*)?$")
_DECIMAL_TEXT = re.compile(r"^[+-]?\d*\.\d+$")


def normalize_slot_id(value: object) -> str:
    if isinstance(value, bool) or value is None:
        raise InvalidSlotReferenceError(f"Invalid slot id: {value!r}", slot_id=value)
    if isinstance(value, int):
        if value < 0:
            raise InvalidSlotReferenceError(f"Slot id must be non-negative, got {value}", slot_id=value)
        return str(value)
    if isinstance(value, float):
        if not value.is_integer() or value < 0:
            raise InvalidSlotReferenceError(f"Slot id must be a whole number, got {value}", slot_id=value)
        return str(int(value))
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise InvalidSlotReferenceError("Slot id must not be empty", slot_id=value)
        if text.isascii() and _INTEGER_TEXT.match(text):
            number = int(text.split(".", 1)[0])
            if number < 0:
                raise InvalidSlotReferenceError(f"Slot id must be non-negative, got {text}", slot_id=value)
            return str(number)
        if text.isascii() and _DECIMAL_TEXT.match(text):
            raise InvalidSlotReferenceError(f"Slot id must be a whole number, got {text}", slot_id=value)
        return text
    raise InvalidSlotReferenceError(f"Unsupported slot id type {type(value).__name__}", slot_id=value)


def normalize_day_index(value: object) -> int:
    if isinstance(value, bool):
        raise InvalidSlotReferenceError(f"Invalid day index: {value!r}")
    if isinstance(value, float) and not value.is_integer():
        raise InvalidSlotReferenceError(f"Day index must be a whole number, got {value}")
    try:
        day_index = int(str(value).strip()) if isinstance(value, str) else int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidSlotReferenceError(f"Invalid day index: {value!r}") from exc
    if day_index not in DAY_INDEXES:
        raise InvalidSlotReferenceError(f"Day index must be between 0 and 6, got {day_index}", day_index=day_index)
    return day_index


def _coerce_slot_id(value: object) -> str:
    try:
        return normalize_slot_id(value)
    except InvalidSlotReferenceError as exc:
        raise ValueError(exc.message) from exc


# Request models declare slot ids with this type so normalization happens at the boundary.
SlotId = Annotated[str, BeforeValidator(_coerce_slot_id)]


@dataclass(frozen=True)
class RoutineScope:
    program_code: str
    semester: int
    section: str

    @classmethod
    def of(cls, program_code: str, semester: int | str, section: str) -> "RoutineScope":
        return cls(program_code.strip().upper(), int(semester), section.strip().upper())

    def __str__(self) -> str:
        return f"{self.program_code}/{self.semester}/{self.section}"
