from __future__ import annotations

import logging
from collections import defaultdict

from sqlalchemy.orm import Session

from app.models.routine_slot import LAB_GROUP_ORDER, RoutineSlot
from app.schemas.routine import CoveredCellOut, GridCellOut, GridEntryOut, RoutineGridOut
from app.services.conflict_index import ConflictIndex
from app.services.slot_identity import DAY_INDEXES, RoutineScope
from app.services.time_grid import TimeGrid

logger = logging.getLogger(__name__)


def _group_order(entry: RoutineSlot) -> tuple[int, str]:
    group = entry.lab_group.value if entry.lab_group is not None else "ALL"
    return LAB_GROUP_ORDER.get(group, len(LAB_GROUP_ORDER)), group


def _entry_out(entry: RoutineSlot, span_length: int) -> GridEntryOut:
    return GridEntryOut(
        id=entry.id,
        subject_id=entry.subject_id,
        class_type=entry.class_type,
        teacher_ids=list(entry.teacher_ids or []),
        room_id=entry.room_id,
        notes=entry.notes,
        lab_group=entry.lab_group.value if entry.lab_group is not None else None,
        is_elective_class=entry.is_elective_class,
        elective_group_id=entry.elective_group_id,
        span_id=entry.span_id,
        span_length=span_length,
    )


def _alternate_entries(entry: RoutineSlot, span_length: int) -> list[GridEntryOut]:
    """Expand one alternate-week row into a display entry per lab group."""
    entries = []
    groups = sorted((entry.alternate_group_data or {}).items(), key=lambda item: LAB_GROUP_ORDER.get(item[0], 3))
    for group, data in groups:
        entries.append(
            GridEntryOut(
                id=entry.id,
                subject_id=data.get("subject_id") or entry.subject_id,
                class_type=entry.class_type,
                teacher_ids=list(data.get("teacher_ids") or entry.teacher_ids or []),
                room_id=data.get("room_id") or entry.room_id,
                notes=entry.notes,
                lab_group=group,
                is_elective_class=entry.is_elective_class,
                elective_group_id=entry.elective_group_id,
                span_id=entry.span_id,
                span_length=span_length,
            )
        )
    return entries


def _build_cell(entries: list[RoutineSlot], span_lengths: dict[str, int]) -> GridCellOut:
    entries = sorted(entries, key=_group_order)
    lengths = [span_lengths.get(entry.span_id, 1) if entry.span_id else 1 for entry in entries]
    # The cell as a whole only extends as far as its shortest row.
    span_length = min(lengths, default=1)
    span_id = next((entry.span_id for entry in entries if entry.span_id), None)

    if len(entries) == 1 and entries[0].is_alternative_week:
        rendered = _alternate_entries(entries[0], lengths[0])
        return GridCellOut(
            kind="alternating_week",
            entries=rendered,
            span_length=span_length,
            span_id=span_id,
            row_count=max(len(rendered), 1),
        )
    rendered = [_entry_out(entry, length) for entry, length in zip(entries, lengths)]
    return GridCellOut(
        kind="lab_pair" if len(rendered) > 1 else "single",
        entries=rendered,
        span_length=span_length,
        span_id=span_id,
        row_count=len(rendered),
    )


def build_grid(db: Session, scope: RoutineScope, grid: TimeGrid | None = None) -> RoutineGridOut:
    """Assemble the weekly grid of one section.

    Span members other than the master are reported in ``covered`` (one marker per lane) and
    left out of ``days``; every rendered entry carries its own span length. Complementary lab
    groups in one cell merge into a single ``lab_pair`` cell with one row per group, so a cell
    can appear in ``days`` for one group while the other group's span covers it.
    """
    grid = grid if grid is not None else TimeGrid.load(db)
    entries = ConflictIndex(db).scope_entries(scope)

    span_lengths: dict[str, int] = defaultdict(int)
    cells: dict[tuple[int, str], list[RoutineSlot]] = defaultdict(list)
    for entry in entries:
        if entry.span_id:
            span_lengths[entry.span_id] += 1
        cells[(entry.day_index, entry.slot_id)].append(entry)

    days: dict[int, dict[str, GridCellOut]] = {day: {} for day in DAY_INDEXES}
    covered: list[CoveredCellOut] = []
    for (day, slot_id) in sorted(cells, key=lambda cell: (cell[0], grid.sort_key(cell[0], cell[1]))):
        rendered = []
        for entry in sorted(cells[(day, slot_id)], key=_group_order):
            if entry.span_id and not entry.span_master:
                lab_group = entry.lab_group.value if entry.lab_group is not None else None
                covered.append(
                    CoveredCellOut(day_index=day, slot_id=slot_id, span_id=entry.span_id, lab_group=lab_group)
                )
            else:
                rendered.append(entry)
        if rendered:
            days[day][slot_id] = _build_cell(rendered, span_lengths)

    logger.debug("Assembled grid for %s with %d entries", scope, len(entries))
    return RoutineGridOut(
        program_code=scope.program_code,
        semester=scope.semester,
        section=scope.section,
        slot_order=grid.ordered_ids(),
        days=days,
        covered=covered,
    )
