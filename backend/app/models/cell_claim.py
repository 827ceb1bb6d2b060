import uuid

from sqlalchemy import Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


def claimed_lanes(lab_lane: str, section_groups: tuple[str, str]) -> list[str]:
    """Lanes of a section cell held by an entry written in ``lab_lane``.

    A whole-cell entry holds the open lane and both lab-group lanes; a lettered entry
    holds only its own lane, which leaves room for its complementary partner.
    """
    if lab_lane:
        return [lab_lane]
    return ["", *section_groups]


class CellClaim(Base):
    """One lane of a section's (day, slot) cell held by a routine entry.

    The unique constraint rejects a whole-cell entry next to a lettered one even when both
    writers read an empty cell before either committed.
    """

    __tablename__ = "cell_claims"
    __table_args__ = (
        UniqueConstraint(
            "program_code",
            "semester",
            "section",
            "day_index",
            "slot_id",
            "lane",
            name="uq_cell_claims_scope_cell_lane",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    program_code: Mapped[str] = mapped_column(String(20), nullable=False)
    semester: Mapped[int] = mapped_column(Integer, nullable=False)
    section: Mapped[str] = mapped_column(String(10), nullable=False)
    day_index: Mapped[int] = mapped_column(Integer, nullable=False)
    slot_id: Mapped[str] = mapped_column(String(36), nullable=False)
    lane: Mapped[str] = mapped_column(String(3), nullable=False)
    routine_slot_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
