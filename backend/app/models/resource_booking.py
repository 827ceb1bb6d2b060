import uuid
from enum import Enum

from sqlalchemy import Enum as SAEnum, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class ResourceKind(str, Enum):
    teacher = "teacher"
    room = "room"


class ResourceBooking(Base):
    """One teacher or room held at a (day, slot) by a single commitment.

    The unique constraint is the storage-level backstop against double booking: two
    concurrent commits that both passed validation cannot both insert the same row.
    """

    __tablename__ = "resource_bookings"
    __table_args__ = (
        UniqueConstraint(
            "day_index",
            "slot_id",
            "resource_kind",
            "resource_id",
            name="uq_resource_bookings_cell_resource",
        ),
        Index("ix_resource_bookings_resource", "resource_kind", "resource_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    day_index: Mapped[int] = mapped_column(Integer, nullable=False)
    slot_id: Mapped[str] = mapped_column(String(36), nullable=False)
    resource_kind: Mapped[ResourceKind] = mapped_column(SAEnum(ResourceKind, name="resource_kind"), nullable=False)
    resource_id: Mapped[str] = mapped_column(String(36), nullable=False)
    commitment_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
