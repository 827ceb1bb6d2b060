import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.deps import get_actor, get_db
from app.models.time_slot import TimeSlot
from app.schemas.time_slot import TimeSlotCreate, TimeSlotOut
from app.services.audit import log_activity

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=list[TimeSlotOut])
def list_time_slots(db: Session = Depends(get_db)) -> list[TimeSlotOut]:
    return list(db.execute(select(TimeSlot).order_by(TimeSlot.sort_order, TimeSlot.id)).scalars())


@router.post("/", response_model=TimeSlotOut, status_code=status.HTTP_201_CREATED)
def create_time_slot(
    payload: TimeSlotCreate,
    actor: str | None = Depends(get_actor),
    db: Session = Depends(get_db),
) -> TimeSlotOut:
    if db.get(TimeSlot, payload.id) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Time slot id already exists")
    slot = TimeSlot(**payload.model_dump())
    db.add(slot)
    log_activity(db, actor=actor, action="time_slot.create", entity_type="time_slot", entity_id=slot.id)
    db.commit()
    db.refresh(slot)
    logger.info("Created time slot %s (%s)", slot.id, slot.time_range)
    return slot
