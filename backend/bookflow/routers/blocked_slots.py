# backend/bookflow/routers/blocked_slots.py
# PATCH not supported: delete and recreate

from datetime import date
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..errors import ConfigNotFound
from ..models import BlockedSlots as DBBlockedSlots
from ..models import Staff as DBStaff
from ..schemas.blocked_slots import (
    BlockedSlotCreate,
    BlockedSlotRead,
)

router = APIRouter(prefix="/blocked_slots", tags=["blocked_slots"])


@router.get("", response_model=list[BlockedSlotRead])
def list_blocked_slots(
    staff_id: int,
    slot_date: date | None = None,
    db: Session = Depends(get_db),
):
    query = db.query(DBBlockedSlots).filter(DBBlockedSlots.staff_id == staff_id)
    if slot_date is not None:
        query = query.filter(DBBlockedSlots.slot_date == slot_date.isoformat())
    return query.order_by(DBBlockedSlots.slot_date, DBBlockedSlots.start_time).all()


@router.post("", response_model=BlockedSlotRead, status_code=status.HTTP_201_CREATED)
def create_blocked_slot(
    data: BlockedSlotCreate,
    db: Session = Depends(get_db),
):
    staff = db.get(DBStaff, data.staff_id)
    if not staff:
        raise ConfigNotFound(f"Staff {data.staff_id} not found")

    obj = DBBlockedSlots(
        staff_id=data.staff_id,
        slot_date=data.slot_date.isoformat(),
        start_time=data.start_time,
        end_time=data.end_time,
        reason=data.reason,
    )
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_blocked_slot(id: int, db: Session = Depends(get_db)):
    obj = db.get(DBBlockedSlots, id)
    if not obj:
        raise ConfigNotFound(f"Blocked slot {id} not found")
    db.delete(obj)
    db.commit()
