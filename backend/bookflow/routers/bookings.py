# backend/bookflow/routers/bookings.py
# No list endpoint, no DELETE: bookings are cancelled, never removed

from datetime import datetime
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..clock import get_now
from ..database import get_db
from ..schemas.bookings import (
    BookingCancel,
    BookingCreate,
    BookingRead,
    BookingReschedule,
    BookingStatusUpdate,
)
from ..services import bookings as booking_service

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: BookingCreate,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    return booking_service.create_booking(db, data, now=now)


@router.get("/{id}", response_model=BookingRead)
def get_booking(id: int, db: Session = Depends(get_db)):
    return booking_service.get_booking(db, id)


@router.patch("/{id}/status", response_model=BookingRead)
def update_booking_status(
    id: int,
    data: BookingStatusUpdate,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    return booking_service.update_status(db, id, data.status, reason=data.reason, now=now)


@router.post("/{id}/cancel", response_model=BookingRead)
def cancel_booking(
    id: int,
    data: BookingCancel | None = None,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    reason = data.reason if data else None
    return booking_service.cancel_booking(db, id, reason=reason, now=now)


@router.post("/{id}/reschedule", response_model=BookingRead)
def reschedule_booking(
    id: int,
    data: BookingReschedule,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    return booking_service.reschedule_booking(db, id, data.date, data.time, now=now)
