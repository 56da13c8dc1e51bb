"""
Atomic booking writes.

The `bookings` table carries BEFORE INSERT / BEFORE UPDATE triggers that
abort with "slot_already_taken" when an occupying booking would overlap
another occupying booking of the same staff member. Writers therefore
never check-then-insert: they write, and a conflict comes back from the
storage layer as SlotConflict.
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import SlotConflict
from ..models import Bookings
from .slots.config import to_db_datetime

logger = logging.getLogger(__name__)

SLOT_TAKEN = "slot_already_taken"


def is_slot_taken_error(exc: IntegrityError) -> bool:
    return SLOT_TAKEN in str(exc.orig)


def booking_times(start: datetime, duration_minutes: int, buffer_minutes: int) -> dict:
    """Stored time columns for a booking starting at `start`."""
    end = start + timedelta(minutes=duration_minutes)
    return {
        "date_start": to_db_datetime(start),
        "date_end": to_db_datetime(end),
        "blocked_until": to_db_datetime(end + timedelta(minutes=buffer_minutes)),
        "duration_minutes": duration_minutes,
        "buffer_minutes": buffer_minutes,
    }


def insert_booking(db: Session, booking: Bookings) -> Bookings:
    """
    Insert a booking only if its staff member is free for its interval.

    Raises:
        SlotConflict: an overlapping occupying booking exists.
    """
    db.add(booking)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if not is_slot_taken_error(e):
            raise
        logger.warning(
            f"Slot taken at insert: staff_id={booking.staff_id}, start={booking.date_start}"
        )
        raise SlotConflict(
            "Someone just booked this slot. Please pick another time.",
            conflict_reason=SLOT_TAKEN,
        ) from e

    db.refresh(booking)
    return booking


def update_booking_times(
    db: Session,
    booking: Bookings,
    start: datetime,
    now: datetime | None = None,
) -> Bookings:
    """
    Move a booking to a new start, keeping duration and buffer.

    The update trigger ignores the booking's own row, so moving a booking
    within its current interval is allowed. `now` is naive UTC.
    """
    for field, value in booking_times(
        start, booking.duration_minutes, booking.buffer_minutes or 0
    ).items():
        setattr(booking, field, value)
    now = now or datetime.now(timezone.utc).replace(tzinfo=None)
    booking.updated_at = to_db_datetime(now)

    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if not is_slot_taken_error(e):
            raise
        logger.warning(f"Slot taken at reschedule: booking_id={booking.id}")
        raise SlotConflict(
            "This time slot is no longer available",
            conflict_reason=SLOT_TAKEN,
        ) from e

    db.refresh(booking)
    return booking
