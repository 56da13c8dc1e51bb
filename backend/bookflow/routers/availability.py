# backend/bookflow/routers/availability.py
"""
Availability API endpoints.

GET /availability - slots for a service on a day (one staff member or "any")
GET /availability/check - point-in-time check of one start time

Slots are recomputed from a fresh snapshot on every request. A slot shown
as available is not reserved; booking creation re-checks atomically.
"""

from datetime import datetime
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..clock import get_now
from ..database import get_db
from ..errors import InvalidRequest
from ..schemas.availability import (
    AvailabilityResponse,
    ConflictResponse,
    PeriodCounts,
    SlotsByPeriodRead,
)
from ..services.slots import check_slot_availability, get_availability
from ..services.slots.availability import (
    ANY_STAFF,
    parse_staff_id,
    parse_start_minutes,
    parse_target_date,
)

router = APIRouter(prefix="/availability", tags=["availability"])


@router.get("", response_model=AvailabilityResponse)
def get_day_availability(
    business_id: int,
    service_id: int,
    date: str,
    staff_id: str = ANY_STAFF,
    exclude_booking_id: int | None = None,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """Slots for a day grouped into morning / afternoon / evening."""
    target_date = parse_target_date(date)
    parsed_staff_id = parse_staff_id(staff_id)

    result = get_availability(
        db=db,
        business_id=business_id,
        service_id=service_id,
        staff_id=parsed_staff_id,
        target_date=target_date,
        now=now,
        exclude_booking_id=exclude_booking_id,
    )

    return AvailabilityResponse(
        date=result.date,
        business_id=business_id,
        service_id=service_id,
        staff_id=ANY_STAFF if parsed_staff_id is None else str(parsed_staff_id),
        duration_minutes=result.service.duration_minutes,
        buffer_minutes=result.service.buffer_minutes,
        slot_interval_minutes=result.slot_interval_minutes,
        slots=SlotsByPeriodRead.model_validate(result.slots),
        counts=PeriodCounts(**result.slots.counts()),
        total_available=result.total_available,
    )


@router.get("/check", response_model=ConflictResponse)
def check_availability(
    business_id: int,
    service_id: int,
    staff_id: str,
    date: str,
    time: str,
    exclude_booking_id: int | None = None,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """Explain whether a single start time is bookable for one staff member."""
    parsed_staff_id = parse_staff_id(staff_id)
    if parsed_staff_id is None:
        raise InvalidRequest("A specific staff_id is required for a slot check")

    result = check_slot_availability(
        db=db,
        business_id=business_id,
        service_id=service_id,
        staff_id=parsed_staff_id,
        target_date=parse_target_date(date),
        start_minutes=parse_start_minutes(time),
        now=now,
        exclude_booking_id=exclude_booking_id,
    )
    return ConflictResponse.model_validate(result)
