"""
Booking lifecycle: create, status changes, cancel, reschedule.

Availability shown to a customer is only a hint. Every write goes through
booking_store, where the storage layer decides atomically whether the
slot is still free.
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from ..config import settings
from ..errors import ConfigNotFound, InvalidTransition, SlotConflict
from ..models import Bookings
from ..schemas.bookings import BookingCreate
from .booking_store import booking_times, insert_booking, update_booking_times
from .events import booking_payload, emit_event
from .slots.availability import (
    count_staff_bookings,
    get_business,
    get_service,
    load_rules,
    load_schedule,
    load_staff_day,
    local_now,
    parse_staff_id,
    parse_start_minutes,
    parse_target_date,
    resolve_staff,
    to_service_spec,
)
from .slots.calculator import ServiceSpec, check_slot
from .slots.config import day_start, to_db_datetime

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": {"completed", "cancelled", "no_show"},
}


def _utcnow(now: datetime | None) -> datetime:
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now
    return now.astimezone(timezone.utc).replace(tzinfo=None)


def get_booking(db: Session, booking_id: int) -> Bookings:
    booking = db.get(Bookings, booking_id)
    if not booking:
        raise ConfigNotFound(f"Booking {booking_id} not found")
    return booking


def create_booking(
    db: Session,
    data: BookingCreate,
    now: datetime | None = None,
) -> Bookings:
    """
    Create a pending booking for a specific staff member or "any".

    For "any", free staff are tried in order of fewest bookings that day;
    each attempt is an atomic insert and the first success wins.

    Raises:
        InvalidDate / InvalidRequest: malformed date, time or staff id
        ConfigNotFound: business, service or staff missing
        SlotConflict: no requested staff member can take the slot
    """
    target_date = parse_target_date(data.date)
    start_minutes = parse_start_minutes(data.time)
    staff_id = parse_staff_id(data.staff_id)

    business = get_business(db, data.business_id)
    service = get_service(db, business, data.service_id)
    rules = load_rules(business)
    business_schedule = load_schedule(business.working_hours, f"business {business.id}")
    staff_members = resolve_staff(db, business, service.id, staff_id)
    local = local_now(business, now)
    spec = to_service_spec(service)

    # Friendly pre-check; the insert below is what actually guarantees the slot
    free_staff = []
    first_conflict = None
    for staff in staff_members:
        staff_day = load_staff_day(db, business_schedule, staff, target_date)
        conflict = check_slot(target_date, start_minutes, spec, staff_day, rules, local)
        if conflict.has_conflict:
            first_conflict = first_conflict or conflict
        else:
            free_staff.append(staff)

    if not free_staff:
        reason = first_conflict.conflict_reason if first_conflict else "No staff available"
        if staff_id is None:
            message = "No staff available for this time slot"
        else:
            message = "This time slot is no longer available"
        raise SlotConflict(message, conflict_reason=reason)

    if len(free_staff) > 1:
        free_staff.sort(key=lambda s: (count_staff_bookings(db, s.id, target_date), s.id))

    start = day_start(target_date) + timedelta(minutes=start_minutes)
    expires_at = _utcnow(now) + timedelta(minutes=settings.pending_ttl_minutes)

    for staff in free_staff:
        booking = Bookings(
            business_id=business.id,
            service_id=service.id,
            staff_id=staff.id,
            customer_name=data.customer_name,
            customer_phone=data.customer_phone,
            status="pending",
            expires_at=to_db_datetime(expires_at),
            notes=data.notes,
            **booking_times(start, spec.duration_minutes, spec.buffer_minutes),
        )
        try:
            booking = insert_booking(db, booking)
        except SlotConflict:
            continue

        logger.info(
            f"Booking created: booking_id={booking.id}, business_id={business.id}, "
            f"service={service.name}, staff_id={staff.id}, "
            f"time={target_date} {data.time}"
        )
        emit_event("booking_created", booking_payload(booking))
        return booking

    raise SlotConflict(
        "Someone just booked this slot. Please pick another time.",
        conflict_reason="slot_already_taken",
    )


def update_status(
    db: Session,
    booking_id: int,
    new_status: str,
    reason: str | None = None,
    now: datetime | None = None,
) -> Bookings:
    """
    Move a booking along its lifecycle.

    pending -> confirmed | cancelled
    confirmed -> completed | cancelled | no_show
    """
    booking = get_booking(db, booking_id)
    old_status = booking.status

    if new_status not in ALLOWED_TRANSITIONS.get(old_status, set()):
        raise InvalidTransition(f"Cannot change booking status from {old_status} to {new_status}")

    booking.status = new_status
    booking.updated_at = to_db_datetime(_utcnow(now))
    if new_status == "confirmed":
        booking.expires_at = None
    if new_status == "cancelled":
        booking.cancel_reason = reason
    elif reason:
        booking.notes = f"{booking.notes}\n{reason}" if booking.notes else reason

    db.commit()
    db.refresh(booking)

    logger.info(f"Booking {booking.id} status: {old_status} → {new_status}")
    emit_event("booking_status_changed", {
        **booking_payload(booking),
        "old_status": old_status,
    })
    return booking


def cancel_booking(
    db: Session,
    booking_id: int,
    reason: str | None = None,
    now: datetime | None = None,
) -> Bookings:
    """Customer-facing cancel; frees the slot immediately."""
    booking = get_booking(db, booking_id)
    if booking.status not in ("pending", "confirmed"):
        raise InvalidTransition(f"Booking in status {booking.status} cannot be cancelled")

    booking.status = "cancelled"
    booking.cancel_reason = reason or "Cancelled by customer"
    booking.updated_at = to_db_datetime(_utcnow(now))
    db.commit()
    db.refresh(booking)

    logger.info(f"Booking {booking.id} cancelled: {booking.cancel_reason}")
    emit_event("booking_cancelled", {
        **booking_payload(booking),
        "reason": booking.cancel_reason,
    })
    return booking


def reschedule_booking(
    db: Session,
    booking_id: int,
    new_date: str,
    new_time: str,
    now: datetime | None = None,
) -> Bookings:
    """
    Move an active booking to another start time with the same staff member.

    The booking being moved does not block its own new slot.
    """
    target_date = parse_target_date(new_date)
    start_minutes = parse_start_minutes(new_time)

    booking = get_booking(db, booking_id)
    if booking.status not in ("pending", "confirmed"):
        raise InvalidTransition(f"Booking in status {booking.status} cannot be rescheduled")

    business = get_business(db, booking.business_id)
    service = get_service(db, business, booking.service_id)
    rules = load_rules(business)
    business_schedule = load_schedule(business.working_hours, f"business {business.id}")
    [staff] = resolve_staff(db, business, service.id, booking.staff_id)

    staff_day = load_staff_day(db, business_schedule, staff, target_date)
    conflict = check_slot(
        target_date,
        start_minutes,
        ServiceSpec(
            id=service.id,
            duration_minutes=booking.duration_minutes,
            buffer_minutes=booking.buffer_minutes or 0,
        ),
        staff_day,
        rules,
        local_now(business, now),
        exclude_booking_id=booking.id,
    )
    if conflict.has_conflict:
        raise SlotConflict(
            "This time slot is not available",
            conflict_reason=conflict.conflict_reason,
        )

    old_start = booking.date_start
    start = day_start(target_date) + timedelta(minutes=start_minutes)
    booking = update_booking_times(db, booking, start, now=_utcnow(now))

    logger.info(f"Booking {booking.id} rescheduled: {old_start} → {booking.date_start}")
    emit_event("booking_rescheduled", {
        **booking_payload(booking),
        "old_date_start": old_start,
    })
    return booking
