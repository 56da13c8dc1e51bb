"""
Loading the availability snapshot from the database.

Reads business rules, the service, the eligible staff, their bookings and
blocked periods for one date, then hands everything to the calculator.
Nothing here is cached: every request reads a fresh snapshot.
"""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...errors import ConfigError, ConfigNotFound, InvalidDate, InvalidRequest
from ...models import (
    OCCUPYING_STATUSES,
    BlockedSlots,
    Bookings,
    Businesses,
    Services,
    Staff,
    t_staff_services,
)
from .calculator import (
    AvailabilityResult,
    BlockedPeriod,
    ConflictResult,
    ExistingBooking,
    ServiceSpec,
    StaffDay,
    calculate_availability,
    check_slot,
)
from .config import (
    BookingRules,
    day_start,
    from_db_datetime,
    get_default_rules,
    parse_date_str,
    time_str_to_minutes,
    to_db_datetime,
)
from .schedule import Schedule, day_window, parse_schedule

ANY_STAFF = "any"


# ── Request parsing ──────────────────────────────────────────────────────


def parse_staff_id(value: str | int | None) -> int | None:
    """"any" (or empty) -> None, otherwise a positive staff id."""
    if value is None or str(value).strip().lower() in ("", ANY_STAFF):
        return None
    try:
        staff_id = int(value)
    except (TypeError, ValueError) as e:
        raise InvalidRequest(f"staff_id must be 'any' or a numeric id, got {value!r}") from e
    if staff_id <= 0:
        raise InvalidRequest(f"staff_id must be positive, got {staff_id}")
    return staff_id


def parse_target_date(value: str) -> date:
    try:
        return parse_date_str(value)
    except ValueError as e:
        raise InvalidDate(str(e)) from e


def parse_start_minutes(value: str) -> int:
    try:
        minutes = time_str_to_minutes(value)
    except ValueError as e:
        raise InvalidDate(str(e)) from e
    if minutes >= 24 * 60:
        raise InvalidDate(f"Invalid start time: {value!r}")
    return minutes


# ── Configuration ────────────────────────────────────────────────────────


def get_business(db: Session, business_id: int) -> Businesses:
    business = db.get(Businesses, business_id)
    if not business or not business.is_active:
        raise ConfigNotFound(f"Business {business_id} not found")
    return business


def get_service(db: Session, business: Businesses, service_id: int) -> Services:
    service = db.get(Services, service_id)
    if not service or not service.is_active or service.business_id != business.id:
        raise ConfigNotFound(f"Service {service_id} not found or not available")
    if not service.duration_minutes or service.duration_minutes <= 0:
        raise ConfigError(f"Service {service_id} has no valid duration")
    if (service.buffer_minutes or 0) < 0:
        raise ConfigError(f"Service {service_id} has a negative buffer")
    return service


def load_rules(business: Businesses) -> BookingRules:
    """Business rules; unset numeric rules take the configured defaults."""
    defaults = get_default_rules()

    def pick(value, default):
        return default if value is None else value

    try:
        return BookingRules(
            slot_interval_minutes=pick(business.slot_interval_minutes, defaults.slot_interval_minutes),
            min_notice_hours=pick(business.min_notice_hours, defaults.min_notice_hours),
            advance_days=pick(business.advance_days, defaults.advance_days),
            morning_ends=business.morning_ends,
            afternoon_ends=business.afternoon_ends,
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid booking rules for business {business.id}: {e}") from e


def load_schedule(raw, owner: str) -> Schedule:
    try:
        return parse_schedule(raw)
    except ValueError as e:
        raise ConfigError(f"Invalid working hours for {owner}: {e}") from e


def business_timezone(business: Businesses) -> ZoneInfo:
    try:
        return ZoneInfo(business.timezone or "UTC")
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"Unknown timezone {business.timezone!r} for business {business.id}") from e


def local_now(business: Businesses, now: datetime | None = None) -> datetime:
    """Current wall-clock time at the business (naive, business-local)."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(business_timezone(business)).replace(tzinfo=None)


def to_service_spec(service: Services) -> ServiceSpec:
    return ServiceSpec(
        id=service.id,
        duration_minutes=service.duration_minutes,
        buffer_minutes=service.buffer_minutes or 0,
    )


# ── Staff ────────────────────────────────────────────────────────────────


def get_eligible_staff(db: Session, business: Businesses, service_id: int) -> list[Staff]:
    """
    Active staff who provide the service.

    A service without any staff links is offered by all active staff.
    """
    linked = (
        db.query(Staff)
        .join(t_staff_services, Staff.id == t_staff_services.c.staff_id)
        .filter(
            t_staff_services.c.service_id == service_id,
            t_staff_services.c.is_active == 1,
            Staff.business_id == business.id,
            Staff.is_active == 1,
        )
        .order_by(Staff.id)
        .all()
    )
    if linked:
        return linked

    has_links = (
        db.query(t_staff_services.c.staff_id)
        .filter(t_staff_services.c.service_id == service_id)
        .first()
    )
    if has_links:
        return []

    return (
        db.query(Staff)
        .filter(Staff.business_id == business.id, Staff.is_active == 1)
        .order_by(Staff.id)
        .all()
    )


def resolve_staff(
    db: Session,
    business: Businesses,
    service_id: int,
    staff_id: int | None,
) -> list[Staff]:
    """Staff set for a request: one member, or all eligible for "any"."""
    eligible = get_eligible_staff(db, business, service_id)
    if staff_id is None:
        return eligible
    for staff in eligible:
        if staff.id == staff_id:
            return [staff]
    raise ConfigNotFound(f"Staff {staff_id} not found or does not provide this service")


def load_staff_day(
    db: Session,
    business_schedule: Schedule,
    staff: Staff,
    target_date: date,
) -> StaffDay:
    staff_schedule = load_schedule(staff.working_hours, f"staff {staff.id}")
    window = day_window(business_schedule, staff_schedule, target_date.weekday())
    if window is None:
        return StaffDay(staff_id=staff.id, window=None)

    bookings = tuple(
        ExistingBooking(
            id=b.id,
            staff_id=b.staff_id,
            start=from_db_datetime(b.date_start),
            duration_minutes=b.duration_minutes,
            buffer_minutes=b.buffer_minutes or 0,
            status=b.status,
        )
        for b in get_staff_bookings(db, staff.id, target_date)
    )
    blocks = tuple(
        BlockedPeriod(
            id=b.id,
            staff_id=b.staff_id,
            start=day_start(target_date) + timedelta(minutes=time_str_to_minutes(b.start_time)),
            end=day_start(target_date) + timedelta(minutes=time_str_to_minutes(b.end_time)),
            reason=b.reason,
        )
        for b in get_staff_blocked_slots(db, staff.id, target_date)
    )
    return StaffDay(
        staff_id=staff.id,
        window=window,
        bookings=bookings,
        blocks=blocks,
        grid_start=business_schedule[target_date.weekday()].start,
    )


# ── Public API ───────────────────────────────────────────────────────────


def get_availability(
    db: Session,
    business_id: int,
    service_id: int,
    staff_id: int | None,
    target_date: date,
    now: datetime | None = None,
    exclude_booking_id: int | None = None,
) -> AvailabilityResult:
    """
    Slots for a service on a day, for one staff member or "any" (None).

    `now` may be timezone-aware (converted to business time) or naive UTC.
    """
    business = get_business(db, business_id)
    service = get_service(db, business, service_id)
    rules = load_rules(business)
    business_schedule = load_schedule(business.working_hours, f"business {business.id}")
    staff_members = resolve_staff(db, business, service.id, staff_id)
    local = local_now(business, now)

    if not rules.is_date_in_window(target_date, local.date()):
        staff_days = []
    else:
        staff_days = [
            load_staff_day(db, business_schedule, staff, target_date)
            for staff in staff_members
        ]

    return calculate_availability(
        target_date=target_date,
        service=to_service_spec(service),
        staff_days=staff_days,
        rules=rules,
        now=local,
        exclude_booking_id=exclude_booking_id,
    )


def check_slot_availability(
    db: Session,
    business_id: int,
    service_id: int,
    staff_id: int,
    target_date: date,
    start_minutes: int,
    now: datetime | None = None,
    exclude_booking_id: int | None = None,
) -> ConflictResult:
    """Point-in-time check of one start time for one staff member."""
    business = get_business(db, business_id)
    service = get_service(db, business, service_id)
    rules = load_rules(business)
    business_schedule = load_schedule(business.working_hours, f"business {business.id}")
    [staff] = resolve_staff(db, business, service.id, staff_id)

    return check_slot(
        target_date=target_date,
        start_minutes=start_minutes,
        service=to_service_spec(service),
        staff_day=load_staff_day(db, business_schedule, staff, target_date),
        rules=rules,
        now=local_now(business, now),
        exclude_booking_id=exclude_booking_id,
    )


# ── Database helpers ─────────────────────────────────────────────────────


def get_staff_bookings(db: Session, staff_id: int, target_date: date) -> list:
    """
    Occupying bookings that can touch target_date.

    Covers bookings from the previous evening whose buffer runs past
    midnight and early next-day bookings that late candidates can reach.
    """
    range_start = to_db_datetime(day_start(target_date))
    range_end = to_db_datetime(day_start(target_date) + timedelta(days=2))

    return (
        db.query(Bookings)
        .filter(
            Bookings.staff_id == staff_id,
            Bookings.status.in_(OCCUPYING_STATUSES),
            Bookings.blocked_until > range_start,
            Bookings.date_start < range_end,
        )
        .order_by(Bookings.date_start)
        .all()
    )


def get_staff_blocked_slots(db: Session, staff_id: int, target_date: date) -> list:
    return (
        db.query(BlockedSlots)
        .filter(
            BlockedSlots.staff_id == staff_id,
            BlockedSlots.slot_date == target_date.isoformat(),
        )
        .order_by(BlockedSlots.start_time)
        .all()
    )


def count_staff_bookings(db: Session, staff_id: int, target_date: date) -> int:
    return (
        db.query(func.count(Bookings.id))
        .filter(
            Bookings.staff_id == staff_id,
            Bookings.status.in_(OCCUPYING_STATUSES),
            func.date(Bookings.date_start) == target_date.isoformat(),
        )
        .scalar()
    )
