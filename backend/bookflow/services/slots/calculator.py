"""
Availability calculation over an immutable snapshot.

No database, no clock: callers pass the working windows, bookings and
blocks of every staff member together with `now` (business-local).
The same snapshot always produces the same result.

A candidate start S is available for a staff member iff
  [S, S + duration + buffer) overlaps no occupying booking's
  [start, start + duration + buffer) and no blocked period,
  S + duration <= window end,
  S >= now + min_notice_hours.
Candidates before the min-notice cutoff are not listed at all.
Starts lie on a grid anchored at the business opening time.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from ...models import OCCUPYING_STATUSES
from .config import BookingRules, day_start, format_time_label, minutes_to_time_str
from .schedule import TimeRange

logger = logging.getLogger(__name__)

PERIODS = ("morning", "afternoon", "evening")


# ── Snapshot types ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class ServiceSpec:
    id: int
    duration_minutes: int
    buffer_minutes: int = 0

    @property
    def occupied_minutes(self) -> int:
        return self.duration_minutes + self.buffer_minutes


@dataclass(frozen=True)
class ExistingBooking:
    id: int
    staff_id: int
    start: datetime
    duration_minutes: int
    buffer_minutes: int = 0
    status: str = "confirmed"

    @property
    def occupies(self) -> bool:
        return self.status in OCCUPYING_STATUSES

    @property
    def blocked_until(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes + self.buffer_minutes)


@dataclass(frozen=True)
class BlockedPeriod:
    id: int
    staff_id: int
    start: datetime
    end: datetime
    reason: str | None = None


@dataclass(frozen=True)
class StaffDay:
    """One staff member's working window, bookings and blocks for a date."""
    staff_id: int
    window: TimeRange | None
    bookings: tuple[ExistingBooking, ...] = ()
    blocks: tuple[BlockedPeriod, ...] = ()
    # Business opening time (minutes) the slot grid is anchored to
    grid_start: int | None = None

    def first_start(self, step: int) -> int:
        """First grid point at or after the window start."""
        origin = self.window.start if self.grid_start is None else self.grid_start
        steps = -(-(self.window.start - origin) // step)
        return origin + steps * step


# ── Result types ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class TimeSlot:
    time: str  # "HH:MM"
    label: str  # "9:00 AM"
    available: bool


@dataclass(frozen=True)
class SlotsByPeriod:
    morning: tuple[TimeSlot, ...] = ()
    afternoon: tuple[TimeSlot, ...] = ()
    evening: tuple[TimeSlot, ...] = ()

    def counts(self) -> dict[str, int]:
        return {
            period: sum(1 for s in getattr(self, period) if s.available)
            for period in PERIODS
        }

    def all_slots(self) -> list[TimeSlot]:
        return [*self.morning, *self.afternoon, *self.evening]


@dataclass(frozen=True)
class AvailabilityResult:
    date: date
    service: ServiceSpec
    slot_interval_minutes: int
    slots: SlotsByPeriod = field(default_factory=SlotsByPeriod)
    total_available: int = 0


@dataclass(frozen=True)
class ConflictResult:
    has_conflict: bool
    conflict_reason: str | None = None
    conflicting_id: int | None = None


NO_CONFLICT = ConflictResult(has_conflict=False)


# ── Conflict checks ──────────────────────────────────────────────────────


def check_booking_conflicts(
    start: datetime,
    end: datetime,
    bookings: tuple[ExistingBooking, ...] | list[ExistingBooking],
    exclude_booking_id: int | None = None,
) -> ConflictResult:
    """Check [start, end) against the occupied intervals of bookings."""
    for b in bookings:
        if not b.occupies or b.id == exclude_booking_id:
            continue
        if start < b.blocked_until and b.start < end:
            return ConflictResult(
                has_conflict=True,
                conflict_reason=f"Overlaps with existing booking at {b.start:%H:%M}",
                conflicting_id=b.id,
            )
    return NO_CONFLICT


def check_blocked_conflicts(
    start: datetime,
    end: datetime,
    blocks: tuple[BlockedPeriod, ...] | list[BlockedPeriod],
) -> ConflictResult:
    """Check [start, end) against blocked periods."""
    for b in blocks:
        if start < b.end and b.start < end:
            return ConflictResult(
                has_conflict=True,
                conflict_reason=(
                    f"Blocked: {b.reason or 'staff unavailable'} "
                    f"({b.start:%H:%M}-{b.end:%H:%M})"
                ),
                conflicting_id=b.id,
            )
    return NO_CONFLICT


def find_overlaps(bookings) -> list[tuple[int, int]]:
    """Pairs of occupying bookings (same staff) whose intervals overlap."""
    active = sorted(
        (b for b in bookings if b.occupies),
        key=lambda b: (b.staff_id, b.start),
    )
    pairs = []
    for i, first in enumerate(active):
        for second in active[i + 1:]:
            if second.staff_id != first.staff_id or second.start >= first.blocked_until:
                break
            pairs.append((first.id, second.id))
    return pairs


# ── Point-in-time check ──────────────────────────────────────────────────


def check_slot(
    target_date: date,
    start_minutes: int,
    service: ServiceSpec,
    staff_day: StaffDay,
    rules: BookingRules,
    now: datetime,
    exclude_booking_id: int | None = None,
) -> ConflictResult:
    """Explain why a single start time is (not) bookable for one staff member."""
    if not rules.is_date_in_window(target_date, now.date()):
        return ConflictResult(True, "Date is outside the booking window")

    start = day_start(target_date) + timedelta(minutes=start_minutes)
    if start < rules.earliest_start(now):
        return ConflictResult(
            True,
            f"This time slot is too soon (minimum notice {rules.min_notice_hours}h)",
        )

    window = staff_day.window
    if window is None:
        return ConflictResult(True, "Staff is not working on this day")
    if start_minutes < window.start:
        return ConflictResult(True, "Slot is before working hours start")
    if start_minutes + service.duration_minutes > window.end:
        return ConflictResult(True, "Service extends past closing time")

    return _interval_conflict(start, service, staff_day, exclude_booking_id)


def _interval_conflict(
    start: datetime,
    service: ServiceSpec,
    staff_day: StaffDay,
    exclude_booking_id: int | None,
) -> ConflictResult:
    end = start + timedelta(minutes=service.occupied_minutes)
    conflict = check_booking_conflicts(start, end, staff_day.bookings, exclude_booking_id)
    if conflict.has_conflict:
        return conflict
    return check_blocked_conflicts(start, end, staff_day.blocks)


# ── Slot generation ──────────────────────────────────────────────────────


def generate_slots(
    target_date: date,
    service: ServiceSpec,
    staff_day: StaffDay,
    rules: BookingRules,
    now: datetime,
    exclude_booking_id: int | None = None,
) -> dict[int, bool]:
    """
    Candidate starts for one staff member.

    Returns:
        {start_minutes: available} for every start at or after the
        min-notice cutoff whose service fits before closing.
    """
    window = staff_day.window
    if window is None:
        return {}

    base = day_start(target_date)
    cutoff = rules.earliest_start(now)
    step = rules.slot_interval_minutes

    candidates: dict[int, bool] = {}
    t = staff_day.first_start(step)
    while t + service.duration_minutes <= window.end:
        start = base + timedelta(minutes=t)
        if start >= cutoff:
            conflict = _interval_conflict(start, service, staff_day, exclude_booking_id)
            candidates[t] = not conflict.has_conflict
        t += step
    return candidates


def group_slots_by_period(slots: list[TimeSlot], rules: BookingRules) -> SlotsByPeriod:
    """Split a time-ordered slot list into morning / afternoon / evening."""
    buckets: dict[str, list[TimeSlot]] = {period: [] for period in PERIODS}
    for slot in slots:
        hour, minute = slot.time.split(":")
        buckets[rules.period_of(int(hour) * 60 + int(minute))].append(slot)
    return SlotsByPeriod(**{period: tuple(items) for period, items in buckets.items()})


def calculate_availability(
    target_date: date,
    service: ServiceSpec,
    staff_days: list[StaffDay],
    rules: BookingRules,
    now: datetime,
    exclude_booking_id: int | None = None,
) -> AvailabilityResult:
    """
    Calculate the slot list for a day.

    With several staff days ("any" staff), a time is available if at
    least one staff member is free then; which one is decided when the
    booking is created.
    """
    empty = AvailabilityResult(
        date=target_date,
        service=service,
        slot_interval_minutes=rules.slot_interval_minutes,
    )
    if not rules.is_date_in_window(target_date, now.date()):
        return empty

    merged: dict[int, bool] = {}
    for staff_day in staff_days:
        overlaps = find_overlaps(staff_day.bookings)
        if overlaps:
            logger.warning(
                f"Overlapping bookings for staff {staff_day.staff_id} "
                f"on {target_date}: {overlaps}"
            )

        candidates = generate_slots(
            target_date, service, staff_day, rules, now, exclude_booking_id
        )
        for t, available in candidates.items():
            merged[t] = merged.get(t, False) or available

    if not merged:
        return empty

    flat = []
    for t in sorted(merged):
        time_str = minutes_to_time_str(t)
        flat.append(TimeSlot(
            time=time_str,
            label=format_time_label(time_str),
            available=merged[t],
        ))

    return AvailabilityResult(
        date=target_date,
        service=service,
        slot_interval_minutes=rules.slot_interval_minutes,
        slots=group_slots_by_period(flat, rules),
        total_available=sum(1 for s in flat if s.available),
    )
