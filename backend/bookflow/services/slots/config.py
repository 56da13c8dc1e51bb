"""
Booking rules and time helpers for slots calculation.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from functools import lru_cache

from ...config import settings


VALID_SLOT_STEPS = (15, 30, 60)

_TIME_RE = re.compile(r"^(\d{2}):(\d{2})$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def time_str_to_minutes(value: str) -> int:
    """
    Convert "HH:MM" to minutes since midnight.

    "24:00" is accepted as the end of the day.
    """
    match = _TIME_RE.match(value or "")
    if not match:
        raise ValueError(f"Expected HH:MM, got {value!r}")
    hour, minute = int(match.group(1)), int(match.group(2))
    if minute >= 60 or hour > 24 or (hour == 24 and minute):
        raise ValueError(f"Invalid time of day: {value!r}")
    return hour * 60 + minute


def minutes_to_time_str(minutes: int) -> str:
    """Convert minutes since midnight to "HH:MM"."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def format_time_label(value: str) -> str:
    """"13:30" -> "1:30 PM", "00:00" -> "12:00 AM"."""
    minutes = time_str_to_minutes(value)
    hour, minute = divmod(minutes, 60)
    period = "AM" if hour < 12 else "PM"
    return f"{hour % 12 or 12}:{minute:02d} {period}"


def parse_date_str(value: str) -> date:
    """Strict "YYYY-MM-DD" parsing (raises ValueError)."""
    if not _DATE_RE.match(value or ""):
        raise ValueError(f"Expected YYYY-MM-DD, got {value!r}")
    return date.fromisoformat(value)


def day_start(target_date: date) -> datetime:
    return datetime.combine(target_date, datetime.min.time())


# Bookings store datetimes as "YYYY-MM-DD HH:MM:SS" text (business-local)
DB_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def to_db_datetime(value: datetime) -> str:
    return value.strftime(DB_DATETIME_FORMAT)


def from_db_datetime(value: str) -> datetime:
    return datetime.strptime(value, DB_DATETIME_FORMAT)


@dataclass(frozen=True)
class BookingRules:
    """
    Per-business booking rules.

    Attributes:
        slot_interval_minutes: Step between candidate slot starts (15/30/60)
        min_notice_hours: Minimum hours between now and a bookable start
        advance_days: How many days ahead slots are offered (0 = today only)
        morning_ends: Clock time where the afternoon bucket starts
        afternoon_ends: Clock time where the evening bucket starts
    """
    slot_interval_minutes: int = 30
    min_notice_hours: int = 1
    advance_days: int = 30
    morning_ends: str = "12:00"
    afternoon_ends: str = "17:00"

    def __post_init__(self):
        """Validate rules."""
        if self.slot_interval_minutes not in VALID_SLOT_STEPS:
            raise ValueError(
                f"slot_interval_minutes must be 15, 30, or 60, got {self.slot_interval_minutes}"
            )
        if self.min_notice_hours < 0:
            raise ValueError(f"min_notice_hours must be >= 0, got {self.min_notice_hours}")
        if self.advance_days < 0:
            raise ValueError(f"advance_days must be >= 0, got {self.advance_days}")
        if time_str_to_minutes(self.morning_ends) > time_str_to_minutes(self.afternoon_ends):
            raise ValueError("morning_ends must not be after afternoon_ends")

    def last_bookable_date(self, today: date) -> date:
        return today + timedelta(days=self.advance_days)

    def is_date_in_window(self, target_date: date, today: date) -> bool:
        return today <= target_date <= self.last_bookable_date(today)

    def earliest_start(self, now: datetime) -> datetime:
        """Earliest bookable slot start for the given wall-clock time."""
        return now + timedelta(hours=self.min_notice_hours)

    def period_of(self, minutes: int) -> str:
        """Bucket a slot start (minutes since midnight) into a period."""
        if minutes < time_str_to_minutes(self.morning_ends):
            return "morning"
        if minutes < time_str_to_minutes(self.afternoon_ends):
            return "afternoon"
        return "evening"


@lru_cache
def get_default_rules() -> BookingRules:
    """Rules applied to businesses created without explicit values."""
    return BookingRules(
        slot_interval_minutes=settings.default_slot_interval_minutes,
        min_notice_hours=settings.default_min_notice_hours,
        advance_days=settings.default_advance_days,
    )
