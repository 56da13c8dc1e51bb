"""
Working-hours schedules.

Schedules are stored as JSON keyed by weekday:

    {"monday": {"start": "09:00", "end": "18:00"}, "sunday": null, ...}

Three-letter keys ("mon") are accepted as well. A missing or null day is
closed. Staff with an empty schedule inherit the business hours; otherwise
the staff day is the intersection with the business day.
"""

import json
from dataclasses import dataclass

from .config import minutes_to_time_str, time_str_to_minutes


DAY_NAMES = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


@dataclass(frozen=True)
class TimeRange:
    """Half-open clock range [start, end) in minutes since midnight."""
    start: int
    end: int

    @classmethod
    def from_strings(cls, start: str, end: str) -> "TimeRange":
        start_min = time_str_to_minutes(start)
        end_min = time_str_to_minutes(end)
        if start_min >= end_min:
            raise ValueError(f"Working hours start {start} must be before end {end}")
        return cls(start_min, end_min)

    def intersect(self, other: "TimeRange") -> "TimeRange | None":
        start = max(self.start, other.start)
        end = min(self.end, other.end)
        if start >= end:
            return None
        return TimeRange(start, end)

    def as_dict(self) -> dict:
        return {"start": minutes_to_time_str(self.start), "end": minutes_to_time_str(self.end)}


Schedule = dict[int, TimeRange | None]


def parse_schedule(raw) -> Schedule:
    """
    Parse a stored schedule into {weekday: TimeRange | None}.

    Accepts a JSON string or an already-decoded dict.
    Raises ValueError on anything it cannot interpret.
    """
    if raw is None or raw == "":
        return {}
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"Working hours are not valid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise ValueError("Working hours must be an object keyed by weekday")

    schedule: Schedule = {}
    for key, value in raw.items():
        weekday = _weekday_index(key)
        if value is None:
            schedule[weekday] = None
        elif isinstance(value, dict) and value.get("start") and value.get("end"):
            schedule[weekday] = TimeRange.from_strings(value["start"], value["end"])
        else:
            raise ValueError(f"Invalid working hours for {key!r}: {value!r}")
    return schedule


def _weekday_index(key: str) -> int:
    name = str(key).strip().lower()
    for i, day in enumerate(DAY_NAMES):
        if name == day or name == day[:3]:
            return i
    raise ValueError(f"Unknown weekday {key!r}")


def day_window(
    business_schedule: Schedule,
    staff_schedule: Schedule,
    weekday: int,
) -> TimeRange | None:
    """Effective working window of a staff member on a weekday (None = closed)."""
    window = business_schedule.get(weekday)
    if window is None:
        return None
    if not staff_schedule:
        return window
    staff_window = staff_schedule.get(weekday)
    if staff_window is None:
        return None
    return window.intersect(staff_window)
