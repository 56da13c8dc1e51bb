"""
Pydantic schemas for availability API.
"""

from datetime import date
from pydantic import BaseModel, Field


class TimeSlotRead(BaseModel):
    time: str  # "HH:MM"
    label: str  # "9:00 AM"
    available: bool

    model_config = {"from_attributes": True}


class SlotsByPeriodRead(BaseModel):
    morning: list[TimeSlotRead] = []
    afternoon: list[TimeSlotRead] = []
    evening: list[TimeSlotRead] = []

    model_config = {"from_attributes": True}


class PeriodCounts(BaseModel):
    morning: int = 0
    afternoon: int = 0
    evening: int = 0


class AvailabilityResponse(BaseModel):
    """Slots for one day, bucketed by period."""
    date: date
    business_id: int
    service_id: int
    staff_id: str = Field(description="'any' or the staff id")

    duration_minutes: int
    buffer_minutes: int
    slot_interval_minutes: int

    slots: SlotsByPeriodRead
    counts: PeriodCounts
    total_available: int


class ConflictResponse(BaseModel):
    """Point-in-time check of a single start time."""
    has_conflict: bool
    conflict_reason: str | None = None
    conflicting_id: int | None = None

    model_config = {"from_attributes": True}
