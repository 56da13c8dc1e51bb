# backend/bookflow/schemas/blocked_slots.py

from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, field_validator, model_validator

from ..services.slots.config import time_str_to_minutes


class BlockedSlotCreate(BaseModel):
    staff_id: int
    slot_date: date

    start_time: str
    end_time: str

    reason: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        time_str_to_minutes(v)
        return v

    @model_validator(mode="after")
    def validate_range(self):
        if time_str_to_minutes(self.start_time) >= time_str_to_minutes(self.end_time):
            raise ValueError("start_time must be before end_time")
        return self


class BlockedSlotRead(BaseModel):
    id: int

    staff_id: int
    slot_date: date

    start_time: str
    end_time: str

    reason: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
