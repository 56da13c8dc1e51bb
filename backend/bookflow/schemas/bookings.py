# backend/bookflow/schemas/bookings.py

import re
from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field, field_validator

_PHONE_RE = re.compile(r"^\+?\d{7,15}$")

BookingStatus = Literal["pending", "confirmed", "completed", "cancelled", "no_show"]


class BookingCreate(BaseModel):
    business_id: int
    service_id: int
    staff_id: str | int = "any"

    # Validated by the booking service so malformed values map to InvalidDate
    date: str = Field(description="YYYY-MM-DD, business-local")
    time: str = Field(description="HH:MM, business-local")

    customer_name: str
    customer_phone: str
    notes: Optional[str] = None

    @field_validator("customer_name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v

    @field_validator("customer_phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        v = re.sub(r"[\s\-()]", "", v)
        if not _PHONE_RE.match(v):
            raise ValueError("Enter a valid mobile number")
        return v


class BookingRead(BaseModel):
    id: int

    business_id: int
    service_id: int
    staff_id: int

    customer_name: str
    customer_phone: str

    date_start: datetime
    date_end: datetime

    duration_minutes: int
    buffer_minutes: int

    status: str
    expires_at: Optional[datetime] = None
    notes: Optional[str] = None
    cancel_reason: Optional[str] = None

    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BookingStatusUpdate(BaseModel):
    status: BookingStatus
    reason: Optional[str] = None


class BookingCancel(BaseModel):
    reason: Optional[str] = None


class BookingReschedule(BaseModel):
    date: str
    time: str
