# backend/bookflow/services/slots/__init__.py
"""
Slots calculation module.

calculator: pure availability calculation over a snapshot
availability: snapshot loading from the database (never cached)
"""

from .config import BookingRules, get_default_rules
from .calculator import (
    AvailabilityResult,
    ConflictResult,
    SlotsByPeriod,
    TimeSlot,
    calculate_availability,
    check_slot,
)
from .availability import check_slot_availability, get_availability

__all__ = [
    "AvailabilityResult",
    "BookingRules",
    "ConflictResult",
    "SlotsByPeriod",
    "TimeSlot",
    "calculate_availability",
    "check_slot",
    "check_slot_availability",
    "get_availability",
    "get_default_rules",
]
