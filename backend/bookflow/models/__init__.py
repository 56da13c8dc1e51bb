from .tables import (
    Base,
    BlockedSlots,
    Bookings,
    Businesses,
    OCCUPYING_STATUSES,
    OVERLAP_TRIGGERS,
    Services,
    Staff,
    t_staff_services,
)

__all__ = [
    "Base",
    "BlockedSlots",
    "Bookings",
    "Businesses",
    "OCCUPYING_STATUSES",
    "OVERLAP_TRIGGERS",
    "Services",
    "Staff",
    "t_staff_services",
]
