"""
Domain errors.

Every error carries the HTTP status it is rendered with. Closed days,
fully booked days and dates outside the booking window are NOT errors:
they are empty availability results.
"""

from fastapi import status


class BookingError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigNotFound(BookingError):
    """Business, service, staff member or booking is missing or inactive."""
    status_code = status.HTTP_404_NOT_FOUND


class ConfigError(BookingError):
    """Stored business/staff configuration cannot be interpreted."""
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class InvalidDate(BookingError):
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidRequest(BookingError):
    status_code = status.HTTP_400_BAD_REQUEST


class SlotConflict(BookingError):
    """The slot cannot be taken at write time."""
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, conflict_reason: str | None = None):
        super().__init__(message)
        self.conflict_reason = conflict_reason


class InvalidTransition(BookingError):
    status_code = status.HTTP_409_CONFLICT
