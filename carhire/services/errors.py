"""Booking error taxonomy.

Each error carries a stable ``code`` and a ``user_message`` that the UI
layer can show as-is.
"""

from typing import Optional


class BookingError(Exception):
    """Base class for booking engine failures."""

    code = "booking_error"
    default_user_message = "Something went wrong with your booking. Please try again."

    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(message)
        self.user_message = user_message or self.default_user_message


class InvalidInput(BookingError):
    """Unparseable date string or malformed required field."""

    code = "invalid_input"
    default_user_message = "Some booking details are invalid. Please check them and try again."


class InvalidDateRange(BookingError):
    """End date is not strictly after the start date."""

    code = "invalid_date_range"
    default_user_message = "The return date must be after the pickup date."


class CarUnavailable(BookingError):
    """Car is already booked for the range, or does not exist."""

    code = "car_unavailable"
    default_user_message = "This car is not available for the selected dates."


class NotFound(BookingError):
    """Booking does not exist."""

    code = "not_found"
    default_user_message = "Booking not found."


class InvalidTransition(BookingError):
    """Requested status change is not allowed from the current state."""

    code = "invalid_transition"
    default_user_message = "This booking can no longer be changed."


class StorageFailure(BookingError):
    """A write did not complete."""

    code = "storage_failure"
    default_user_message = "We couldn't save your booking. Please try again."
