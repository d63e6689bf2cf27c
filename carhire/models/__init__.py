"""Models package - Pydantic domain models."""

from .booking import (
    ACTIVE_BOOKING_STATUSES,
    Booking,
    BookingStatus,
    BookingWithCar,
    CreateBookingInput,
    PaymentStatus,
)
from .car import Car, CarInput, CarPatch, CarType, Transmission

__all__ = [
    "ACTIVE_BOOKING_STATUSES",
    "Booking",
    "BookingStatus",
    "BookingWithCar",
    "CreateBookingInput",
    "PaymentStatus",
    "Car",
    "CarInput",
    "CarPatch",
    "CarType",
    "Transmission",
]
