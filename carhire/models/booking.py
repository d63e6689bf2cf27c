"""Booking (reservation) domain models."""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator


def new_booking_id() -> str:
    """Generate an opaque booking identifier."""
    return f"booking_{uuid4().hex}"


class BookingStatus(str, Enum):
    """Reservation lifecycle status."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELED = "canceled"
    COMPLETED = "completed"


class PaymentStatus(str, Enum):
    """Payment state of a reservation."""

    NOT_REQUIRED = "not_required"
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


# Statuses that hold the car for their date range
ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


class Booking(BaseModel):
    """Reservation of a car over a date range."""

    id: str = Field(default_factory=new_booking_id)
    booking_reference: str = Field(description="Customer-facing reference (e.g., GZT-20240301-0001)")
    user_id: Optional[str] = None
    car_id: str
    start_date: datetime = Field(description="Rental start, local midnight")
    end_date: datetime = Field(description="Rental end, local midnight")
    pickup_location: Optional[str] = None
    notes: Optional[str] = None
    price_per_day: Decimal = Field(ge=0, description="Daily rate at booking time")
    total_price: Decimal = Field(ge=0)
    rental_days: int = Field(ge=1)
    booking_status: BookingStatus = BookingStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.NOT_REQUIRED
    refund_required: bool = False
    created_at: datetime
    updated_at: datetime
    canceled_at: Optional[datetime] = None
    synced: int = 0

    @property
    def is_cancellable(self) -> bool:
        """Check if the booking can still be canceled."""
        return self.booking_status in ACTIVE_BOOKING_STATUSES


class BookingWithCar(Booking):
    """Booking joined with the car fields shown in booking lists."""

    car_name: str
    car_image: str
    car_type: str


class CreateBookingInput(BaseModel):
    """Raw booking request as collected from the user."""

    car_id: str = Field(min_length=1)
    user_id: Optional[str] = None
    start_date: str = Field(description="Calendar date, YYYY-MM-DD")
    end_date: str = Field(description="Calendar date, YYYY-MM-DD")
    pickup_location: Optional[str] = None
    notes: Optional[str] = None
    payment_status: Optional[PaymentStatus] = None
    price_per_day: Optional[Decimal] = Field(default=None, ge=0)

    @field_validator("car_id")
    @classmethod
    def strip_car_id(cls, v: str) -> str:
        """Reject blank car ids."""
        v = v.strip()
        if not v:
            raise ValueError("car_id must not be blank")
        return v

    @field_validator("price_per_day")
    @classmethod
    def round_to_cents(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        """Round the daily rate to cents, the precision it is stored with."""
        if v is None:
            return None
        return v.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    @field_validator("pickup_location", "notes")
    @classmethod
    def empty_to_none(cls, v: Optional[str]) -> Optional[str]:
        """Trim free text and store blanks as null."""
        if v is None:
            return None
        v = v.strip()
        return v or None
