"""SQLAlchemy database models.

Maps domain models to the local SQLite tables.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    TypeDecorator,
)
from sqlalchemy.orm import DeclarativeBase, relationship

from carhire.models.booking import BookingStatus, PaymentStatus
from carhire.models.car import CarType, Transmission


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Stores instants as naive UTC and returns them as aware UTC."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class CarTable(Base):
    """Car catalog table."""

    __tablename__ = "cars"

    id = Column(String(64), primary_key=True)
    name = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    image = Column(String(500), nullable=False)
    price_per_day = Column(Numeric(10, 2), nullable=False)
    type = Column(Enum(CarType, native_enum=False, values_callable=_enum_values), nullable=False)
    description = Column(Text, nullable=False)
    capacity = Column(Integer, nullable=False)
    transmission = Column(
        Enum(Transmission, native_enum=False, values_callable=_enum_values),
        nullable=False,
    )
    features = Column(JSON, nullable=False, default=list)
    available = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    bookings = relationship("BookingTable", back_populates="car", cascade="all, delete-orphan", passive_deletes=True)

    __table_args__ = (
        CheckConstraint("price_per_day >= 0", name="check_nonnegative_price"),
        CheckConstraint("capacity > 0", name="check_positive_capacity"),
        Index("ix_cars_available", available),
    )


class BookingTable(Base):
    """Booking (reservation) table."""

    __tablename__ = "bookings"

    id = Column(String(64), primary_key=True)
    booking_reference = Column(String(32), nullable=False)
    user_id = Column(String(64), nullable=True)
    car_id = Column(String(64), ForeignKey("cars.id", ondelete="CASCADE"), nullable=False)
    start_date = Column(UTCDateTime, nullable=False)
    end_date = Column(UTCDateTime, nullable=False)
    pickup_location = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    price_per_day = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(12, 2), nullable=False)
    rental_days = Column(Integer, nullable=False)
    booking_status = Column(
        Enum(BookingStatus, native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=BookingStatus.PENDING,
    )
    payment_status = Column(
        Enum(PaymentStatus, native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=PaymentStatus.NOT_REQUIRED,
    )
    refund_required = Column(Boolean, nullable=False, default=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow)
    canceled_at = Column(UTCDateTime, nullable=True)
    # Reserved for server sync; the core never reads it
    synced = Column(Integer, nullable=False, default=0)

    # Relationships
    car = relationship("CarTable", back_populates="bookings")

    __table_args__ = (
        CheckConstraint("end_date > start_date", name="check_date_range"),
        CheckConstraint("rental_days >= 1", name="check_positive_rental_days"),
        CheckConstraint("total_price >= 0", name="check_nonnegative_total_price"),
        Index("ix_bookings_user_id", user_id),
        Index("ix_bookings_car_id", car_id),
        Index("ix_bookings_car_status", car_id, booking_status),
        Index("ix_bookings_reference", booking_reference, unique=True),
    )
