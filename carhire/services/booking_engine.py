"""Booking engine.

Creates reservations, prices them, rejects double bookings and drives the
booking/payment status transitions.
"""

from datetime import date, datetime
from typing import Any, Callable, Optional, Union

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from carhire.config.settings import Settings
from carhire.logging import get_logger
from carhire.logging.audit import AuditEventType, AuditLogger
from carhire.models.booking import (
    Booking,
    BookingStatus,
    BookingWithCar,
    CreateBookingInput,
    PaymentStatus,
    new_booking_id,
)
from carhire.services.errors import (
    CarUnavailable,
    InvalidDateRange,
    InvalidInput,
    InvalidTransition,
    NotFound,
    StorageFailure,
)
from carhire.services.locks import KeyedLockRegistry
from carhire.services.pricing import (
    format_reference,
    local_midnight,
    parse_calendar_date,
    reference_day_prefix,
    rental_days,
    resolve_timezone,
    total_price,
)
from carhire.storage.booking_repo import SqlBookingRepository
from carhire.storage.car_repo import SqlCarRepository
from carhire.storage.database import Database
from carhire.storage.db_models import utcnow

logger = get_logger(__name__)


class BookingEngine:
    """Reservation rules on top of the local store."""

    def __init__(
        self,
        database: Database,
        settings: Settings,
        locks: Optional[KeyedLockRegistry] = None,
        booking_repo_factory: Callable[[AsyncSession], SqlBookingRepository] = SqlBookingRepository,
        car_repo_factory: Callable[[AsyncSession], SqlCarRepository] = SqlCarRepository,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize booking engine.

        Args:
            database: Connected store
            settings: Reference prefix and local timezone come from here
            locks: Lock registry serializing writes (a private one if omitted)
            booking_repo_factory: Builds a booking repository for a session
            car_repo_factory: Builds a car repository for a session
            clock: Returns the current aware UTC time
        """
        self.database = database
        self.locks = locks if locks is not None else KeyedLockRegistry()
        self.booking_repo_factory = booking_repo_factory
        self.car_repo_factory = car_repo_factory
        self.clock = clock
        self.reference_prefix = settings.booking_reference_prefix
        self.timezone = resolve_timezone(settings.local_timezone)

    async def create_booking(
        self, booking_input: Union[CreateBookingInput, dict[str, Any]]
    ) -> Booking:
        """
        Create a pending reservation.

        Args:
            booking_input: Car, date strings and optional pickup, notes,
                payment status and explicit daily price

        Returns:
            The booking as stored

        Raises:
            InvalidInput: Unparseable dates or malformed fields
            InvalidDateRange: End date not after start date
            CarUnavailable: Overlapping active booking, or unknown car
            StorageFailure: The insert did not complete
        """
        request = self._validate_input(booking_input)
        start_day, end_day = self._parse_range(request.start_date, request.end_date)
        start, end = self._to_instants(start_day, end_day)
        days = rental_days(start_day, end_day)

        async with self.locks.acquire_car_lock(request.car_id):
            try:
                booking_id = await self._insert_booking(request, start, end, days)
            except IntegrityError as e:
                if request.price_per_day is not None and not await self._car_exists(request.car_id):
                    raise CarUnavailable(f"Car not found: {request.car_id}") from e
                logger.error("booking_insert_failed", car_id=request.car_id, error=str(e.orig))
                raise StorageFailure(f"Booking insert failed for car {request.car_id}") from e

        booking = await self.get_booking(booking_id)
        if booking is None:
            raise StorageFailure(f"Booking {booking_id} missing after insert")

        AuditLogger.log_booking_created(
            actor_id=booking.user_id,
            booking_id=booking.id,
            booking_reference=booking.booking_reference,
            car_id=booking.car_id,
            total_price=booking.total_price,
        )
        logger.info(
            "booking_created",
            booking_id=booking.id,
            booking_reference=booking.booking_reference,
            car_id=booking.car_id,
            rental_days=booking.rental_days,
            total_price=str(booking.total_price),
            payment_status=booking.payment_status.value,
        )
        return booking

    async def _insert_booking(
        self,
        request: CreateBookingInput,
        start: datetime,
        end: datetime,
        days: int,
    ) -> str:
        """Availability check, pricing and insert. Caller holds the car lock."""
        async with self.database.session() as session:
            bookings = self.booking_repo_factory(session)

            if await bookings.count_overlapping(request.car_id, start, end) > 0:
                logger.info(
                    "booking_rejected_overlap",
                    car_id=request.car_id,
                    start_date=start.isoformat(),
                    end_date=end.isoformat(),
                )
                raise CarUnavailable(
                    f"Car {request.car_id} is already booked between {start.date()} and {end.date()}"
                )

            price_per_day = request.price_per_day
            if price_per_day is None:
                car = await self.car_repo_factory(session).get_by_id(request.car_id)
                if car is None:
                    raise CarUnavailable(f"Car not found: {request.car_id}")
                price_per_day = car.price_per_day

            async with self.locks.acquire_reference_lock():
                now = self.clock()
                day_prefix = reference_day_prefix(self.reference_prefix, now)
                sequence = await bookings.max_reference_sequence(day_prefix) + 1

                draft = Booking(
                    id=new_booking_id(),
                    booking_reference=format_reference(day_prefix, sequence),
                    user_id=request.user_id,
                    car_id=request.car_id,
                    start_date=start,
                    end_date=end,
                    pickup_location=request.pickup_location,
                    notes=request.notes,
                    price_per_day=price_per_day,
                    total_price=total_price(price_per_day, days),
                    rental_days=days,
                    booking_status=BookingStatus.PENDING,
                    payment_status=request.payment_status or PaymentStatus.NOT_REQUIRED,
                    refund_required=False,
                    created_at=now,
                    updated_at=now,
                    canceled_at=None,
                )
                await bookings.create(draft)
                # Commit before the next caller counts today's references
                await session.commit()

        return draft.id

    async def cancel_booking(self, booking_id: str) -> Booking:
        """
        Cancel a pending or confirmed booking.

        A refund is flagged when the booking had been paid.

        Raises:
            NotFound: No such booking
            InvalidTransition: Booking is already canceled or completed
        """
        async with self.locks.acquire_booking_lock(booking_id):
            async with self.database.session() as session:
                repo = self.booking_repo_factory(session)
                booking = await self._require_booking(repo, booking_id)

                if not booking.is_cancellable:
                    logger.warning(
                        "booking_cancel_rejected",
                        booking_id=booking_id,
                        booking_status=booking.booking_status.value,
                    )
                    raise InvalidTransition(
                        f"Cannot cancel booking with status: {booking.booking_status.value}",
                        "This booking can no longer be canceled.",
                    )

                now = self.clock()
                refund_required = booking.payment_status == PaymentStatus.PAID
                updated = await self._write(
                    repo,
                    booking,
                    booking_status=BookingStatus.CANCELED,
                    canceled_at=now,
                    updated_at=now,
                    refund_required=refund_required,
                )

        AuditLogger.log_booking_canceled(
            actor_id=updated.user_id,
            booking_id=booking_id,
            refund_required=refund_required,
        )
        return updated

    async def simulate_payment(self, booking_id: str) -> Booking:
        """
        Mark a booking as paid without a payment gateway.

        Pending bookings are confirmed on payment. Already paid bookings are
        returned untouched.

        Raises:
            NotFound: No such booking
        """
        async with self.locks.acquire_booking_lock(booking_id):
            async with self.database.session() as session:
                repo = self.booking_repo_factory(session)
                booking = await self._require_booking(repo, booking_id)

                if booking.payment_status == PaymentStatus.PAID:
                    logger.debug("payment_already_recorded", booking_id=booking_id)
                    return booking

                booking_status = booking.booking_status
                if booking_status == BookingStatus.PENDING:
                    booking_status = BookingStatus.CONFIRMED

                updated = await self._write(
                    repo,
                    booking,
                    payment_status=PaymentStatus.PAID,
                    booking_status=booking_status,
                    refund_required=False,
                    updated_at=self.clock(),
                )

        AuditLogger.log_payment_simulated(
            actor_id=updated.user_id,
            booking_id=booking_id,
            previous_payment_status=booking.payment_status.value,
            booking_status=updated.booking_status.value,
        )
        return updated

    async def update_booking_status(
        self, booking_id: str, status: Union[BookingStatus, str]
    ) -> Booking:
        """Set booking status directly.

        Administrative backdoor: no transition rules are checked and no
        other field besides updated_at changes.
        """
        new_status = self._coerce_enum(BookingStatus, status, "booking_status")
        return await self._override(
            booking_id,
            "booking_status",
            new_status,
            AuditEventType.BOOKING_STATUS_OVERRIDDEN,
        )

    async def update_payment_status(
        self, booking_id: str, status: Union[PaymentStatus, str]
    ) -> Booking:
        """Set payment status directly. Same backdoor semantics as update_booking_status."""
        new_status = self._coerce_enum(PaymentStatus, status, "payment_status")
        return await self._override(
            booking_id,
            "payment_status",
            new_status,
            AuditEventType.PAYMENT_STATUS_OVERRIDDEN,
        )

    async def _override(
        self,
        booking_id: str,
        field: str,
        value: Union[BookingStatus, PaymentStatus],
        event_type: AuditEventType,
    ) -> Booking:
        async with self.locks.acquire_booking_lock(booking_id):
            async with self.database.session() as session:
                repo = self.booking_repo_factory(session)
                booking = await self._require_booking(repo, booking_id)
                old_value = getattr(booking, field)
                updated = await self._write(repo, booking, **{field: value, "updated_at": self.clock()})

        AuditLogger.log_status_override(
            event_type=event_type,
            actor_id=updated.user_id,
            booking_id=booking_id,
            field=field,
            old_value=old_value.value,
            new_value=value.value,
        )
        return updated

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        """Find a booking by ID."""
        async with self.database.session() as session:
            return await self.booking_repo_factory(session).get_by_id(booking_id)

    async def get_booking_with_car(self, booking_id: str) -> Optional[BookingWithCar]:
        """Find a booking with its car's name, image and type."""
        async with self.database.session() as session:
            return await self.booking_repo_factory(session).get_with_car(booking_id)

    async def list_bookings(self, user_id: Optional[str] = None) -> list[Booking]:
        """Bookings newest first; all of them when no user is given."""
        async with self.database.session() as session:
            return await self.booking_repo_factory(session).get_all(user_id)

    async def list_bookings_with_car(self, user_id: Optional[str] = None) -> list[BookingWithCar]:
        """Bookings with car display fields, newest first."""
        async with self.database.session() as session:
            return await self.booking_repo_factory(session).get_all_with_car(user_id)

    async def list_bookings_for_car(self, car_id: str) -> list[Booking]:
        """All bookings of one car, newest first."""
        async with self.database.session() as session:
            return await self.booking_repo_factory(session).get_by_car(car_id)

    async def is_car_available(self, car_id: str, start_date: str, end_date: str) -> bool:
        """Check whether no active booking of the car overlaps the date range."""
        start, end = self._to_instants(*self._parse_range(start_date, end_date))
        async with self.database.session() as session:
            overlapping = await self.booking_repo_factory(session).count_overlapping(car_id, start, end)
        return overlapping == 0

    async def delete_booking(self, booking_id: str) -> bool:
        """Hard delete. Development escape hatch only."""
        async with self.locks.acquire_booking_lock(booking_id):
            async with self.database.session() as session:
                deleted = await self.booking_repo_factory(session).delete(booking_id)

        if deleted:
            AuditLogger.log_deleted(AuditEventType.BOOKING_DELETED, "booking", booking_id)
        return deleted

    def _validate_input(
        self, booking_input: Union[CreateBookingInput, dict[str, Any]]
    ) -> CreateBookingInput:
        if isinstance(booking_input, CreateBookingInput):
            return booking_input
        try:
            return CreateBookingInput.model_validate(booking_input)
        except ValidationError as e:
            fields = ", ".join(".".join(str(part) for part in err["loc"]) for err in e.errors())
            raise InvalidInput(f"Invalid booking input: {fields}") from e

    @staticmethod
    def _parse_range(start_date: str, end_date: str) -> tuple[date, date]:
        start_day = parse_calendar_date(start_date, "start_date")
        end_day = parse_calendar_date(end_date, "end_date")

        if end_day <= start_day:
            raise InvalidDateRange(f"end_date {end_date} is not after start_date {start_date}")

        return start_day, end_day

    def _to_instants(self, start_day: date, end_day: date) -> tuple[datetime, datetime]:
        return local_midnight(start_day, self.timezone), local_midnight(end_day, self.timezone)

    @staticmethod
    def _coerce_enum(enum_cls, value, field: str):
        try:
            return enum_cls(value)
        except ValueError as e:
            raise InvalidInput(f"Invalid {field}: {value!r}") from e

    async def _require_booking(self, repo: SqlBookingRepository, booking_id: str) -> Booking:
        booking = await repo.get_by_id(booking_id)
        if booking is None:
            raise NotFound(f"Booking not found: {booking_id}")
        return booking

    async def _write(self, repo: SqlBookingRepository, booking: Booking, **changes: Any) -> Booking:
        updated = booking.model_copy(update=changes)
        if not await repo.update(updated):
            raise StorageFailure(f"Booking update affected no rows: {booking.id}")

        stored = await repo.get_by_id(booking.id)
        if stored is None:
            raise StorageFailure(f"Booking {booking.id} missing after update")
        return stored

    async def _car_exists(self, car_id: str) -> bool:
        async with self.database.session() as session:
            return await self.car_repo_factory(session).get_by_id(car_id) is not None
