"""SQL repository for Booking entities."""

from datetime import datetime
from typing import Optional

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from carhire.logging import get_logger
from carhire.models.booking import ACTIVE_BOOKING_STATUSES, Booking, BookingWithCar
from carhire.storage.db_models import BookingTable, CarTable
from carhire.storage.repository_base import RepositoryBase

logger = get_logger(__name__)


class SqlBookingRepository(RepositoryBase[Booking]):
    """Booking repository backed by SQLAlchemy."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        self.session = session

    async def get_by_id(self, id: str) -> Optional[Booking]:
        """Retrieve booking by ID."""
        stmt = select(BookingTable).where(BookingTable.id == id).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        db_booking = result.scalar_one_or_none()

        if not db_booking:
            return None

        return self._to_domain_model(db_booking)

    async def get_by_reference(self, booking_reference: str) -> Optional[Booking]:
        """Get booking by customer-facing reference."""
        stmt = select(BookingTable).where(BookingTable.booking_reference == booking_reference)
        result = await self.session.execute(stmt)
        db_booking = result.scalar_one_or_none()

        if not db_booking:
            return None

        return self._to_domain_model(db_booking)

    async def get_with_car(self, id: str) -> Optional[BookingWithCar]:
        """Retrieve booking joined with its car's display fields."""
        stmt = self._with_car_query().where(BookingTable.id == id)
        result = await self.session.execute(stmt)
        row = result.one_or_none()

        if not row:
            return None

        return self._to_with_car_model(*row)

    async def create(self, entity: Booking) -> Booking:
        """Insert a fully prepared booking."""
        db_booking = BookingTable(
            id=entity.id,
            booking_reference=entity.booking_reference,
            user_id=entity.user_id,
            car_id=entity.car_id,
            start_date=entity.start_date,
            end_date=entity.end_date,
            pickup_location=entity.pickup_location,
            notes=entity.notes,
            price_per_day=entity.price_per_day,
            total_price=entity.total_price,
            rental_days=entity.rental_days,
            booking_status=entity.booking_status,
            payment_status=entity.payment_status,
            refund_required=entity.refund_required,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
            canceled_at=entity.canceled_at,
            synced=entity.synced,
        )

        self.session.add(db_booking)
        await self.session.flush()

        logger.info(
            "booking_inserted",
            booking_id=entity.id,
            booking_reference=entity.booking_reference,
            car_id=entity.car_id,
        )

        return self._to_domain_model(db_booking)

    async def update(self, entity: Booking) -> bool:
        """Write the mutable state of a booking.

        Identity, dates and the price snapshot are never rewritten.
        Returns False when no row was affected.
        """
        stmt = (
            update(BookingTable)
            .where(BookingTable.id == entity.id)
            .values(
                booking_status=entity.booking_status,
                payment_status=entity.payment_status,
                refund_required=entity.refund_required,
                canceled_at=entity.canceled_at,
                updated_at=entity.updated_at,
            )
        )
        result = await self.session.execute(stmt)

        if result.rowcount == 0:
            logger.warning("booking_update_no_rows", booking_id=entity.id)
            return False

        logger.info(
            "booking_updated",
            booking_id=entity.id,
            booking_status=entity.booking_status.value,
            payment_status=entity.payment_status.value,
        )
        return True

    async def delete(self, id: str) -> bool:
        """Delete booking by ID."""
        stmt = select(BookingTable).where(BookingTable.id == id)
        result = await self.session.execute(stmt)
        db_booking = result.scalar_one_or_none()

        if not db_booking:
            return False

        await self.session.delete(db_booking)
        await self.session.flush()

        logger.info("booking_deleted", booking_id=id)

        return True

    async def get_all(self, user_id: Optional[str] = None) -> list[Booking]:
        """Get bookings, newest first, optionally for one user."""
        stmt = select(BookingTable)
        if user_id is not None:
            stmt = stmt.where(BookingTable.user_id == user_id)
        stmt = stmt.order_by(BookingTable.created_at.desc())

        result = await self.session.execute(stmt)

        return [self._to_domain_model(db_booking) for db_booking in result.scalars().all()]

    async def get_all_with_car(self, user_id: Optional[str] = None) -> list[BookingWithCar]:
        """Get bookings joined with car display fields, newest first."""
        stmt = self._with_car_query()
        if user_id is not None:
            stmt = stmt.where(BookingTable.user_id == user_id)
        stmt = stmt.order_by(BookingTable.created_at.desc())

        result = await self.session.execute(stmt)

        return [self._to_with_car_model(*row) for row in result.all()]

    async def get_by_car(self, car_id: str) -> list[Booking]:
        """Get all bookings for a car, newest first."""
        stmt = (
            select(BookingTable)
            .where(BookingTable.car_id == car_id)
            .order_by(BookingTable.created_at.desc())
        )
        result = await self.session.execute(stmt)

        return [self._to_domain_model(db_booking) for db_booking in result.scalars().all()]

    async def count_overlapping(self, car_id: str, start: datetime, end: datetime) -> int:
        """Count active bookings of a car that touch [start, end].

        Both boundaries are inclusive, so a booking ending on the day a new
        one starts counts as overlapping.
        """
        stmt = (
            select(func.count())
            .select_from(BookingTable)
            .where(BookingTable.car_id == car_id)
            .where(BookingTable.booking_status.in_(ACTIVE_BOOKING_STATUSES))
            .where(
                or_(
                    and_(BookingTable.start_date <= start, BookingTable.end_date >= start),
                    and_(BookingTable.start_date <= end, BookingTable.end_date >= end),
                    and_(BookingTable.start_date >= start, BookingTable.end_date <= end),
                )
            )
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def max_reference_sequence(self, prefix: str) -> int:
        """Highest numeric suffix among references with the given prefix, 0 if none.

        Suffixes are compared as integers since they widen past 9999.
        """
        stmt = select(BookingTable.booking_reference).where(
            BookingTable.booking_reference.startswith(prefix, autoescape=True)
        )
        result = await self.session.execute(stmt)

        highest = 0
        for reference in result.scalars():
            suffix = reference[len(prefix):]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        return highest

    def _with_car_query(self):
        return select(BookingTable, CarTable.name, CarTable.image, CarTable.type).join(
            CarTable, BookingTable.car_id == CarTable.id
        )

    def _to_with_car_model(
        self, db_booking: BookingTable, car_name: str, car_image: str, car_type
    ) -> BookingWithCar:
        booking = self._to_domain_model(db_booking)
        return BookingWithCar(
            **booking.model_dump(),
            car_name=car_name,
            car_image=car_image,
            car_type=getattr(car_type, "value", car_type),
        )

    def _to_domain_model(self, db_booking: BookingTable) -> Booking:
        """Convert database model to domain model."""
        return Booking(
            id=db_booking.id,
            booking_reference=db_booking.booking_reference,
            user_id=db_booking.user_id,
            car_id=db_booking.car_id,
            start_date=db_booking.start_date,
            end_date=db_booking.end_date,
            pickup_location=db_booking.pickup_location,
            notes=db_booking.notes,
            price_per_day=db_booking.price_per_day,
            total_price=db_booking.total_price,
            rental_days=db_booking.rental_days,
            booking_status=db_booking.booking_status,
            payment_status=db_booking.payment_status,
            refund_required=db_booking.refund_required,
            created_at=db_booking.created_at,
            updated_at=db_booking.updated_at,
            canceled_at=db_booking.canceled_at,
            synced=db_booking.synced,
        )
