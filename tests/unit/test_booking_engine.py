"""Unit tests for the booking engine.

Tests the BookingEngine rules in isolation using mock repositories so no
store is touched.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from carhire.config.settings import Settings
from carhire.models.booking import Booking, BookingStatus, PaymentStatus
from carhire.models.car import Car, CarType, Transmission
from carhire.services.booking_engine import BookingEngine
from carhire.services.errors import (
    CarUnavailable,
    InvalidDateRange,
    InvalidInput,
    InvalidTransition,
    NotFound,
    StorageFailure,
)

NOW = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


class FakeDatabase:
    """Database stand-in handing out one mock session."""

    def __init__(self):
        self.session_obj = MagicMock()
        self.session_obj.commit = AsyncMock()
        self.sessions_opened = 0

    @asynccontextmanager
    async def session(self):
        self.sessions_opened += 1
        yield self.session_obj


@pytest.fixture
def fake_db():
    """Fake database fixture."""
    return FakeDatabase()


@pytest.fixture
def mock_booking_repo():
    """Mock booking repository."""
    repo = AsyncMock()
    repo.count_overlapping.return_value = 0
    repo.max_reference_sequence.return_value = 0
    repo.update.return_value = True
    return repo


@pytest.fixture
def mock_car_repo():
    """Mock car repository."""
    return AsyncMock()


@pytest.fixture
def sample_car():
    """Sample car priced at 5000 per day."""
    return Car(
        id="car_1",
        name="Toyota Camry",
        model="2022",
        image="camry.jpg",
        price_per_day=Decimal("5000"),
        type=CarType.SEDAN,
        description="Sedan",
        capacity=5,
        transmission=Transmission.AUTOMATIC,
    )


@pytest.fixture
def booking_engine(fake_db, mock_booking_repo, mock_car_repo):
    """Booking engine wired to mocks."""
    settings = Settings(booking_reference_prefix="GZT", local_timezone="UTC")
    return BookingEngine(
        fake_db,
        settings,
        booking_repo_factory=lambda session: mock_booking_repo,
        car_repo_factory=lambda session: mock_car_repo,
        clock=lambda: NOW,
    )


def _stored(status=BookingStatus.PENDING, payment=PaymentStatus.NOT_REQUIRED, **overrides) -> Booking:
    fields = dict(
        id="booking_1",
        booking_reference="GZT-20240301-0001",
        car_id="car_1",
        start_date=datetime(2024, 3, 1, tzinfo=timezone.utc),
        end_date=datetime(2024, 3, 4, tzinfo=timezone.utc),
        price_per_day=Decimal("5000"),
        total_price=Decimal("15000"),
        rental_days=3,
        booking_status=status,
        payment_status=payment,
        created_at=NOW,
        updated_at=NOW,
    )
    fields.update(overrides)
    return Booking(**fields)


@pytest.mark.asyncio
async def test_create_prices_from_catalog(booking_engine, mock_booking_repo, mock_car_repo, sample_car):
    """Test a booking without explicit price uses the car's daily rate."""
    mock_car_repo.get_by_id.return_value = sample_car
    created = []
    mock_booking_repo.create.side_effect = lambda draft: created.append(draft) or draft
    mock_booking_repo.get_by_id.side_effect = lambda booking_id: created[0]

    booking = await booking_engine.create_booking(
        {"car_id": "car_1", "start_date": "2024-03-01", "end_date": "2024-03-04"}
    )

    draft = mock_booking_repo.create.call_args.args[0]
    assert draft.rental_days == 3
    assert draft.price_per_day == Decimal("5000")
    assert draft.total_price == Decimal("15000.00")
    assert draft.booking_reference == "GZT-20240301-0001"
    assert draft.booking_status == BookingStatus.PENDING
    assert draft.payment_status == PaymentStatus.NOT_REQUIRED
    assert booking.id == draft.id


@pytest.mark.asyncio
async def test_create_explicit_price_skips_car_lookup(booking_engine, mock_booking_repo, mock_car_repo):
    """Test an explicit daily price is used as-is."""
    created = []
    mock_booking_repo.create.side_effect = lambda draft: created.append(draft) or draft
    mock_booking_repo.get_by_id.side_effect = lambda booking_id: created[0]

    booking = await booking_engine.create_booking(
        {
            "car_id": "car_1",
            "start_date": "2024-03-01",
            "end_date": "2024-03-02",
            "price_per_day": "1234.565",
            "payment_status": "pending",
        }
    )

    mock_car_repo.get_by_id.assert_not_called()
    assert booking.total_price == Decimal("1234.57")
    assert booking.payment_status == PaymentStatus.PENDING


@pytest.mark.asyncio
async def test_create_sequence_follows_existing_references(booking_engine, mock_booking_repo, mock_car_repo, sample_car):
    """Test the daily sequence continues from the highest reference of the day."""
    mock_car_repo.get_by_id.return_value = sample_car
    mock_booking_repo.max_reference_sequence.return_value = 6
    mock_booking_repo.create.side_effect = lambda draft: draft
    mock_booking_repo.get_by_id.side_effect = lambda booking_id: mock_booking_repo.create.call_args.args[0]

    booking = await booking_engine.create_booking(
        {"car_id": "car_1", "start_date": "2024-03-01", "end_date": "2024-03-04"}
    )

    mock_booking_repo.max_reference_sequence.assert_awaited_once_with("GZT-20240301-")
    assert booking.booking_reference == "GZT-20240301-0007"


@pytest.mark.asyncio
async def test_create_rejects_overlap(booking_engine, mock_booking_repo):
    """Test an overlapping active booking blocks creation."""
    mock_booking_repo.count_overlapping.return_value = 1

    with pytest.raises(CarUnavailable):
        await booking_engine.create_booking(
            {"car_id": "car_1", "start_date": "2024-01-14", "end_date": "2024-01-18"}
        )

    mock_booking_repo.create.assert_not_called()


@pytest.mark.asyncio
async def test_create_unknown_car(booking_engine, mock_booking_repo, mock_car_repo):
    """Test a missing car is reported as unavailable."""
    mock_car_repo.get_by_id.return_value = None

    with pytest.raises(CarUnavailable):
        await booking_engine.create_booking(
            {"car_id": "car_missing", "start_date": "2024-03-01", "end_date": "2024-03-04"}
        )

    mock_booking_repo.create.assert_not_called()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "start,end,error",
    [
        ("not-a-date", "2024-03-04", InvalidInput),
        ("2024-03-01", "", InvalidInput),
        ("2024-03-04", "2024-03-01", InvalidDateRange),
        ("2024-03-01", "2024-03-01", InvalidDateRange),
    ],
)
async def test_create_validates_dates_before_touching_store(booking_engine, fake_db, start, end, error):
    """Test bad dates fail without opening a session."""
    with pytest.raises(error):
        await booking_engine.create_booking({"car_id": "car_1", "start_date": start, "end_date": end})

    assert fake_db.sessions_opened == 0


@pytest.mark.asyncio
async def test_create_rejects_missing_car_id(booking_engine):
    """Test malformed input maps to InvalidInput."""
    with pytest.raises(InvalidInput):
        await booking_engine.create_booking({"start_date": "2024-03-01", "end_date": "2024-03-04"})


@pytest.mark.asyncio
async def test_cancel_missing_booking(booking_engine, mock_booking_repo):
    """Test cancelling an unknown booking raises NotFound."""
    mock_booking_repo.get_by_id.return_value = None

    with pytest.raises(NotFound):
        await booking_engine.cancel_booking("booking_missing")


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [BookingStatus.CANCELED, BookingStatus.COMPLETED])
async def test_cancel_terminal_booking_not_allowed(booking_engine, mock_booking_repo, status):
    """Test terminal bookings cannot be canceled and are not written."""
    mock_booking_repo.get_by_id.return_value = _stored(status=status)

    with pytest.raises(InvalidTransition):
        await booking_engine.cancel_booking("booking_1")

    mock_booking_repo.update.assert_not_called()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payment,refund",
    [
        (PaymentStatus.PAID, True),
        (PaymentStatus.NOT_REQUIRED, False),
        (PaymentStatus.PENDING, False),
        (PaymentStatus.FAILED, False),
    ],
)
async def test_cancel_sets_refund_flag(booking_engine, mock_booking_repo, payment, refund):
    """Test refund is required only when the booking was paid."""
    stored = _stored(status=BookingStatus.CONFIRMED, payment=payment)
    mock_booking_repo.get_by_id.return_value = stored

    await booking_engine.cancel_booking("booking_1")

    written = mock_booking_repo.update.call_args.args[0]
    assert written.booking_status == BookingStatus.CANCELED
    assert written.refund_required is refund
    assert written.canceled_at == NOW
    assert written.updated_at == NOW


@pytest.mark.asyncio
async def test_cancel_update_without_rows_is_storage_failure(booking_engine, mock_booking_repo):
    """Test a write that affects no rows surfaces as StorageFailure."""
    mock_booking_repo.get_by_id.return_value = _stored()
    mock_booking_repo.update.return_value = False

    with pytest.raises(StorageFailure):
        await booking_engine.cancel_booking("booking_1")


@pytest.mark.asyncio
async def test_simulate_payment_confirms_pending(booking_engine, mock_booking_repo):
    """Test payment promotes pending bookings to confirmed."""
    mock_booking_repo.get_by_id.return_value = _stored(payment=PaymentStatus.PENDING, refund_required=True)

    await booking_engine.simulate_payment("booking_1")

    written = mock_booking_repo.update.call_args.args[0]
    assert written.payment_status == PaymentStatus.PAID
    assert written.booking_status == BookingStatus.CONFIRMED
    assert written.refund_required is False


@pytest.mark.asyncio
async def test_simulate_payment_when_already_paid_is_noop(booking_engine, mock_booking_repo):
    """Test paying a paid booking writes nothing."""
    stored = _stored(status=BookingStatus.CONFIRMED, payment=PaymentStatus.PAID)
    mock_booking_repo.get_by_id.return_value = stored

    result = await booking_engine.simulate_payment("booking_1")

    assert result == stored
    mock_booking_repo.update.assert_not_called()


@pytest.mark.asyncio
async def test_simulate_payment_keeps_canceled_status(booking_engine, mock_booking_repo):
    """Test only pending bookings are promoted on payment."""
    mock_booking_repo.get_by_id.return_value = _stored(status=BookingStatus.CANCELED)

    await booking_engine.simulate_payment("booking_1")

    written = mock_booking_repo.update.call_args.args[0]
    assert written.booking_status == BookingStatus.CANCELED
    assert written.payment_status == PaymentStatus.PAID


@pytest.mark.asyncio
async def test_manual_override_bypasses_transitions(booking_engine, mock_booking_repo):
    """Test overrides may leave a terminal state."""
    mock_booking_repo.get_by_id.return_value = _stored(status=BookingStatus.CANCELED)

    await booking_engine.update_booking_status("booking_1", "pending")

    written = mock_booking_repo.update.call_args.args[0]
    assert written.booking_status == BookingStatus.PENDING
    assert written.canceled_at is None
    assert written.refund_required is False


@pytest.mark.asyncio
async def test_manual_override_rejects_unknown_value(booking_engine, mock_booking_repo):
    """Test override values must be valid enum members."""
    with pytest.raises(InvalidInput):
        await booking_engine.update_payment_status("booking_1", "refunded")

    mock_booking_repo.get_by_id.assert_not_called()


@pytest.mark.asyncio
async def test_manual_override_missing_booking(booking_engine, mock_booking_repo):
    """Test overrides on unknown bookings raise NotFound."""
    mock_booking_repo.get_by_id.return_value = None

    with pytest.raises(NotFound):
        await booking_engine.update_booking_status("booking_missing", BookingStatus.COMPLETED)
