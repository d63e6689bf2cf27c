"""Pytest configuration and shared fixtures."""

import sys
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest
import pytest_asyncio

from carhire.config.settings import Settings
from carhire.models.car import CarInput, CarType, Transmission
from carhire.services.booking_engine import BookingEngine
from carhire.services.catalog import CarCatalogService
from carhire.storage.database import Database


class TickingClock:
    """Deterministic clock that advances one second per call."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture
def clock():
    """Clock starting on 2024-03-01 09:00 UTC."""
    return TickingClock(datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a throwaway SQLite file."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'carhire-test.db'}",
        booking_reference_prefix="GZT",
        local_timezone="UTC",
        seed_catalog_on_start=False,
        log_level="INFO",
    )


@pytest_asyncio.fixture
async def database(settings):
    """Connected database with tables created."""
    db = Database(settings)
    await db.connect()
    await db.create_tables()
    try:
        yield db
    finally:
        await db.disconnect()


@pytest.fixture
def catalog(database):
    """Car catalog over the test database."""
    return CarCatalogService(database)


@pytest.fixture
def engine(database, settings, clock):
    """Booking engine over the test database."""
    return BookingEngine(database, settings, clock=clock)


@pytest.fixture
def sample_car_input():
    """Car priced at 5000 per day."""
    return CarInput(
        id="car_test_sedan",
        name="Toyota Camry",
        model="2022",
        image="https://example.com/camry.jpg",
        price_per_day=Decimal("5000"),
        type=CarType.SEDAN,
        description="Comfortable mid-size sedan",
        capacity=5,
        transmission=Transmission.AUTOMATIC,
        features=["Bluetooth", "Air Conditioning"],
        available=True,
    )


@pytest_asyncio.fixture
async def sample_car(catalog, sample_car_input):
    """Sample car stored in the catalog."""
    return await catalog.create_car(sample_car_input)
