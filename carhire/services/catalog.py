"""Car catalog service.

Lookup and search over the car catalog. No booking rules live here; the
booking engine only asks it for a car's daily price.
"""

from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from carhire.logging import get_logger
from carhire.logging.audit import AuditEventType, AuditLogger
from carhire.models.car import Car, CarInput, CarPatch
from carhire.services.catalog_seed import load_catalog
from carhire.services.errors import NotFound
from carhire.storage.car_repo import SqlCarRepository
from carhire.storage.database import Database

logger = get_logger(__name__)

# Brand name -> name fragments that identify it
BRAND_ALIASES: dict[str, list[str]] = {
    "tesla": ["tesla"],
    "bmw": ["bmw"],
    "ferrari": ["ferrari"],
    "lamborghini": ["lamborghini"],
}

# Filter value meaning "no type filter"
ALL_TYPES = "all"


class CarCatalogService:
    """Read-mostly access to the car catalog."""

    def __init__(
        self,
        database: Database,
        car_repo_factory: Callable[[AsyncSession], SqlCarRepository] = SqlCarRepository,
    ):
        """
        Initialize catalog service.

        Args:
            database: Connected store
            car_repo_factory: Builds a car repository for a session
        """
        self.database = database
        self.car_repo_factory = car_repo_factory

    async def find_car_by_id(self, car_id: str) -> Optional[Car]:
        """Find a car by ID."""
        async with self.database.session() as session:
            return await self.car_repo_factory(session).get_by_id(car_id)

    async def find_all_cars(self) -> list[Car]:
        """All cars, newest first."""
        async with self.database.session() as session:
            return await self.car_repo_factory(session).get_all()

    async def find_available_cars(self) -> list[Car]:
        """Cars flagged as available, newest first."""
        async with self.database.session() as session:
            return await self.car_repo_factory(session).get_available()

    async def search_cars(self, text: str, brand_filter: Optional[str] = None) -> list[Car]:
        """
        Search available cars.

        Args:
            text: Case-insensitive substring matched against name,
                description, model and type
            brand_filter: Exact (case-insensitive) car type; empty or "all"
                disables the filter

        Returns:
            Matching cars, newest first
        """
        type_filter = brand_filter if brand_filter and brand_filter.lower() != ALL_TYPES else None
        async with self.database.session() as session:
            cars = await self.car_repo_factory(session).search(text or "", type_filter)

        logger.debug("cars_searched", query=text, type_filter=type_filter, results=len(cars))
        return cars

    async def find_by_brand(self, brand: str) -> list[Car]:
        """Available cars whose name mentions the brand."""
        key = brand.strip().lower()
        terms = BRAND_ALIASES.get(key, [key] if key else [])
        async with self.database.session() as session:
            return await self.car_repo_factory(session).get_by_name_terms(terms)

    async def create_car(self, car_input: CarInput) -> Car:
        """Add a car to the catalog."""
        async with self.database.session() as session:
            return await self.car_repo_factory(session).create(car_input)

    async def update_car(self, car_id: str, patch: CarPatch) -> Car:
        """Apply a partial update and return the stored car."""
        async with self.database.session() as session:
            repo = self.car_repo_factory(session)
            if not await repo.update(car_id, patch):
                raise NotFound(f"Car not found: {car_id}", "Car not found.")
            car = await repo.get_by_id(car_id)

        if car is None:
            raise NotFound(f"Car not found: {car_id}", "Car not found.")
        return car

    async def delete_car(self, car_id: str) -> bool:
        """Remove a car. Its bookings are deleted with it."""
        async with self.database.session() as session:
            deleted = await self.car_repo_factory(session).delete(car_id)

        if deleted:
            AuditLogger.log_deleted(AuditEventType.CAR_DELETED, "car", car_id)
        return deleted

    async def seed_catalog(self, cars: Optional[list[CarInput]] = None) -> tuple[int, int]:
        """
        Sync catalog entries into the store.

        Inserts cars that are missing and updates the ones whose fields
        changed; untouched cars are left alone.

        Args:
            cars: Entries to sync; the bundled catalog when omitted

        Returns:
            (inserted, updated) counts
        """
        entries = cars if cars is not None else load_catalog()
        inserted = 0
        updated = 0

        async with self.database.session() as session:
            repo = self.car_repo_factory(session)
            existing = {car.id: car for car in await repo.get_all()}

            for entry in entries:
                record = existing.get(entry.id)
                if record is None:
                    await repo.create(entry)
                    inserted += 1
                elif entry.differs_from(record):
                    await repo.update(entry.id, CarPatch.from_input(entry))
                    updated += 1

        logger.info(
            "catalog_seeded",
            inserted=inserted,
            updated=updated,
            total=len(entries),
        )
        return inserted, updated
