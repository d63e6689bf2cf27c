"""Application composition root.

Opens the local store, prepares the schema, syncs the bundled catalog and
hands the booking engine and catalog to the UI layer. Running the module
builds a seeded database file:

    python -m carhire.app
"""

import asyncio
from dataclasses import dataclass, field
from typing import Optional

from carhire.config.settings import Settings, load_settings
from carhire.logging import get_logger, mask_credentials, setup_logging
from carhire.services.booking_engine import BookingEngine
from carhire.services.catalog import CarCatalogService
from carhire.services.catalog_seed import load_catalog
from carhire.services.locks import KeyedLockRegistry
from carhire.storage.database import Database

logger = get_logger(__name__)


@dataclass
class CarHireApp:
    """Services wired to one explicitly owned store."""

    settings: Settings
    database: Database
    catalog: CarCatalogService
    bookings: BookingEngine
    locks: KeyedLockRegistry = field(default_factory=KeyedLockRegistry)

    async def close(self) -> None:
        """Release the store."""
        await self.database.disconnect()

    async def __aenter__(self) -> "CarHireApp":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


async def open_app(settings: Optional[Settings] = None) -> CarHireApp:
    """Connect the store, create tables and optionally seed the catalog."""
    settings = settings or load_settings()

    database = Database(settings)
    await database.connect()

    try:
        await database.create_tables()

        locks = KeyedLockRegistry()
        catalog = CarCatalogService(database)
        bookings = BookingEngine(database, settings, locks=locks)

        if settings.seed_catalog_on_start:
            await catalog.seed_catalog(load_catalog(settings.catalog_seed_path or None))
    except Exception:
        await database.disconnect()
        raise

    logger.info("app_ready", app_name=settings.app_name, environment=settings.environment)
    return CarHireApp(
        settings=settings,
        database=database,
        catalog=catalog,
        bookings=bookings,
        locks=locks,
    )


async def main() -> None:
    """Build (or refresh) the local database and report the catalog size."""
    settings = load_settings()
    setup_logging(settings.log_level)

    async with await open_app(settings) as app:
        cars = await app.catalog.find_all_cars()
        logger.info("database_ready", url=mask_credentials(settings.database_url), cars=len(cars))


if __name__ == "__main__":
    asyncio.run(main())
