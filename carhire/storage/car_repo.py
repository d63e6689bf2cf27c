"""SQL repository for Car entities."""

from typing import Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from carhire.logging import get_logger
from carhire.models.car import Car, CarInput, CarPatch
from carhire.storage.db_models import CarTable, utcnow
from carhire.storage.repository_base import RepositoryBase

logger = get_logger(__name__)

# Patch field -> column. Nothing outside this mapping can be written by update().
_PATCH_COLUMNS = {
    "name": CarTable.name,
    "model": CarTable.model,
    "image": CarTable.image,
    "price_per_day": CarTable.price_per_day,
    "type": CarTable.type,
    "description": CarTable.description,
    "capacity": CarTable.capacity,
    "transmission": CarTable.transmission,
    "features": CarTable.features,
    "available": CarTable.available,
}


class SqlCarRepository(RepositoryBase[Car]):
    """Car repository backed by SQLAlchemy."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        self.session = session

    async def get_by_id(self, id: str) -> Optional[Car]:
        """Retrieve car by ID."""
        stmt = select(CarTable).where(CarTable.id == id)
        result = await self.session.execute(stmt)
        db_car = result.scalar_one_or_none()

        if not db_car:
            return None

        return self._to_domain_model(db_car)

    async def create(self, entity: CarInput) -> Car:
        """Create new car."""
        now = utcnow()
        db_car = CarTable(
            id=entity.id,
            name=entity.name,
            model=entity.model,
            image=entity.image,
            price_per_day=entity.price_per_day,
            type=entity.type,
            description=entity.description,
            capacity=entity.capacity,
            transmission=entity.transmission,
            features=list(entity.features),
            available=entity.available,
            created_at=now,
            updated_at=now,
        )

        self.session.add(db_car)
        await self.session.flush()

        logger.info("car_created", car_id=entity.id, name=entity.name)

        return self._to_domain_model(db_car)

    async def update(self, id: str, patch: CarPatch) -> bool:
        """Apply a partial update. Returns False if the car does not exist."""
        changes = patch.changes()
        if not changes:
            return await self.get_by_id(id) is not None

        values = {_PATCH_COLUMNS[field]: value for field, value in changes.items()}
        values[CarTable.updated_at] = utcnow()

        stmt = update(CarTable).where(CarTable.id == id).values(values)
        result = await self.session.execute(stmt)

        if result.rowcount == 0:
            return False

        logger.info("car_updated", car_id=id, fields=sorted(changes))
        return True

    async def delete(self, id: str) -> bool:
        """Delete car by ID. Its bookings are removed by the FK cascade."""
        stmt = select(CarTable).where(CarTable.id == id)
        result = await self.session.execute(stmt)
        db_car = result.scalar_one_or_none()

        if not db_car:
            return False

        await self.session.delete(db_car)
        await self.session.flush()

        logger.info("car_deleted", car_id=id)

        return True

    async def get_all(self) -> list[Car]:
        """Get all cars, newest first."""
        stmt = select(CarTable).order_by(CarTable.created_at.desc())
        result = await self.session.execute(stmt)

        return [self._to_domain_model(db_car) for db_car in result.scalars().all()]

    async def get_available(self) -> list[Car]:
        """Get cars flagged as available, newest first."""
        stmt = (
            select(CarTable)
            .where(CarTable.available.is_(True))
            .order_by(CarTable.created_at.desc())
        )
        result = await self.session.execute(stmt)

        return [self._to_domain_model(db_car) for db_car in result.scalars().all()]

    async def search(self, query: str, type_filter: Optional[str] = None) -> list[Car]:
        """Case-insensitive substring search over available cars."""
        term = f"%{query.lower()}%"
        stmt = (
            select(CarTable)
            .where(CarTable.available.is_(True))
            .where(
                or_(
                    func.lower(CarTable.name).like(term),
                    func.lower(CarTable.description).like(term),
                    func.lower(CarTable.model).like(term),
                    func.lower(CarTable.type).like(term),
                )
            )
        )

        if type_filter:
            stmt = stmt.where(func.lower(CarTable.type) == type_filter.lower())

        stmt = stmt.order_by(CarTable.created_at.desc())
        result = await self.session.execute(stmt)

        return [self._to_domain_model(db_car) for db_car in result.scalars().all()]

    async def get_by_name_terms(self, terms: list[str]) -> list[Car]:
        """Get available cars whose name contains any of the given terms."""
        if not terms:
            return []

        stmt = (
            select(CarTable)
            .where(CarTable.available.is_(True))
            .where(or_(*(func.lower(CarTable.name).like(f"%{term.lower()}%") for term in terms)))
            .order_by(CarTable.created_at.desc())
        )
        result = await self.session.execute(stmt)

        return [self._to_domain_model(db_car) for db_car in result.scalars().all()]

    def _to_domain_model(self, db_car: CarTable) -> Car:
        """Convert database model to domain model."""
        return Car(
            id=db_car.id,
            name=db_car.name,
            model=db_car.model,
            image=db_car.image,
            price_per_day=db_car.price_per_day,
            type=db_car.type,
            description=db_car.description,
            capacity=db_car.capacity,
            transmission=db_car.transmission,
            features=list(db_car.features or []),
            available=db_car.available,
            created_at=db_car.created_at,
            updated_at=db_car.updated_at,
        )
