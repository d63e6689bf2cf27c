"""Database connection and session management."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from carhire.config.settings import Settings
from carhire.logging import get_logger, mask_credentials
from carhire.storage.db_models import Base

logger = get_logger(__name__)


def _enable_sqlite_foreign_keys(dbapi_conn, connection_record) -> None:
    """Turn on FK enforcement so deleting a car cascades to its bookings."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Database connection manager.

    Owned explicitly by the application; the booking engine and catalog
    receive it at construction time.
    """

    def __init__(self, settings: Settings):
        """
        Initialize database connection.

        Args:
            settings: Application settings with database URL
        """
        self.settings = settings
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def is_connected(self) -> bool:
        """Check whether connect() has been called."""
        return self._engine is not None

    async def connect(self) -> None:
        """Create database engine and session factory."""
        if self._engine is not None:
            return

        engine_kwargs = {"echo": self.settings.log_level == "DEBUG"}
        if not self.settings.is_sqlite:
            engine_kwargs.update(pool_size=10, max_overflow=20, pool_pre_ping=True)

        self._engine = create_async_engine(self.settings.database_url, **engine_kwargs)

        if self.settings.is_sqlite:
            event.listen(self._engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

        logger.info("database_connected", url=mask_credentials(self.settings.database_url))

    async def disconnect(self) -> None:
        """Close database connections."""
        if self._engine is None:
            return

        await self._engine.dispose()
        self._engine = None
        self._session_factory = None

        logger.info("database_disconnected")

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Get database session context manager.

        Commits when the block exits normally and rolls back on any
        exception, so a failed write leaves nothing behind.

        Example:
            async with db.session() as session:
                repo = SqlBookingRepository(session)
                booking = await repo.get_by_id(booking_id)
        """
        if self._session_factory is None:
            raise RuntimeError("Database not connected. Call connect() first.")

        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def create_tables(self) -> None:
        """Create all database tables. Use migrations for existing stores."""
        if self._engine is None:
            raise RuntimeError("Database not connected. Call connect() first.")

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info("database_tables_created")

    async def __aenter__(self) -> "Database":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()
