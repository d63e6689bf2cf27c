"""Configuration settings loaded from environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./carHire.db"

    # Bookings
    booking_reference_prefix: str = "GZT"
    local_timezone: str = ""

    # Catalog
    seed_catalog_on_start: bool = True
    catalog_seed_path: str = ""

    # Logging
    log_level: str = "INFO"

    # Application
    app_name: str = "car-hire"
    environment: str = "development"

    @property
    def is_sqlite(self) -> bool:
        """Check whether the configured store is SQLite."""
        return self.database_url.startswith("sqlite")


def load_settings() -> Settings:
    """Load and validate settings from environment."""
    return Settings()
