"""Configuration management for TripSettle."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TRIPSETTLE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Currency used when a command does not name one and the trip lists none
    default_currency: str = "USD"

    # Logging
    log_level: str = "INFO"

    # Confirmation store
    database_path: Path = Path.home() / ".tripsettle" / "tripsettle.db"

    def __init__(self, **kwargs):
        """Initialize settings and create database directory if needed."""
        super().__init__(**kwargs)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)


def load_settings() -> Settings:
    """Load application settings from environment variables."""
    try:
        return Settings()
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load settings. Check the TRIPSETTLE_* variables in your "
            f"environment or .env file.\n"
            f"Error: {e}"
        ) from e
