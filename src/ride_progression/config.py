"""Configuration settings for the ride progression tracker."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_DATA_PATH = Path.home() / ".ride-progression" / "rides.json"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Every field can be overridden with a ``RIDE_PROGRESSION_`` prefixed
    environment variable or an entry in a local ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="RIDE_PROGRESSION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Local data file (the persisted snapshot)
    data_path: Path = DEFAULT_DATA_PATH

    # Athlete defaults
    default_ftp: int = 235

    # intervals.icu
    intervals_base_url: str = "https://intervals.icu/api/v1"
    intervals_athlete_id: str = ""
    intervals_api_key: str = ""
    intervals_oldest: str = "2024-12-29"

    # Google Drive sync
    drive_backup_filename: str = "ride-progression-backup.json"
    drive_access_token: str = ""

    # Network behaviour
    http_timeout_seconds: float = 30.0
    max_retries: int = 3
    max_backoff_seconds: float = 60.0

    log_level: str = "WARNING"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
