"""Configuration loading utilities."""

import os
from functools import lru_cache
from pathlib import Path
from zoneinfo import ZoneInfo

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_TIME_ZONE = "Europe/London"


def get_google_oauth_credentials() -> tuple[str, str]:
    """Get Google OAuth client credentials from environment.

    Returns:
        Tuple of (client_id, client_secret)

    Raises:
        ValueError: If any required credential is not set
    """
    load_dotenv()

    client_id = os.getenv("GOOGLE_CLIENT_ID")
    client_secret = os.getenv("GOOGLE_CLIENT_SECRET")

    if not client_id or not client_secret:
        raise ValueError(
            "Google OAuth credentials not set. Required: GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET"
        )

    return client_id, client_secret


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="ADEPT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_path: Path = Field(
        default=Path("data/adept.db"), description="SQLite database file"
    )
    calendar_time_zone: str = Field(
        default=DEFAULT_TIME_ZONE, description="IANA time zone used for lesson events"
    )
    sync_interval_minutes: float = Field(
        default=15, gt=0, description="Minutes between calendar change polls"
    )
    oauth_redirect_uri: str = Field(
        default="http://localhost:8080", description="OAuth redirect URI registered with Google"
    )

    @property
    def sync_interval_seconds(self) -> float:
        """Poll interval in seconds."""
        return self.sync_interval_minutes * 60

    @property
    def time_zone(self) -> ZoneInfo:
        """Calendar time zone as a ZoneInfo object."""
        return ZoneInfo(self.calendar_time_zone)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
