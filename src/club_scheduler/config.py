"""Application configuration."""

import os
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    api_token: str
    club_timezone: str = "UTC"
    sessions_table: str = "classes"
    activity_table: str = "activity_log"
    retry_max_retries: int = 3
    retry_base_delay_ms: int = 1000
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @property
    def timezone(self) -> ZoneInfo:
        """Return the club timezone."""
        return ZoneInfo(self.club_timezone)
