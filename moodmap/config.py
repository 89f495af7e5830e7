"""
Application configuration via pydantic-settings.
All config read from MOODMAP_* environment variables with defaults for local dev.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="MOODMAP_", env_file=".env", extra="ignore")

    # Sentiment provider
    sentiment_base_url: str = "https://mainoverallapi.vercel.app"
    sentiment_path: str = "/cities"
    use_mock_provider: bool = True
    provider_timeout_s: float = Field(default=30.0, gt=0)

    # Location history; empty keeps it in memory only
    data_dir: str = ".moodmap"

    # Relay server
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = Field(default="info", pattern=r"^(debug|info|warning|error|critical)$")


@lru_cache
def get_settings() -> Settings:
    return Settings()
