"""Environment settings for the calendar engine."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Read from ``PORTAL_*`` environment variables or a local .env file."""

    # --- App ---
    app_name: str = "Health Portal Calendar"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"  # development | staging | production

    # --- Event store ---
    event_store_url: str = "http://localhost:3000/api"

    # --- Views ---
    cycle_granularity: str = "month"  # month | week | day
    agenda_granularity: str = "month"

    model_config = SettingsConfigDict(
        env_prefix="PORTAL_", env_file=".env", env_file_encoding="utf-8"
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
