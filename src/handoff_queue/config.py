"""Runtime settings, read from ``HANDOFF_QUEUE_*`` environment variables."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="HANDOFF_QUEUE_", env_file=".env", extra="ignore")

    db_path: Path = Path.home() / ".handoff-queue" / "queue.db"

    # Minutes a pending item may wait at each level before it is promoted
    boost_high_minutes: float = 45
    boost_medium_minutes: float = 30
    boost_low_minutes: float = 60
    boost_poll_interval_seconds: float = 60.0


@lru_cache
def get_settings() -> Settings:
    return Settings()
