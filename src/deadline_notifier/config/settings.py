"""Application settings."""

from functools import lru_cache
import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "deadline-notifier"
    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)
    log_level: str = "INFO"
    # Empty database URL selects the JSON file backend.
    database_url: str = ""
    data_file: Path = Path("tasks.json")
    scan_interval_s: float = Field(default=1.0, gt=0)
    heartbeat_interval_s: float = Field(default=15.0, gt=0)
    subscriber_queue_size: int = Field(default=100, ge=1)
    scheduler_enabled: bool = True
    seed_sample_task: bool = False

    model_config = SettingsConfigDict(
        env_prefix="DEADLINES_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    def resolved_database_url(self) -> str:
        return (self.database_url or os.getenv("DATABASE_URL", "")).strip()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
