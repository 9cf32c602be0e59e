from typing import Literal, Self

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration, read from ``TIMELEDGER_*`` environment variables or ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="TIMELEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "TimeLedger"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:8000"]

    # "memory" keeps documents in process; "sql" stores them in database_url.
    storage_backend: Literal["memory", "sql"] = "memory"
    database_url: str = "postgresql+asyncpg://timeledger:timeledger@db:5432/timeledger"

    # Conflict scan thresholds, in minutes.
    max_daily_minutes: int = Field(default=24 * 60, gt=0)
    long_entry_minutes: int = Field(default=12 * 60, gt=0)
    # Weekly totals checked for projects that do not allow overtime.
    weekly_overtime_minutes: int = Field(default=40 * 60, gt=0)
    weekly_limit_minutes: int = Field(default=60 * 60, gt=0)
    # Allowed drift between an explicit duration and its start/end range.
    duration_tolerance_minutes: int = Field(default=1, ge=0)

    @model_validator(mode="after")
    def _check_thresholds(self) -> Self:
        if self.long_entry_minutes > self.max_daily_minutes:
            msg = "long_entry_minutes cannot exceed max_daily_minutes"
            raise ValueError(msg)
        if self.weekly_overtime_minutes > self.weekly_limit_minutes:
            msg = "weekly_overtime_minutes cannot exceed weekly_limit_minutes"
            raise ValueError(msg)
        return self


_settings: Settings | None = None


def get_settings() -> Settings:
    """Settings are read once per process."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
