"""Application settings loaded from environment variables."""

import os
from datetime import time
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """remindkit configuration. All values come from environment variables."""

    # Database
    database_path: Path = Field(default=Path("data/remindkit.db"))

    # Scheduler
    scheduler_timezone: str = Field(default="Europe/Copenhagen")
    task_poll_interval_seconds: int = Field(default=10, ge=1)
    reminder_poll_interval_seconds: int = Field(default=10, ge=1)
    retry_poll_interval_seconds: int = Field(default=60, ge=1)
    invalid_cron_log_interval_minutes: int = Field(default=60, ge=1)
    max_task_executions_per_hour: int = Field(default=60, ge=1)

    # Reminders
    missed_reminder_grace_minutes: int = Field(default=5, ge=0)
    default_reminder_time: str = Field(default="06:45")

    # Retry
    retry_interval_hours: int = Field(default=1, ge=1)
    max_retry_duration_hours: int = Field(default=48, ge=1)
    max_retry_attempts: int | None = Field(default=None, ge=1)

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    def get_max_retry_attempts(self) -> int:
        """Explicit MAX_RETRY_ATTEMPTS, or the number of intervals that fit the duration."""
        if self.max_retry_attempts is not None:
            return self.max_retry_attempts
        return max(1, self.max_retry_duration_hours // self.retry_interval_hours)

    def get_default_reminder_time(self) -> time:
        """Parse DEFAULT_REMINDER_TIME (HH:MM) for reminders created without a time."""
        return time.fromisoformat(self.default_reminder_time)


settings = Settings()
