"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Rotabot configuration. All values come from environment variables."""

    # Slack
    slack_bot_token: str = Field(default="")
    slack_app_token: str = Field(default="")

    # Database
    database_path: Path = Field(default=Path("data/rotabot.db"))

    # Turso (hosted libSQL); when set, overrides local database_path
    turso_database_url: str = Field(default="")
    turso_auth_token: str = Field(default="")

    # Scheduler
    scheduler_timezone: str = Field(default="UTC")
    cycle_cron: str = Field(default="*/15 * * * *")
    retry_sweep_cron: str = Field(default="0 */6 * * *")
    run_scheduler_on_start: bool = Field(default=False)
    run_on_start_delay_seconds: int = Field(default=5)

    # Delivery
    delivery_max_attempts: int = Field(default=3)
    sweep_max_attempts: int = Field(default=2)
    retry_window_hours: int = Field(default=24)

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


settings = Settings()
