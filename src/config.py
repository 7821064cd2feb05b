"""Configuration settings for crontick."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Scheduler
    scheduler_timezone: str = "UTC"
    random_placeholder: str = "R"
    search_max_years: int = 28  # one full weekday/leap-year cycle

    # Logging
    log_level: str = "INFO"
    log_file: str = ""

    class Config:
        env_prefix = "CRONTICK_"
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
