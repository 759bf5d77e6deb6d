"""Application settings using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Database (SQLite by default)
    database_url: str = Field(default="sqlite:///envivo.db", alias="DATABASE_URL")

    # Admin surface
    admin_api_key: str | None = Field(default=None, alias="ADMIN_API_KEY")

    # Ticketmaster Discovery API
    ticketmaster_api_key: str | None = Field(default=None, alias="TICKETMASTER_API_KEY")
    ticketmaster_country_code: str = Field(default="AR", alias="TICKETMASTER_COUNTRY_CODE")
    ticketmaster_city: str | None = Field(default=None, alias="TICKETMASTER_CITY")

    # Scraper settings
    scraper_user_agent: str = Field(
        default="EnVivoBot/1.0 (+https://envivo.ar/bot)",
        alias="SCRAPER_USER_AGENT",
    )
    default_timezone: str = Field(
        default="America/Argentina/Buenos_Aires", alias="DEFAULT_TIMEZONE"
    )

    # Orchestrator
    orchestrator_max_concurrency: int = Field(
        default=2, ge=1, alias="ORCHESTRATOR_MAX_CONCURRENCY"
    )
    orchestrator_run_timeout: float | None = Field(
        default=600.0, alias="ORCHESTRATOR_RUN_TIMEOUT"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", alias="LOG_LEVEL"
    )
    log_format: Literal["json", "console"] = Field(default="console", alias="LOG_FORMAT")
    log_file: str | None = Field(default=None, alias="LOG_FILE")

    # Environment
    environment: Literal["development", "staging", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )
    debug: bool = Field(default=False, alias="DEBUG")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
