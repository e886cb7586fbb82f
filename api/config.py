"""
HTTP server and database settings for the logbook API.

Logbook behaviour (schedule, sensors, email) lives in src.config; this
module only covers what the API process itself needs. Values come from the
environment or a .env file, matched case-insensitively.
"""
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """API process settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================================================
    # Storage
    # ========================================================================
    database_url: str = "sqlite:///./logbook.db"
    db_echo: bool = False

    # ========================================================================
    # HTTP server
    # ========================================================================
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: str = "http://localhost:3000"
    cors_credentials: bool = False

    # ========================================================================
    # Logbook runtime
    # ========================================================================
    # Start the scheduler and sampler with the server
    start_service: bool = True
    # Hold scheduling until the first position fix
    wait_for_fix: bool = True

    # ========================================================================
    # Environment
    # ========================================================================
    environment: str = "development"
    log_level: str = "info"

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"


@lru_cache()
def get_settings() -> Settings:
    """Settings are read once per process."""
    return Settings()


settings = get_settings()
