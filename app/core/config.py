"""
Application configuration settings.
"""
from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "Users CRUD Service"
    app_version: str = "1.0.0"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 3000

    # Database
    database_url: str = "sqlite+aiosqlite:///./app.db"
    create_schema: bool = False

    # Session guard: number of shared connections and how long a request
    # may wait for one (None waits forever)
    guard_pool_size: int = Field(default=1, ge=1)
    guard_acquire_timeout: float | None = 30.0

    # Answer 404 when an update/delete matches no row
    report_missing_rows: bool = False

    # Logging
    log_level: str = "INFO"

    # CORS - Use ["*"] to allow all origins
    cors_origins: list[str] = ["*"]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
