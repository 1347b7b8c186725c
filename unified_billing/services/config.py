"""Application configuration from environment variables."""

from functools import lru_cache

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = ConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./unified_billing.db",
        description="SQLAlchemy async connection string",
    )
    database_echo: bool = Field(default=False, description="Log SQL queries")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str = Field(default="logs/server.log", description="Server log file path")

    # Distribution engine
    bill_fetch_timeout_seconds: float = Field(
        default=10.0, description="Timeout for one billing module's bill fetch"
    )
    preview_tolerance_cents: int = Field(
        default=1, description="Allowed drift between proposed and fresh preview totals"
    )
    max_payment_cents: int = Field(
        default=1_000_000_000, description="Largest accepted payment (10,000,000 pesos)"
    )
    preview_all_amount_cents: int = Field(
        default=99_999_999_900,
        description="Incoming amount substituted when previewing every owed bill",
    )

    # API
    api_title: str = Field(default="Unified Billing API", description="API title")
    api_version: str = Field(default="0.1.0", description="API version")


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()


__all__ = ["Settings", "get_settings"]
