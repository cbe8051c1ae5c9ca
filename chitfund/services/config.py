"""Application configuration from environment variables."""

from functools import lru_cache

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings

from chitfund.services.ledger import OutOfWindowPolicy


class Settings(BaseSettings):
    """Application settings loaded from environment variables and ``.env``."""

    model_config = ConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = Field(
        default="sqlite:///./chitfund.db",
        description="SQLAlchemy database URL",
    )
    database_echo: bool = Field(default=False, description="Log SQL queries")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str = Field(default="logs/chitfund.log", description="Path to log file")

    # Ledger
    out_of_window_policy: OutOfWindowPolicy = Field(
        default=OutOfWindowPolicy.INCLUDE_IN_TOTALS,
        validation_alias="CHITFUND_OUT_OF_WINDOW_POLICY",
        description=(
            "How payments labelled outside the fund's months count toward totals: "
            "include_in_totals or exclude_from_totals"
        ),
    )


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    return Settings()


__all__ = ["Settings", "get_settings"]
