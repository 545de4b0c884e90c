"""Configuration loading for testtiming.

This module provides centralized configuration management:
- Load settings from environment variables and .env files
- Validate configuration using pydantic
- Provide typed access to all settings
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment.

    Uses pydantic-settings for environment variable handling with
    .env file support via python-dotenv.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # LUCI service endpoints
    gitiles_host: str = Field(
        default="go.googlesource.com",
        description="Gitiles host serving the commit log",
    )
    buildbucket_host: str = Field(
        default="cr-buildbucket.appspot.com",
        description="Buildbucket host for builder listing and build search",
    )
    resultdb_host: str = Field(
        default="results.api.cr.dev",
        description="ResultDB host; every build must report this hostname",
    )
    luci_project: str = Field(
        default="golang",
        description="LUCI project owning the builders",
    )
    luci_bucket: str = Field(
        default="ci",
        description="Buildbucket bucket of the builders",
    )

    # Fetch configuration
    page_size: int = Field(
        default=1000,
        description="Page size for commit, builder, and build listings",
    )
    max_parallelism: int = Field(
        default=1,
        description="Maximum number of builders fetched concurrently",
    )
    lookback_days: int = Field(
        default=60,
        description="Time window in days (LUCI keeps data for 60 days)",
    )
    http_timeout_seconds: float = Field(
        default=30.0,
        description="Transport timeout for each HTTP request",
    )

    # Logging configuration
    trace_steps: bool = Field(
        default=True,
        description="Log each pipeline step name as it is executed",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Log level",
    )
    log_format: Literal["json", "text"] = Field(
        default="text",
        description="Log format",
    )

    @field_validator("page_size")
    @classmethod
    def validate_page_size(cls, v: int) -> int:
        """Ensure page size is positive."""
        if v <= 0:
            raise ValueError("page_size must be positive")
        return v

    @field_validator("max_parallelism")
    @classmethod
    def validate_max_parallelism(cls, v: int) -> int:
        """Ensure at least one builder can be fetched at a time."""
        if v < 1:
            raise ValueError("max_parallelism must be 1 or higher")
        return v

    @field_validator("lookback_days")
    @classmethod
    def validate_lookback_days(cls, v: int) -> int:
        """Ensure lookback window is positive."""
        if v <= 0:
            raise ValueError("lookback_days must be positive")
        return v

    @field_validator("http_timeout_seconds")
    @classmethod
    def validate_http_timeout(cls, v: float) -> float:
        """Ensure HTTP timeout is positive."""
        if v <= 0:
            raise ValueError("http_timeout_seconds must be positive")
        return v


def load_settings(env_file: str | None = None) -> Settings:
    """Load application settings from environment.

    Args:
        env_file: Optional path to .env file. If not provided,
                 uses the default .env in the current directory.

    Returns:
        Validated Settings instance.

    Raises:
        ValidationError: If settings validation fails.
    """
    if env_file:
        return Settings(_env_file=env_file)  # type: ignore[call-arg]
    return Settings()


__all__ = ["Settings", "load_settings"]
