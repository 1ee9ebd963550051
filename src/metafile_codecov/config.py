"""Application configuration management using Pydantic Settings.

This module defines the `Settings` class, which loads tunable parameters for
the Codecov upload (endpoint, retry budget, timeouts) and logging from
environment variables and an optional `.env` file.

CI identity values (GITHUB_*, ACTIONS_*) are deliberately not part of the
settings: they are read by `metafile_codecov.providers.github` from an
injected environment mapping so tests never have to mutate the process
environment.

The `get_settings` function provides a cached, singleton instance of the
configuration.
"""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict as _SettingsConfigDict

DEFAULT_API_URL = "https://api.codecov.io/upload/bundle_analysis/v1"
MAX_ATTEMPTS = 3
RETRY_DELAY_MS = 1000


class Settings(BaseSettings):
    """Defines all application configuration parameters."""

    model_config = _SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Codecov
    CODECOV_API_URL: str = Field(
        default=DEFAULT_API_URL,
        description="Bundle analysis endpoint returning a presigned upload URL",
    )

    # Upload reliability
    UPLOAD_MAX_ATTEMPTS: int = Field(
        default=MAX_ATTEMPTS,
        ge=1,
        description="Total attempts per upload request (presigned URL POST, payload PUT)",
    )
    UPLOAD_RETRY_DELAY_MS: int = Field(
        default=RETRY_DELAY_MS,
        ge=0,
        description="Fixed delay in milliseconds between attempts of a failed request",
    )
    HTTP_TIMEOUT: float = Field(
        default=30.0, gt=0, description="Timeout (seconds) for each HTTP request"
    )

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    @field_validator("CODECOV_API_URL", mode="before")
    @classmethod
    def default_blank_api_url(cls, v: object) -> object:
        """Treat a blank CODECOV_API_URL as unset."""
        if isinstance(v, str) and not v.strip():
            return DEFAULT_API_URL
        return v

    @field_validator("LOG_LEVEL", mode="after")
    @classmethod
    def upper_log_level(cls, v: str) -> str:
        return v.strip().upper() or "INFO"


@lru_cache(maxsize=1)
def get_settings() -> Settings:  # pragma: no cover - trivial
    """Return a cached, singleton instance of the application settings."""
    return Settings()


__all__ = ["DEFAULT_API_URL", "MAX_ATTEMPTS", "RETRY_DELAY_MS", "Settings", "get_settings"]
