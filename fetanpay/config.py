from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables with validation."""

    model_config = SettingsConfigDict(
        env_file=(str(Path(__file__).resolve().parents[1] / ".env"), ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    app_name: str = Field(default="FetanPay Billing API", alias="APP_NAME")
    app_env: Literal["development", "staging", "production", "test"] = Field(
        default="production",
        alias="APP_ENV",
    )
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    api_v1_prefix: str = Field(default="/api/v1", alias="API_V1_PREFIX")
    secret_key: SecretStr = Field(
        default=SecretStr("change-me-in-production"),
        alias="SECRET_KEY",
    )
    admin_email: str = Field(default="admin@fetanpay.et", alias="ADMIN_EMAIL")

    database_url: str | None = Field(default=None, alias="DATABASE_URL")

    db_pool_size: int = Field(default=10, ge=1, le=100, alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=20, ge=0, le=200, alias="DB_MAX_OVERFLOW")
    db_pool_recycle: int = Field(default=1800, ge=60, alias="DB_POOL_RECYCLE")

    trial_days: int = Field(default=7, ge=0, alias="TRIAL_DAYS")
    expiry_notice_days: int = Field(default=2, ge=0, alias="EXPIRY_NOTICE_DAYS")
    billing_timezone: str = Field(default="Africa/Addis_Ababa", alias="BILLING_TIMEZONE")

    scheduler_enabled: bool = Field(default=True, alias="SCHEDULER_ENABLED")
    scheduler_poll_seconds: int = Field(default=60, ge=1, alias="SCHEDULER_POLL_SECONDS")

    @field_validator("api_v1_prefix")
    @classmethod
    def validate_api_prefix(cls, value: str) -> str:
        """Ensure the API prefix starts with a slash and has no trailing slash."""
        normalized = value.strip()
        if not normalized.startswith("/"):
            raise ValueError("API_V1_PREFIX must start with '/'.")
        if len(normalized) > 1 and normalized.endswith("/"):
            normalized = normalized.rstrip("/")
        return normalized

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, value: str | None) -> str | None:
        """Accept PostgreSQL connection strings, plus SQLite for local runs and tests."""
        if value is None or not value.strip():
            return None
        lowered = value.lower()
        if not lowered.startswith(("postgresql://", "postgresql+psycopg2://", "sqlite://")):
            raise ValueError(
                "DATABASE_URL must start with postgresql://, postgresql+psycopg2:// or sqlite://"
            )
        return value


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return Settings()
