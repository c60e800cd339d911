"""
Configuration and settings for the booking backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # Database (Postgres expected)
    database_url: Optional[str] = Field(default=None, validation_alias="DATABASE_URL")

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, validation_alias="STAYEASE_USE_IN_MEMORY_BACKENDS"
    )

    # Per-property booking locks (Redis when configured)
    redis_url: Optional[str] = Field(default=None, validation_alias="REDIS_URL")
    redis_lock_prefix: str = Field(
        default="stayease:lock", validation_alias="REDIS_LOCK_PREFIX"
    )
    booking_lock_timeout_seconds: float = Field(
        default=30.0, validation_alias="BOOKING_LOCK_TIMEOUT_SECONDS"
    )
    booking_lock_wait_seconds: float = Field(
        default=10.0, validation_alias="BOOKING_LOCK_WAIT_SECONDS"
    )

    # S3-compatible storage for listing photos
    s3_endpoint: Optional[str] = Field(default=None, validation_alias="S3_ENDPOINT")
    s3_region: Optional[str] = Field(default=None, validation_alias="S3_REGION")
    s3_bucket: Optional[str] = Field(default=None, validation_alias="S3_BUCKET")
    aws_access_key_id: Optional[str] = Field(
        default=None, validation_alias="AWS_ACCESS_KEY_ID"
    )
    aws_secret_access_key: Optional[str] = Field(
        default=None, validation_alias="AWS_SECRET_ACCESS_KEY"
    )
    photo_prefix: str = Field(default="listings", validation_alias="PHOTO_PREFIX")

    # Outgoing mail; without a host, messages are only logged.
    smtp_host: Optional[str] = Field(default=None, validation_alias="SMTP_HOST")
    smtp_port: int = Field(default=587, validation_alias="SMTP_PORT")
    smtp_username: Optional[str] = Field(default=None, validation_alias="SMTP_USERNAME")
    smtp_password: Optional[str] = Field(default=None, validation_alias="SMTP_PASSWORD")
    email_sender: str = Field(
        default="StayEase <no-reply@stayease.local>", validation_alias="EMAIL_SENDER"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
