"""Application configuration."""

import os
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    ttl_seconds: int = Field(
        default=86400,
        gt=0,
        validation_alias=AliasChoices("TTL", "TTL_SECONDS"),
    )
    store_backend: Literal["memory", "redis", "cloudflare"] = "memory"
    store_timeout_seconds: float = Field(default=5.0, gt=0)
    key_prefix: str = "session:"
    redis_url: str = "redis://localhost:6379/0"
    cloudflare_account_id: str | None = None
    cloudflare_namespace_id: str | None = None
    cloudflare_api_token: str | None = None
    cloudflare_base_url: str = "https://api.cloudflare.com/client/v4"
    max_write_attempts: int = Field(default=3, ge=1)
    admin_token: str | None = None
    cors_allow_origins: list[str] = ["*"]
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
        populate_by_name=True,
    )
