"""Configuration settings using Pydantic Settings."""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Built once at process start and handed to the components that need it;
    nothing below the application edge calls :func:`get_settings`.
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    environment: Literal["development", "production"] = "development"
    api_docs_enabled: bool | None = None
    log_level: str = "INFO"

    # Storage
    storage_backend: Literal["memory", "postgres"] = "memory"
    database_url: str | None = None
    db_pool_size: int = 10
    db_max_overflow: int = 0
    db_pool_recycle_seconds: int = 1800
    db_statement_timeout_ms: int = 0
    slow_query_ms: float = 0

    # Event publishing (empty URL = log-only publisher)
    rabbitmq_url: str = ""
    rabbitmq_exchange: str = "domain.events"
    rabbitmq_routing_key_created: str = "organization.created"
    rabbitmq_routing_key_updated: str = "organization.updated"
    rabbitmq_routing_key_deleted: str = "organization.deleted"
    event_schema_version: str = "1"

    # CORS
    # NoDecode: env values are comma-separated, not JSON.
    cors_allow_origins: Annotated[list[str], NoDecode] = ["*"]
    cors_allow_methods: Annotated[list[str], NoDecode] = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
    cors_allow_headers: Annotated[list[str], NoDecode] = [
        "Accept",
        "Authorization",
        "Content-Type",
        "X-Request-ID",
        "X-User-ID",
    ]
    cors_allow_credentials: bool = False

    @field_validator(
        "cors_allow_origins",
        "cors_allow_methods",
        "cors_allow_headers",
        mode="before",
    )
    @classmethod
    def _parse_csv_lists(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @model_validator(mode="after")
    def _validate_storage(self) -> Settings:
        if self.storage_backend == "postgres" and not self.database_url:
            raise ValueError("DATABASE_URL is required when STORAGE_BACKEND=postgres")
        return self

    @model_validator(mode="after")
    def _validate_production_settings(self) -> Settings:
        if self.environment != "production":
            return self

        if self.storage_backend != "postgres":
            raise ValueError("STORAGE_BACKEND must be postgres in production")
        if any(x == "*" for x in self.cors_allow_origins):
            raise ValueError("CORS_ALLOW_ORIGINS cannot contain '*' in production")
        if any(x == "*" for x in self.cors_allow_methods):
            raise ValueError("CORS_ALLOW_METHODS cannot contain '*' in production")

        return self

    @property
    def async_database_url(self) -> str | None:
        """Database URL with the asyncpg driver selected."""
        if not self.database_url:
            return None
        if self.database_url.startswith("postgresql://"):
            return self.database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return self.database_url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
