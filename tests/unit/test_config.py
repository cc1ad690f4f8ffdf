"""Unit tests for settings validation."""

import pytest
from pydantic import ValidationError

from src.core.config import Settings


def test_defaults_use_memory_backend():
    settings = Settings(_env_file=None)

    assert settings.storage_backend == "memory"
    assert settings.rabbitmq_exchange == "domain.events"
    assert settings.rabbitmq_routing_key_created == "organization.created"
    assert settings.event_schema_version == "1"


def test_postgres_backend_requires_database_url():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, storage_backend="postgres", database_url=None)


def test_async_database_url_selects_asyncpg():
    settings = Settings(
        _env_file=None,
        storage_backend="postgres",
        database_url="postgresql://u:p@db:5432/orgs",
    )

    assert settings.async_database_url == "postgresql+asyncpg://u:p@db:5432/orgs"


def test_cors_lists_parse_csv():
    settings = Settings(_env_file=None, cors_allow_origins="https://a.test, https://b.test")

    assert settings.cors_allow_origins == ["https://a.test", "https://b.test"]


def test_production_rejects_memory_backend():
    with pytest.raises(ValidationError):
        Settings(
            _env_file=None,
            environment="production",
            cors_allow_origins=["https://app.test"],
            cors_allow_methods=["GET"],
        )
