"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.errors import register_exception_handlers
from src.api.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from src.api.routes import health, metrics, organizations
from src.core.config import Settings, get_settings
from src.core.database import create_engine, create_session_factory
from src.core.structured_logging import configure_logging, log_json
from src.repositories.memory_repository import InMemoryOrganizationRepository
from src.repositories.sql_repository import SqlOrganizationRepository
from src.services.event_publisher import build_event_publisher
from src.services.org_service import OrganizationService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build storage, publisher and service; release them on shutdown."""
    settings: Settings = app.state.settings

    engine = None
    if settings.storage_backend == "postgres":
        engine = create_engine(settings)
        repository = SqlOrganizationRepository(create_session_factory(engine))
    else:
        repository = InMemoryOrganizationRepository()

    publisher = build_event_publisher(settings)
    app.state.engine = engine
    app.state.org_service = OrganizationService(repository, publisher)
    log_json(
        logger,
        logging.INFO,
        "startup",
        storage_backend=settings.storage_backend,
        publisher=type(publisher).__name__,
    )

    try:
        yield
    finally:
        publisher.close()
        if engine is not None:
            await engine.dispose()
        log_json(logger, logging.INFO, "shutdown")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    docs_enabled = settings.api_docs_enabled
    if docs_enabled is None:
        docs_enabled = settings.environment != "production"

    app = FastAPI(
        title="Organization Registry API",
        description="Organizations, their addresses, contacts and members",
        version="1.0.0",
        docs_url="/api/docs" if docs_enabled else None,
        redoc_url="/api/redoc" if docs_enabled else None,
        openapi_url="/api/openapi.json" if docs_enabled else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Middleware is applied in reverse order: request logging is outermost.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )
    app.add_middleware(
        SecurityHeadersMiddleware, hsts=settings.environment == "production"
    )
    app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app)

    app.include_router(health.router, tags=["health"])
    app.include_router(metrics.router, tags=["metrics"])
    app.include_router(
        organizations.router, prefix="/api/v1/organizations", tags=["organizations"]
    )
    return app


app = create_app()
