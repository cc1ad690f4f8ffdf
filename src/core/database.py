"""Database engine and session factory construction."""

from __future__ import annotations

import logging
import time

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from src.core.config import Settings
from src.core.structured_logging import log_json

logger = logging.getLogger(__name__)


def create_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine for the configured database.

    Args:
        settings: Application settings (``database_url`` must be set)

    Returns:
        AsyncEngine bound to asyncpg
    """
    url = settings.async_database_url
    if not url:
        raise ValueError("database_url is not configured")

    connect_args: dict = {}
    if settings.db_statement_timeout_ms > 0:
        connect_args["server_settings"] = {
            "statement_timeout": str(settings.db_statement_timeout_ms)
        }

    # Use NullPool for testing environments to avoid connection pool issues
    if "test" in url:
        engine = create_async_engine(
            url, echo=False, poolclass=NullPool, connect_args=connect_args
        )
    else:
        engine = create_async_engine(
            url,
            echo=False,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_recycle=settings.db_pool_recycle_seconds,
            pool_pre_ping=True,
            connect_args=connect_args,
        )

    if settings.slow_query_ms > 0:
        _install_slow_query_logging(engine, settings.slow_query_ms)
    return engine


def _install_slow_query_logging(engine: AsyncEngine, threshold_ms: float) -> None:
    @event.listens_for(engine.sync_engine, "before_cursor_execute")
    def _before_cursor_execute(
        conn, cursor, statement, parameters, context, executemany
    ) -> None:
        context._query_start_time = time.perf_counter()

    @event.listens_for(engine.sync_engine, "after_cursor_execute")
    def _after_cursor_execute(
        conn, cursor, statement, parameters, context, executemany
    ) -> None:
        start = getattr(context, "_query_start_time", None)
        if start is None:
            return

        duration_ms = (time.perf_counter() - start) * 1000
        if duration_ms < threshold_ms:
            return

        max_len = 2000
        stmt = str(statement)
        if len(stmt) > max_len:
            stmt = stmt[: max_len - 3] + "..."

        log_json(
            logger,
            logging.WARNING,
            "slow_query",
            duration_ms=round(duration_ms, 2),
            statement=stmt,
        )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the session factory used by the SQL repository."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
