"""Liveness and readiness checks."""

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Process is up."""
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(request: Request):
    """Storage is reachable.

    The in-memory backend is always ready; the Postgres backend runs
    ``SELECT 1`` on the engine.
    """
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        return {"status": "ok", "storage": "memory"}

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as exc:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unavailable", "storage": "postgres", "error": str(exc)},
        )
    return {"status": "ok", "storage": "postgres"}
