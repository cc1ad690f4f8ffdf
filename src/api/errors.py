"""Exception handlers mapping organization errors to ``ErrorResponse`` bodies."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.core.errors import (
    BulkOperationError,
    OrganizationValidationError,
    RepositoryError,
)
from src.core.structured_logging import log_json
from src.schemas.errors import ErrorResponse

logger = logging.getLogger(__name__)


def error_response(
    status_code: int,
    error: str,
    message: str,
    details: dict | None = None,
) -> JSONResponse:
    body = ErrorResponse(error=error, message=message, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


async def validation_error_handler(
    request: Request, exc: OrganizationValidationError
) -> JSONResponse:
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        "validation_error",
        exc.message,
        {"field": exc.field} if exc.field else None,
    )


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed JSON, bad UUIDs and unknown enum values."""
    errors = [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        "validation_error",
        "Request validation failed",
        {"errors": errors},
    )


async def bulk_error_handler(request: Request, exc: BulkOperationError) -> JSONResponse:
    """Report a stopped bulk operation with the progress made before it stopped.

    An invalid item is the caller's fault (400); anything else is a storage
    failure (500).
    """
    details = {"operation": exc.operation, "index": exc.index, "processed": exc.processed}
    if isinstance(exc.cause, OrganizationValidationError):
        details["field"] = exc.cause.field
        return error_response(
            status.HTTP_400_BAD_REQUEST,
            "bulk_validation_error",
            exc.message,
            details,
        )

    log_json(
        logger,
        logging.ERROR,
        "bulk_operation_failed",
        path=request.url.path,
        operation=exc.operation,
        index=exc.index,
        processed=exc.processed,
    )
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "bulk_operation_failed",
        exc.message,
        details,
    )


async def repository_error_handler(request: Request, exc: RepositoryError) -> JSONResponse:
    log_json(
        logger,
        logging.ERROR,
        "repository_error",
        path=request.url.path,
        operation=exc.operation,
        error=exc.message,
    )
    # Driver details stay in the logs.
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "storage_error",
        f"organization {exc.operation} failed",
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(OrganizationValidationError, validation_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(BulkOperationError, bulk_error_handler)
    app.add_exception_handler(RepositoryError, repository_error_handler)
