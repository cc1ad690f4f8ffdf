"""Error response schema shared by every endpoint."""

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Standard error response schema.

    Used for all error responses (4xx, 5xx) across the API.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "error": "validation_error",
                    "message": "name is required",
                    "details": {"field": "name"},
                },
                {
                    "error": "not_found",
                    "message": "Organization not found",
                },
                {
                    "error": "bulk_operation_failed",
                    "message": "bulk_create failed at item 2 after 2 succeeded",
                    "details": {"operation": "bulk_create", "index": 2, "processed": 2},
                },
            ]
        }
    )

    error: str = Field(
        ...,
        description="Error type identifier",
        examples=["validation_error", "not_found", "storage_error"],
    )
    message: str = Field(
        ...,
        description="Human-readable error message",
        examples=["name is required", "Organization not found"],
    )
    details: dict | None = Field(
        None,
        description="Additional error context (failing field, bulk progress, etc.)",
        examples=[{"field": "name"}],
    )
