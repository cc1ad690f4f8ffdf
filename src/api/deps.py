"""FastAPI dependencies for the organization endpoints."""

from uuid import UUID

from fastapi import Header, Request

from src.services.org_service import OrganizationService


def get_org_service(request: Request) -> OrganizationService:
    """Return the service built at application startup.

    Tests override this dependency to inject a service over the in-memory
    repository.
    """
    return request.app.state.org_service


async def get_actor_id(
    x_user_id: str | None = Header(default=None, alias="X-User-ID"),
) -> UUID | None:
    """Acting user for the audit fields.

    Authentication happens upstream; a missing or malformed header simply
    leaves ``created_by``/``updated_by`` empty.
    """
    if not x_user_id:
        return None
    try:
        return UUID(x_user_id.strip())
    except ValueError:
        return None
