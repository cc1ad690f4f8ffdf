"""Organization API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from src.api.deps import get_actor_id, get_org_service
from src.api.errors import error_response
from src.repositories.query import parse_tags
from src.schemas.organization import (
    BulkCreateRequest,
    BulkCreateResponse,
    BulkDeleteRequest,
    BulkDeleteResponse,
    BulkUpdateRequest,
    BulkUpdateResponse,
    CreateOrganizationRequest,
    ListOrganizationsQuery,
    MemberPage,
    Organization,
    OrganizationPage,
    PatchOrganizationRequest,
    ReplaceOrganizationRequest,
)
from src.services.org_service import OrganizationService

router = APIRouter()

_NOT_FOUND = "Organization not found"


def _not_found(message: str = _NOT_FOUND):
    return error_response(status.HTTP_404_NOT_FOUND, "not_found", message)


@router.post(
    "",
    response_model=Organization,
    status_code=status.HTTP_201_CREATED,
    summary="Create organization",
)
async def create_organization(
    request: CreateOrganizationRequest,
    service: OrganizationService = Depends(get_org_service),
    actor_id: UUID | None = Depends(get_actor_id),
) -> Organization:
    """Create an organization with its addresses and contacts.

    Raises:
        400 if the name is blank
    """
    return await service.create(request, actor_id)


@router.get(
    "",
    response_model=OrganizationPage,
    summary="List organizations",
)
async def list_organizations(
    tenant_id: UUID | None = Query(default=None, alias="tenantId"),
    q: str = Query(default=""),
    status_filter: str = Query(default="", alias="status"),
    tags: str = Query(default="", description="Comma-separated, all must match"),
    sort_by: str = Query(default="createdAt", alias="sortBy"),
    sort_dir: str = Query(default="desc", alias="sortDir"),
    limit: int = Query(default=50),
    offset: int = Query(default=0),
    service: OrganizationService = Depends(get_org_service),
) -> OrganizationPage:
    """List live organizations.

    Out-of-range ``limit``/``offset`` values are clamped, never rejected.
    """
    query = ListOrganizationsQuery(
        tenant_id=tenant_id,
        q=q,
        status=status_filter,
        tags=parse_tags(tags),
        sort_by=sort_by,
        sort_dir=sort_dir,
        limit=limit,
        offset=offset,
    )
    return await service.list(query)


@router.post(
    "/bulk",
    response_model=BulkCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create several organizations",
)
async def bulk_create_organizations(
    request: BulkCreateRequest,
    service: OrganizationService = Depends(get_org_service),
    actor_id: UUID | None = Depends(get_actor_id),
) -> BulkCreateResponse:
    """Create organizations in order, stopping at the first failure.

    Raises:
        500 with ``details.processed`` when an item fails
    """
    created = await service.bulk_create(request.items, actor_id)
    return BulkCreateResponse(items=created, total=len(created))


@router.patch(
    "/bulk",
    response_model=BulkUpdateResponse,
    summary="Apply one patch to several organizations",
)
async def bulk_update_organizations(
    request: BulkUpdateRequest,
    service: OrganizationService = Depends(get_org_service),
    actor_id: UUID | None = Depends(get_actor_id),
) -> BulkUpdateResponse:
    updated = await service.bulk_update(request.ids, request.patch.to_patch(), actor_id)
    return BulkUpdateResponse(updated=len(updated))


@router.delete(
    "/bulk",
    response_model=BulkDeleteResponse,
    summary="Soft delete several organizations",
)
async def bulk_delete_organizations(
    request: BulkDeleteRequest,
    service: OrganizationService = Depends(get_org_service),
    actor_id: UUID | None = Depends(get_actor_id),
) -> BulkDeleteResponse:
    deleted = await service.bulk_delete(request.ids, actor_id)
    return BulkDeleteResponse(deleted=len(deleted))


@router.get(
    "/{org_id}",
    response_model=Organization,
    summary="Get organization details",
)
async def get_organization(
    org_id: UUID,
    service: OrganizationService = Depends(get_org_service),
):
    org = await service.get(org_id)
    if org is None:
        return _not_found()
    return org


@router.put(
    "/{org_id}",
    response_model=Organization,
    summary="Replace organization",
    description="Overwrites every mutable field; omitted optional fields are cleared.",
)
async def replace_organization(
    org_id: UUID,
    request: ReplaceOrganizationRequest,
    service: OrganizationService = Depends(get_org_service),
    actor_id: UUID | None = Depends(get_actor_id),
):
    org = await service.replace(org_id, request, actor_id)
    if org is None:
        return _not_found()
    return org


@router.patch(
    "/{org_id}",
    response_model=Organization,
    summary="Partially update organization",
)
async def patch_organization(
    org_id: UUID,
    request: PatchOrganizationRequest,
    service: OrganizationService = Depends(get_org_service),
    actor_id: UUID | None = Depends(get_actor_id),
):
    """Update only the fields present in the body.

    ``tenantId``/``legalCode`` set to null are cleared; a list for ``tags``,
    ``addresses`` or ``contacts`` replaces the whole sequence.
    """
    org = await service.patch(org_id, request.to_patch(), actor_id)
    if org is None:
        return _not_found()
    return org


@router.delete(
    "/{org_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Soft delete organization",
)
async def delete_organization(
    org_id: UUID,
    service: OrganizationService = Depends(get_org_service),
    actor_id: UUID | None = Depends(get_actor_id),
):
    if not await service.delete(org_id, actor_id):
        return _not_found()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{org_id}/restore",
    response_model=Organization,
    summary="Restore a soft-deleted organization",
)
async def restore_organization(
    org_id: UUID,
    service: OrganizationService = Depends(get_org_service),
    actor_id: UUID | None = Depends(get_actor_id),
):
    org = await service.restore(org_id, actor_id)
    if org is None:
        return _not_found("Deleted organization not found")
    return org


@router.post(
    "/{org_id}/members/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Add member",
    description="Idempotent; adding an existing member succeeds.",
)
async def add_member(
    org_id: UUID,
    user_id: UUID,
    service: OrganizationService = Depends(get_org_service),
):
    if not await service.add_member(org_id, user_id):
        return _not_found()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "/{org_id}/members/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove member",
)
async def remove_member(
    org_id: UUID,
    user_id: UUID,
    service: OrganizationService = Depends(get_org_service),
):
    if not await service.remove_member(org_id, user_id):
        return _not_found("Membership not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/{org_id}/members",
    response_model=MemberPage,
    summary="List member user ids",
)
async def list_members(
    org_id: UUID,
    limit: int = Query(default=50),
    offset: int = Query(default=0),
    service: OrganizationService = Depends(get_org_service),
) -> MemberPage:
    return await service.list_members(org_id, limit, offset)
