"""Organization service: validation, storage and change notifications."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from uuid import UUID

from src.core.errors import BulkOperationError
from src.core.metrics import observe_mutation
from src.core.request_context import get_request_id
from src.core.structured_logging import log_json
from src.repositories.base import OrganizationRepository
from src.repositories.query import validate_patch, validate_write
from src.schemas.organization import (
    CreateOrganizationRequest,
    ListOrganizationsQuery,
    MemberPage,
    Organization,
    OrganizationPage,
    OrganizationPatch,
    ReplaceOrganizationRequest,
)
from src.services.event_publisher import EventPublisher

logger = logging.getLogger(__name__)

Notify = Callable[[Organization, str | None], Awaitable[None]]


class OrganizationService:
    """Service for managing organizations.

    Mutations are written through the repository first and announced through
    the publisher afterwards. A failed publish is logged and never turns a
    successful write into an error.
    """

    def __init__(self, repository: OrganizationRepository, publisher: EventPublisher):
        """Initialize organization service.

        Args:
            repository: Storage backend (SQL or in-memory)
            publisher: Destination for created/updated/deleted events
        """
        self.repository = repository
        self.publisher = publisher

    async def create(
        self, request: CreateOrganizationRequest, actor_id: UUID | None = None
    ) -> Organization:
        """Create an organization.

        Raises:
            OrganizationValidationError: name is blank or a value is too long
            RepositoryError: storage failure
        """
        validate_write(request)
        org = await self.repository.create(request, actor_id)
        self._record("create", org)
        await self._notify(self.publisher.organization_created, org)
        return org

    async def get(self, org_id: UUID) -> Organization | None:
        return await self.repository.get(org_id)

    async def list(self, query: ListOrganizationsQuery) -> OrganizationPage:
        return await self.repository.list(query)

    async def replace(
        self,
        org_id: UUID,
        request: ReplaceOrganizationRequest,
        actor_id: UUID | None = None,
    ) -> Organization | None:
        """Overwrite every mutable field; ``None`` when the organization is not live."""
        validate_write(request)
        org = await self.repository.replace(org_id, request, actor_id)
        if org is None:
            observe_mutation("replace", "not_found")
            return None
        self._record("replace", org)
        await self._notify(self.publisher.organization_updated, org)
        return org

    async def patch(
        self,
        org_id: UUID,
        patch: OrganizationPatch,
        actor_id: UUID | None = None,
    ) -> Organization | None:
        """Apply a partial update; ``None`` when the organization is not live."""
        validate_patch(patch)
        org = await self.repository.patch(org_id, patch, actor_id)
        if org is None:
            observe_mutation("patch", "not_found")
            return None
        self._record("patch", org)
        await self._notify(self.publisher.organization_updated, org)
        return org

    async def delete(self, org_id: UUID, actor_id: UUID | None = None) -> bool:
        """Soft delete; False when the organization is absent or already deleted."""
        org = await self.repository.soft_delete(org_id, actor_id)
        if org is None:
            observe_mutation("delete", "not_found")
            return False
        self._record("delete", org)
        await self._notify(self.publisher.organization_deleted, org)
        return True

    async def restore(
        self, org_id: UUID, actor_id: UUID | None = None
    ) -> Organization | None:
        org = await self.repository.restore(org_id, actor_id)
        if org is None:
            observe_mutation("restore", "not_found")
            return None
        self._record("restore", org)
        await self._notify(self.publisher.organization_updated, org)
        return org

    async def bulk_create(
        self,
        requests: list[CreateOrganizationRequest],
        actor_id: UUID | None = None,
    ) -> list[Organization]:
        """Create organizations in order.

        On failure the organizations created before the failing item are
        still announced, then the :class:`BulkOperationError` propagates.
        """
        return await self._bulk(
            "bulk_create",
            self.repository.bulk_create(requests, actor_id),
            self.publisher.organization_created,
        )

    async def bulk_update(
        self,
        org_ids: list[UUID],
        patch: OrganizationPatch,
        actor_id: UUID | None = None,
    ) -> list[Organization]:
        validate_patch(patch)
        return await self._bulk(
            "bulk_update",
            self.repository.bulk_update(org_ids, patch, actor_id),
            self.publisher.organization_updated,
        )

    async def bulk_delete(
        self, org_ids: list[UUID], actor_id: UUID | None = None
    ) -> list[Organization]:
        return await self._bulk(
            "bulk_delete",
            self.repository.bulk_delete(org_ids, actor_id),
            self.publisher.organization_deleted,
        )

    async def add_member(self, org_id: UUID, user_id: UUID) -> bool:
        added = await self.repository.add_member(org_id, user_id)
        if added:
            log_json(
                logger,
                logging.INFO,
                "organization_member_added",
                org_id=str(org_id),
                user_id=str(user_id),
            )
        return added

    async def remove_member(self, org_id: UUID, user_id: UUID) -> bool:
        removed = await self.repository.remove_member(org_id, user_id)
        if removed:
            log_json(
                logger,
                logging.INFO,
                "organization_member_removed",
                org_id=str(org_id),
                user_id=str(user_id),
            )
        return removed

    async def list_members(
        self, org_id: UUID, limit: int = 50, offset: int = 0
    ) -> MemberPage:
        return await self.repository.list_members(org_id, limit, offset)

    async def _bulk(
        self,
        operation: str,
        pending: Awaitable[list[Organization]],
        notify: Notify,
    ) -> list[Organization]:
        try:
            orgs = await pending
        except BulkOperationError as exc:
            log_json(
                logger,
                logging.WARNING,
                "organization_bulk_partial",
                operation=operation,
                index=exc.index,
                processed=exc.processed,
                error=str(exc.cause),
            )
            observe_mutation(operation, "error")
            for org in exc.items:
                await self._notify(notify, org)
            raise

        log_json(logger, logging.INFO, "organization_bulk", operation=operation, count=len(orgs))
        observe_mutation(operation, "ok")
        for org in orgs:
            await self._notify(notify, org)
        return orgs

    def _record(self, operation: str, org: Organization) -> None:
        observe_mutation(operation, "ok")
        log_json(logger, logging.INFO, f"organization_{operation}", org_id=str(org.id))

    async def _notify(self, notify: Notify, org: Organization) -> None:
        try:
            await notify(org, get_request_id())
        except Exception as exc:
            log_json(
                logger,
                logging.WARNING,
                "organization_event_publish_failed",
                org_id=str(org.id),
                error=str(exc),
            )
