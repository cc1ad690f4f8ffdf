"""Storage contract for organizations.

Two implementations exist: :class:`~src.repositories.sql_repository.SqlOrganizationRepository`
(PostgreSQL) and :class:`~src.repositories.memory_repository.InMemoryOrganizationRepository`.
Both must return identical results for identical calls.

Conventions:
    - ``None`` means "not found" (absent, tombstoned, or in the wrong
      tombstone state for delete/restore); it is never an error.
    - Storage failures raise :class:`~src.core.errors.RepositoryError`.
    - Bulk operations process items in order and raise
      :class:`~src.core.errors.BulkOperationError` carrying what already
      succeeded when an item fails.
    - ``actor_id`` fills the ``created_by``/``updated_by`` audit fields.
    - Memberships can only be added to live organizations; adding an
      existing membership again is a no-op that still reports success.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable
from uuid import UUID

from src.core.errors import BulkOperationError, OrganizationError
from src.schemas.organization import (
    CreateOrganizationRequest,
    ListOrganizationsQuery,
    MemberPage,
    Organization,
    OrganizationPage,
    OrganizationPatch,
    ReplaceOrganizationRequest,
)


@runtime_checkable
class OrganizationRepository(Protocol):
    """Repository contract satisfied by every organization storage backend."""

    async def create(
        self, request: CreateOrganizationRequest, actor_id: UUID | None = None
    ) -> Organization: ...

    async def get(self, org_id: UUID) -> Organization | None: ...

    async def list(self, query: ListOrganizationsQuery) -> OrganizationPage: ...

    async def replace(
        self,
        org_id: UUID,
        request: ReplaceOrganizationRequest,
        actor_id: UUID | None = None,
    ) -> Organization | None: ...

    async def patch(
        self,
        org_id: UUID,
        patch: OrganizationPatch,
        actor_id: UUID | None = None,
    ) -> Organization | None: ...

    async def soft_delete(
        self, org_id: UUID, actor_id: UUID | None = None
    ) -> Organization | None: ...

    async def restore(
        self, org_id: UUID, actor_id: UUID | None = None
    ) -> Organization | None: ...

    async def bulk_create(
        self,
        requests: list[CreateOrganizationRequest],
        actor_id: UUID | None = None,
    ) -> list[Organization]: ...

    async def bulk_update(
        self,
        org_ids: list[UUID],
        patch: OrganizationPatch,
        actor_id: UUID | None = None,
    ) -> list[Organization]: ...

    async def bulk_delete(
        self, org_ids: list[UUID], actor_id: UUID | None = None
    ) -> list[Organization]: ...

    async def add_member(self, org_id: UUID, user_id: UUID) -> bool: ...

    async def remove_member(self, org_id: UUID, user_id: UUID) -> bool: ...

    async def list_members(
        self, org_id: UUID, limit: int = 50, offset: int = 0
    ) -> MemberPage: ...


class BulkOperationsMixin:
    """Bulk operations as ordered, one-by-one single-entity calls.

    Each item runs in its own unit of work; nothing spans the whole batch.
    """

    async def bulk_create(
        self,
        requests: list[CreateOrganizationRequest],
        actor_id: UUID | None = None,
    ) -> list[Organization]:
        created: list[Organization] = []
        for index, request in enumerate(requests):
            try:
                created.append(await self.create(request, actor_id))
            except OrganizationError as exc:
                raise BulkOperationError("bulk_create", index, created, exc) from exc
        return created

    async def bulk_update(
        self,
        org_ids: list[UUID],
        patch: OrganizationPatch,
        actor_id: UUID | None = None,
    ) -> list[Organization]:
        updated: list[Organization] = []
        for index, org_id in enumerate(org_ids):
            try:
                org = await self.patch(org_id, patch, actor_id)
            except OrganizationError as exc:
                raise BulkOperationError("bulk_update", index, updated, exc) from exc
            if org is not None:
                updated.append(org)
        return updated

    async def bulk_delete(
        self, org_ids: list[UUID], actor_id: UUID | None = None
    ) -> list[Organization]:
        deleted: list[Organization] = []
        for index, org_id in enumerate(org_ids):
            try:
                org = await self.soft_delete(org_id, actor_id)
            except OrganizationError as exc:
                raise BulkOperationError("bulk_delete", index, deleted, exc) from exc
            if org is not None:
                deleted.append(org)
        return deleted
