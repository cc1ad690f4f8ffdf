"""In-process organization repository.

Keeps organizations in a dict guarded by one collection-wide reader/writer
lock. Used when no database is configured and as the reference backend in
tests. Every value crossing the repository boundary is deep-copied so callers
can never mutate stored state through a returned reference.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from uuid import UUID, uuid4

from src.core.rwlock import ReadWriteLock
from src.models.enums import OrganizationStatus
from src.repositories.base import BulkOperationsMixin
from src.repositories.query import (
    clamp_limit,
    clamp_offset,
    contacts_with_owner,
    matches,
    normalize_list_query,
    order,
    require_name,
    validate_patch,
    validate_write,
    with_owner,
)
from src.schemas.organization import (
    CreateOrganizationRequest,
    ListOrganizationsQuery,
    MemberPage,
    Organization,
    OrganizationPage,
    OrganizationPatch,
    ReplaceOrganizationRequest,
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class InMemoryOrganizationRepository(BulkOperationsMixin):
    """Volatile implementation of :class:`~src.repositories.base.OrganizationRepository`."""

    def __init__(self, clock: Callable[[], datetime] | None = None):
        """Initialize an empty repository.

        Args:
            clock: Timestamp source, defaults to the current UTC time
        """
        self._clock = clock or _utcnow
        self._lock = ReadWriteLock()
        self._orgs: dict[UUID, Organization] = {}
        self._members: dict[UUID, set[UUID]] = {}

    def _touch(self, org: Organization) -> datetime:
        # updated_at never moves backwards, even if the clock does.
        return max(self._clock(), org.updated_at)

    async def create(
        self, request: CreateOrganizationRequest, actor_id: UUID | None = None
    ) -> Organization:
        name = validate_write(request)
        org_id = uuid4()
        now = self._clock()
        org = Organization(
            id=org_id,
            tenant_id=request.tenant_id,
            name=name,
            legal_code=request.legal_code,
            status=OrganizationStatus.normalize(request.status),
            tags=list(request.tags),
            addresses=with_owner(request.addresses, org_id),
            contacts=contacts_with_owner(request.contacts, org_id),
            created_at=now,
            updated_at=now,
            created_by=actor_id,
            updated_by=actor_id,
        )
        async with self._lock.write():
            self._orgs[org_id] = org
            return org.model_copy(deep=True)

    async def get(self, org_id: UUID) -> Organization | None:
        async with self._lock.read():
            org = self._orgs.get(org_id)
            if org is None or org.deleted_at is not None:
                return None
            return org.model_copy(deep=True)

    async def list(self, query: ListOrganizationsQuery) -> OrganizationPage:
        normalized = normalize_list_query(query)
        async with self._lock.read():
            found = [org for org in self._orgs.values() if matches(org, normalized)]
            ordered = order(found, normalized)
            window = ordered[normalized.offset : normalized.offset + normalized.limit]
            items = [org.model_copy(deep=True) for org in window]
        return OrganizationPage(
            items=items,
            total=len(found),
            limit=normalized.limit,
            offset=normalized.offset,
        )

    async def replace(
        self,
        org_id: UUID,
        request: ReplaceOrganizationRequest,
        actor_id: UUID | None = None,
    ) -> Organization | None:
        name = validate_write(request)
        async with self._lock.write():
            current = self._orgs.get(org_id)
            if current is None or current.deleted_at is not None:
                return None
            org = current.model_copy(
                update={
                    "tenant_id": request.tenant_id,
                    "name": name,
                    "legal_code": request.legal_code,
                    "status": OrganizationStatus.normalize(request.status),
                    "tags": list(request.tags),
                    "addresses": with_owner(request.addresses, org_id),
                    "contacts": contacts_with_owner(request.contacts, org_id),
                    "updated_at": self._touch(current),
                    "updated_by": actor_id,
                },
                deep=True,
            )
            self._orgs[org_id] = org
            return org.model_copy(deep=True)

    async def patch(
        self,
        org_id: UUID,
        patch: OrganizationPatch,
        actor_id: UUID | None = None,
    ) -> Organization | None:
        validate_patch(patch)
        update = patch.scalar_changes()
        if "name" in update:
            update["name"] = require_name(update["name"])
        if "status" in update:
            update["status"] = OrganizationStatus.normalize(update["status"])
        if "tags" in update:
            update["tags"] = list(update["tags"])
        if patch.addresses.is_set:
            update["addresses"] = with_owner(patch.addresses.value, org_id)
        if patch.contacts.is_set:
            update["contacts"] = contacts_with_owner(patch.contacts.value, org_id)

        async with self._lock.write():
            current = self._orgs.get(org_id)
            if current is None or current.deleted_at is not None:
                return None
            update["updated_at"] = self._touch(current)
            update["updated_by"] = actor_id
            org = current.model_copy(update=update, deep=True)
            self._orgs[org_id] = org
            return org.model_copy(deep=True)

    async def soft_delete(
        self, org_id: UUID, actor_id: UUID | None = None
    ) -> Organization | None:
        async with self._lock.write():
            current = self._orgs.get(org_id)
            if current is None or current.deleted_at is not None:
                return None
            now = self._touch(current)
            org = current.model_copy(
                update={"deleted_at": now, "updated_at": now, "updated_by": actor_id},
                deep=True,
            )
            self._orgs[org_id] = org
            return org.model_copy(deep=True)

    async def restore(
        self, org_id: UUID, actor_id: UUID | None = None
    ) -> Organization | None:
        async with self._lock.write():
            current = self._orgs.get(org_id)
            if current is None or current.deleted_at is None:
                return None
            org = current.model_copy(
                update={
                    "deleted_at": None,
                    "updated_at": self._touch(current),
                    "updated_by": actor_id,
                },
                deep=True,
            )
            self._orgs[org_id] = org
            return org.model_copy(deep=True)

    async def add_member(self, org_id: UUID, user_id: UUID) -> bool:
        async with self._lock.write():
            org = self._orgs.get(org_id)
            if org is None or org.deleted_at is not None:
                return False
            self._members.setdefault(org_id, set()).add(user_id)
            return True

    async def remove_member(self, org_id: UUID, user_id: UUID) -> bool:
        async with self._lock.write():
            members = self._members.get(org_id)
            if not members or user_id not in members:
                return False
            members.discard(user_id)
            return True

    async def list_members(
        self, org_id: UUID, limit: int = 50, offset: int = 0
    ) -> MemberPage:
        limit = clamp_limit(limit)
        offset = clamp_offset(offset)
        async with self._lock.read():
            members = sorted(self._members.get(org_id, ()), key=str)
        return MemberPage(
            items=members[offset : offset + limit],
            total=len(members),
            limit=limit,
            offset=offset,
        )
