"""PostgreSQL organization repository.

Every mutation that touches more than one row runs in one explicit
transaction; a failure rolls all of it back. Conditional updates guarded by
``deleted_at`` double as the found/not-found signal. Updates are last write
wins: there is no row locking beyond those guards.

Cancelling the calling task propagates into the running statement; the
enclosing ``session.begin()`` then rolls the transaction back and the
connection returns to the pool.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from uuid import UUID, uuid4

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from src.core.errors import RepositoryError
from src.core.structured_logging import log_json
from src.models.enums import OrganizationStatus, SortField
from src.models.organization import (
    AddressRecord,
    ContactRecord,
    MembershipRecord,
    OrganizationRecord,
)
from src.repositories.base import BulkOperationsMixin
from src.repositories.query import (
    clamp_limit,
    clamp_offset,
    contacts_with_owner,
    normalize_list_query,
    require_name,
    validate_patch,
    validate_write,
    with_owner,
)
from src.schemas.organization import (
    Address,
    Contact,
    CreateOrganizationRequest,
    ListOrganizationsQuery,
    MemberPage,
    NormalizedListQuery,
    Organization,
    OrganizationPage,
    OrganizationPatch,
    ReplaceOrganizationRequest,
)

logger = logging.getLogger(__name__)

_live = OrganizationRecord.deleted_at.is_(None)


def _touched_at():
    """``updated_at`` for a write: now, but never earlier than the stored value."""
    return func.greatest(func.now(), OrganizationRecord.updated_at)


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except (SQLAlchemyError, OSError) as exc:
        log_json(
            logger,
            logging.ERROR,
            "organization_storage_error",
            operation=operation,
            error=str(exc),
            exception=exc.__class__.__name__,
        )
        raise RepositoryError(operation) from exc


class SqlOrganizationRepository(BulkOperationsMixin):
    """Relational implementation of :class:`~src.repositories.base.OrganizationRepository`."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """Initialize repository.

        Args:
            session_factory: Factory producing sessions on the organizations database
        """
        self._session_factory = session_factory

    async def create(
        self, request: CreateOrganizationRequest, actor_id: UUID | None = None
    ) -> Organization:
        name = validate_write(request)
        org_id = uuid4()
        with _storage_errors("create"):
            async with self._session_factory() as session, session.begin():
                await session.execute(
                    insert(OrganizationRecord).values(
                        id=org_id,
                        tenant_id=request.tenant_id,
                        name=name,
                        legal_code=request.legal_code,
                        status=OrganizationStatus.normalize(request.status).value,
                        tags=list(request.tags),
                        created_by=actor_id,
                        updated_by=actor_id,
                    )
                )
                await self._insert_addresses(session, with_owner(request.addresses, org_id))
                await self._insert_contacts(session, contacts_with_owner(request.contacts, org_id))
                return await self._load(session, org_id, include_deleted=True)

    async def get(self, org_id: UUID) -> Organization | None:
        with _storage_errors("get"):
            async with self._session_factory() as session:
                return await self._load(session, org_id)

    async def list(self, query: ListOrganizationsQuery) -> OrganizationPage:
        normalized = normalize_list_query(query)
        filters = self._filters(normalized)

        if normalized.sort_field is SortField.NAME:
            sort_column = func.lower(OrganizationRecord.name).collate("C")
        elif normalized.sort_field is SortField.UPDATED_AT:
            sort_column = OrganizationRecord.updated_at
        else:
            sort_column = OrganizationRecord.created_at
        ordering = sort_column.desc() if normalized.descending else sort_column.asc()

        stmt = (
            select(OrganizationRecord)
            .where(*filters)
            .options(
                selectinload(OrganizationRecord.addresses),
                selectinload(OrganizationRecord.contacts),
            )
            .order_by(ordering, OrganizationRecord.id.asc())
            .limit(normalized.limit)
            .offset(normalized.offset)
        )
        count_stmt = select(func.count()).select_from(OrganizationRecord).where(*filters)

        with _storage_errors("list"):
            async with self._session_factory() as session:
                total = await session.scalar(count_stmt)
                result = await session.execute(stmt)
                items = [Organization.model_validate(r) for r in result.scalars().all()]

        return OrganizationPage(
            items=items,
            total=int(total or 0),
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
        values = {
            "tenant_id": request.tenant_id,
            "name": name,
            "legal_code": request.legal_code,
            "status": OrganizationStatus.normalize(request.status).value,
            "tags": list(request.tags),
        }
        with _storage_errors("replace"):
            async with self._session_factory() as session, session.begin():
                if not await self._update_live(session, org_id, values, actor_id):
                    return None
                await self._replace_addresses(session, org_id, request.addresses)
                await self._replace_contacts(session, org_id, request.contacts)
                return await self._load(session, org_id)

    async def patch(
        self,
        org_id: UUID,
        patch: OrganizationPatch,
        actor_id: UUID | None = None,
    ) -> Organization | None:
        validate_patch(patch)
        values = patch.scalar_changes()
        if "name" in values:
            values["name"] = require_name(values["name"])
        if "status" in values:
            values["status"] = OrganizationStatus.normalize(values["status"]).value
        if "tags" in values:
            values["tags"] = list(values["tags"])

        with _storage_errors("patch"):
            async with self._session_factory() as session, session.begin():
                # Untouched columns are left out; the audit fields are always
                # refreshed and the same statement checks the row is live.
                if not await self._update_live(session, org_id, values, actor_id):
                    return None
                if patch.addresses.is_set:
                    await self._replace_addresses(session, org_id, patch.addresses.value)
                if patch.contacts.is_set:
                    await self._replace_contacts(session, org_id, patch.contacts.value)
                return await self._load(session, org_id)

    async def soft_delete(
        self, org_id: UUID, actor_id: UUID | None = None
    ) -> Organization | None:
        stmt = (
            update(OrganizationRecord)
            .where(OrganizationRecord.id == org_id, _live)
            .values(deleted_at=_touched_at(), updated_at=_touched_at(), updated_by=actor_id)
            .returning(OrganizationRecord.id)
            .execution_options(synchronize_session=False)
        )
        with _storage_errors("soft_delete"):
            async with self._session_factory() as session, session.begin():
                result = await session.execute(stmt)
                if result.scalar_one_or_none() is None:
                    return None
                return await self._load(session, org_id, include_deleted=True)

    async def restore(
        self, org_id: UUID, actor_id: UUID | None = None
    ) -> Organization | None:
        stmt = (
            update(OrganizationRecord)
            .where(OrganizationRecord.id == org_id, OrganizationRecord.deleted_at.is_not(None))
            .values(deleted_at=None, updated_at=_touched_at(), updated_by=actor_id)
            .returning(OrganizationRecord.id)
            .execution_options(synchronize_session=False)
        )
        with _storage_errors("restore"):
            async with self._session_factory() as session, session.begin():
                result = await session.execute(stmt)
                if result.scalar_one_or_none() is None:
                    return None
                return await self._load(session, org_id)

    async def add_member(self, org_id: UUID, user_id: UUID) -> bool:
        with _storage_errors("add_member"):
            async with self._session_factory() as session, session.begin():
                found = await session.scalar(
                    select(OrganizationRecord.id).where(OrganizationRecord.id == org_id, _live)
                )
                if found is None:
                    return False
                await session.execute(
                    pg_insert(MembershipRecord)
                    .values(user_id=user_id, org_id=org_id)
                    .on_conflict_do_nothing(index_elements=["user_id", "org_id"])
                )
                return True

    async def remove_member(self, org_id: UUID, user_id: UUID) -> bool:
        stmt = (
            delete(MembershipRecord)
            .where(MembershipRecord.org_id == org_id, MembershipRecord.user_id == user_id)
            .returning(MembershipRecord.user_id)
        )
        with _storage_errors("remove_member"):
            async with self._session_factory() as session, session.begin():
                result = await session.execute(stmt)
                return result.scalar_one_or_none() is not None

    async def list_members(
        self, org_id: UUID, limit: int = 50, offset: int = 0
    ) -> MemberPage:
        limit = clamp_limit(limit)
        offset = clamp_offset(offset)
        with _storage_errors("list_members"):
            async with self._session_factory() as session:
                total = await session.scalar(
                    select(func.count())
                    .select_from(MembershipRecord)
                    .where(MembershipRecord.org_id == org_id)
                )
                result = await session.execute(
                    select(MembershipRecord.user_id)
                    .where(MembershipRecord.org_id == org_id)
                    .order_by(MembershipRecord.user_id)
                    .limit(limit)
                    .offset(offset)
                )
                members = list(result.scalars().all())
        return MemberPage(items=members, total=int(total or 0), limit=limit, offset=offset)

    @staticmethod
    def _filters(query: NormalizedListQuery) -> list:
        filters = [_live]
        if query.tenant_id is not None:
            filters.append(OrganizationRecord.tenant_id == query.tenant_id)
        if query.q:
            filters.append(
                OrganizationRecord.name.icontains(query.q, autoescape=True)
                | OrganizationRecord.legal_code.icontains(query.q, autoescape=True)
            )
        if query.status:
            filters.append(func.lower(OrganizationRecord.status) == query.status)
        if query.tags:
            filters.append(OrganizationRecord.tags.contains(query.tags))
        return filters

    @staticmethod
    async def _update_live(
        session: AsyncSession,
        org_id: UUID,
        values: dict,
        actor_id: UUID | None,
    ) -> bool:
        stmt = (
            update(OrganizationRecord)
            .where(OrganizationRecord.id == org_id, _live)
            .values(**values, updated_at=_touched_at(), updated_by=actor_id)
            .returning(OrganizationRecord.id)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def _load(
        session: AsyncSession, org_id: UUID, include_deleted: bool = False
    ) -> Organization | None:
        stmt = (
            select(OrganizationRecord)
            .where(OrganizationRecord.id == org_id)
            .options(
                selectinload(OrganizationRecord.addresses),
                selectinload(OrganizationRecord.contacts),
            )
            .execution_options(populate_existing=True)
        )
        if not include_deleted:
            stmt = stmt.where(_live)
        record = (await session.execute(stmt)).scalar_one_or_none()
        if record is None:
            return None
        return Organization.model_validate(record)

    async def _replace_addresses(
        self, session: AsyncSession, org_id: UUID, addresses: list[Address]
    ) -> None:
        await session.execute(delete(AddressRecord).where(AddressRecord.organization_id == org_id))
        await self._insert_addresses(session, with_owner(addresses, org_id))

    async def _replace_contacts(
        self, session: AsyncSession, org_id: UUID, contacts: list[Contact]
    ) -> None:
        await session.execute(delete(ContactRecord).where(ContactRecord.organization_id == org_id))
        await self._insert_contacts(session, contacts_with_owner(contacts, org_id))

    @staticmethod
    async def _insert_addresses(session: AsyncSession, addresses: list[Address]) -> None:
        if not addresses:
            return
        rows = [
            {
                "id": address.id,
                "organization_id": address.organization_id,
                "position": position,
                "type": address.type.value,
                "country": address.country,
                "region": address.region,
                "city": address.city,
                "street": address.street,
                "zip": address.zip,
            }
            for position, address in enumerate(addresses)
        ]
        await session.execute(insert(AddressRecord), rows)

    @staticmethod
    async def _insert_contacts(session: AsyncSession, contacts: list[Contact]) -> None:
        if not contacts:
            return
        rows = [
            {
                "id": contact.id,
                "organization_id": contact.organization_id,
                "position": position,
                "type": contact.type.value,
                "value": contact.value,
                "is_primary": contact.is_primary,
            }
            for position, contact in enumerate(contacts)
        ]
        await session.execute(insert(ContactRecord), rows)
