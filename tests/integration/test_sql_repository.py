"""Integration tests for the PostgreSQL organization repository.

Require PostgreSQL at TEST_DATABASE_URL; skipped when it is not reachable.
"""

import asyncio
from uuid import uuid4

import pytest
from sqlalchemy import select

from src.core.errors import BulkOperationError, OrganizationValidationError, RepositoryError
from src.models.enums import OrganizationStatus
from src.models.organization import AddressRecord
from src.repositories.base import OrganizationRepository
from src.schemas.organization import (
    Address,
    Contact,
    CreateOrganizationRequest,
    ListOrganizationsQuery,
    OrganizationPatch,
    PatchOrganizationRequest,
    ReplaceOrganizationRequest,
)
from src.schemas.patch import FieldPatch

pytestmark = pytest.mark.integration


def test_satisfies_repository_protocol(sql_repo):
    assert isinstance(sql_repo, OrganizationRepository)


@pytest.mark.asyncio
async def test_create_and_get_round_trip(sql_repo):
    actor = uuid4()
    tenant = uuid4()

    org = await sql_repo.create(
        CreateOrganizationRequest(
            tenant_id=tenant,
            name=" Acme ",
            legal_code="LC-1",
            status="Blocked",
            tags=["vip", "eu"],
            addresses=[
                Address(type="legal", city="Berlin"),
                Address(type="shipping", city="Hamburg"),
            ],
            contacts=[Contact(type="email", value="ops@acme.test", is_primary=True)],
        ),
        actor,
    )
    fetched = await sql_repo.get(org.id)

    assert fetched == org
    assert org.name == "Acme"
    assert org.status is OrganizationStatus.BLOCKED
    assert org.tenant_id == tenant
    assert org.created_by == actor
    # Owned sequences keep their order.
    assert [a.city for a in org.addresses] == ["Berlin", "Hamburg"]
    assert org.contacts[0].is_primary is True


@pytest.mark.asyncio
async def test_tombstoned_organization_is_invisible(sql_repo):
    org = await sql_repo.create(CreateOrganizationRequest(name="Acme"))

    deleted = await sql_repo.soft_delete(org.id)

    assert deleted.deleted_at is not None
    assert deleted.updated_at >= org.updated_at
    assert await sql_repo.get(org.id) is None
    assert (await sql_repo.list(ListOrganizationsQuery())).total == 0
    assert await sql_repo.patch(org.id, PatchOrganizationRequest(name="x").to_patch()) is None
    assert await sql_repo.replace(org.id, ReplaceOrganizationRequest(name="x")) is None
    assert await sql_repo.soft_delete(org.id) is None

    restored = await sql_repo.restore(org.id)
    assert restored is not None and restored.deleted_at is None
    assert await sql_repo.restore(org.id) is None


@pytest.mark.asyncio
async def test_patch_tags_tri_state(sql_repo):
    org = await sql_repo.create(CreateOrganizationRequest(name="Acme", tags=["a", "b"]))

    kept = await sql_repo.patch(org.id, PatchOrganizationRequest(name="Renamed").to_patch())
    assert kept.tags == ["a", "b"]
    assert kept.name == "Renamed"

    nulled = await sql_repo.patch(
        org.id, PatchOrganizationRequest.model_validate({"tags": None}).to_patch()
    )
    assert nulled.tags == ["a", "b"]

    emptied = await sql_repo.patch(
        org.id, PatchOrganizationRequest.model_validate({"tags": []}).to_patch()
    )
    assert emptied.tags == []


@pytest.mark.asyncio
@pytest.mark.parametrize("value", [FieldPatch.clear(), FieldPatch.set(None)])
async def test_patch_cleared_sequences_become_empty(sql_repo, value):
    org = await sql_repo.create(
        CreateOrganizationRequest(
            name="Acme",
            tags=["a"],
            addresses=[Address(type="legal")],
            contacts=[Contact(type="phone", value="+1")],
        )
    )

    patched = await sql_repo.patch(
        org.id, OrganizationPatch(tags=value, addresses=value, contacts=value)
    )

    assert patched.tags == []
    assert patched.addresses == []
    assert patched.contacts == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (None, OrganizationStatus.ACTIVE),
        ("", OrganizationStatus.ACTIVE),
        ("BOGUS", OrganizationStatus.ACTIVE),
        ("blocked", OrganizationStatus.BLOCKED),
    ],
)
async def test_create_normalizes_status(sql_repo, status, expected):
    org = await sql_repo.create(CreateOrganizationRequest(name="Acme", status=status))

    assert org.status is expected
    assert (await sql_repo.get(org.id)).status is expected


@pytest.mark.asyncio
async def test_patch_clears_nullable_fields(sql_repo):
    org = await sql_repo.create(
        CreateOrganizationRequest(name="Acme", tenant_id=uuid4(), legal_code="LC")
    )

    patched = await sql_repo.patch(
        org.id,
        PatchOrganizationRequest.model_validate({"tenantId": None, "legalCode": None}).to_patch(),
    )

    assert patched.tenant_id is None
    assert patched.legal_code is None


@pytest.mark.asyncio
async def test_empty_patch_refreshes_audit_fields(sql_repo):
    org = await sql_repo.create(CreateOrganizationRequest(name="Acme"))
    actor = uuid4()

    patched = await sql_repo.patch(org.id, PatchOrganizationRequest().to_patch(), actor)

    assert patched.updated_by == actor
    assert patched.updated_at >= org.updated_at


@pytest.mark.asyncio
async def test_patch_replaces_addresses_wholesale(sql_repo, pg_engine):
    org = await sql_repo.create(
        CreateOrganizationRequest(name="Acme", addresses=[Address(type="legal", city="Old")])
    )

    patched = await sql_repo.patch(
        org.id,
        PatchOrganizationRequest(addresses=[Address(type="actual", city="New")]).to_patch(),
    )

    assert [a.city for a in patched.addresses] == ["New"]
    async with pg_engine.connect() as conn:
        rows = (await conn.execute(select(AddressRecord.city))).scalars().all()
    assert rows == ["New"]


@pytest.mark.asyncio
async def test_replace_clears_omitted_owned_data(sql_repo):
    org = await sql_repo.create(
        CreateOrganizationRequest(
            name="Acme",
            legal_code="LC",
            tags=["x"],
            addresses=[Address(type="legal")],
            contacts=[Contact(type="phone", value="+1")],
        )
    )

    replaced = await sql_repo.replace(org.id, ReplaceOrganizationRequest(name="Acme 2"))

    assert replaced.name == "Acme 2"
    assert replaced.legal_code is None
    assert replaced.tags == []
    assert replaced.addresses == []
    assert replaced.contacts == []


@pytest.mark.asyncio
async def test_validation_happens_before_storage(sql_repo):
    with pytest.raises(OrganizationValidationError):
        await sql_repo.create(CreateOrganizationRequest(name=""))
    with pytest.raises(OrganizationValidationError):
        await sql_repo.create(CreateOrganizationRequest(name="x" * 300))
    with pytest.raises(OrganizationValidationError):
        await sql_repo.create(
            CreateOrganizationRequest(name="Acme", addresses=[Address(type="legal", zip="9" * 33)])
        )

    assert (await sql_repo.list(ListOrganizationsQuery())).total == 0


@pytest.mark.asyncio
async def test_list_pagination_bounds(sql_repo):
    for i in range(3):
        await sql_repo.create(CreateOrganizationRequest(name=f"org-{i}"))

    page = await sql_repo.list(ListOrganizationsQuery(limit=-1, offset=-10))
    assert (page.limit, page.offset, page.total, len(page.items)) == (50, 0, 3, 3)

    page = await sql_repo.list(ListOrganizationsQuery(limit=500, offset=2))
    assert page.limit == 200
    assert len(page.items) == 1


@pytest.mark.asyncio
async def test_list_query_text_is_escaped(sql_repo):
    await sql_repo.create(CreateOrganizationRequest(name="100% Organic"))
    await sql_repo.create(CreateOrganizationRequest(name="100 Organic"))

    page = await sql_repo.list(ListOrganizationsQuery(q="100%"))

    assert [o.name for o in page.items] == ["100% Organic"]


@pytest.mark.asyncio
async def test_members_are_idempotent(sql_repo):
    org = await sql_repo.create(CreateOrganizationRequest(name="Acme"))
    user = uuid4()

    assert await sql_repo.add_member(org.id, user) is True
    assert await sql_repo.add_member(org.id, user) is True
    assert (await sql_repo.list_members(org.id)).items == [user]

    assert await sql_repo.remove_member(org.id, user) is True
    assert await sql_repo.remove_member(org.id, user) is False
    assert (await sql_repo.list_members(org.id)).total == 0


@pytest.mark.asyncio
async def test_add_member_requires_live_organization(sql_repo):
    org = await sql_repo.create(CreateOrganizationRequest(name="Acme"))
    await sql_repo.soft_delete(org.id)

    assert await sql_repo.add_member(org.id, uuid4()) is False
    assert await sql_repo.add_member(uuid4(), uuid4()) is False


@pytest.mark.asyncio
async def test_bulk_create_reports_partial_progress(sql_repo):
    requests = [CreateOrganizationRequest(name=n) for n in ("one", "two", "", "four", "five")]

    with pytest.raises(BulkOperationError) as exc_info:
        await sql_repo.bulk_create(requests)

    assert exc_info.value.processed == 2
    page = await sql_repo.list(ListOrganizationsQuery(sort_by="name"))
    assert [o.name for o in page.items] == ["one", "two"]


@pytest.mark.asyncio
async def test_concurrent_patches_last_writer_wins(sql_repo):
    org = await sql_repo.create(CreateOrganizationRequest(name="Acme"))

    results = await asyncio.gather(
        *(
            sql_repo.patch(org.id, PatchOrganizationRequest(legal_code=f"LC-{i}").to_patch())
            for i in range(5)
        )
    )

    final = await sql_repo.get(org.id)
    assert all(r is not None for r in results)
    assert final.legal_code in {f"LC-{i}" for i in range(5)}


@pytest.mark.asyncio
async def test_storage_failure_raises_repository_error(sql_repo, pg_engine):
    async with pg_engine.begin() as conn:
        await conn.exec_driver_sql("DROP TABLE org_members")

    with pytest.raises(RepositoryError) as exc_info:
        await sql_repo.list_members(uuid4())

    assert exc_info.value.operation == "list_members"
