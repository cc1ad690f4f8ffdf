"""Unit tests for the in-memory organization repository."""

import asyncio
from uuid import uuid4

import pytest

from src.core.errors import BulkOperationError, OrganizationValidationError
from src.models.enums import OrganizationStatus
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


def create_request(name="Acme", **kwargs) -> CreateOrganizationRequest:
    return CreateOrganizationRequest(name=name, **kwargs)


@pytest.mark.asyncio
async def test_create_assigns_ids_and_audit_fields(memory_repo):
    actor = uuid4()
    org = await memory_repo.create(
        create_request(
            name="  Acme  ",
            status="INACTIVE",
            addresses=[Address(type="legal", city="Berlin")],
            contacts=[Contact(type="email", value="ops@acme.test", is_primary=True)],
        ),
        actor,
    )

    assert org.name == "Acme"
    assert org.status is OrganizationStatus.INACTIVE
    assert org.created_at == org.updated_at
    assert org.created_by == actor and org.updated_by == actor
    assert org.addresses[0].id is not None
    assert org.addresses[0].organization_id == org.id
    assert org.contacts[0].organization_id == org.id


@pytest.mark.asyncio
async def test_create_rejects_blank_name(memory_repo):
    with pytest.raises(OrganizationValidationError):
        await memory_repo.create(create_request(name="   "))


@pytest.mark.asyncio
async def test_returned_values_are_copies(memory_repo):
    org = await memory_repo.create(create_request(tags=["a"]))
    org.tags.append("mutated")

    stored = await memory_repo.get(org.id)
    assert stored.tags == ["a"]


@pytest.mark.asyncio
async def test_get_missing_returns_none(memory_repo):
    assert await memory_repo.get(uuid4()) is None


@pytest.mark.asyncio
async def test_tombstoned_organization_is_invisible(memory_repo):
    """After soft delete: get, list, patch and replace all report not found."""
    org = await memory_repo.create(create_request())

    deleted = await memory_repo.soft_delete(org.id)

    assert deleted is not None and deleted.deleted_at is not None
    assert await memory_repo.get(org.id) is None
    assert (await memory_repo.list(ListOrganizationsQuery())).total == 0
    patch = PatchOrganizationRequest(name="New").to_patch()
    assert await memory_repo.patch(org.id, patch) is None
    assert await memory_repo.replace(org.id, ReplaceOrganizationRequest(name="New")) is None
    assert await memory_repo.soft_delete(org.id) is None


@pytest.mark.asyncio
async def test_restore_brings_organization_back(memory_repo):
    org = await memory_repo.create(create_request())
    await memory_repo.soft_delete(org.id)

    restored = await memory_repo.restore(org.id)

    assert restored is not None
    assert restored.deleted_at is None
    assert await memory_repo.get(org.id) is not None
    # Only tombstoned organizations can be restored.
    assert await memory_repo.restore(org.id) is None


@pytest.mark.asyncio
async def test_patch_tags_tri_state(memory_repo):
    org = await memory_repo.create(create_request(tags=["a", "b"]))

    kept = await memory_repo.patch(org.id, PatchOrganizationRequest(name="Renamed").to_patch())
    assert kept.tags == ["a", "b"]

    nulled = await memory_repo.patch(
        org.id, PatchOrganizationRequest.model_validate({"tags": None}).to_patch()
    )
    assert nulled.tags == ["a", "b"]

    emptied = await memory_repo.patch(
        org.id, PatchOrganizationRequest.model_validate({"tags": []}).to_patch()
    )
    assert emptied.tags == []


@pytest.mark.asyncio
@pytest.mark.parametrize("value", [FieldPatch.clear(), FieldPatch.set(None)])
async def test_patch_cleared_sequences_become_empty(memory_repo, value):
    org = await memory_repo.create(
        create_request(
            tags=["a"],
            addresses=[Address(type="legal")],
            contacts=[Contact(type="phone", value="+1")],
        )
    )

    patched = await memory_repo.patch(
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
        (" Inactive ", OrganizationStatus.INACTIVE),
    ],
)
async def test_create_normalizes_status(memory_repo, status, expected):
    org = await memory_repo.create(create_request(status=status))

    assert org.status is expected


@pytest.mark.asyncio
async def test_overlong_values_are_rejected_before_storage(memory_repo):
    with pytest.raises(OrganizationValidationError) as exc_info:
        await memory_repo.create(create_request(name="x" * 300))
    assert exc_info.value.field == "name"

    org = await memory_repo.create(create_request())
    patch = PatchOrganizationRequest(contacts=[Contact(type="email", value="v" * 513)])
    with pytest.raises(OrganizationValidationError):
        await memory_repo.patch(org.id, patch.to_patch())

    assert (await memory_repo.list(ListOrganizationsQuery())).total == 1
    assert (await memory_repo.get(org.id)).contacts == []

@pytest.mark.asyncio
async def test_patch_clears_legal_code_and_keeps_others(memory_repo):
    org = await memory_repo.create(
        create_request(legal_code="LC-1", addresses=[Address(type="legal")])
    )

    patched = await memory_repo.patch(
        org.id, PatchOrganizationRequest.model_validate({"legalCode": None}).to_patch()
    )

    assert patched.legal_code is None
    assert patched.name == "Acme"
    assert len(patched.addresses) == 1


@pytest.mark.asyncio
async def test_empty_patch_still_refreshes_audit_fields(memory_repo):
    org = await memory_repo.create(create_request())
    actor = uuid4()

    patched = await memory_repo.patch(org.id, PatchOrganizationRequest().to_patch(), actor)

    assert patched.updated_at > org.updated_at
    assert patched.updated_by == actor


@pytest.mark.asyncio
async def test_patch_blank_name_is_rejected(memory_repo):
    org = await memory_repo.create(create_request())

    with pytest.raises(OrganizationValidationError):
        await memory_repo.patch(org.id, PatchOrganizationRequest(name=" ").to_patch())


@pytest.mark.asyncio
async def test_replace_clears_omitted_owned_data(memory_repo):
    org = await memory_repo.create(
        create_request(
            legal_code="LC-1",
            tags=["x"],
            addresses=[Address(type="legal"), Address(type="shipping")],
            contacts=[Contact(type="phone", value="+100")],
        )
    )

    replaced = await memory_repo.replace(org.id, ReplaceOrganizationRequest(name="Acme 2"))

    assert replaced.name == "Acme 2"
    assert replaced.legal_code is None
    assert replaced.tags == []
    assert replaced.addresses == []
    assert replaced.contacts == []
    assert replaced.status is OrganizationStatus.ACTIVE


@pytest.mark.asyncio
async def test_updated_at_never_moves_backwards(clock, memory_repo):
    org = await memory_repo.create(create_request())
    # Clock jumps into the past.
    clock.now = org.updated_at.replace(year=2000)

    patched = await memory_repo.patch(org.id, PatchOrganizationRequest().to_patch())

    assert patched.updated_at >= org.updated_at


@pytest.mark.asyncio
async def test_list_pagination_bounds(memory_repo):
    for i in range(3):
        await memory_repo.create(create_request(name=f"org-{i}"))

    page = await memory_repo.list(ListOrganizationsQuery(limit=0, offset=-3))
    assert (page.limit, page.offset, page.total, len(page.items)) == (50, 0, 3, 3)

    page = await memory_repo.list(ListOrganizationsQuery(limit=1000))
    assert page.limit == 200

    page = await memory_repo.list(ListOrganizationsQuery(offset=10))
    assert page.items == [] and page.total == 3


@pytest.mark.asyncio
async def test_list_sorts_by_name_case_insensitively(memory_repo):
    for name in ("beta", "Alpha", "gamma"):
        await memory_repo.create(create_request(name=name))

    page = await memory_repo.list(ListOrganizationsQuery(sort_by="name", sort_dir="desc"))

    assert [o.name for o in page.items] == ["Alpha", "beta", "gamma"]


@pytest.mark.asyncio
async def test_members_are_idempotent(memory_repo):
    org = await memory_repo.create(create_request())
    user = uuid4()

    assert await memory_repo.add_member(org.id, user) is True
    assert await memory_repo.add_member(org.id, user) is True

    members = await memory_repo.list_members(org.id)
    assert members.items == [user]
    assert members.total == 1

    assert await memory_repo.remove_member(org.id, user) is True
    assert await memory_repo.remove_member(org.id, user) is False


@pytest.mark.asyncio
async def test_add_member_requires_live_organization(memory_repo):
    org = await memory_repo.create(create_request())
    await memory_repo.soft_delete(org.id)

    assert await memory_repo.add_member(org.id, uuid4()) is False
    assert await memory_repo.add_member(uuid4(), uuid4()) is False


@pytest.mark.asyncio
async def test_list_members_pages_in_stable_order(memory_repo):
    org = await memory_repo.create(create_request())
    users = [uuid4() for _ in range(5)]
    for user in users:
        await memory_repo.add_member(org.id, user)

    first = await memory_repo.list_members(org.id, limit=2, offset=0)
    rest = await memory_repo.list_members(org.id, limit=10, offset=2)

    assert first.total == 5
    assert first.items + rest.items == sorted(users, key=str)


@pytest.mark.asyncio
async def test_bulk_create_reports_partial_progress(memory_repo):
    """Item 3 of 5 is invalid: two are created and reported."""
    requests = [
        create_request("one"),
        create_request("two"),
        create_request(""),
        create_request("four"),
        create_request("five"),
    ]

    with pytest.raises(BulkOperationError) as exc_info:
        await memory_repo.bulk_create(requests)

    exc = exc_info.value
    assert exc.processed == 2
    assert exc.index == 2
    assert [o.name for o in exc.items] == ["one", "two"]
    assert isinstance(exc.cause, OrganizationValidationError)
    assert (await memory_repo.list(ListOrganizationsQuery())).total == 2


@pytest.mark.asyncio
async def test_bulk_update_and_delete_skip_missing(memory_repo):
    a = await memory_repo.create(create_request("a"))
    b = await memory_repo.create(create_request("b"))
    patch = PatchOrganizationRequest(status="blocked").to_patch()

    updated = await memory_repo.bulk_update([a.id, uuid4(), b.id], patch)
    deleted = await memory_repo.bulk_delete([a.id, a.id])

    assert [o.id for o in updated] == [a.id, b.id]
    assert all(o.status is OrganizationStatus.BLOCKED for o in updated)
    assert [o.id for o in deleted] == [a.id]


@pytest.mark.asyncio
async def test_concurrent_writes_all_land(memory_repo):
    await asyncio.gather(*(memory_repo.create(create_request(f"org-{i}")) for i in range(20)))

    page = await memory_repo.list(ListOrganizationsQuery(limit=100))
    assert page.total == 20
