"""Rules shared by every organization repository.

Both storage backends run list queries through :func:`normalize_list_query`
and validate writes with the helpers below, so that filtering, ordering,
pagination and input checks cannot drift apart between them.
"""

from __future__ import annotations

from uuid import UUID, uuid4

from src.core.errors import OrganizationValidationError
from src.models.enums import SortDirection, SortField
from src.schemas.organization import (
    Address,
    Contact,
    CreateOrganizationRequest,
    ListOrganizationsQuery,
    NormalizedListQuery,
    Organization,
    OrganizationPatch,
    ReplaceOrganizationRequest,
)

DEFAULT_LIMIT = 50
MAX_LIMIT = 200

# Mirrors the column sizes in src/models/organization.py.
NAME_MAX_LENGTH = 255
LEGAL_CODE_MAX_LENGTH = 255
CONTACT_VALUE_MAX_LENGTH = 512
ADDRESS_MAX_LENGTHS = {"country": 255, "region": 255, "city": 255, "street": 512, "zip": 32}

_SORT_ALIASES = {
    "name": SortField.NAME,
    "createdat": SortField.CREATED_AT,
    "created_at": SortField.CREATED_AT,
    "updatedat": SortField.UPDATED_AT,
    "updated_at": SortField.UPDATED_AT,
}


def clamp_limit(limit: int | None) -> int:
    """Clamp a page size into ``(0, MAX_LIMIT]``; non-positive means default."""
    if limit is None or limit <= 0:
        return DEFAULT_LIMIT
    return min(limit, MAX_LIMIT)


def clamp_offset(offset: int | None) -> int:
    if offset is None or offset < 0:
        return 0
    return offset


def normalize_list_query(query: ListOrganizationsQuery) -> NormalizedListQuery:
    """Apply defaults, clamping and sort resolution to a list query.

    ``name`` always sorts ascending. ``createdAt``/``updatedAt`` follow the
    requested direction, descending unless ``asc`` was asked for. Unknown sort
    fields fall back to ``createdAt``.
    """
    sort_field = _SORT_ALIASES.get((query.sort_by or "").strip().lower(), SortField.CREATED_AT)
    if sort_field is SortField.NAME:
        descending = False
    else:
        descending = (query.sort_dir or "").strip().lower() != SortDirection.ASC.value

    return NormalizedListQuery(
        tenant_id=query.tenant_id,
        q=(query.q or "").strip(),
        status=(query.status or "").strip().lower(),
        tags=[tag for tag in query.tags if tag],
        sort_field=sort_field,
        descending=descending,
        limit=clamp_limit(query.limit),
        offset=clamp_offset(query.offset),
    )


def parse_tags(raw: str | None) -> list[str]:
    """Split a comma-separated tag filter, dropping blanks."""
    if not raw:
        return []
    return [tag.strip() for tag in raw.split(",") if tag.strip()]


def matches(org: Organization, query: NormalizedListQuery) -> bool:
    """In-memory equivalent of the SQL list predicate."""
    if org.deleted_at is not None:
        return False
    if query.tenant_id is not None and org.tenant_id != query.tenant_id:
        return False
    if query.q:
        needle = query.q.lower()
        if needle not in org.name.lower() and needle not in (org.legal_code or "").lower():
            return False
    if query.status and org.status.value != query.status:
        return False
    if query.tags and not set(query.tags).issubset(org.tags):
        return False
    return True


def sort_key(org: Organization, field: SortField):
    if field is SortField.NAME:
        return org.name.lower()
    if field is SortField.UPDATED_AT:
        return org.updated_at
    return org.created_at


def order(items: list[Organization], query: NormalizedListQuery) -> list[Organization]:
    """Order organizations like the SQL ``ORDER BY <field>, id`` clause."""
    # Stable sorts: id ascending first, then the primary key in either direction.
    ordered = sorted(items, key=lambda org: str(org.id))
    ordered.sort(key=lambda org: sort_key(org, query.sort_field), reverse=query.descending)
    return ordered


def require_name(name: str | None) -> str:
    """Return the trimmed name or raise when it is blank or too long."""
    trimmed = (name or "").strip()
    if not trimmed:
        raise OrganizationValidationError("name is required", field="name")
    check_length("name", trimmed, NAME_MAX_LENGTH)
    return trimmed


def check_length(field: str, value: str | None, limit: int) -> None:
    if value is not None and len(value) > limit:
        raise OrganizationValidationError(
            f"{field} must be at most {limit} characters", field=field
        )


def check_owned(
    legal_code: str | None = None,
    addresses: list[Address] | None = None,
    contacts: list[Contact] | None = None,
) -> None:
    """Reject values longer than their storage columns allow."""
    check_length("legalCode", legal_code, LEGAL_CODE_MAX_LENGTH)
    for i, address in enumerate(addresses or ()):
        for attr, limit in ADDRESS_MAX_LENGTHS.items():
            check_length(f"addresses[{i}].{attr}", getattr(address, attr), limit)
    for i, contact in enumerate(contacts or ()):
        check_length(f"contacts[{i}].value", contact.value, CONTACT_VALUE_MAX_LENGTH)


def validate_write(request: CreateOrganizationRequest | ReplaceOrganizationRequest) -> str:
    """Validate a create or replace request and return its trimmed name."""
    name = require_name(request.name)
    check_owned(request.legal_code, request.addresses, request.contacts)
    return name


def validate_patch(patch: OrganizationPatch) -> None:
    if patch.name.is_set:
        require_name(patch.name.value)
    check_owned(patch.legal_code.value, patch.addresses.value, patch.contacts.value)


def with_owner(addresses: list[Address], org_id: UUID) -> list[Address]:
    """Copy addresses, scoping them to ``org_id`` and filling missing ids."""
    return [
        address.model_copy(update={"id": address.id or uuid4(), "organization_id": org_id})
        for address in addresses
    ]


def contacts_with_owner(contacts: list[Contact], org_id: UUID) -> list[Contact]:
    """Copy contacts, scoping them to ``org_id`` and filling missing ids."""
    return [
        contact.model_copy(update={"id": contact.id or uuid4(), "organization_id": org_id})
        for contact in contacts
    ]
