"""Pydantic schemas for organizations.

These are plain data values shared by the repositories, the service and the
HTTP layer. JSON field names are camelCase (``tenantId``, ``legalCode``);
Python attribute names are snake_case and both are accepted on input.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from src.models.enums import AddressType, ContactType, OrganizationStatus, SortField
from src.schemas.patch import UNSET, FieldPatch, PatchKind


class CamelModel(BaseModel):
    """Base schema serializing to camelCase JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Address(CamelModel):
    """Address owned by an organization."""

    id: UUID | None = None
    organization_id: UUID | None = None
    type: AddressType
    country: str = ""
    region: str = ""
    city: str = ""
    street: str = ""
    zip: str = ""


class Contact(CamelModel):
    """Contact owned by an organization."""

    id: UUID | None = None
    organization_id: UUID | None = None
    type: ContactType
    value: str
    is_primary: bool = False


class Organization(CamelModel):
    """Organization aggregate with its owned addresses and contacts."""

    id: UUID
    tenant_id: UUID | None = None
    name: str
    legal_code: str | None = None
    status: OrganizationStatus = OrganizationStatus.ACTIVE
    tags: list[str] = Field(default_factory=list)
    addresses: list[Address] = Field(default_factory=list)
    contacts: list[Contact] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None
    created_by: UUID | None = None
    updated_by: UUID | None = None


class _OrganizationWrite(CamelModel):
    """Fields shared by create and full-replace requests.

    ``name`` is only checked for emptiness by the service/repositories so that
    a bulk request with one bad item can still be processed item by item.
    ``status`` stays raw here; it is normalized before it is stored.
    """

    tenant_id: UUID | None = None
    name: str = ""
    legal_code: str | None = None
    status: str | None = None
    tags: list[str] = Field(default_factory=list)
    addresses: list[Address] = Field(default_factory=list)
    contacts: list[Contact] = Field(default_factory=list)

    @field_validator("tags", "addresses", "contacts", mode="before")
    @classmethod
    def null_as_empty(cls, v):
        return [] if v is None else v


class CreateOrganizationRequest(_OrganizationWrite):
    """Request schema for creating an organization."""


class ReplaceOrganizationRequest(_OrganizationWrite):
    """Request schema for a full replace (PUT).

    Omitted optional fields are written as null/empty, not kept.
    """


class PatchOrganizationRequest(CamelModel):
    """Request schema for a partial update (PATCH).

    Whether a field was sent at all is taken from ``model_fields_set``:

    - ``tenantId`` / ``legalCode``: absent keeps, null clears, value sets
    - ``name`` / ``status``: absent or null keeps, value sets
    - ``tags`` / ``addresses`` / ``contacts``: absent or null keeps,
      a list (including ``[]``) replaces the whole sequence
    """

    tenant_id: UUID | None = None
    name: str | None = None
    legal_code: str | None = None
    status: str | None = None
    tags: list[str] | None = None
    addresses: list[Address] | None = None
    contacts: list[Contact] | None = None

    def to_patch(self) -> OrganizationPatch:
        sent = self.model_fields_set

        def nullable(name: str) -> FieldPatch:
            if name not in sent:
                return UNSET
            return FieldPatch.set(getattr(self, name))

        def keep_on_null(name: str) -> FieldPatch:
            value = getattr(self, name)
            if name not in sent or value is None:
                return UNSET
            return FieldPatch.set(value)

        status = keep_on_null("status")
        if status.is_set:
            status = FieldPatch.set(OrganizationStatus.normalize(status.value))

        return OrganizationPatch(
            tenant_id=nullable("tenant_id"),
            name=keep_on_null("name"),
            legal_code=nullable("legal_code"),
            status=status,
            tags=keep_on_null("tags"),
            addresses=keep_on_null("addresses"),
            contacts=keep_on_null("contacts"),
        )


@dataclass(frozen=True)
class OrganizationPatch:
    """Partial update applied by repositories, one tri-state value per field."""

    tenant_id: FieldPatch[UUID] = UNSET
    name: FieldPatch[str] = UNSET
    legal_code: FieldPatch[str] = UNSET
    status: FieldPatch[OrganizationStatus] = UNSET
    tags: FieldPatch[list[str]] = UNSET
    addresses: FieldPatch[list[Address]] = UNSET
    contacts: FieldPatch[list[Contact]] = UNSET

    SCALAR_FIELDS = ("tenant_id", "name", "legal_code", "status", "tags")
    SEQUENCE_FIELDS = ("tags", "addresses", "contacts")

    def __post_init__(self) -> None:
        # A cleared sequence is the empty sequence.
        for name in self.SEQUENCE_FIELDS:
            if getattr(self, name).kind is PatchKind.CLEAR:
                object.__setattr__(self, name, FieldPatch(PatchKind.SET, []))

    def scalar_changes(self) -> dict[str, object]:
        """Column values for every touched root-row field."""
        changes: dict[str, object] = {}
        for name in self.SCALAR_FIELDS:
            value: FieldPatch = getattr(self, name)
            if value.is_set:
                changes[name] = value.resolve(None)
        return changes


class ListOrganizationsQuery(CamelModel):
    """Filter, sort and pagination parameters for listing organizations."""

    tenant_id: UUID | None = None
    q: str = ""
    status: str = ""
    tags: list[str] = Field(default_factory=list)
    sort_by: str = "createdAt"
    sort_dir: str = "desc"
    limit: int = 50
    offset: int = 0


class OrganizationPage(CamelModel):
    """One page of organizations plus the total matching the filter."""

    items: list[Organization]
    total: int
    limit: int
    offset: int


class MemberPage(CamelModel):
    """One page of member user ids."""

    items: list[UUID]
    total: int
    limit: int
    offset: int


class BulkCreateRequest(CamelModel):
    items: list[CreateOrganizationRequest] = Field(..., min_length=1)


class BulkUpdateRequest(CamelModel):
    ids: list[UUID] = Field(..., min_length=1)
    patch: PatchOrganizationRequest


class BulkDeleteRequest(CamelModel):
    ids: list[UUID] = Field(..., min_length=1)


class BulkCreateResponse(CamelModel):
    items: list[Organization]
    total: int


class BulkUpdateResponse(CamelModel):
    updated: int


class BulkDeleteResponse(CamelModel):
    deleted: int


@dataclass
class NormalizedListQuery:
    """List query after defaults and clamping were applied."""

    tenant_id: UUID | None
    q: str
    status: str
    tags: list[str] = field(default_factory=list)
    sort_field: SortField = SortField.CREATED_AT
    descending: bool = True
    limit: int = 50
    offset: int = 0
