"""Pydantic schema for organization change notifications."""

from __future__ import annotations

from datetime import UTC

from pydantic import Field

from src.schemas.organization import Address, CamelModel, Contact, Organization


class OrganizationEvent(CamelModel):
    """Flat snapshot of an organization published after a mutation.

    ``occurredAt`` is the organization's ``updatedAt`` in UTC, so consumers
    can order events per organization without trusting broker timestamps.
    """

    id: str
    tenant_id: str | None = None
    name: str
    legal_code: str | None = None
    status: str
    tags: list[str] = Field(default_factory=list)
    addresses: list[Address] = Field(default_factory=list)
    contacts: list[Contact] = Field(default_factory=list)
    occurred_at: str
    trace_id: str = ""
    schema_version: str = "1"

    @classmethod
    def from_organization(
        cls,
        org: Organization,
        trace_id: str | None = None,
        schema_version: str = "1",
    ) -> OrganizationEvent:
        return cls(
            id=str(org.id),
            tenant_id=str(org.tenant_id) if org.tenant_id else None,
            name=org.name,
            legal_code=org.legal_code,
            status=org.status.value,
            tags=list(org.tags),
            addresses=[a.model_copy() for a in org.addresses],
            contacts=[c.model_copy() for c in org.contacts],
            occurred_at=org.updated_at.astimezone(UTC).isoformat(timespec="seconds"),
            trace_id=trace_id or "",
            schema_version=schema_version,
        )

    def to_message(self) -> dict:
        """JSON-ready body with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)
