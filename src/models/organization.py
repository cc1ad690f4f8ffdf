"""Organization tables: root row, owned addresses/contacts, memberships."""
from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import ARRAY, UUID
from sqlalchemy.orm import relationship

from src.models.base import Base, BaseModel, SoftDeleteMixin


class OrganizationRecord(SoftDeleteMixin, BaseModel):
    """Organization row.

    Addresses and contacts are owned: they are deleted together with the
    organization and replaced wholesale on updates.
    """

    __tablename__ = "organizations"

    tenant_id = Column(
        UUID(as_uuid=True),
        nullable=True,
        index=True
    )
    name = Column(
        String(255),
        nullable=False
    )
    legal_code = Column(
        String(255),
        nullable=True
    )
    status = Column(
        String(16),
        nullable=False,
        default="active",
        server_default="active"
    )
    tags = Column(
        ARRAY(Text),
        nullable=False,
        server_default="{}"
    )
    created_by = Column(
        UUID(as_uuid=True),
        nullable=True
    )
    updated_by = Column(
        UUID(as_uuid=True),
        nullable=True
    )

    # Relationships
    addresses = relationship(
        "AddressRecord",
        order_by="AddressRecord.position",
        cascade="all, delete-orphan",
        passive_deletes=True
    )
    contacts = relationship(
        "ContactRecord",
        order_by="ContactRecord.position",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    __table_args__ = (
        CheckConstraint(
            "LENGTH(name) > 0",
            name="organization_name_not_empty"
        ),
        CheckConstraint(
            "status IN ('active', 'inactive', 'blocked')",
            name="organization_status_valid"
        ),
        Index("idx_organizations_tags", "tags", postgresql_using="gin"),
    )

    def __repr__(self) -> str:
        return f"<OrganizationRecord(id={self.id}, name={self.name})>"


class AddressRecord(Base):
    """Address owned by an organization."""

    __tablename__ = "org_addresses"

    id = Column(UUID(as_uuid=True), primary_key=True, nullable=False)
    organization_id = Column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    position = Column(Integer, nullable=False, default=0)
    type = Column(String(16), nullable=False)
    country = Column(String(255), nullable=False, default="")
    region = Column(String(255), nullable=False, default="")
    city = Column(String(255), nullable=False, default="")
    street = Column(String(512), nullable=False, default="")
    zip = Column(String(32), nullable=False, default="")

    __table_args__ = (
        CheckConstraint(
            "type IN ('legal', 'actual', 'shipping')",
            name="org_address_type_valid"
        ),
    )


class ContactRecord(Base):
    """Contact owned by an organization."""

    __tablename__ = "org_contacts"

    id = Column(UUID(as_uuid=True), primary_key=True, nullable=False)
    organization_id = Column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    position = Column(Integer, nullable=False, default=0)
    type = Column(String(16), nullable=False)
    value = Column(String(512), nullable=False)
    is_primary = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint(
            "type IN ('email', 'phone')",
            name="org_contact_type_valid"
        ),
    )


class MembershipRecord(Base):
    """User membership in an organization; one row per (user, organization)."""

    __tablename__ = "org_members"

    user_id = Column(UUID(as_uuid=True), primary_key=True, nullable=False)
    org_id = Column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        primary_key=True,
        nullable=False,
        index=True
    )


Index(
    "idx_organizations_live_created",
    OrganizationRecord.created_at.desc(),
    OrganizationRecord.id,
    postgresql_where=OrganizationRecord.deleted_at.is_(None),
)
