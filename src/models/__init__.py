"""SQLAlchemy models."""

from src.models.base import Base, BaseModel
from src.models.enums import (
    AddressType,
    ContactType,
    OrganizationEventType,
    OrganizationStatus,
)
from src.models.organization import (
    AddressRecord,
    ContactRecord,
    MembershipRecord,
    OrganizationRecord,
)

__all__ = [
    "Base",
    "BaseModel",
    "AddressType",
    "ContactType",
    "OrganizationEventType",
    "OrganizationStatus",
    "OrganizationRecord",
    "AddressRecord",
    "ContactRecord",
    "MembershipRecord",
]
