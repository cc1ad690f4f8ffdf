"""Enumerations for organization status, owned records and events."""

from enum import Enum


class OrganizationStatus(str, Enum):
    """Organization status.

    Status transitions are unconstrained: any value may follow any other,
    independently of the soft-delete tombstone.
    """

    ACTIVE = "active"
    INACTIVE = "inactive"
    BLOCKED = "blocked"

    @classmethod
    def normalize(cls, value: "str | OrganizationStatus | None") -> "OrganizationStatus":
        """Map raw input onto a known status.

        Args:
            value: Raw status (any case, surrounding whitespace allowed)

        Returns:
            Matching status, ACTIVE for empty or unrecognized input
        """
        if isinstance(value, cls):
            return value
        candidate = (value or "").strip().lower()
        for status in cls:
            if status.value == candidate:
                return status
        return cls.ACTIVE


class AddressType(str, Enum):
    """Kind of an organization address."""

    LEGAL = "legal"
    ACTUAL = "actual"
    SHIPPING = "shipping"


class ContactType(str, Enum):
    """Kind of an organization contact."""

    EMAIL = "email"
    PHONE = "phone"


class SortField(str, Enum):
    """Sortable organization fields accepted by list queries."""

    NAME = "name"
    CREATED_AT = "createdAt"
    UPDATED_AT = "updatedAt"


class SortDirection(str, Enum):
    """Sort direction for list queries."""

    ASC = "asc"
    DESC = "desc"


class OrganizationEventType(str, Enum):
    """Notification kinds emitted after successful mutations."""

    CREATED = "organization.created"
    UPDATED = "organization.updated"
    DELETED = "organization.deleted"
