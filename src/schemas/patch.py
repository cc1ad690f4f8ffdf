"""Tri-state values for partial updates.

A patch field is in exactly one of three states:

- ``UNSET``: the caller did not mention the field, leave it untouched
- ``CLEAR``: the caller sent an explicit null, clear the field
- ``SET``: the caller sent a value, overwrite the field with it

For sequence fields ``CLEAR`` means the empty list; ``OrganizationPatch``
turns it into ``SET([])`` when it is built.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class PatchKind(str, Enum):
    """State of a single patch field."""

    UNSET = "unset"
    CLEAR = "clear"
    SET = "set"


@dataclass(frozen=True)
class FieldPatch(Generic[T]):
    """A single tri-state patch field."""

    kind: PatchKind = PatchKind.UNSET
    value: T | None = None

    @classmethod
    def unset(cls) -> FieldPatch[Any]:
        return cls(PatchKind.UNSET)

    @classmethod
    def clear(cls) -> FieldPatch[Any]:
        return cls(PatchKind.CLEAR)

    @classmethod
    def set(cls, value: T) -> FieldPatch[T]:
        if value is None:
            return cls(PatchKind.CLEAR)
        return cls(PatchKind.SET, value)

    @property
    def is_set(self) -> bool:
        """True when the field must be written (either cleared or assigned)."""
        return self.kind is not PatchKind.UNSET

    def resolve(self, current: T | None) -> T | None:
        """Return the value the field has after applying this patch."""
        if self.kind is PatchKind.UNSET:
            return current
        if self.kind is PatchKind.CLEAR:
            return None
        return self.value


UNSET: FieldPatch[Any] = FieldPatch()
