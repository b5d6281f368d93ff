"""Versioned snapshots of the field catalog."""

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple

from casebuilder.domain.models import Field


@dataclass(frozen=True)
class FieldCatalog:
    """
    Immutable snapshot of every field defined for a data object.

    A newly created field may only appear in a later snapshot; callers
    that need it must refresh and look again.
    """
    fields: Tuple[Field, ...] = ()
    version: int = 0

    @classmethod
    def of(cls, fields: Iterable[Field], version: int = 0) -> "FieldCatalog":
        return cls(fields=tuple(fields), version=version)

    def refreshed(self, fields: Iterable[Field]) -> "FieldCatalog":
        """New snapshot replacing this one."""
        return FieldCatalog(fields=tuple(fields), version=self.version + 1)

    def by_name(self, name: str) -> Optional[Field]:
        return next((f for f in self.fields if f.name == name), None)

    def by_id(self, field_id: int) -> Optional[Field]:
        return next((f for f in self.fields if f.id == field_id), None)

    def with_field(self, field: Field) -> "FieldCatalog":
        """Snapshot with ``field`` added or replaced (matched by id)."""
        kept: List[Field] = [f for f in self.fields if f.id != field.id]
        kept.append(field)
        return FieldCatalog(fields=tuple(kept), version=self.version + 1)

    def without(self, field_id: int) -> "FieldCatalog":
        return FieldCatalog(
            fields=tuple(f for f in self.fields if f.id != field_id),
            version=self.version + 1,
        )

    def __contains__(self, field_id: object) -> bool:
        return any(f.id == field_id for f in self.fields)

    def __iter__(self) -> Iterator[Field]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)
