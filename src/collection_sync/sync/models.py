"""Plain data types shared by the mapping builder and the sync engine."""

import re
from dataclasses import asdict, dataclass, field
from typing import Any

from collection_sync.sync.field_types import FieldType

_NON_ALNUM_RE = re.compile(r"[^A-Za-z0-9]")


@dataclass(frozen=True)
class ColumnDescriptor:
    """One column of a source table."""

    name: str
    source_type: str
    nullable: bool = True


@dataclass
class FieldMapping:
    """Source column -> destination field, with the destination type."""

    source_field: str
    target_field: str
    type: FieldType
    is_primary_key: bool = False

    def to_dict(self) -> dict:
        return {
            "source_field": self.source_field,
            "target_field": self.target_field,
            "type": FieldType(self.type).value,
            "is_primary_key": self.is_primary_key,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FieldMapping":
        return cls(
            source_field=data["source_field"],
            target_field=data["target_field"],
            type=FieldType(data["type"]),
            is_primary_key=bool(data.get("is_primary_key", False)),
        )


def field_id_for(name: str) -> str:
    """Deterministic destination field id for a field name."""
    return _NON_ALNUM_RE.sub("_", name)


@dataclass(frozen=True)
class DestinationField:
    id: str
    name: str
    type: str

    @classmethod
    def for_name(cls, name: str, field_type: FieldType) -> "DestinationField":
        return cls(id=field_id_for(name), name=name, type=FieldType(field_type).value)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SyncItem:
    """One destination item. ``field_data`` is keyed by destination field id."""

    id: str
    slug: str
    field_data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"id": self.id, "slug": self.slug, "fieldData": self.field_data}
