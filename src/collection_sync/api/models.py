"""Pydantic models for the HTTP API."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

from collection_sync.sync.field_types import FieldType
from collection_sync.sync.models import ColumnDescriptor, FieldMapping


class ColumnIn(BaseModel):
    name: str
    source_type: str
    nullable: bool = True

    def to_descriptor(self) -> ColumnDescriptor:
        return ColumnDescriptor(self.name, self.source_type, self.nullable)


class ColumnOut(ColumnIn):
    inferred_type: FieldType


class InferResponse(BaseModel):
    type: FieldType
    description: str


class FieldMappingModel(BaseModel):
    source_field: str
    target_field: str
    type: FieldType
    is_primary_key: bool = False

    def to_mapping(self) -> FieldMapping:
        return FieldMapping(
            source_field=self.source_field,
            target_field=self.target_field,
            type=self.type,
            is_primary_key=self.is_primary_key,
        )

    @classmethod
    def from_mapping(cls, mapping: FieldMapping) -> "FieldMappingModel":
        return cls.model_validate(mapping.to_dict())


class MappingPayload(BaseModel):
    mappings: list[FieldMappingModel]


class MappingResponse(MappingPayload):
    table: str
    persisted: bool
    warnings: list[str] = []


class PreviewResponse(MappingPayload):
    table: str
    persisted: bool
    rows: list[dict[str, Any]]
    diagnostics: list[dict[str, Any]] = []


class SyncRequest(BaseModel):
    """Optional body for a sync call. Without mappings the saved ones are used."""

    mappings: list[FieldMappingModel] | None = None
    primary_key: str | None = None


class SyncRunOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    table_name: str
    started_at: datetime
    finished_at: datetime
    success: bool
    total_records: int
    message: str
    error: str | None = None
    phase: str | None = None
