"""Sync orchestrator: fetch -> transform -> reconcile fields -> upsert items."""

import asyncio
import logging
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any, Protocol

from collection_sync.sync.dispatcher import TransformationDispatcher, default_dispatcher
from collection_sync.sync.errors import SyncError
from collection_sync.sync.field_map import ensure_valid_mapping, primary_key_mapping
from collection_sync.sync.field_types import FieldType
from collection_sync.sync.models import DestinationField, FieldMapping, SyncItem
from collection_sync.utils.slug import slugify, unique_slug

logger = logging.getLogger(__name__)

MAX_FETCH_ROWS = 10_000

# Destination field names used for the item slug, in order of preference
TITLE_FIELDS = ("title", "name", "titulo", "nome", "slug", "headline", "heading")


class RowSource(Protocol):
    async def fetch_rows(self, table: str, limit: int) -> list[dict]: ...


class CollectionDestination(Protocol):
    async def get_fields(self) -> list[DestinationField]: ...

    async def set_fields(self, fields: list[DestinationField]) -> list[DestinationField]: ...

    async def upsert_items(self, items: list[SyncItem]) -> int: ...


@dataclass(frozen=True)
class FieldDiagnostic:
    """A field value that failed to convert and was replaced by its default."""

    record_index: int
    source_field: str
    target_field: str
    type: str
    error: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SyncOutcome:
    success: bool
    total_records: int
    message: str
    error: str | None = None
    phase: str | None = None
    diagnostics: list[FieldDiagnostic] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "total_records": self.total_records,
            "message": self.message,
            "error": self.error,
            "phase": self.phase,
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "warnings": list(self.warnings),
        }


class SyncEngine:
    def __init__(
        self,
        source: RowSource,
        destination: CollectionDestination,
        dispatcher: TransformationDispatcher | None = None,
        fetch_limit: int = MAX_FETCH_ROWS,
    ) -> None:
        self._source = source
        self._destination = destination
        self._dispatcher = dispatcher or default_dispatcher
        self._fetch_limit = max(0, min(fetch_limit, MAX_FETCH_ROWS))

    async def run_sync(
        self,
        table: str,
        mappings: list[FieldMapping],
        cancel_event: asyncio.Event | None = None,
    ) -> SyncOutcome:
        """Run one sync pass of ``table`` into the destination collection.

        Raises MappingValidationError before touching either store when the
        mapping is unusable. Every later failure is returned as an outcome
        with ``success=False`` and the phase that aborted.
        """
        report = ensure_valid_mapping(mappings)
        warnings = list(report.warnings)
        diagnostics: list[FieldDiagnostic] = []

        if cancel_event is not None and cancel_event.is_set():
            logger.info("Sync of %s cancelled before fetch", table)
            return SyncOutcome(
                success=False,
                total_records=0,
                message="Sync cancelled before any record was fetched",
                phase="fetch",
                warnings=warnings,
            )

        phase = "fetch"
        try:
            # 1. Fetch
            logger.info("Fetching up to %d rows from %s", self._fetch_limit, table)
            rows = await self._source.fetch_rows(table, self._fetch_limit)
            if not rows:
                logger.info("Table %s has no rows, nothing to sync", table)
                return SyncOutcome(
                    success=True,
                    total_records=0,
                    message="Connected, but there are no records to sync",
                    warnings=warnings,
                )

            # 2. Transform
            phase = "transform"
            transformed, diagnostics = self.transform_rows(rows, mappings)
            logger.info(
                "Transformed %d rows of %s (%d field values defaulted)",
                len(rows), table, len(diagnostics),
            )

            # 3. Reconcile destination fields
            phase = "reconcile"
            existing = await self._destination.get_fields()
            fields, field_warnings = self.reconcile_fields(existing, mappings)
            warnings.extend(field_warnings)
            logger.info("Submitting %d field definitions", len(fields))
            fields = await self._destination.set_fields(fields) or fields

            # 4. Upsert
            phase = "upsert"
            items, item_warnings = self.build_items(rows, transformed, mappings, fields)
            warnings.extend(item_warnings)
            logger.info("Upserting %d items", len(items))
            await self._destination.upsert_items(items)
        except Exception as exc:
            return self._failure(exc, phase, diagnostics, warnings)

        logger.info("Sync of %s complete: %d records", table, len(items))
        return SyncOutcome(
            success=True,
            total_records=len(items),
            message=f"{len(items)} records synced",
            diagnostics=diagnostics,
            warnings=warnings,
        )

    def _failure(
        self,
        exc: Exception,
        phase: str,
        diagnostics: list[FieldDiagnostic],
        warnings: list[str],
    ) -> SyncOutcome:
        if isinstance(exc, SyncError):
            phase = exc.phase or phase
            logger.error("Sync aborted during %s: %s", phase, exc)
            details = exc.technical_details or str(exc)
        else:
            logger.exception("Unexpected error during %s", phase)
            details = f"{type(exc).__name__}: {exc}"
        return SyncOutcome(
            success=False,
            total_records=0,
            message=str(exc) or f"Sync failed during {phase}",
            error=details,
            phase=phase,
            diagnostics=diagnostics,
            warnings=warnings,
        )

    def transform_rows(
        self, rows: list[dict], mappings: list[FieldMapping]
    ) -> tuple[list[dict[str, Any]], list[FieldDiagnostic]]:
        """Convert every mapped value. Returns rows keyed by destination field name."""
        transformed: list[dict[str, Any]] = []
        diagnostics: list[FieldDiagnostic] = []

        for index, row in enumerate(rows):
            values: dict[str, Any] = {}
            for mapping in mappings:
                result = self._dispatcher.dispatch(row.get(mapping.source_field), mapping.type)
                values[mapping.target_field] = result.value
                if not result.success:
                    logger.debug(
                        "Record %d field %s: %s", index, mapping.source_field, result.error
                    )
                    diagnostics.append(
                        FieldDiagnostic(
                            record_index=index,
                            source_field=mapping.source_field,
                            target_field=mapping.target_field,
                            type=FieldType(mapping.type).value,
                            error=result.error or "conversion failed",
                        )
                    )
            transformed.append(values)

        return transformed, diagnostics

    def reconcile_fields(
        self, existing: list[DestinationField], mappings: list[FieldMapping]
    ) -> tuple[list[DestinationField], list[str]]:
        """Destination fields for ``mappings``, reusing existing fields by name.

        An existing field keeps its id and type; a type that differs from the
        mapping is only reported.
        """
        by_name = {f.name: f for f in existing}
        fields: list[DestinationField] = []
        warnings: list[str] = []

        for mapping in mappings:
            wanted = FieldType(mapping.type).value
            current = by_name.get(mapping.target_field)
            if current is None:
                fields.append(DestinationField.for_name(mapping.target_field, mapping.type))
                continue
            if current.type != wanted:
                message = (
                    f"Field '{current.name}' already exists as '{current.type}', "
                    f"mapping asks for '{wanted}'; keeping '{current.type}'"
                )
                logger.warning("%s", message)
                warnings.append(message)
            fields.append(current)

        return fields, warnings

    def build_items(
        self,
        rows: list[dict],
        transformed: list[dict[str, Any]],
        mappings: list[FieldMapping],
        fields: list[DestinationField],
    ) -> tuple[list[SyncItem], list[str]]:
        """One SyncItem per row, with id from the primary key and a unique slug."""
        key = primary_key_mapping(mappings)
        field_ids = {f.name: f.id for f in fields}
        title_field = _title_field(mappings)
        taken: set[str] = set()
        items: list[SyncItem] = []
        warnings: list[str] = []

        for index, (row, values) in enumerate(zip(rows, transformed)):
            raw_id = row.get(key.source_field) if key else None
            if raw_id is None or raw_id == "":
                item_id = uuid.uuid4().hex
                message = f"Record {index + 1} has no primary key value, generated id {item_id}"
                logger.warning("%s", message)
                warnings.append(message)
            else:
                item_id = str(raw_id)

            title = values.get(title_field) if title_field else None
            base = slugify(title) if title else ""
            base = base or slugify(item_id) or "item"

            items.append(
                SyncItem(
                    id=item_id,
                    slug=unique_slug(base, taken),
                    field_data={
                        field_ids.get(name, name): value for name, value in values.items()
                    },
                )
            )

        return items, warnings


def _title_field(mappings: list[FieldMapping]) -> str | None:
    names = {m.target_field.lower(): m.target_field for m in mappings}
    for candidate in TITLE_FIELDS:
        if candidate in names:
            return names[candidate]
    return None
