"""HTTP routes for inspecting tables, editing mappings and running syncs."""

import logging
from dataclasses import asdict
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException

from collection_sync.api.models import (
    ColumnIn,
    ColumnOut,
    FieldMappingModel,
    InferResponse,
    MappingPayload,
    MappingResponse,
    PreviewResponse,
    SyncRequest,
    SyncRunOut,
)
from collection_sync.db.repository import Repository
from collection_sync.source.client import SourceClient
from collection_sync.sync.engine import SyncEngine
from collection_sync.sync.errors import (
    MappingValidationError,
    SyncError,
    TableNotFoundError,
    describe_error,
)
from collection_sync.sync.field_map import build_mapping, validate_mapping, with_primary_key
from collection_sync.sync.field_types import TYPE_DESCRIPTIONS, field_type_options
from collection_sync.sync.inference import infer_type
from collection_sync.sync.models import ColumnDescriptor, FieldMapping

logger = logging.getLogger(__name__)

router = APIRouter()

# These will be injected at app startup
_repo: Repository | None = None
_source: SourceClient | None = None
_sync_engine: SyncEngine | None = None

# Tables with a sync pass in flight
_busy: set[str] = set()


def configure(repo: Repository, source: SourceClient, sync_engine: SyncEngine) -> None:
    global _repo, _source, _sync_engine
    _repo = repo
    _source = source
    _sync_engine = sync_engine


def _http_error(exc: SyncError) -> HTTPException:
    if isinstance(exc, TableNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, MappingValidationError):
        return HTTPException(status_code=422, detail={"errors": exc.errors})
    return HTTPException(status_code=502, detail=asdict(describe_error(exc)))


async def _columns(table: str) -> list[ColumnDescriptor]:
    try:
        return await _source.list_columns(table)
    except SyncError as exc:
        raise _http_error(exc) from exc


async def _sample_rows(table: str) -> list[dict]:
    try:
        return await _source.preview_rows(table)
    except SyncError as exc:
        raise _http_error(exc) from exc


async def _current_mappings(table: str) -> tuple[list[FieldMapping], bool]:
    saved = await _repo.get_mappings(table)
    if saved is not None:
        return saved, True
    return build_mapping(await _columns(table)), False


@router.get("/field-types")
async def list_field_types():
    return {"field_types": field_type_options()}


@router.post("/infer", response_model=InferResponse)
async def infer(column: ColumnIn):
    field_type = infer_type(column.to_descriptor())
    return InferResponse(type=field_type, description=TYPE_DESCRIPTIONS[field_type])


@router.get("/tables")
async def list_tables():
    try:
        tables = await _source.list_tables()
    except SyncError as exc:
        raise _http_error(exc) from exc
    return {"tables": tables}


@router.get("/tables/{table}/columns", response_model=list[ColumnOut])
async def list_columns(table: str):
    columns = await _columns(table)
    return [
        ColumnOut(
            name=c.name,
            source_type=c.source_type,
            nullable=c.nullable,
            inferred_type=infer_type(c),
        )
        for c in columns
    ]


@router.get("/tables/{table}/mapping", response_model=MappingResponse)
async def get_mapping(table: str):
    """Saved mapping for the table, or an inferred one if none was saved."""
    mappings, persisted = await _current_mappings(table)
    return MappingResponse(
        table=table,
        persisted=persisted,
        mappings=[FieldMappingModel.from_mapping(m) for m in mappings],
    )


@router.put("/tables/{table}/mapping", response_model=MappingResponse)
async def put_mapping(table: str, payload: MappingPayload):
    mappings = [m.to_mapping() for m in payload.mappings]
    report = validate_mapping(mappings, await _columns(table), await _sample_rows(table))
    if not report.is_valid:
        raise HTTPException(status_code=422, detail={"errors": report.errors})

    await _repo.save_mappings(table, mappings)
    logger.info("Saved %d field mappings for %s", len(mappings), table)
    return MappingResponse(
        table=table,
        persisted=True,
        mappings=payload.mappings,
        warnings=report.warnings,
    )


@router.get("/tables/{table}/preview", response_model=PreviewResponse)
async def preview(table: str):
    """First rows of the table as they would be sent, with any defaulted values."""
    mappings, persisted = await _current_mappings(table)
    rows = await _sample_rows(table)
    transformed, diagnostics = _sync_engine.transform_rows(rows, mappings)
    return PreviewResponse(
        table=table,
        persisted=persisted,
        mappings=[FieldMappingModel.from_mapping(m) for m in mappings],
        rows=transformed,
        diagnostics=[d.to_dict() for d in diagnostics],
    )


@router.post("/tables/{table}/sync")
async def sync_table(table: str, request: SyncRequest | None = None):
    request = request or SyncRequest()
    if request.mappings is not None:
        mappings = [m.to_mapping() for m in request.mappings]
    else:
        mappings = await _repo.get_mappings(table)
        if mappings is None:
            raise HTTPException(status_code=422, detail={"errors": [f"No mapping saved for {table}"]})
    if request.primary_key:
        mappings = with_primary_key(mappings, request.primary_key)

    if table in _busy:
        raise HTTPException(status_code=409, detail=f"A sync of {table} is already running")

    _busy.add(table)
    started_at = datetime.now(timezone.utc)
    try:
        logger.info("Starting sync of %s", table)
        outcome = await _sync_engine.run_sync(table, mappings)
    except MappingValidationError as exc:
        raise _http_error(exc) from exc
    finally:
        _busy.discard(table)

    await _repo.record_sync_run(table, started_at, outcome)
    return outcome.to_dict()


@router.get("/tables/{table}/last-sync", response_model=SyncRunOut)
async def last_sync(table: str):
    run = await _repo.get_last_sync_run(table)
    if run is None:
        raise HTTPException(status_code=404, detail=f"{table} has never been synced")
    return run
