"""Tests for the destination collection HTTP client."""

import json

import httpx
import pytest

from collection_sync.destination.client import CollectionClient
from collection_sync.sync.engine import SyncEngine
from collection_sync.sync.errors import SchemaReconcileError, SyncConnectionError, UpsertError
from collection_sync.sync.field_types import FieldType
from collection_sync.sync.models import DestinationField, FieldMapping, SyncItem


def _make_client(handler) -> CollectionClient:
    return CollectionClient(
        "https://api.example.com/v1",
        "secret",
        "col123",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_get_fields():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"fields": [{"id": "f1", "name": "title", "type": "string"}]})

    client = _make_client(handler)
    try:
        fields = await client.get_fields()
    finally:
        await client.close()

    assert fields == [DestinationField("f1", "title", "string")]
    assert seen[0].method == "GET"
    assert seen[0].url.path == "/v1/collections/col123/fields"
    assert seen[0].headers["Authorization"] == "Bearer secret"


@pytest.mark.asyncio
async def test_set_fields_sends_definitions():
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json=bodies[-1])

    fields = [DestinationField("title", "title", "string"), DestinationField("id", "id", "number")]
    client = _make_client(handler)
    try:
        stored = await client.set_fields(fields)
    finally:
        await client.close()

    assert bodies == [{"fields": [
        {"id": "title", "name": "title", "type": "string"},
        {"id": "id", "name": "id", "type": "number"},
    ]}]
    assert stored == fields


@pytest.mark.asyncio
async def test_set_fields_empty_response_body():
    client = _make_client(lambda request: httpx.Response(204))
    try:
        fields = [DestinationField("title", "title", "string")]
        assert await client.set_fields(fields) == fields
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_upsert_items():
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.url.path == "/v1/collections/col123/items"
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"upserted": 1})

    client = _make_client(handler)
    try:
        count = await client.upsert_items([SyncItem("1", "first", {"title": "First"})])
    finally:
        await client.close()

    assert count == 1
    assert bodies == [{"items": [{"id": "1", "slug": "first", "fieldData": {"title": "First"}}]}]


@pytest.mark.asyncio
async def test_rejected_fields():
    client = _make_client(lambda request: httpx.Response(400, json={"error": "bad type"}))
    try:
        with pytest.raises(SchemaReconcileError) as exc_info:
            await client.set_fields([DestinationField("x", "x", "geometry")])
    finally:
        await client.close()
    assert "bad type" in exc_info.value.technical_details


@pytest.mark.asyncio
async def test_rejected_items():
    client = _make_client(lambda request: httpx.Response(422, json={"error": "bad item"}))
    try:
        with pytest.raises(UpsertError):
            await client.upsert_items([SyncItem("1", "a")])
    finally:
        await client.close()


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [401, 403, 404])
async def test_auth_and_missing_collection_are_connection_errors(status):
    client = _make_client(lambda request: httpx.Response(status))
    try:
        with pytest.raises(SyncConnectionError):
            await client.get_fields()
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_rate_limit_retried_once():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(429, headers={"Retry-After": "0"})
        return httpx.Response(200, json={"fields": []})

    client = _make_client(handler)
    try:
        assert await client.get_fields() == []
    finally:
        await client.close()
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _make_client(handler)
    try:
        with pytest.raises(SyncConnectionError) as exc_info:
            await client.upsert_items([])
    finally:
        await client.close()
    assert "connection refused" in exc_info.value.technical_details


class ListSource:
    def __init__(self, rows):
        self.rows = rows

    async def fetch_rows(self, table, limit):
        return [dict(r) for r in self.rows[:limit]]


@pytest.mark.asyncio
async def test_non_finite_value_is_defaulted_not_sent():
    items_posted = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, json={"fields": []})
        body = json.loads(request.content)
        if request.method == "PUT":
            return httpx.Response(200, json=body)
        items_posted.extend(body["items"])
        return httpx.Response(200, json={"upserted": len(body["items"])})

    mappings = [
        FieldMapping("id", "id", FieldType.NUMBER, is_primary_key=True),
        FieldMapping("price", "price", FieldType.NUMBER),
    ]
    source = ListSource([{"id": 1, "price": "10"}, {"id": 2, "price": "Infinity"}])
    client = _make_client(handler)
    try:
        outcome = await SyncEngine(source, client).run_sync("products", mappings)
    finally:
        await client.close()

    assert outcome.success, outcome.error
    assert outcome.total_records == 2
    assert [(d.record_index, d.source_field) for d in outcome.diagnostics] == [(1, "price")]
    assert [item["fieldData"]["price"] for item in items_posted] == [10, 0]
