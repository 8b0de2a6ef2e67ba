"""HTTP client for the destination collection API."""

import asyncio
import logging

import httpx

from collection_sync.sync.errors import (
    SchemaReconcileError,
    SyncConnectionError,
    SyncError,
    UpsertError,
)
from collection_sync.sync.models import DestinationField, SyncItem

logger = logging.getLogger(__name__)


def _body(resp: httpx.Response) -> dict:
    return resp.json() if resp.content else {}


class CollectionClient:
    """Fields and items of one destination collection."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        collection_id: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._collection_id = collection_id
        self._client = httpx.AsyncClient(
            base_url=api_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=30.0,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    @property
    def _base(self) -> str:
        return f"/collections/{self._collection_id}"

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Make a request with rate-limit handling."""
        try:
            resp = await self._client.request(method, url, **kwargs)

            if resp.status_code == 429:
                retry_after = int(resp.headers.get("Retry-After", "5"))
                logger.warning("Destination rate limited, retrying after %d seconds", retry_after)
                await asyncio.sleep(retry_after)
                resp = await self._client.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            raise SyncConnectionError(
                "Could not reach the destination collection",
                technical_details=f"{method} {url}: {exc!r}",
            ) from exc

        return resp

    def _check(self, resp: httpx.Response, error_cls: type[SyncError], action: str) -> None:
        if resp.is_success:
            return
        details = f"{resp.request.method} {resp.request.url} -> {resp.status_code}: {resp.text}"
        if resp.status_code in (401, 403):
            raise SyncConnectionError(
                "The destination rejected the API key", technical_details=details
            )
        if resp.status_code == 404:
            raise SyncConnectionError(
                f"Collection not found: {self._collection_id}", technical_details=details
            )
        raise error_cls(f"The destination rejected the {action}", technical_details=details)

    async def get_fields(self) -> list[DestinationField]:
        resp = await self._request("GET", f"{self._base}/fields")
        self._check(resp, SchemaReconcileError, "field listing")
        return [
            DestinationField(id=f["id"], name=f["name"], type=f["type"])
            for f in _body(resp).get("fields", [])
        ]

    async def set_fields(self, fields: list[DestinationField]) -> list[DestinationField]:
        """Replace the collection's field list. Returns the fields as stored."""
        resp = await self._request(
            "PUT", f"{self._base}/fields", json={"fields": [f.to_dict() for f in fields]}
        )
        self._check(resp, SchemaReconcileError, "field definitions")
        stored = _body(resp).get("fields")
        if stored is None:
            return list(fields)
        return [DestinationField(id=f["id"], name=f["name"], type=f["type"]) for f in stored]

    async def upsert_items(self, items: list[SyncItem]) -> int:
        """Create or update items by id. Returns the number the destination accepted."""
        resp = await self._request(
            "POST", f"{self._base}/items", json={"items": [i.to_dict() for i in items]}
        )
        self._check(resp, UpsertError, "items")
        upserted = _body(resp).get("upserted", len(items))
        logger.info("Destination accepted %d of %d items", upserted, len(items))
        return upserted
