"""FastAPI application entry point."""

import logging
from contextlib import AsyncExitStack, asynccontextmanager

from fastapi import FastAPI

from collection_sync.api import handler as api_handler
from collection_sync.api.handler import router as api_router
from collection_sync.config import Settings
from collection_sync.db.repository import Repository
from collection_sync.destination.client import CollectionClient
from collection_sync.source.client import SourceClient
from collection_sync.sync.engine import SyncEngine

logger = logging.getLogger(__name__)


async def _open_services(settings: Settings, stack: AsyncExitStack) -> None:
    """Open the state store and both clients, registering each close on ``stack``."""
    repo = Repository(settings.state_database_url)
    stack.push_async_callback(repo.close)
    await repo.init_db()

    source = SourceClient(settings.source_database_url)
    stack.push_async_callback(source.close)

    destination = CollectionClient(
        settings.destination_api_url,
        settings.destination_api_key,
        settings.destination_collection_id,
    )
    stack.push_async_callback(destination.close)

    api_handler.configure(
        repo,
        source,
        SyncEngine(source, destination, fetch_limit=settings.fetch_limit),
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        current = settings or Settings()
        logging.basicConfig(
            level=getattr(logging, current.log_level.upper()),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

        async with AsyncExitStack() as stack:
            await _open_services(current, stack)
            logger.info(
                "Collection sync serving %s into collection %s",
                current.destination_api_url, current.destination_collection_id,
            )
            yield
            logger.info("Collection sync shutting down")

    app = FastAPI(title="Collection Sync", lifespan=lifespan)
    app.include_router(api_router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = Settings()
    uvicorn.run(
        "collection_sync.main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
    )
