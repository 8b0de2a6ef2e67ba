"""Read-only access to the relational source store."""

import logging

from sqlalchemy import MetaData, Table, inspect, select
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine

from collection_sync.sync.errors import SyncConnectionError, TableNotFoundError
from collection_sync.sync.models import ColumnDescriptor

logger = logging.getLogger(__name__)


class SourceClient:
    def __init__(self, database_url: str) -> None:
        self._engine = create_async_engine(database_url, echo=False)

    async def close(self) -> None:
        await self._engine.dispose()

    async def list_tables(self) -> list[str]:
        try:
            async with self._engine.connect() as conn:
                names = await conn.run_sync(lambda c: inspect(c).get_table_names())
        except SQLAlchemyError as exc:
            raise SyncConnectionError(
                "Could not list source tables", technical_details=str(exc)
            ) from exc
        return sorted(names)

    async def list_columns(self, table: str) -> list[ColumnDescriptor]:
        try:
            async with self._engine.connect() as conn:
                columns = await conn.run_sync(lambda c: inspect(c).get_columns(table))
        except NoSuchTableError as exc:
            raise TableNotFoundError(f"Table not found: {table}") from exc
        except SQLAlchemyError as exc:
            raise SyncConnectionError(
                f"Could not read columns of {table}", technical_details=str(exc)
            ) from exc

        return [
            ColumnDescriptor(
                name=col["name"],
                source_type=str(col["type"]).lower(),
                nullable=bool(col.get("nullable", True)),
            )
            for col in columns
        ]

    async def fetch_rows(self, table: str, limit: int) -> list[dict]:
        """Return up to ``limit`` rows of ``table`` as column -> value dicts."""
        try:
            async with self._engine.connect() as conn:
                reflected = await conn.run_sync(
                    lambda c: Table(table, MetaData(), autoload_with=c)
                )
                result = await conn.execute(select(reflected).limit(limit))
                rows = [dict(row._mapping) for row in result]
        except NoSuchTableError as exc:
            raise TableNotFoundError(f"Table not found: {table}") from exc
        except SQLAlchemyError as exc:
            raise SyncConnectionError(
                f"Could not fetch rows from {table}", technical_details=str(exc)
            ) from exc

        logger.debug("Fetched %d rows from %s", len(rows), table)
        return rows

    async def preview_rows(self, table: str, limit: int = 5) -> list[dict]:
        return await self.fetch_rows(table, limit)
