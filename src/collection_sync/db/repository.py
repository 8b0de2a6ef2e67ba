from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from collection_sync.sync.engine import SyncOutcome
from collection_sync.sync.models import FieldMapping

from .models import Base, MappingState, SyncRun


class Repository:
    def __init__(self, database_url: str) -> None:
        self._engine = create_async_engine(database_url, echo=False)
        self._session_factory = async_sessionmaker(self._engine, expire_on_commit=False)

    async def init_db(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        await self._engine.dispose()

    # -- MappingState --

    async def get_mapping_state(self, table_name: str) -> MappingState | None:
        async with self._session_factory() as session:
            return await session.get(MappingState, table_name)

    async def get_mappings(self, table_name: str) -> list[FieldMapping] | None:
        """Persisted mappings for a table, None if never saved."""
        state = await self.get_mapping_state(table_name)
        if state is None:
            return None
        return [FieldMapping.from_dict(m) for m in state.mappings]

    async def save_mappings(self, table_name: str, mappings: list[FieldMapping]) -> None:
        primary_key = next((m.source_field for m in mappings if m.is_primary_key), None)
        async with self._session_factory() as session:
            existing = await session.get(MappingState, table_name)
            now = datetime.now(timezone.utc)
            data = [m.to_dict() for m in mappings]
            if existing:
                existing.mappings = data
                existing.primary_key = primary_key
                existing.updated_at = now
            else:
                session.add(
                    MappingState(
                        table_name=table_name,
                        mappings=data,
                        primary_key=primary_key,
                        updated_at=now,
                    )
                )
            await session.commit()

    # -- SyncRun --

    async def record_sync_run(
        self, table_name: str, started_at: datetime, outcome: SyncOutcome
    ) -> SyncRun:
        async with self._session_factory() as session:
            run = SyncRun(
                table_name=table_name,
                started_at=started_at,
                finished_at=datetime.now(timezone.utc),
                success=outcome.success,
                total_records=outcome.total_records,
                message=outcome.message,
                error=outcome.error,
                phase=outcome.phase,
            )
            session.add(run)
            await session.commit()
            return run

    async def get_last_sync_run(self, table_name: str) -> SyncRun | None:
        async with self._session_factory() as session:
            stmt = (
                select(SyncRun)
                .where(SyncRun.table_name == table_name)
                .order_by(SyncRun.id.desc())
                .limit(1)
            )
            result = await session.execute(stmt)
            return result.scalar_one_or_none()
