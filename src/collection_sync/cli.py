"""Command line: run a sync pass, preview inferred types, check transformers.

    collection-sync sync TABLE [--primary-key COL] [--limit N]
    collection-sync infer TABLE
    collection-sync validate
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone

from collection_sync.config import Settings
from collection_sync.db.repository import Repository
from collection_sync.destination.client import CollectionClient
from collection_sync.source.client import SourceClient
from collection_sync.sync.consistency import generate_report
from collection_sync.sync.engine import SyncEngine
from collection_sync.sync.errors import MappingValidationError, SyncError, describe_error
from collection_sync.sync.field_map import build_mapping, with_primary_key
from collection_sync.sync.inference import infer_type

logger = logging.getLogger(__name__)


def _print_error(exc: SyncError) -> None:
    msg = describe_error(exc)
    print(f"{msg.title}: {msg.message}", file=sys.stderr)
    for suggestion in msg.suggestions:
        print(f"  - {suggestion}", file=sys.stderr)
    if msg.technical_details:
        print(f"Details: {msg.technical_details}", file=sys.stderr)


async def sync(table: str, primary_key: str | None, limit: int | None) -> int:
    settings = Settings()

    repo = Repository(settings.state_database_url)
    await repo.init_db()

    source = SourceClient(settings.source_database_url)
    destination = CollectionClient(
        settings.destination_api_url,
        settings.destination_api_key,
        settings.destination_collection_id,
    )
    engine = SyncEngine(source, destination, fetch_limit=limit or settings.fetch_limit)

    try:
        mappings = await repo.get_mappings(table)
        if mappings is None:
            logger.info("No saved mapping for %s, inferring one", table)
            mappings = build_mapping(await source.list_columns(table))
        if primary_key:
            mappings = with_primary_key(mappings, primary_key)

        started_at = datetime.now(timezone.utc)
        outcome = await engine.run_sync(table, mappings)
        await repo.record_sync_run(table, started_at, outcome)
    except MappingValidationError as exc:
        _print_error(exc)
        for error in exc.errors:
            print(f"  * {error}", file=sys.stderr)
        return 1
    except SyncError as exc:
        _print_error(exc)
        return 1
    finally:
        await source.close()
        await destination.close()
        await repo.close()

    for warning in outcome.warnings:
        print(f"warning: {warning}", file=sys.stderr)
    if outcome.diagnostics:
        print(f"{len(outcome.diagnostics)} field values replaced by defaults", file=sys.stderr)

    if not outcome.success:
        print(f"Sync failed during {outcome.phase}: {outcome.message}", file=sys.stderr)
        if outcome.error:
            print(f"Details: {outcome.error}", file=sys.stderr)
        return 1

    print(outcome.message)
    return 0


async def infer(table: str) -> int:
    settings = Settings()
    source = SourceClient(settings.source_database_url)
    try:
        columns = await source.list_columns(table)
    except SyncError as exc:
        _print_error(exc)
        return 1
    finally:
        await source.close()

    width = max((len(c.name) for c in columns), default=0)
    for column in columns:
        print(f"{column.name:<{width}}  {column.source_type} -> {infer_type(column).value}")
    return 0


def validate() -> int:
    all_valid, report = generate_report()
    print(report)
    return 0 if all_valid else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="collection-sync")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    sync_cmd = commands.add_parser("sync", help="sync a source table into the collection")
    sync_cmd.add_argument("table")
    sync_cmd.add_argument("--primary-key", help="column used as the item id")
    sync_cmd.add_argument("--limit", type=int, help="maximum rows to fetch")

    infer_cmd = commands.add_parser("infer", help="show the inferred field type of each column")
    infer_cmd.add_argument("table")

    commands.add_parser("validate", help="check transformer output against the type descriptions")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "sync":
        return asyncio.run(sync(args.table, args.primary_key, args.limit))
    if args.command == "infer":
        return asyncio.run(infer(args.table))
    return validate()


if __name__ == "__main__":
    sys.exit(main())
