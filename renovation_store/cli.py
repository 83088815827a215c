"""
Command line tool for inspecting and maintaining the local store.

    renovation-store status
    renovation-store dump rooms
    renovation-store sync rooms --key rooms
    renovation-store logs --level error
    renovation-store clear-logs
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from .adapter import DualStoreAdapter
from .config import StoreConfig
from .database import DEFAULT_STORES, LocalDatabase
from .exceptions import LocalStoreError
from .flat_store import FlatStore
from .inspector import inspect_storage
from .journal import LOG_LEVELS, LogJournal
from .logging_utils import LOG_CATEGORIES, configure_structured_logging


def _load_config(args: argparse.Namespace) -> StoreConfig:
    return StoreConfig.from_file(args.config)


async def _status(config: StoreConfig, args: argparse.Namespace) -> int:
    database = LocalDatabase.from_config(config, DEFAULT_STORES)
    try:
        status = await inspect_storage(database, FlatStore(config.flat_store_dir))
    finally:
        await database.close()
    print(json.dumps(status.to_dict(), indent=2))
    return 0


async def _dump(config: StoreConfig, args: argparse.Namespace) -> int:
    database = LocalDatabase.from_config(config, DEFAULT_STORES)
    adapter = DualStoreAdapter(database, args.store, args.key or args.store, FlatStore(config.flat_store_dir))
    try:
        items = await adapter.get_all_items()
    finally:
        await database.close()
    source = "database" if adapter.is_db_available else "flat store"
    print(f"# {len(items)} records from {source}", file=sys.stderr)
    print(json.dumps(items, indent=2, ensure_ascii=False))
    return 0


async def _sync(config: StoreConfig, args: argparse.Namespace) -> int:
    database = LocalDatabase.from_config(config, DEFAULT_STORES)
    adapter = DualStoreAdapter(database, args.store, args.key or args.store, FlatStore(config.flat_store_dir))
    try:
        await adapter.initialize()
        if not adapter.is_db_available:
            print(f"Local database unavailable: {adapter.error}", file=sys.stderr)
            return 1
        snapshot = await adapter.load_local_snapshot()
        await adapter.sync_from_local_storage(snapshot)
    finally:
        await database.close()
    print(f"Synchronized {len(snapshot)} records into {args.store}")
    return 0


async def _logs(config: StoreConfig, args: argparse.Namespace) -> int:
    journal = LogJournal(FlatStore(config.flat_store_dir), key=config.journal_key)
    entries = await journal.filter_logs(level=args.level, category=args.category, search=args.search)
    if args.json:
        print(json.dumps([entry.to_dict() for entry in entries], indent=2, ensure_ascii=False))
        return 0
    for entry in entries:
        print(f"[{entry.timestamp}] [{entry.level.upper()}] [{entry.category}] {entry.message}")
    return 0


async def _clear_logs(config: StoreConfig, args: argparse.Namespace) -> int:
    await LogJournal(FlatStore(config.flat_store_dir), key=config.journal_key).clear_logs()
    print("Log journal cleared")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="renovation-store",
        description="Renovation Local Store - inspect and maintain local data",
    )
    parser.add_argument("--config", help="Path to settings.yaml (default: ~/.renovation/settings.yaml)")
    parser.add_argument("--verbose", action="store_true", help="Log to stderr as JSON lines")

    sub = parser.add_subparsers(dest="command", required=True)

    status = sub.add_parser("status", help="Show availability and contents of both stores")
    status.set_defaults(handler=_status)

    dump = sub.add_parser("dump", help="Print every record of a collection")
    dump.add_argument("store", help="Collection name")
    dump.add_argument("--key", help="Flat-store key (default: same as the collection)")
    dump.set_defaults(handler=_dump)

    sync = sub.add_parser("sync", help="Copy the flat-store snapshot into the database")
    sync.add_argument("store", help="Collection name")
    sync.add_argument("--key", help="Flat-store key (default: same as the collection)")
    sync.set_defaults(handler=_sync)

    logs = sub.add_parser("logs", help="Print the persisted log journal")
    logs.add_argument("--level", choices=LOG_LEVELS)
    logs.add_argument("--category", choices=LOG_CATEGORIES)
    logs.add_argument("--search", help="Text to look for in messages and context")
    logs.add_argument("--json", action="store_true", help="Print entries as JSON")
    logs.set_defaults(handler=_logs)

    clear_logs = sub.add_parser("clear-logs", help="Remove the persisted log journal")
    clear_logs.set_defaults(handler=_clear_logs)

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = _load_config(args)
        if args.verbose:
            configure_structured_logging(config.log_level, "renovation_store")
        else:
            logging.basicConfig(level=logging.WARNING)
        return asyncio.run(args.handler(config, args))
    except LocalStoreError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nCancelled.")
        return 1


if __name__ == "__main__":
    sys.exit(main())
