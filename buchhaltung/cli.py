"""
CLI entry point: run the server and the ledger maintenance jobs.
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from buchhaltung.core import irrelevant
from buchhaltung.core.config import settings
from buchhaltung.core.exceptions import StorageError
from buchhaltung.core.konten import DEBITOREN, KREDITOREN, restructure_subaccounts
from buchhaltung.db.json_store import buchungen_store, irrelevant_store
from buchhaltung.db.storage import IRRELEVANT_PREFIX, storage_backend

logger = logging.getLogger(__name__)

SUBLEDGERS = {
    "restructure-debitoren": ("Debitoren", DEBITOREN),
    "restructure-kreditoren": ("Kreditoren", KREDITOREN),
}


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else settings.LOG_LEVEL
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="buchhaltung",
        description="Bookkeeping desk: ledger, documents and imports",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Run the web application")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    serve_parser.add_argument("--reload", action="store_true", help="Reload on code changes")

    # sub-ledger migrations
    for command, (label, (parent, low, high)) in SUBLEDGERS.items():
        sub = subparsers.add_parser(
            command,
            help=f"Move {label} accounts {low}-{high} to sub-accounts of {parent}",
        )
        sub.add_argument(
            "--dry-run",
            action="store_true",
            help="Report the changes without writing buchungen.json",
        )

    subparsers.add_parser(
        "populate-irrelevant",
        help="Add catalog entries for every document under irrelevant/",
    )

    return parser


def cmd_serve(host: str, port: int, reload: bool) -> int:
    """Start the web application."""
    import uvicorn

    uvicorn.run("buchhaltung.main:app", host=host, port=port, reload=reload)
    return 0


def cmd_restructure(command: str, dry_run: bool) -> int:
    """Book single debtor/creditor accounts on their collective account."""
    label, (parent, low, high) = SUBLEDGERS[command]
    store = buchungen_store()

    try:
        doc = store.load()
    except (OSError, json.JSONDecodeError) as e:
        print(f"❌ Failed to read {store.path}: {e}")
        return 1

    changed = restructure_subaccounts(doc["data"], parent, low, high)
    print(f"{label}: {changed} of {len(doc['data'])} Buchungen moved to {parent}")

    if dry_run:
        print("Dry run, nothing written")
    elif changed:
        store.write(doc)
        print(f"✓ Saved {store.path}")
    return 0


def cmd_populate_irrelevant() -> int:
    """Fill irrelevant-docs.json from the objects under irrelevant/."""
    try:
        names = [obj.name for obj in storage_backend().list_objects(prefix=IRRELEVANT_PREFIX)]
    except StorageError as e:
        print(f"❌ Failed to list {IRRELEVANT_PREFIX}: {e}")
        return 1
    print(f"Found {len(names)} documents under {IRRELEVANT_PREFIX}")

    store = irrelevant_store()
    try:
        doc = store.load_or_empty()
    except json.JSONDecodeError as e:
        print(f"❌ Failed to read {store.path}: {e}")
        return 1

    added = irrelevant.populate_from_storage(doc["data"], names)
    store.write(doc)
    print(f"✓ Added {added} entries, catalog now has {len(doc['data'])}")
    return 0


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_cli()
    parsed = parser.parse_args(args)

    setup_logging(parsed.verbose)

    if not parsed.command:
        parser.print_help()
        return 1

    # Route to command
    if parsed.command == "serve":
        return cmd_serve(parsed.host, parsed.port, parsed.reload)
    elif parsed.command in SUBLEDGERS:
        return cmd_restructure(parsed.command, parsed.dry_run)
    elif parsed.command == "populate-irrelevant":
        return cmd_populate_irrelevant()
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
