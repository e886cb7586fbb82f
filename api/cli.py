#!/usr/bin/env python3
"""
Logbook CLI Tool.

Command-line interface for administrative tasks:
- Database initialization and legacy backfill
- Voyage management
- Sending a report immediately

Usage:
    python -m api.cli init-db
    python -m api.cli start-voyage --name "Passage to Horta"
    python -m api.cli list-voyages
    python -m api.cli send-now
    python -m api.cli backfill
"""
import argparse
import sys
from datetime import datetime, timezone
from typing import Optional

# Ensure imports work
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))


def _format_ts(timestamp: Optional[int]) -> str:
    if timestamp is None:
        return "-"
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")


def _build_service():
    from api.config import settings as api_settings
    from api.database import get_storage
    from src.config import settings as logbook_settings
    from src.logbook.service import LogbookService

    return LogbookService.from_config(
        logbook_settings, api_settings.database_url, storage=get_storage()
    )


def init_db() -> None:
    """Initialize the database."""
    from api.database import init_db as do_init

    print("Initializing database...")
    do_init()
    print("Database initialized successfully.")


def start_voyage(name: Optional[str]) -> None:
    """End the active voyage and start a new one."""
    from api.database import get_storage
    from src.logbook.errors import InvalidVoyageOperation
    from src.logbook.ledger import VoyageLedger

    storage = get_storage()
    storage.create_schema()
    try:
        voyage_id = VoyageLedger(storage).start_voyage(name)
    except InvalidVoyageOperation as e:
        print(f"\nError: {e.reason}")
        sys.exit(1)
    voyage = storage.get_voyage(voyage_id)
    print(f"\nStarted voyage {voyage.id}: {voyage.name}")


def list_voyages() -> None:
    """List all voyages."""
    from api.database import get_storage

    storage = get_storage()
    storage.create_schema()
    voyages = storage.list_voyages()

    if not voyages:
        print("\nNo voyages found.")
        return

    print("\n" + "=" * 80)
    print("VOYAGES")
    print("=" * 80)
    print(f"{'ID':<6} {'Name':<30} {'Active':<8} {'Started':<18} {'Entries':<8} {'Distance':<10}")
    print("-" * 80)
    for v in voyages:
        print(
            f"{v.id:<6} {v.name[:30]:<30} {'yes' if v.is_active else 'no':<8} "
            f"{_format_ts(v.start_timestamp):<18} {v.entry_count:<8} {v.total_distance:>7.1f} nm"
        )
    print("=" * 80 + "\n")


def send_now() -> None:
    """Run one report cycle and print the outcome."""
    service = _build_service()
    service.storage.create_schema()
    service.ledger.ensure_active_voyage()
    service.recipients.load_seed()
    try:
        result = service.run_manual_cycle()
    finally:
        service.stop()

    if not result.success:
        print(f"\nReport failed: {result.error}")
        sys.exit(1)

    print(f"\nReport created (entry {result.entry_id})")
    if result.distance is not None:
        rounded = result.distance.rounded()
        print(f"Since last: {rounded.distance_since_last:.1f} nm")
        print(f"Voyage total: {rounded.total_distance:.1f} nm")
    print(f"Email sent: {'yes' if result.email_sent else 'no'}")
    for warning in result.warnings:
        print(f"Warning: {warning}")


def backfill() -> None:
    """Assign voyages to legacy entries stored without one."""
    from api.database import get_storage

    storage = get_storage()
    storage.create_schema()
    count = storage.backfill_voyage_ids()
    print(f"\nAssigned a voyage to {count} entries.")


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Vessel Noon Logbook CLI Tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Initialize database:
    python -m api.cli init-db

  Start a new voyage:
    python -m api.cli start-voyage --name "Passage to Horta"

  Send a report now:
    python -m api.cli send-now
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("init-db", help="Initialize the database")

    voyage_parser = subparsers.add_parser("start-voyage", help="End the active voyage and start a new one")
    voyage_parser.add_argument("--name", help="Voyage name (default: 'Voyage YYYY-MM-DD')")

    subparsers.add_parser("list-voyages", help="List all voyages")
    subparsers.add_parser("send-now", help="Create and send a report immediately")
    subparsers.add_parser("backfill", help="Assign voyages to legacy entries")

    args = parser.parse_args(argv)

    from src.config import settings as logbook_settings
    logbook_settings.configure_logging()

    if args.command == "init-db":
        init_db()
    elif args.command == "start-voyage":
        start_voyage(args.name)
    elif args.command == "list-voyages":
        list_voyages()
    elif args.command == "send-now":
        send_now()
    elif args.command == "backfill":
        backfill()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
