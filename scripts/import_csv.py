"""CLI for importing Hirose broker CSV exports.

Usage:
    python scripts/import_csv.py --user alice history.csv
    python scripts/import_csv.py --user alice --tz-policy system_local a.csv b.csv
    python scripts/import_csv.py --create-tables
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s [%(name)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


async def do_import(user_id: str, paths: list[Path], policy_name: str) -> int:
    """Import each file in turn. Returns the number of files that failed outright."""
    from zoneinfo import ZoneInfo

    from fxjournal.config import settings
    from fxjournal.database import engine
    from fxjournal.services.datetime_utils import TimezonePolicy
    from fxjournal.services.importer import CsvFormatError, import_hirose_csv
    from fxjournal.services.metrics import PerformanceAggregator
    from fxjournal.services.store import SqlStore
    from fxjournal.services.trade_service import TradeService

    store = SqlStore()
    aggregator = PerformanceAggregator(store, ZoneInfo(settings.calendar_timezone))
    service = TradeService(store, aggregator)
    policy = TimezonePolicy(policy_name)

    failed = 0
    try:
        for path in paths:
            logger.info("Importing %s for user %s (%s)", path, user_id, policy.value)
            try:
                result = await import_hirose_csv(
                    path.read_bytes(),
                    user_id,
                    service,
                    aggregator,
                    policy=policy,
                    max_bytes=settings.import_max_bytes,
                    max_rows=settings.import_max_rows,
                    scan_lines=settings.header_scan_lines,
                )
            except CsvFormatError as e:
                print(f"  {path.name}: rejected ({e})")
                failed += 1
                continue
            print(f"  {path.name}: {result.message}, {result.skipped_count} skipped")
    finally:
        await engine.dispose()
    return failed


async def do_create_tables() -> None:
    from fxjournal.database import create_tables, engine

    await create_tables()
    await engine.dispose()
    print("Tables created.")


def main() -> None:
    parser = argparse.ArgumentParser(description="FX Journal CSV import")
    parser.add_argument("files", nargs="*", type=Path, help="Hirose settlement history CSV files")
    parser.add_argument("--user", type=str, help="User id that owns the imported trades")
    parser.add_argument(
        "--tz-policy",
        choices=["jst", "system_local"],
        default=None,
        help="How broker datetimes are read (default: IMPORT_TIMEZONE_POLICY)",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create the journal tables directly (development databases only)",
    )
    args = parser.parse_args()

    if args.create_tables:
        asyncio.run(do_create_tables())
        return

    if not args.files or not args.user:
        parser.print_help()
        sys.exit(1)

    missing = [p for p in args.files if not p.is_file()]
    if missing:
        print(f"File not found: {', '.join(str(p) for p in missing)}")
        sys.exit(1)

    from fxjournal.config import settings

    failed = asyncio.run(do_import(args.user, args.files, args.tz_policy or settings.import_timezone_policy))
    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    main()
