#!/usr/bin/env python3
"""
View trips, net balances and settlement instructions from the database.

Usage:
    python3 scripts/view_trip.py                 # list trips
    python3 scripts/view_trip.py TRIP_ID         # one trip in detail
    python3 scripts/view_trip.py --database-url sqlite:///trips.db TRIP_ID
    python3 scripts/view_trip.py --verbose TRIP_ID    # with JSON logs on stderr

Read-only: the database and its tables must already exist. A missing SQLite
file or an unmigrated database is reported instead of being created.
"""

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

W = 72


def _fmt(v) -> str:
    return f"{v:,.2f}"


def _print_trip_list(service) -> int:
    trips = service.list_trips()
    if not trips:
        print("  No trips found.")
        return 0

    print()
    print("=" * W)
    print("TRIPS".center(W))
    print("=" * W)
    print(f"  {'Id':<22} {'Name':<20} {'Start':<10} {'End':<10}")
    print(f"  {'-'*22} {'-'*20} {'-'*10} {'-'*10}")
    for t in trips:
        print(f"  {t.id:<22} {t.name[:20]:<20} {t.start_date or '-':<10} {t.end_date or '-':<10}")
    print()
    return 0


def _print_trip_detail(detail) -> int:
    ledger = detail.ledger
    names = {p.id: p.name for p in ledger.participants}

    print()
    print("=" * W)
    print(ledger.name.upper().center(W))
    print("=" * W)
    if ledger.location:
        print(f"  Location: {ledger.location}")
    print(f"  Dates:    {detail.dates.start or '?'} .. {detail.dates.end or '?'}")
    print(f"  Expenses: {len(ledger.expenses)}    Transfers: {len(ledger.transfers)}")
    print()

    print(f"  {'Participant':<30} {'Net balance':>14}")
    print(f"  {'-'*30} {'-'*14}")
    for pid, balance in detail.balances.items():
        print(f"  {names.get(pid, pid):<30} {_fmt(balance):>14}")
    print()

    settlements = detail.settlements
    if not settlements:
        print("  Everyone is settled up.")
    else:
        print("  Settlement")
        print(f"  {'-'*30} {'-'*14}")
        for s in settlements:
            line = f"{names.get(s.debtor_id, s.debtor_id)} -> {names.get(s.creditor_id, s.creditor_id)}"
            print(f"  {line:<30} {_fmt(s.amount):>14}")
    print()
    return 0


def _schema_problem(database_url: str) -> str | None:
    """Why ``database_url`` cannot be read, checked without creating anything."""
    from sqlalchemy import inspect
    from sqlalchemy.engine import make_url

    from trip_ledger_kernel.db.engine import get_engine

    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
        if not Path(url.database).is_file():
            return f"no database file at {url.database}"
    if not inspect(get_engine()).has_table("trips"):
        return f"no trip ledger tables in {url.render_as_string(hide_password=True)}"
    return None


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="View trip ledgers")
    parser.add_argument("trip_id", nargs="?", help="Trip to show in detail")
    parser.add_argument("--config", help="YAML settings file")
    parser.add_argument("--database-url", help="Overrides the configured database URL")
    parser.add_argument(
        "--verbose", action="store_true",
        help="Emit structured logs to stderr at the configured level",
    )
    args = parser.parse_args(argv)

    if not args.verbose:
        logging.disable(logging.CRITICAL)

    from trip_ledger_config import get_settings
    from trip_ledger_kernel.db.engine import get_session_factory, init_engine_from_url
    from trip_ledger_kernel.exceptions import TripLedgerError, TripNotFoundError
    from trip_ledger_kernel.logging_config import configure_logging
    from trip_ledger_kernel.services import SqlLedgerStore, TripService

    settings = get_settings(args.config)
    if args.verbose:
        configure_logging(level=settings.log_level)
    database_url = args.database_url or settings.database_url

    try:
        init_engine_from_url(database_url, echo=settings.echo_sql)
        problem = _schema_problem(database_url)
    except Exception as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1
    if problem:
        print(f"  ERROR: {problem}", file=sys.stderr)
        return 1

    service = TripService(SqlLedgerStore(get_session_factory()))

    if not args.trip_id:
        return _print_trip_list(service)

    try:
        detail = service.get_trip_detail(args.trip_id)
    except TripNotFoundError:
        print(f"  Trip not found: {args.trip_id}", file=sys.stderr)
        return 1
    except TripLedgerError as exc:
        print(f"  ERROR [{exc.code}]: {exc}", file=sys.stderr)
        return 1
    return _print_trip_detail(detail)


if __name__ == "__main__":
    sys.exit(main())
