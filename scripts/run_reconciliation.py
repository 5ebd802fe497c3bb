"""Closes a billing period for every student (cron entry point).

Usage:
    python scripts/run_reconciliation.py
    python scripts/run_reconciliation.py --period-start 2024-05-01 --period-end 2024-05-31
    python scripts/run_reconciliation.py --period-start 2024-05-01 --period-end 2024-05-31 \
        --student-id <uuid> --student-id <uuid>

Without dates the previous calendar month is closed. Exits with status 1 if
any student failed; re-run with --student-id for the listed IDs.
"""

import argparse
import asyncio
import sys
from datetime import date, timedelta
from uuid import UUID

from dotenv import load_dotenv

# Settings are read at import time, so the .env must be loaded first
load_dotenv()

from tutor_ledger.common.logger import log
from tutor_ledger.common.exceptions import PartialReconciliationFailure
from tutor_ledger.database import engine as db_engine
from tutor_ledger.services.reconciliation_service import ReconciliationService


def previous_month(today: date) -> tuple[date, date]:
    last_day = today.replace(day=1) - timedelta(days=1)
    return last_day.replace(day=1), last_day


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the monthly balance reconciliation.")
    parser.add_argument("--period-start", type=date.fromisoformat, help="First day of the period (YYYY-MM-DD)")
    parser.add_argument("--period-end", type=date.fromisoformat, help="Last day of the period (YYYY-MM-DD)")
    parser.add_argument("--student-id", type=UUID, action="append", dest="student_ids",
                        help="Only reconcile this student; may be repeated")
    parser.add_argument("--db-url", help="Overrides the database URL from the settings")
    args = parser.parse_args(argv)

    if (args.period_start is None) != (args.period_end is None):
        parser.error("--period-start and --period-end must be given together")
    if args.period_start is None:
        args.period_start, args.period_end = previous_month(date.today())
    return args


async def run(args: argparse.Namespace) -> int:
    db_engine.create_db_engine_and_session_factory(args.db_url)
    try:
        async with db_engine.AsyncSessionLocal() as session:
            service = ReconciliationService(session)
            result = await service.reconcile_all(
                args.period_start,
                args.period_end,
                student_ids=args.student_ids,
                trigger_source="cli"
            )
        print(f"Run {result.run_id}: {result.status.value} "
              f"({result.reconciled_count} reconciled, {result.skipped_count} skipped, {len(result.failures)} failed)")
        result.raise_for_failures()
        return 0
    except PartialReconciliationFailure as e:
        log.error(str(e))
        print("Retry with: " + " ".join(f"--student-id {s}" for s in e.student_ids))
        return 1
    finally:
        await db_engine.dispose_db_engine()


if __name__ == "__main__":
    sys.exit(asyncio.run(run(parse_args())))
