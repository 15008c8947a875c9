#!/usr/bin/env python3
"""
Close a month: freeze its opening, income, expense and closing figures.

Usage:
    python3 scripts/close_period.py --year 2025 --month 9 --user treasurer [--notes "..."]
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Close a treasury month.")
    parser.add_argument("--year", type=int, required=True)
    parser.add_argument("--month", type=int, required=True)
    parser.add_argument("--user", required=True, help="Who is closing the month.")
    parser.add_argument("--notes", default=None)
    parser.add_argument("--config", type=Path, default=None, help="Settings YAML.")
    parser.add_argument("--db-url", default=None, help="Database URL override.")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()

    from treasury_config import get_settings
    from treasury_kernel.db.engine import create_tables, init_engine_from_url, session_scope
    from treasury_kernel.exceptions import TreasuryKernelError
    from treasury_kernel.logging_config import configure_logging
    from treasury_kernel.services.closing_workflow import ClosingWorkflow

    settings = get_settings(args.config)
    configure_logging(level=settings.log_level)
    init_engine_from_url(args.db_url or settings.database_url, echo=settings.echo_sql)
    create_tables()

    try:
        with session_scope() as session:
            snapshot = ClosingWorkflow(session).close(
                args.year, args.month, args.user, notes=args.notes
            )
    except TreasuryKernelError as e:
        print(f"ERROR [{e.code}]: {e}", file=sys.stderr)
        return 1

    print(f"Closed {snapshot.period.key}")
    print(f"  opening  {snapshot.opening_balance}")
    print(f"  income   {snapshot.total_income}")
    print(f"  expense  {snapshot.total_expense}")
    print(f"  closing  {snapshot.closing_balance}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
