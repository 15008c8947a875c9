#!/usr/bin/env python3
"""
Reopen a closed month.  The frozen figures are discarded; the reason is kept
in the audit trail.

Usage:
    python3 scripts/reopen_period.py --year 2025 --month 9 --reason "correction needed" --user admin
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reopen a closed treasury month.")
    parser.add_argument("--year", type=int, required=True)
    parser.add_argument("--month", type=int, required=True)
    parser.add_argument("--reason", required=True, help="Why the month is reopened.")
    parser.add_argument("--user", required=True, help="Administrator reopening the month.")
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
            discarded = ClosingWorkflow(session).reopen(
                args.year, args.month, args.reason, args.user
            )
    except TreasuryKernelError as e:
        print(f"ERROR [{e.code}]: {e}", file=sys.stderr)
        return 1

    print(f"Reopened {discarded.period.key} (discarded closing {discarded.closing_balance})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
