#!/usr/bin/env python3
"""
Verify a month: recompute its figures from the ledger, compare them with the
frozen snapshot (when closed) and with an expected closing balance, and
optionally validate the audit hash chain.

Usage:
    python3 scripts/verify_period.py --year 2025 --month 9 [--expected 1234567.89] [--check-audit]

Exit codes: 0 consistent, 2 discrepancy found, 1 error.
"""

from __future__ import annotations

import argparse
import sys
from decimal import Decimal
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Verify a treasury month.")
    parser.add_argument("--year", type=int, required=True)
    parser.add_argument("--month", type=int, required=True)
    parser.add_argument(
        "--expected",
        type=Decimal,
        default=None,
        help="Expected closing balance (e.g. from the paper report).",
    )
    parser.add_argument(
        "--check-audit",
        action="store_true",
        help="Also validate the audit hash chain.",
    )
    parser.add_argument("--config", type=Path, default=None, help="Settings YAML.")
    parser.add_argument("--db-url", default=None, help="Database URL override.")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()

    from treasury_config import get_settings
    from treasury_kernel.db.engine import get_session, init_engine_from_url
    from treasury_kernel.domain.balance import BalanceValidator
    from treasury_kernel.exceptions import AuditChainBrokenError, TreasuryKernelError
    from treasury_kernel.logging_config import configure_logging
    from treasury_kernel.selectors.ledger_aggregator import LedgerAggregator
    from treasury_kernel.services.auditor_service import AuditorService
    from treasury_kernel.services.closing_workflow import ClosingWorkflow

    settings = get_settings(args.config)
    configure_logging(level=settings.log_level)
    init_engine_from_url(args.db_url or settings.database_url, echo=settings.echo_sql)

    validator = BalanceValidator(settings.balance_tolerance)
    problems = 0

    session = get_session()
    try:
        aggregate = LedgerAggregator(session).aggregate(args.year, args.month)
        snapshot = ClosingWorkflow(session).get_status(args.year, args.month)

        print(f"Period {aggregate.period.key}: {'CLOSED' if snapshot else 'OPEN'}")
        print(f"  opening  {aggregate.opening}")
        print(f"  income   {aggregate.income}")
        print(f"  expense  {aggregate.expense}")
        print(f"  closing  {aggregate.closing}")

        if snapshot is not None and snapshot.closing_balance != aggregate.closing:
            problems += 1
            print(
                f"  DRIFT: snapshot closing {snapshot.closing_balance}"
                f" != recomputed {aggregate.closing}"
            )

        warning = validator.validate(aggregate.closing, args.expected)
        if warning is not None:
            problems += 1
            print(f"  BALANCE: expected {warning.expected}, delta {warning.delta}")

        if args.check_audit:
            try:
                AuditorService(session).validate_chain()
                print("  audit chain: OK")
            except AuditChainBrokenError as e:
                problems += 1
                print(f"  audit chain: BROKEN ({e})")
    except TreasuryKernelError as e:
        print(f"ERROR [{e.code}]: {e}", file=sys.stderr)
        return 1
    finally:
        session.close()

    return 2 if problems else 0


if __name__ == "__main__":
    sys.exit(main())
