#!/usr/bin/env python3
"""
Import a historical treasury workbook ("INFORME DE TESORERIA") into the ledger.

Each month in the workbook is committed in its own transaction.  Movements
already in the ledger (same content hash) are skipped, so running the same
file again inserts nothing.  Months that are closed are not touched.

Usage:
    python3 scripts/run_treasury_import.py --file <path> [options]

Examples:
    # Preview: counts only, nothing written
    python3 scripts/run_treasury_import.py --file "INFORME TESORERIA.xlsx" --dry-run

    # Import, reading settings from a YAML file
    TREASURY_CONFIG=treasury.yaml python3 scripts/run_treasury_import.py --file informe.xlsx

Exit codes: 0 all periods committed, 2 at least one period failed or was
cancelled, 1 usage or setup error.
"""

from __future__ import annotations

import argparse
import json
import signal
import sys
import threading
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Import a historical treasury workbook, one transaction per month.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--file",
        type=Path,
        default=None,
        help="Workbook to import (default: source_path from settings).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report new/duplicate counts per month without writing.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Settings YAML (default: TREASURY_CONFIG env, then packaged defaults).",
    )
    parser.add_argument(
        "--db-url",
        default=None,
        help="Database URL override.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full report as JSON.",
    )
    return parser.parse_args()


def main() -> int:
    args = _parse_args()

    # Lazy imports so we fail fast on args first
    from treasury_config import get_settings
    from treasury_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
    from treasury_kernel.logging_config import configure_logging
    from treasury_kernel.utils.hashing import hash_file
    from treasury_ingestion.adapters import TreasuryWorkbookAdapter
    from treasury_ingestion.domain.types import PeriodImportStatus
    from treasury_ingestion.services import ImportBatchCommitter

    try:
        settings = get_settings(args.config)
    except (OSError, ValueError, KeyError) as e:
        print(f"ERROR: Failed to load settings: {e}", file=sys.stderr)
        return 1
    configure_logging(level=settings.log_level)

    source = args.file or (Path(settings.source_path) if settings.source_path else None)
    if source is None:
        print("ERROR: No workbook given (--file or source_path setting).", file=sys.stderr)
        return 1
    source = source.resolve()
    if not source.is_file():
        print(f"ERROR: File not found: {source}", file=sys.stderr)
        return 1

    try:
        init_engine_from_url(args.db_url or settings.database_url, echo=settings.echo_sql)
        create_tables()
    except Exception as e:
        print(f"ERROR: Database init failed: {e}", file=sys.stderr)
        return 1

    batches = TreasuryWorkbookAdapter().read_batches(source)
    if not batches:
        print(f"ERROR: No treasury report sheets found in {source.name}", file=sys.stderr)
        return 1

    # Ctrl-C stops after the month in progress; committed months stand.
    stop = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop.set())

    committer = ImportBatchCommitter(
        get_session_factory(),
        actor=settings.import_actor,
        tolerance=settings.balance_tolerance,
    )
    report = committer.import_batches(
        batches,
        dry_run=args.dry_run,
        cancellation=stop,
        source_hash=hash_file(source),
    )

    if args.json:
        print(json.dumps(report.to_dict(), indent=2, default=str))
    else:
        mode = "DRY RUN" if args.dry_run else "IMPORT"
        print(f"{mode}: {source.name}")
        for result in report.periods:
            line = (
                f"  {result.period.key}  {result.status.value:<10}"
                f" read={result.read} new={result.new} dup={result.duplicate}"
                f" inserted={result.inserted} closed={result.rejected_closed}"
                f" errors={len(result.row_errors)}"
            )
            print(line)
            if result.failure:
                print(f"      FAILED: {result.failure.error_type}: {result.failure.detail}")
            if result.balance_warning:
                w = result.balance_warning
                print(f"      BALANCE: computed={w.computed} expected={w.expected} delta={w.delta}")
            for error in result.row_errors[:5]:
                print(f"      row {error.source_ref}: {error.reason}")
        print(f"Totals: {report.totals}")

    incomplete = any(
        p.status in (PeriodImportStatus.FAILED, PeriodImportStatus.CANCELLED)
        for p in report.periods
    )
    return 2 if incomplete else 0


if __name__ == "__main__":
    sys.exit(main())
