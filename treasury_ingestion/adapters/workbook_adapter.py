"""
Workbook adapter for the historical "INFORME DE TESORERIA" spreadsheets.

Sheet layout (1-based columns):
  - a title row whose first cell contains INFORME and TESORERIA, naming the
    month (Spanish full name or abbreviation) and the year, e.g.
    "INFORME DE TESORERIA - CORTE SEPTIEMBRE 30 DE 2025"
  - a "SALDO EFECTIVO MES ANTERIOR" row (column 2); column 5 holds the
    opening balance
  - movement rows: 1 date, 2 concept, 3 income, 4 expense, 5 running balance
  - a closing block that starts at the first blank concept or at a concept
    containing TOTAL or SALDO FINAL

Sheets without a title row are skipped.  Amounts may be numeric cells or
Colombian-formatted text ("$1.234.567,89", "(500,00)" for negatives).
"""

from __future__ import annotations

import re
import unicodedata
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

from openpyxl import load_workbook
from openpyxl.utils.datetime import from_excel

from treasury_kernel.domain.dtos import PeriodRef
from treasury_kernel.domain.movement_rules import EXPENSE, INCOME, OPENING_BALANCE
from treasury_kernel.exceptions import ImportRowError
from treasury_kernel.logging_config import get_logger

from treasury_ingestion.domain.types import MovementCandidate, PeriodBatch

logger = get_logger("ingestion.workbook_adapter")

_MONTHS = (
    ("ENERO", 1), ("ENE", 1), ("FEBRERO", 2), ("FEB", 2),
    ("MARZO", 3), ("MAR", 3), ("ABRIL", 4), ("ABR", 4),
    ("MAYO", 5), ("MAY", 5), ("JUNIO", 6), ("JUN", 6),
    ("JULIO", 7), ("JUL", 7), ("AGOSTO", 8), ("AGO", 8),
    ("SEPTIEMBRE", 9), ("SEP", 9), ("OCTUBRE", 10), ("OCT", 10),
    ("NOVIEMBRE", 11), ("NOV", 11), ("DICIEMBRE", 12), ("DIC", 12),
)

_YEAR = re.compile(r"\b(20\d{2})\b")
_DATE_FORMATS = ("%d/%m/%Y", "%d-%m-%Y", "%Y-%m-%d", "%d/%m/%y", "%d-%m-%y")

COL_DATE, COL_CONCEPT, COL_INCOME, COL_EXPENSE, COL_BALANCE = range(5)

OPENING_DESCRIPTION = "SALDO INICIAL MES"


def _fold(value: Any) -> str:
    """Upper-case text with accents removed, for keyword matching."""
    if value is None:
        return ""
    text = unicodedata.normalize("NFKD", str(value))
    return "".join(c for c in text if not unicodedata.combining(c)).upper().strip()


def _cell(row: tuple, index: int) -> Any:
    return row[index] if index < len(row) else None


def parse_title(title: str) -> PeriodRef | None:
    """Month and year named in a sheet title, or None when either is missing."""
    folded = _fold(title)
    month = next(
        (number for name, number in _MONTHS if re.search(rf"\b{name}\b", folded)),
        None,
    )
    years = _YEAR.findall(folded)
    if month is None or not years:
        return None
    return PeriodRef(int(years[-1]), month)


def parse_amount(value: Any) -> Decimal | None:
    """
    Parse a money cell.

    Numeric cells are taken as is.  Text drops "$" and spaces, treats "." as
    the thousands separator and "," as the decimal mark, and reads
    "(x)" as negative.  Blank yields None.

    Raises:
        ValueError: Non-blank text that is not a number.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(repr(value))
    text = str(value).replace("$", "").replace(" ", "").replace("\xa0", "").strip()
    if not text:
        return None
    negative = text.startswith("(") and text.endswith(")")
    if negative:
        text = text[1:-1]
    text = text.replace(".", "").replace(",", ".")
    try:
        amount = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"not an amount: {value!r}") from None
    if not amount.is_finite():
        raise ValueError(f"not an amount: {value!r}")
    return -amount if negative else amount


def parse_date(value: Any, period: PeriodRef) -> date:
    """
    Parse a date cell; blank falls back to the first day of ``period``.

    Raises:
        ValueError: Non-blank cell that is not a recognizable date.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return period.start
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        converted = from_excel(value)
        return converted.date() if isinstance(converted, datetime) else converted
    text = str(value).strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"not a date: {value!r}")


def _is_end_of_movements(concept: str) -> bool:
    folded = _fold(concept)
    return not folded or "TOTAL" in folded or "SALDO FINAL" in folded


class TreasuryWorkbookAdapter:
    """
    Read an .xlsx treasury report into per-period batches.

    Each period batch carries:
      - an opening_balance candidate dated the first of the month when the
        previous-month balance row is present and non-zero
      - one income or expense candidate per movement row
      - expected_closing: running balance of the chronologically last
        movement (opening balance when the month has no movements)
      - row_errors for rows that could not be read
    """

    def read_batches(self, source_path: Path) -> list[PeriodBatch]:
        source_path = Path(source_path)
        wb = load_workbook(source_path, read_only=True, data_only=True)
        try:
            batches: dict[PeriodRef, PeriodBatch] = {}
            for sheet in wb.worksheets:
                rows = list(sheet.iter_rows(values_only=True))
                batch = self._parse_sheet(sheet.title, rows, source_path.name)
                if batch is None:
                    continue
                if batch.period in batches:
                    logger.warning(
                        "duplicate_period_sheet",
                        extra={"sheet": sheet.title, "period_key": batch.period.key},
                    )
                    batch = _merge(batches[batch.period], batch)
                batches[batch.period] = batch
        finally:
            wb.close()

        ordered = [batches[p] for p in sorted(batches)]
        logger.info(
            "workbook_parsed",
            extra={
                "source": source_path.name,
                "periods": [b.period.key for b in ordered],
                "candidates": sum(len(b.candidates) for b in ordered),
                "row_errors": sum(len(b.row_errors) for b in ordered),
            },
        )
        return ordered

    def _parse_sheet(
        self,
        sheet_name: str,
        rows: list[tuple],
        source_name: str,
    ) -> PeriodBatch | None:
        title_idx = next(
            (
                i
                for i, row in enumerate(rows)
                if "INFORME" in _fold(_cell(row, 0)) and "TESORERIA" in _fold(_cell(row, 0))
            ),
            None,
        )
        if title_idx is None:
            logger.warning("sheet_without_title_skipped", extra={"sheet": sheet_name})
            return None

        title = str(_cell(rows[title_idx], 0))
        period = parse_title(title)
        if period is None:
            logger.warning(
                "sheet_title_unparseable",
                extra={"sheet": sheet_name, "title": title},
            )
            return None

        candidates: list[MovementCandidate] = []
        errors: list[ImportRowError] = []

        opening_idx = next(
            (
                i
                for i in range(title_idx + 1, len(rows))
                if "SALDO" in _fold(_cell(rows[i], COL_CONCEPT))
                and "ANTERIOR" in _fold(_cell(rows[i], COL_CONCEPT))
            ),
            None,
        )
        opening = Decimal("0")
        if opening_idx is not None:
            ref = f"{sheet_name}!{opening_idx + 1}"
            try:
                opening = parse_amount(_cell(rows[opening_idx], COL_BALANCE)) or Decimal("0")
            except ValueError as exc:
                errors.append(ImportRowError(ref, "opening_balance", str(exc)))
            if opening != 0:
                candidates.append(
                    MovementCandidate(
                        movement_date=period.start,
                        kind=OPENING_BALANCE,
                        amount=opening,
                        description=OPENING_DESCRIPTION,
                        period_key=period.key,
                        source_ref=ref,
                    )
                )
            start = opening_idx + 1
        else:
            start = title_idx + 2

        last_balance: tuple[date, Decimal | None] | None = None
        for idx in range(start, len(rows)):
            row = rows[idx]
            concept = _cell(row, COL_CONCEPT)
            concept = str(concept).strip() if concept is not None else ""
            if _is_end_of_movements(concept):
                break

            ref = f"{sheet_name}!{idx + 1}"
            try:
                movement_date = parse_date(_cell(row, COL_DATE), period)
                income = parse_amount(_cell(row, COL_INCOME)) or Decimal("0")
                expense = parse_amount(_cell(row, COL_EXPENSE)) or Decimal("0")
                balance = parse_amount(_cell(row, COL_BALANCE))
            except ValueError as exc:
                errors.append(ImportRowError(ref, None, str(exc)))
                continue

            if income > 0 and expense > 0:
                errors.append(ImportRowError(ref, "amount", "row has both income and expense"))
                continue
            if income < 0 or expense < 0:
                errors.append(ImportRowError(ref, "amount", "negative income or expense"))
                continue
            if income == 0 and expense == 0:
                continue

            candidates.append(
                MovementCandidate(
                    movement_date=movement_date,
                    kind=INCOME if income > 0 else EXPENSE,
                    amount=income if income > 0 else expense,
                    description=concept,
                    period_key=period.key,
                    source_ref=ref,
                )
            )
            if last_balance is None or movement_date >= last_balance[0]:
                last_balance = (movement_date, balance)

        expected = opening if last_balance is None else last_balance[1]

        logger.debug(
            "sheet_parsed",
            extra={
                "sheet": sheet_name,
                "period_key": period.key,
                "candidates": len(candidates),
                "row_errors": len(errors),
            },
        )
        return PeriodBatch(
            period=period,
            candidates=tuple(candidates),
            expected_closing=expected,
            row_errors=tuple(errors),
            source_name=source_name,
        )


def _merge(first: PeriodBatch, second: PeriodBatch) -> PeriodBatch:
    return PeriodBatch(
        period=first.period,
        candidates=first.candidates + second.candidates,
        expected_closing=(
            second.expected_closing
            if second.expected_closing is not None
            else first.expected_closing
        ),
        row_errors=first.row_errors + second.row_errors,
        source_name=first.source_name,
    )
