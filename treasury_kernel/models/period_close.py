"""
Module: treasury_kernel.models.period_close
Responsibility: ORM persistence for monthly closing snapshots.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - A row exists if and only if the (year, month) period is closed.  An open
      period has no row at all; there is no status column to drift.
    - At most one row per (year, month), guaranteed by
      uq_period_close_year_month.  Close is an insert that fails on the
      duplicate key, so two concurrent closes cannot both succeed.
    - Snapshot figures are written once at close and never updated; reopen
      deletes the row.

Failure modes:
    - IntegrityError on duplicate (year, month), mapped to AlreadyClosedError
      by PeriodStore.

Audit relevance:
    The snapshot is the frozen statement of the month.  Its creation and its
    deletion both produce audit events carrying the full figures.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from treasury_kernel.db.base import Base


class PeriodClose(Base):
    """
    Closing snapshot of one calendar month.

    Contract:
        Presence of the row is the closed flag.  Figures satisfy
        closing_balance == opening_balance + total_income - total_expense.

    Guarantees:
        - (year, month) is unique.
        - month is within 1..12 (ck_period_close_month).

    Non-goals:
        - The reopen reason is not stored here; it lives only in the reopen
          audit event.
    """

    __tablename__ = "period_closes"

    __table_args__ = (
        UniqueConstraint("year", "month", name="uq_period_close_year_month"),
        CheckConstraint("month >= 1 AND month <= 12", name="ck_period_close_month"),
        Index("idx_period_close_key", "period_key"),
    )

    year: Mapped[int] = mapped_column(Integer, nullable=False)

    month: Mapped[int] = mapped_column(Integer, nullable=False)

    # "YYYY-MM", denormalized for lookups from movement rows
    period_key: Mapped[str] = mapped_column(String(7), nullable=False)

    opening_balance: Mapped[Decimal] = mapped_column(nullable=False)

    total_income: Mapped[Decimal] = mapped_column(nullable=False)

    total_expense: Mapped[Decimal] = mapped_column(nullable=False)

    closing_balance: Mapped[Decimal] = mapped_column(nullable=False)

    closed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    closed_by: Mapped[str] = mapped_column(String(100), nullable=False)

    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    def __repr__(self) -> str:
        return f"<PeriodClose {self.period_key}: closing={self.closing_balance}>"
