"""
Module: treasury_kernel.models.movement
Responsibility: ORM persistence for treasury movements (income, expense and
    period opening balances).
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - content_hash is unique (uq_movement_content_hash).  Two movements with
      the same hash are the same real-world fact; the import committer relies
      on this index as a backstop to its existence check.
    - content_hash == hash_movement(kind, movement_date, amount, description,
      period_key); services recompute it whenever one of those fields changes.
    - period_key == movement_date as ``YYYY-MM``.
    - No INSERT/UPDATE/DELETE dated inside a closed period (ClosingGuard in
      services, ORM listeners in db/immutability.py).

Failure modes:
    - IntegrityError on duplicate content_hash.
    - ImmutabilityViolationError from the listeners when a write targets a
      closed period.

Audit relevance:
    Movements are the only source of ledger figures; there are no stored
    balances outside closing snapshots.  Annulment keeps the row (status
    ANNULLED) so the trail survives, and aggregation skips it.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, DateTime, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from treasury_kernel.db.base import TrackedBase


class MovementKind(str, Enum):
    """Direction of a movement.

    OPENING_BALANCE carries the balance brought forward into a period; it is
    never counted as income or expense.
    """

    INCOME = "income"
    EXPENSE = "expense"
    OPENING_BALANCE = "opening_balance"


class MovementStatus(str, Enum):
    ACTIVE = "active"
    ANNULLED = "annulled"


class Provenance(str, Enum):
    MANUAL = "manual"
    IMPORT = "import"


class Movement(TrackedBase):
    """
    A single dated treasury movement.

    Contract:
        amount is strictly positive for INCOME and EXPENSE.  An
        OPENING_BALANCE amount is the balance itself and may be zero or
        negative.

    Guarantees:
        - content_hash is unique across the table.
        - Annulled rows are retained; status is the only field that moves.

    Non-goals:
        - No currency column: the ledger is single-currency.
    """

    __tablename__ = "movements"

    __table_args__ = (
        UniqueConstraint("content_hash", name="uq_movement_content_hash"),
        Index("idx_movement_date", "movement_date"),
        Index("idx_movement_period", "period_key", "kind"),
    )

    movement_date: Mapped[date] = mapped_column(Date, nullable=False)

    kind: Mapped[MovementKind] = mapped_column(String(20), nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    description: Mapped[str] = mapped_column(String(500), nullable=False)

    # Owning period as "YYYY-MM"
    period_key: Mapped[str] = mapped_column(String(7), nullable=False)

    # SHA-256 hex of the canonical movement string
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    provenance: Mapped[Provenance] = mapped_column(
        String(10),
        default=Provenance.MANUAL,
        nullable=False,
    )

    # Import-source reference, e.g. "SEPTIEMBRE 2025!R14"
    source_ref: Mapped[str | None] = mapped_column(String(200), nullable=True)

    status: Mapped[MovementStatus] = mapped_column(
        String(20),
        default=MovementStatus.ACTIVE,
        nullable=False,
    )

    annulled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    annulled_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    annul_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<Movement {self.movement_date} {MovementKind(self.kind).value} "
            f"{self.amount}>"
        )

    @property
    def is_annulled(self) -> bool:
        return self.status == MovementStatus.ANNULLED

    def audit_values(self) -> dict:
        """Field snapshot recorded as audit old/new values."""
        return {
            "movement_date": self.movement_date.isoformat(),
            "kind": MovementKind(self.kind).value,
            "amount": self.amount,
            "description": self.description,
            "period_key": self.period_key,
            "content_hash": self.content_hash,
            "provenance": Provenance(self.provenance).value,
            "source_ref": self.source_ref,
            "status": MovementStatus(self.status).value,
        }
