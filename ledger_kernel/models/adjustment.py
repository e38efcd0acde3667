"""
Module: ledger_kernel.models.adjustment
Responsibility: ORM persistence for reconciliation adjustments: the audited,
    bounded discrepancy between what an obligation expected and what the
    bank actually moved.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Created only when a reconciliation commits with a non-zero difference
      inside the adjustment ceiling, and only with a reason.
    - ``adjustment_amount = received_amount - expected_amount``.
    - Amount fields are never updated.  Reversing the reconciliation stamps
      ``reversed_at``; the row itself stays.

Audit relevance:
    This table is the adjustment register reviewed by finance: one row per
    committed discrepancy, with who/why/when.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TenantScopedBase


class AdjustmentType(str, Enum):
    RECEIPT = "receipt"
    PAYMENT = "payment"


class Adjustment(TenantScopedBase):
    """Immutable record of a committed, in-tolerance difference."""

    __tablename__ = "adjustments"

    __table_args__ = (
        Index("idx_adjustments_invoice_id", "invoice_id"),
        Index("idx_adjustments_payable_id", "payable_id"),
        Index("idx_adjustments_imported_transaction_id", "imported_transaction_id"),
    )

    adjustment_type: Mapped[AdjustmentType] = mapped_column(String(20), nullable=False)
    expected_amount: Mapped[Decimal] = mapped_column(nullable=False)
    received_amount: Mapped[Decimal] = mapped_column(nullable=False)
    adjustment_amount: Mapped[Decimal] = mapped_column(nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    adjustment_date: Mapped[date] = mapped_column(nullable=False)

    invoice_id: Mapped[UUID | None] = mapped_column(ForeignKey("invoices.id"), nullable=True)
    expense_id: Mapped[UUID | None] = mapped_column(ForeignKey("expenses.id"), nullable=True)
    payable_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payables.id", ondelete="SET NULL"),
        nullable=True,
    )
    bank_id: Mapped[UUID] = mapped_column(ForeignKey("banks.id"), nullable=False)
    imported_transaction_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("imported_transactions.id"),
        nullable=True,
    )

    reversed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return (
            f"<Adjustment(id={self.id!r}, type={self.adjustment_type!r}, "
            f"amount={self.adjustment_amount!r})>"
        )
