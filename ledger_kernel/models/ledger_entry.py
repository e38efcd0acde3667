"""
Module: ledger_kernel.models.ledger_entry
Responsibility: ORM persistence for simple ledger lines: expenses (money-out
    once paid) and revenues (money-in).
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - ``external_id`` holds the natural key of the bank transaction that
      paid or created the line.  The matching service uses it to recognise
      a statement line that was already booked.
    - Only ``paid`` expenses affect a bank balance, by ``paid_amount`` when
      the bank moved a different amount than the expense asked for.
    - Revenues with ``source = payment_reversal`` are bookkeeping mirrors of
      a reversed payment and are excluded from balances.

Failure modes:
    - IntegrityError if bank_id references a missing bank.

Audit relevance:
    statement_import_id and imported_transaction_id tie every line created
    or settled by reconciliation back to the statement it came from.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TenantScopedBase


class ExpenseStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


class RevenueSource(str, Enum):
    MANUAL = "manual"
    STATEMENT_IMPORT = "statement_import"
    PAYMENT_REVERSAL = "payment_reversal"


class Expense(TenantScopedBase):
    """An expense; open while pending, money-out once paid."""

    __tablename__ = "expenses"

    __table_args__ = (
        Index("idx_expenses_tenant_status", "tenant_id", "status"),
        Index("idx_expenses_tenant_external_id", "tenant_id", "external_id"),
        Index("idx_expenses_bank_id", "bank_id"),
    )

    bank_id: Mapped[UUID | None] = mapped_column(ForeignKey("banks.id"), nullable=True)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    due_date: Mapped[date | None] = mapped_column(nullable=True)
    status: Mapped[ExpenseStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ExpenseStatus.PENDING,
    )
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)
    paid_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    external_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    statement_import_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("statement_imports.id"),
        nullable=True,
    )
    imported_transaction_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("imported_transactions.id"),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Expense(id={self.id!r}, amount={self.amount!r}, status={self.status!r})>"


class Revenue(TenantScopedBase):
    """A revenue line (money-in) not tied to an invoice."""

    __tablename__ = "revenues"

    __table_args__ = (
        Index("idx_revenues_tenant_external_id", "tenant_id", "external_id"),
        Index("idx_revenues_bank_id", "bank_id"),
    )

    bank_id: Mapped[UUID] = mapped_column(ForeignKey("banks.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    revenue_date: Mapped[date] = mapped_column(nullable=False)
    source: Mapped[RevenueSource] = mapped_column(
        String(30),
        nullable=False,
        default=RevenueSource.MANUAL,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    external_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    statement_import_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("statement_imports.id"),
        nullable=True,
    )
    imported_transaction_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("imported_transactions.id"),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Revenue(id={self.id!r}, amount={self.amount!r}, source={self.source!r})>"
