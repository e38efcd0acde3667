"""
Module: ledger_kernel.models.payable
Responsibility: ORM persistence for the payee side of an invoice:
    allocations (who gets which share of the gross value), payables (what is
    owed to each payee) and payments (money-out against a payable).
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Allocation rows are replaced as a set; the sum check against the
      invoice gross value happens at save time in the allocation service.
    - Payments are never deleted.  Reversal stamps reversed_at/by/reason.
      ``payments.payable_id`` is nulled (ON DELETE SET NULL) if a payable
      with only reversed payments is replaced by a re-allocation, so the
      cash history survives.
    - ``amount_to_pay = allocated_gross_value - admin_fee``.

Failure modes:
    - IntegrityError if an allocation references a missing payee or invoice.

Audit relevance:
    ``fee_rate`` is snapshotted on the allocation so later payee edits do
    not silently change what a historical allocation meant.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TenantScopedBase


class PayableStatus(str, Enum):
    """Payable settlement status."""

    AWAITING_RECEIPT = "awaiting_receipt"
    PENDING = "pending"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    CANCELLED = "cancelled"


class InvoiceAllocation(TenantScopedBase):
    """One payee's share of an invoice's gross value."""

    __tablename__ = "invoice_allocations"

    __table_args__ = (
        Index("idx_invoice_allocations_invoice_id", "invoice_id"),
        Index("idx_invoice_allocations_payee_id", "payee_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("invoices.id"), nullable=False)
    payee_id: Mapped[UUID] = mapped_column(ForeignKey("payees.id"), nullable=False)
    line_number: Mapped[int] = mapped_column(nullable=False, default=0)
    allocated_gross_value: Mapped[Decimal] = mapped_column(nullable=False)
    fee_rate: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False)
    admin_fee: Mapped[Decimal] = mapped_column(nullable=False)
    amount_to_pay: Mapped[Decimal] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<InvoiceAllocation(id={self.id!r}, invoice_id={self.invoice_id!r}, "
            f"payee_id={self.payee_id!r})>"
        )


class Payable(TenantScopedBase):
    """What is owed to one payee for one allocation."""

    __tablename__ = "payables"

    __table_args__ = (
        Index("idx_payables_invoice_id", "invoice_id"),
        Index("idx_payables_tenant_status", "tenant_id", "status"),
    )

    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("invoices.id"), nullable=False)
    allocation_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoice_allocations.id"),
        nullable=False,
    )
    payee_id: Mapped[UUID] = mapped_column(ForeignKey("payees.id"), nullable=False)
    amount_to_pay: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[PayableStatus] = mapped_column(
        String(30),
        nullable=False,
        default=PayableStatus.PENDING,
    )
    expected_payment_date: Mapped[date | None] = mapped_column(nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<Payable(id={self.id!r}, status={self.status!r})>"


class Payment(TenantScopedBase):
    """
    Money-out against a payable.

    Contract:
        ``amount`` is the cash that left the bank.  ``adjustment_amount`` is
        ``amount - settled`` where settled is what the payable was credited.
    """

    __tablename__ = "payments"

    __table_args__ = (
        Index("idx_payments_payable_id", "payable_id"),
        Index("idx_payments_bank_id", "bank_id"),
        Index("idx_payments_imported_transaction_id", "imported_transaction_id"),
    )

    payable_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payables.id", ondelete="SET NULL"),
        nullable=True,
    )
    bank_id: Mapped[UUID] = mapped_column(ForeignKey("banks.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    adjustment_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    payment_date: Mapped[date] = mapped_column(nullable=False)
    imported_transaction_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("imported_transactions.id"),
        nullable=True,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    reversed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reversed_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    reversal_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def settled_amount(self) -> Decimal:
        return self.amount - self.adjustment_amount

    @property
    def is_reversed(self) -> bool:
        return self.reversed_at is not None

    def __repr__(self) -> str:
        return (
            f"<Payment(id={self.id!r}, payable_id={self.payable_id!r}, "
            f"amount={self.amount!r})>"
        )
