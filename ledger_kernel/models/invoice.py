"""
Module: ledger_kernel.models.invoice
Responsibility: ORM persistence for invoices and the receipts (money-in)
    recorded against them.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - ``content_hash`` is unique across ALL tenants (uq_invoices_content_hash).
      This is the one global uniqueness rule in the schema: it detects the
      same source file imported under two different tenants.
    - ``total_received`` equals the sum of credited amounts of the invoice's
      non-reversed receipts.  Services keep it in sync; reversal recomputes
      it from the receipts instead of subtracting.
    - ``total_received <= net_value`` except where an adjustment settled it.
    - Receipts are never deleted: reversal stamps reversed_at/by/reason.

Failure modes:
    - IntegrityError on a second invoice with the same content_hash (the
      import gate maps it to DuplicateImportError).

Audit relevance:
    ``InvoiceReceipt.adjustment_amount`` records the part of a receipt that
    differs from what the invoice was credited, so cash and receivable
    views reconcile row by row.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TenantScopedBase


class InvoiceStatus(str, Enum):
    """Receivable settlement status, derived from total_received."""

    PENDING = "pending"
    PARTIALLY_RECEIVED = "partially_received"
    RECEIVED = "received"


class Invoice(TenantScopedBase):
    """
    An imported invoice (receivable).

    Contract:
        Created by the import gate; mutated only by receipts, adjustments
        and their reversals.  Never hard-deleted once allocations exist.

    Guarantees:
        - content_hash is globally unique.
        - pending_balance == net_value - total_received.
    """

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("content_hash", name="uq_invoices_content_hash"),
        Index("idx_invoices_tenant_status", "tenant_id", "status"),
        Index("idx_invoices_expected_receipt_date", "expected_receipt_date"),
    )

    invoice_number: Mapped[str] = mapped_column(String(60), nullable=False)
    invoice_type: Mapped[str | None] = mapped_column(String(30), nullable=True)
    issuer_ref: Mapped[str | None] = mapped_column(String(60), nullable=True)
    payer_ref: Mapped[str | None] = mapped_column(String(60), nullable=True)
    issue_date: Mapped[date | None] = mapped_column(nullable=True)

    gross_value: Mapped[Decimal] = mapped_column(nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    iss_value: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    irrf_value: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    inss_value: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    csll_value: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    pis_value: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    cofins_value: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    is_tax_retained: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    net_value: Mapped[Decimal] = mapped_column(nullable=False)
    total_received: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    status: Mapped[InvoiceStatus] = mapped_column(
        String(30),
        nullable=False,
        default=InvoiceStatus.PENDING,
    )
    expected_receipt_date: Mapped[date | None] = mapped_column(nullable=True)

    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    @property
    def pending_balance(self) -> Decimal:
        return self.net_value - self.total_received

    def __repr__(self) -> str:
        return (
            f"<Invoice(id={self.id!r}, number={self.invoice_number!r}, "
            f"status={self.status!r})>"
        )


class InvoiceReceipt(TenantScopedBase):
    """
    Money-in against an invoice.

    Contract:
        ``amount`` is the cash that reached the bank.  ``adjustment_amount``
        is ``amount - credited`` where credited is what the invoice's
        total_received was increased by.  Without an adjustment both are
        equal and adjustment_amount is zero.
    """

    __tablename__ = "invoice_receipts"

    __table_args__ = (
        Index("idx_invoice_receipts_invoice_id", "invoice_id"),
        Index("idx_invoice_receipts_bank_id", "bank_id"),
        Index("idx_invoice_receipts_imported_transaction_id", "imported_transaction_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("invoices.id"), nullable=False)
    bank_id: Mapped[UUID] = mapped_column(ForeignKey("banks.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    adjustment_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    receipt_date: Mapped[date] = mapped_column(nullable=False)
    imported_transaction_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("imported_transactions.id"),
        nullable=True,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    reversed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reversed_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    reversal_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def credited_amount(self) -> Decimal:
        return self.amount - self.adjustment_amount

    @property
    def is_reversed(self) -> bool:
        return self.reversed_at is not None

    def __repr__(self) -> str:
        return (
            f"<InvoiceReceipt(id={self.id!r}, invoice_id={self.invoice_id!r}, "
            f"amount={self.amount!r})>"
        )
