"""
Module: ledger_kernel.models.statement
Responsibility: ORM persistence for bank statement imports (one row per
    imported file) and the transactions they carried.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - uq_statement_imports_bank_file_hash: the same file bytes can be
      imported into a given bank only once per tenant.  The same file into
      a different bank is allowed.
    - uq_imported_transactions_bank_external_id: a statement line's natural
      key appears once per bank, so overlapping statements never duplicate
      transactions.
    - Status machine: pending -> {reconciled, created, ignored};
      {reconciled, created} -> pending through reversal; ignored is terminal.
      Enforced by the reconciliation service.

Failure modes:
    - IntegrityError on either unique constraint.  The import gate turns the
      batch-level violation into DuplicateImportError.

Audit relevance:
    reconciled_at / reconciled_by_id record who committed a match;
    reversal_reason / reversed_at record the last reversal.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TenantScopedBase


class TransactionType(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    RECONCILED = "reconciled"
    CREATED = "created"
    IGNORED = "ignored"


class LinkKind(str, Enum):
    """What a transaction was matched to, suggested or committed."""

    EXPENSE = "expense"
    INVOICE = "invoice"
    PAYABLE = "payable"
    REVENUE = "revenue"
    ALREADY_IMPORTED = "already_imported"


class ImportBatch(TenantScopedBase):
    """One imported statement file."""

    __tablename__ = "statement_imports"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "bank_id", "file_hash",
            name="uq_statement_imports_bank_file_hash",
        ),
    )

    bank_id: Mapped[UUID] = mapped_column(ForeignKey("banks.id"), nullable=False)
    file_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    transaction_count: Mapped[int] = mapped_column(nullable=False, default=0)
    skipped_count: Mapped[int] = mapped_column(nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<ImportBatch(id={self.id!r}, file_hash={self.file_hash[:12]!r})>"


class ImportedTransaction(TenantScopedBase):
    """
    A bank movement awaiting (or past) reconciliation.

    Contract:
        ``amount`` is always positive; direction lives in transaction_type.
        The suggested_* columns cache the matching engine's last pick and
        the pending balance it saw, so acceptance can detect stale state.
        The linked_* columns record the committed outcome.
    """

    __tablename__ = "imported_transactions"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "bank_id", "external_id",
            name="uq_imported_transactions_bank_external_id",
        ),
        Index("idx_imported_transactions_tenant_status", "tenant_id", "status"),
        Index("idx_imported_transactions_statement_import_id", "statement_import_id"),
    )

    bank_id: Mapped[UUID] = mapped_column(ForeignKey("banks.id"), nullable=False)
    statement_import_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("statement_imports.id"),
        nullable=True,
    )
    external_id: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    transaction_type: Mapped[TransactionType] = mapped_column(String(10), nullable=False)
    transaction_date: Mapped[date] = mapped_column(nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    status: Mapped[TransactionStatus] = mapped_column(
        String(20),
        nullable=False,
        default=TransactionStatus.PENDING,
    )

    suggested_kind: Mapped[str | None] = mapped_column(String(30), nullable=True)
    suggested_id: Mapped[UUID | None] = mapped_column(nullable=True)
    suggested_confidence: Mapped[str | None] = mapped_column(String(10), nullable=True)
    suggested_amount: Mapped[Decimal | None] = mapped_column(nullable=True)

    linked_kind: Mapped[str | None] = mapped_column(String(30), nullable=True)
    linked_id: Mapped[UUID | None] = mapped_column(nullable=True)
    reconciled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reconciled_by_id: Mapped[UUID | None] = mapped_column(nullable=True)

    reversed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reversal_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def is_credit(self) -> bool:
        return self.transaction_type == TransactionType.CREDIT

    def clear_suggestion(self) -> None:
        self.suggested_kind = None
        self.suggested_id = None
        self.suggested_confidence = None
        self.suggested_amount = None

    def __repr__(self) -> str:
        return (
            f"<ImportedTransaction(id={self.id!r}, external_id={self.external_id!r}, "
            f"status={self.status!r})>"
        )
