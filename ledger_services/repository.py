"""
ledger_services.repository -- Tenant-scoped access to the ledger store.

Responsibility:
    The single place where services read and write ledger rows.  Exposes
    two faces:

    * ``LedgerReader`` -- the read-only, engine-facing protocol.  It returns
      engine DTOs (match candidates, transaction lines, balance inputs,
      payee fee rates), never ORM rows, so in-memory fakes can stand in
      for the database.
    * ``SqlLedgerRepository`` -- the SQLAlchemy implementation, which also
      offers the locked loads and writes the commit protocol needs.

Architecture position:
    Services.  Imports ledger_kernel models and ledger_engines DTOs.
    Uses the caller's Session; never commits, rolls back, or opens sessions.

Invariants enforced:
    - Every lookup filters by tenant_id, except the invoice content hash
      lookup, which is global because content hashes are unique across tenants.
    - Locked loads use ``SELECT ... FOR UPDATE`` (a no-op on SQLite).
    - A missing or other-tenant row raises NotFoundError; the caller never
      learns whether the id exists elsewhere.

Failure modes:
    - NotFoundError from every ``get_*`` method.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Protocol, TypeVar
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_engines.balance import BalanceInputs, CashRow, ExpenseRow, RevenueRow
from ledger_engines.matching import MatchCandidate, TransactionLine
from ledger_kernel.db.base import TenantScopedBase
from ledger_kernel.exceptions import NotFoundError
from ledger_kernel.models import (
    Adjustment,
    Bank,
    Expense,
    ExpenseStatus,
    ImportBatch,
    ImportedTransaction,
    Invoice,
    InvoiceAllocation,
    InvoiceReceipt,
    InvoiceStatus,
    LinkKind,
    Payable,
    Payee,
    Payment,
    Revenue,
    TransactionStatus,
    TransactionType,
)

ModelT = TypeVar("ModelT", bound=TenantScopedBase)

_OPEN_INVOICE_STATUSES = (InvoiceStatus.PENDING, InvoiceStatus.PARTIALLY_RECEIVED)


class LedgerReader(Protocol):
    """Read-only ledger access used by matching and balance computations."""

    def pending_transactions(self, tenant_id: UUID, bank_id: UUID) -> list[TransactionLine]:
        ...

    def open_expense_candidates(self, tenant_id: UUID) -> list[MatchCandidate]:
        ...

    def open_invoice_candidates(self, tenant_id: UUID) -> list[MatchCandidate]:
        ...

    def booked_external_ids(self, tenant_id: UUID) -> set[str]:
        ...

    def payee_fee_rates(self, tenant_id: UUID, payee_ids: Iterable[UUID]) -> dict:
        ...

    def bank_ids(self, tenant_id: UUID) -> list[UUID]:
        ...

    def balance_inputs(self, tenant_id: UUID, bank_id: UUID) -> BalanceInputs:
        ...


def to_transaction_line(row: ImportedTransaction) -> TransactionLine:
    return TransactionLine(
        transaction_id=row.id,
        external_id=row.external_id,
        amount=row.amount,
        is_credit=row.transaction_type == TransactionType.CREDIT,
        transaction_date=row.transaction_date,
    )


class SqlLedgerRepository:
    """
    SQLAlchemy-backed ledger repository.

    Contract:
        Reads and writes through the caller's Session.  Write helpers
        (``add``, ``delete``, ``flush``) never commit.
    """

    def __init__(self, session: Session):
        self.session = session

    # =========================================================================
    # Generic helpers
    # =========================================================================

    def _get(
        self,
        model: type[ModelT],
        tenant_id: UUID,
        entity_id: UUID,
        lock: bool = False,
    ) -> ModelT:
        stmt = select(model).where(model.id == entity_id, model.tenant_id == tenant_id)
        if lock:
            stmt = stmt.with_for_update()
        row = self.session.execute(stmt).scalar_one_or_none()
        if row is None:
            raise NotFoundError(model.__name__, entity_id)
        return row

    def add(self, row: TenantScopedBase) -> None:
        self.session.add(row)

    def delete(self, row: TenantScopedBase) -> None:
        self.session.delete(row)

    def flush(self) -> None:
        self.session.flush()

    # =========================================================================
    # Locked / tenant-scoped loads
    # =========================================================================

    def get_bank(self, tenant_id: UUID, bank_id: UUID) -> Bank:
        return self._get(Bank, tenant_id, bank_id)

    def get_transaction(
        self, tenant_id: UUID, transaction_id: UUID, lock: bool = False,
    ) -> ImportedTransaction:
        return self._get(ImportedTransaction, tenant_id, transaction_id, lock=lock)

    def get_invoice(self, tenant_id: UUID, invoice_id: UUID, lock: bool = False) -> Invoice:
        return self._get(Invoice, tenant_id, invoice_id, lock=lock)

    def get_allocation(self, tenant_id: UUID, allocation_id: UUID) -> InvoiceAllocation:
        return self._get(InvoiceAllocation, tenant_id, allocation_id)

    def get_expense(self, tenant_id: UUID, expense_id: UUID, lock: bool = False) -> Expense:
        return self._get(Expense, tenant_id, expense_id, lock=lock)

    def get_revenue(self, tenant_id: UUID, revenue_id: UUID) -> Revenue:
        return self._get(Revenue, tenant_id, revenue_id)

    def get_payable(self, tenant_id: UUID, payable_id: UUID, lock: bool = False) -> Payable:
        return self._get(Payable, tenant_id, payable_id, lock=lock)

    def get_payment(self, tenant_id: UUID, payment_id: UUID, lock: bool = False) -> Payment:
        return self._get(Payment, tenant_id, payment_id, lock=lock)

    # =========================================================================
    # Child rows
    # =========================================================================

    def receipts_for_invoice(self, invoice_id: UUID) -> list[InvoiceReceipt]:
        return list(self.session.execute(
            select(InvoiceReceipt).where(InvoiceReceipt.invoice_id == invoice_id)
        ).scalars())

    def payments_for_payable(self, payable_id: UUID) -> list[Payment]:
        return list(self.session.execute(
            select(Payment).where(Payment.payable_id == payable_id)
        ).scalars())

    def receipts_for_transaction(self, transaction_id: UUID) -> list[InvoiceReceipt]:
        return list(self.session.execute(
            select(InvoiceReceipt)
            .where(InvoiceReceipt.imported_transaction_id == transaction_id)
            .order_by(InvoiceReceipt.created_at, InvoiceReceipt.id)
        ).scalars())

    def payments_for_transaction(self, transaction_id: UUID) -> list[Payment]:
        return list(self.session.execute(
            select(Payment).where(Payment.imported_transaction_id == transaction_id)
        ).scalars())

    def adjustments_for_transaction(self, transaction_id: UUID) -> list[Adjustment]:
        return list(self.session.execute(
            select(Adjustment).where(Adjustment.imported_transaction_id == transaction_id)
        ).scalars())

    def allocations_for_invoice(self, invoice_id: UUID) -> list[InvoiceAllocation]:
        return list(self.session.execute(
            select(InvoiceAllocation)
            .where(InvoiceAllocation.invoice_id == invoice_id)
            .order_by(InvoiceAllocation.line_number)
        ).scalars())

    def payables_for_invoice(self, invoice_id: UUID) -> list[Payable]:
        return list(self.session.execute(
            select(Payable).where(Payable.invoice_id == invoice_id)
        ).scalars())

    def active_payment_count(self, invoice_id: UUID) -> int:
        rows = self.session.execute(
            select(Payment.id)
            .join(Payable, Payment.payable_id == Payable.id)
            .where(Payable.invoice_id == invoice_id, Payment.reversed_at.is_(None))
        ).all()
        return len(rows)

    # =========================================================================
    # Import gate lookups
    # =========================================================================

    def find_statement_import(
        self, tenant_id: UUID, bank_id: UUID, file_hash: str,
    ) -> ImportBatch | None:
        return self.session.execute(
            select(ImportBatch).where(
                ImportBatch.tenant_id == tenant_id,
                ImportBatch.bank_id == bank_id,
                ImportBatch.file_hash == file_hash,
            )
        ).scalar_one_or_none()

    def find_invoice_by_hash(self, content_hash: str) -> Invoice | None:
        """Global lookup: the content hash is unique across tenants."""
        return self.session.execute(
            select(Invoice).where(Invoice.content_hash == content_hash)
        ).scalar_one_or_none()

    def existing_external_ids(
        self, tenant_id: UUID, bank_id: UUID, external_ids: Sequence[str],
    ) -> set[str]:
        if not external_ids:
            return set()
        rows = self.session.execute(
            select(ImportedTransaction.external_id).where(
                ImportedTransaction.tenant_id == tenant_id,
                ImportedTransaction.bank_id == bank_id,
                ImportedTransaction.external_id.in_(set(external_ids)),
            )
        ).scalars()
        return set(rows)

    def pending_transaction_rows(self, tenant_id: UUID, bank_id: UUID) -> list[ImportedTransaction]:
        return list(self.session.execute(
            select(ImportedTransaction)
            .where(
                ImportedTransaction.tenant_id == tenant_id,
                ImportedTransaction.bank_id == bank_id,
                ImportedTransaction.status == TransactionStatus.PENDING,
            )
            .order_by(ImportedTransaction.transaction_date.desc(), ImportedTransaction.external_id)
        ).scalars())

    # =========================================================================
    # LedgerReader
    # =========================================================================

    def pending_transactions(self, tenant_id: UUID, bank_id: UUID) -> list[TransactionLine]:
        return [to_transaction_line(row) for row in self.pending_transaction_rows(tenant_id, bank_id)]

    def open_expense_candidates(self, tenant_id: UUID) -> list[MatchCandidate]:
        rows = self.session.execute(
            select(Expense)
            .where(
                Expense.tenant_id == tenant_id,
                Expense.status == ExpenseStatus.PENDING,
                Expense.bank_id.is_(None),
            )
            .order_by(Expense.created_at, Expense.id)
        ).scalars()
        return [
            MatchCandidate(
                kind=LinkKind.EXPENSE.value,
                document_id=row.id,
                amount=row.amount,
                expected_date=row.due_date,
                description=row.description,
            )
            for row in rows
        ]

    def open_invoice_candidates(self, tenant_id: UUID) -> list[MatchCandidate]:
        """One candidate per allocation (or one per unallocated invoice)."""
        rows = self.session.execute(
            select(Invoice, InvoiceAllocation.id)
            .outerjoin(InvoiceAllocation, InvoiceAllocation.invoice_id == Invoice.id)
            .where(
                Invoice.tenant_id == tenant_id,
                Invoice.status.in_(_OPEN_INVOICE_STATUSES),
            )
            .order_by(Invoice.created_at, Invoice.id, InvoiceAllocation.line_number)
        ).all()
        return [
            MatchCandidate(
                kind=LinkKind.INVOICE.value,
                document_id=invoice.id,
                amount=invoice.pending_balance,
                expected_date=invoice.expected_receipt_date,
                description=f"Invoice {invoice.invoice_number}",
            )
            for invoice, _allocation_id in rows
        ]

    def booked_external_ids(self, tenant_id: UUID) -> set[str]:
        expense_ids = self.session.execute(
            select(Expense.external_id).where(
                Expense.tenant_id == tenant_id, Expense.external_id.is_not(None),
            )
        ).scalars()
        revenue_ids = self.session.execute(
            select(Revenue.external_id).where(
                Revenue.tenant_id == tenant_id, Revenue.external_id.is_not(None),
            )
        ).scalars()
        return set(expense_ids) | set(revenue_ids)

    def payee_fee_rates(self, tenant_id: UUID, payee_ids: Iterable[UUID]) -> dict:
        ids = {pid for pid in payee_ids if pid is not None}
        if not ids:
            return {}
        rows = self.session.execute(
            select(Payee.id, Payee.fee_rate).where(
                Payee.tenant_id == tenant_id, Payee.id.in_(ids),
            )
        ).all()
        return {payee_id: fee_rate for payee_id, fee_rate in rows}

    def bank_ids(self, tenant_id: UUID) -> list[UUID]:
        return list(self.session.execute(
            select(Bank.id).where(Bank.tenant_id == tenant_id).order_by(Bank.name)
        ).scalars())

    def balance_inputs(self, tenant_id: UUID, bank_id: UUID) -> BalanceInputs:
        bank = self.get_bank(tenant_id, bank_id)

        revenues = self.session.execute(
            select(Revenue.amount, Revenue.source).where(
                Revenue.tenant_id == tenant_id, Revenue.bank_id == bank_id,
            )
        ).all()
        receipts = self.session.execute(
            select(InvoiceReceipt.amount, InvoiceReceipt.reversed_at).where(
                InvoiceReceipt.tenant_id == tenant_id, InvoiceReceipt.bank_id == bank_id,
            )
        ).all()
        payments = self.session.execute(
            select(Payment.amount, Payment.reversed_at).where(
                Payment.tenant_id == tenant_id, Payment.bank_id == bank_id,
            )
        ).all()
        expenses = self.session.execute(
            select(func.coalesce(Expense.paid_amount, Expense.amount)).where(
                Expense.tenant_id == tenant_id,
                Expense.bank_id == bank_id,
                Expense.status == ExpenseStatus.PAID,
            )
        ).scalars()

        return BalanceInputs(
            bank_id=bank.id,
            initial_balance=bank.initial_balance,
            revenues=tuple(RevenueRow(amount=a, source=s) for a, s in revenues),
            receipts=tuple(CashRow(amount=a, is_reversed=r is not None) for a, r in receipts),
            payments=tuple(CashRow(amount=a, is_reversed=r is not None) for a, r in payments),
            expenses=tuple(ExpenseRow(amount=a, is_paid=True) for a in expenses),
        )
