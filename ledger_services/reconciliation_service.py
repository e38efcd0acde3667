"""
ledger_services.reconciliation_service -- Reconciliation commit protocol.

Responsibility:
    Commit the outcome of a bank transaction (link to an expense, to one or
    more invoices, to a payable; create a new ledger line; ignore) and undo
    it (reverse).  Every operation is one atomic unit of work.

Architecture position:
    Services -- owns the transaction boundary.  Composes
    CreditCoverageEngine and the settlement status rules with the ledger
    repository.

Invariants enforced:
    - Transaction states: pending -> {reconciled, created, ignored};
      {reconciled, created} -> pending through reversal; ignored is terminal.
    - Targets are re-read under ``SELECT ... FOR UPDATE`` before anything
      is written.  A transaction that is no longer pending, an obligation
      that is already settled, or a pending balance that moved since the
      caller read it raises StaleStateError.
    - Adjustments exist only for a non-zero, in-tolerance difference and
      always carry a reason.
    - Cash conservation: receipts (or the payment) created for a transaction
      add up to the transaction amount.
    - Reversal never deletes receipts, payments or adjustments; it stamps
      them and recomputes invoice and payable status from the surviving
      rows.

Failure modes:
    - ValidationError (and subclasses): wrong direction, missing reason,
      invalid state transition, nothing to settle.
    - ToleranceExceededError: difference above the adjustment ceiling.
    - StaleStateError: concurrent change detected on re-read.
    - NotFoundError: unknown id or id of another tenant.
    On any failure the session is rolled back and nothing is applied.

Audit relevance:
    reconciled_at/by on the transaction, reversed_at/by/reason on receipts
    and payments, and the adjustment register together reconstruct every
    decision and its undo.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_config import LedgerSettings, get_active_settings
from ledger_engines.credit_coverage import (
    CoveragePolicy,
    CoverageTarget,
    CreditCoverageEngine,
    InvoiceSelection,
    collapse_selections,
)
from ledger_engines.matching import ALREADY_IMPORTED
from ledger_engines.settlement import (
    SettledAmount,
    invoice_status,
    payable_status,
    settled_total,
)
from ledger_kernel.domain.amounts import amounts_equal
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    ReversalReasonRequiredError,
    StaleStateError,
    ValidationError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models import (
    Adjustment,
    AdjustmentType,
    Expense,
    ExpenseStatus,
    ImportedTransaction,
    Invoice,
    InvoiceReceipt,
    LinkKind,
    Payable,
    PayableStatus,
    Payment,
    Revenue,
    RevenueSource,
    TransactionStatus,
)
from ledger_services.repository import SqlLedgerRepository

logger = get_logger("services.reconciliation")


@dataclass(frozen=True)
class ReconciliationOutcome:
    """What a commit or reversal left behind."""

    transaction_id: UUID
    status: str
    linked_kind: str | None = None
    linked_id: UUID | None = None
    adjustment_id: UUID | None = None
    record_ids: tuple[UUID, ...] = ()


def _start_of_day(value: date) -> datetime:
    return datetime(value.year, value.month, value.day, tzinfo=UTC)


def refresh_invoice(repo: SqlLedgerRepository, invoice: Invoice, epsilon: Decimal) -> None:
    """Recompute total_received and status from the invoice's receipts."""
    total = settled_total(
        SettledAmount(credited=r.credited_amount, is_reversed=r.is_reversed)
        for r in repo.receipts_for_invoice(invoice.id)
    )
    invoice.total_received = total
    invoice.status = invoice_status(invoice.net_value, total, epsilon)


def payable_settled(repo: SqlLedgerRepository, payable: Payable) -> Decimal:
    return settled_total(
        SettledAmount(credited=p.settled_amount, is_reversed=p.is_reversed)
        for p in repo.payments_for_payable(payable.id)
    )


def refresh_payable(
    repo: SqlLedgerRepository,
    payable: Payable,
    now: datetime,
    epsilon: Decimal,
) -> None:
    """Recompute payable status (and paid_at) from its payments."""
    if payable.status == PayableStatus.CANCELLED:
        return
    status = payable_status(payable.amount_to_pay, payable_settled(repo, payable), epsilon)
    if status == PayableStatus.PENDING and payable.status == PayableStatus.AWAITING_RECEIPT:
        return
    payable.status = status
    if status == PayableStatus.PAID:
        payable.paid_at = payable.paid_at or now
    else:
        payable.paid_at = None


class ReconciliationService:
    """
    Commits and reverses bank transaction reconciliations.

    Contract:
        Each public method is atomic: it commits on success, rolls back and
        re-raises on failure.  ``actor_id`` is recorded on every write.
    Guarantees:
        - Nothing is applied partially.
        - Status derivation is always recomputed from rows.
    Non-goals:
        - Permission checks; callers authorize ``actor_id`` upstream.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: LedgerSettings | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._settings = settings or get_active_settings()
        self._repo = SqlLedgerRepository(session)
        self._coverage = CreditCoverageEngine()
        self._policy = CoveragePolicy(
            epsilon=self._settings.amount_epsilon,
            ceiling=self._settings.adjustment_ceiling,
        )

    # =========================================================================
    # Public operations
    # =========================================================================

    def accept_suggestion(
        self,
        tenant_id: UUID,
        transaction_id: UUID,
        actor_id: UUID,
        adjustment_reason: str | None = None,
    ) -> ReconciliationOutcome:
        """Apply the cached suggestion after re-validating it."""
        with LogContext.bind(tenant_id=tenant_id, actor_id=actor_id, transaction_id=transaction_id):
            try:
                tx = self._load_pending(tenant_id, transaction_id)
                kind = tx.suggested_kind
                if kind is None or (tx.suggested_id is None and kind != ALREADY_IMPORTED):
                    raise ValidationError(
                        f"Transaction {transaction_id} has no suggestion to accept",
                        field="suggested_kind",
                    )
                if kind == ALREADY_IMPORTED:
                    raise ValidationError(
                        f"Transaction {transaction_id} was already imported; ignore it instead",
                        field="suggested_kind",
                    )

                if kind == LinkKind.EXPENSE:
                    outcome = self._settle_expense(
                        tx, tx.suggested_id, actor_id, adjustment_reason,
                        expected_amount=tx.suggested_amount,
                    )
                elif kind == LinkKind.INVOICE:
                    selection = InvoiceSelection(
                        invoice_id=tx.suggested_id,
                        pending_balance=tx.suggested_amount,
                    )
                    outcome = self._settle_invoices(
                        tx, [selection], actor_id, adjustment_reason, notes=None,
                    )
                else:
                    raise ValidationError(
                        f"Unsupported suggestion kind {kind}", field="suggested_kind",
                    )

                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info("suggestion_accepted", extra={
                "linked_kind": outcome.linked_kind,
                "linked_id": str(outcome.linked_id),
            })
            return outcome

    def reconcile_expense(
        self,
        tenant_id: UUID,
        transaction_id: UUID,
        expense_id: UUID,
        actor_id: UUID,
        adjustment_reason: str | None = None,
    ) -> ReconciliationOutcome:
        """
        Mark a pending expense as paid by a debit transaction.

        A debit that differs from the expense amount settles it in full
        through an in-tolerance adjustment, which needs a reason.
        """
        with LogContext.bind(tenant_id=tenant_id, actor_id=actor_id, transaction_id=transaction_id):
            try:
                tx = self._load_pending(tenant_id, transaction_id)
                outcome = self._settle_expense(tx, expense_id, actor_id, adjustment_reason)
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info("expense_reconciled", extra={
                "expense_id": str(expense_id),
                "adjustment_id": str(outcome.adjustment_id) if outcome.adjustment_id else None,
            })
            return outcome

    def reconcile_invoices(
        self,
        tenant_id: UUID,
        transaction_id: UUID,
        selections: Sequence[InvoiceSelection],
        actor_id: UUID,
        adjustment_reason: str | None = None,
        notes: str | None = None,
    ) -> ReconciliationOutcome:
        """Settle one or more invoices with a credit transaction."""
        with LogContext.bind(tenant_id=tenant_id, actor_id=actor_id, transaction_id=transaction_id):
            try:
                tx = self._load_pending(tenant_id, transaction_id)
                outcome = self._settle_invoices(tx, selections, actor_id, adjustment_reason, notes)
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info("invoices_reconciled", extra={
                "invoice_count": len(outcome.record_ids),
                "adjustment_id": str(outcome.adjustment_id) if outcome.adjustment_id else None,
            })
            return outcome

    def reconcile_payable(
        self,
        tenant_id: UUID,
        transaction_id: UUID,
        payable_id: UUID,
        actor_id: UUID,
        adjustment_reason: str | None = None,
        expected_pending_balance: Decimal | None = None,
    ) -> ReconciliationOutcome:
        """Record a debit transaction as the payment of a payable."""
        with LogContext.bind(tenant_id=tenant_id, actor_id=actor_id, transaction_id=transaction_id):
            try:
                tx = self._load_pending(tenant_id, transaction_id)
                self._require_direction(tx, credit=False, operation="reconcile_payable")
                outcome = self._settle_payable(
                    tx, payable_id, actor_id, adjustment_reason, expected_pending_balance,
                )
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info("payable_reconciled", extra={"payable_id": str(payable_id)})
            return outcome

    def create_record(
        self,
        tenant_id: UUID,
        transaction_id: UUID,
        actor_id: UUID,
        description: str | None = None,
    ) -> ReconciliationOutcome:
        """Book the transaction as a new paid expense (debit) or revenue (credit)."""
        with LogContext.bind(tenant_id=tenant_id, actor_id=actor_id, transaction_id=transaction_id):
            try:
                tx = self._load_pending(tenant_id, transaction_id)
                text = (description or "").strip() or tx.description

                record: Expense | Revenue
                if tx.is_credit:
                    record = Revenue(
                        tenant_id=tx.tenant_id,
                        bank_id=tx.bank_id,
                        amount=tx.amount,
                        description=text,
                        revenue_date=tx.transaction_date,
                        source=RevenueSource.STATEMENT_IMPORT,
                        created_by_id=actor_id,
                    )
                    kind = LinkKind.REVENUE
                else:
                    record = Expense(
                        tenant_id=tx.tenant_id,
                        bank_id=tx.bank_id,
                        amount=tx.amount,
                        description=text,
                        due_date=tx.transaction_date,
                        status=ExpenseStatus.PAID,
                        paid_amount=tx.amount,
                        paid_at=_start_of_day(tx.transaction_date),
                        created_by_id=actor_id,
                    )
                    kind = LinkKind.EXPENSE
                record.external_id = tx.external_id
                record.statement_import_id = tx.statement_import_id
                record.imported_transaction_id = tx.id
                self._repo.add(record)
                self._repo.flush()

                self._mark(tx, TransactionStatus.CREATED, kind, record.id, actor_id)
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info("transaction_record_created", extra={
                "linked_kind": kind.value,
                "record_id": str(record.id),
                "amount": str(tx.amount),
            })
            return ReconciliationOutcome(
                transaction_id=tx.id,
                status=TransactionStatus.CREATED.value,
                linked_kind=kind.value,
                linked_id=record.id,
                record_ids=(record.id,),
            )

    def ignore(self, tenant_id: UUID, transaction_id: UUID, actor_id: UUID) -> ReconciliationOutcome:
        """Mark a pending transaction as ignored (terminal)."""
        with LogContext.bind(tenant_id=tenant_id, actor_id=actor_id, transaction_id=transaction_id):
            try:
                tx = self._repo.get_transaction(tenant_id, transaction_id, lock=True)
                if tx.status != TransactionStatus.PENDING:
                    raise InvalidTransitionError(transaction_id, tx.status, "ignore")
                tx.status = TransactionStatus.IGNORED
                tx.clear_suggestion()
                tx.reconciled_at = self._clock.now()
                tx.reconciled_by_id = actor_id
                tx.updated_by_id = actor_id
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info("transaction_ignored")
            return ReconciliationOutcome(transaction_id=tx.id, status=TransactionStatus.IGNORED.value)

    def reverse(
        self,
        tenant_id: UUID,
        transaction_id: UUID,
        reason: str,
        actor_id: UUID,
    ) -> ReconciliationOutcome:
        """Undo a reconciled or created transaction and return it to pending."""
        with LogContext.bind(tenant_id=tenant_id, actor_id=actor_id, transaction_id=transaction_id):
            try:
                if not reason or not reason.strip():
                    raise ReversalReasonRequiredError("ImportedTransaction", transaction_id)
                reason = reason.strip()

                tx = self._repo.get_transaction(tenant_id, transaction_id, lock=True)
                if tx.status not in (TransactionStatus.RECONCILED, TransactionStatus.CREATED):
                    raise InvalidTransitionError(transaction_id, tx.status, "reverse")

                previous_status = tx.status
                previous_kind = tx.linked_kind
                if tx.status == TransactionStatus.CREATED:
                    self._delete_created_record(tx)
                else:
                    self._unwind_reconciliation(tx, reason, actor_id)

                tx.status = TransactionStatus.PENDING
                tx.linked_kind = None
                tx.linked_id = None
                tx.reconciled_at = None
                tx.reconciled_by_id = None
                tx.reversed_at = self._clock.now()
                tx.reversal_reason = reason
                tx.updated_by_id = actor_id
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info("transaction_reversed", extra={
                "previous_status": previous_status,
                "linked_kind": previous_kind,
                "reason": reason,
            })
            return ReconciliationOutcome(transaction_id=tx.id, status=TransactionStatus.PENDING.value)

    # =========================================================================
    # Internal: loading and state checks
    # =========================================================================

    def _load_pending(self, tenant_id: UUID, transaction_id: UUID) -> ImportedTransaction:
        tx = self._repo.get_transaction(tenant_id, transaction_id, lock=True)
        if tx.status == TransactionStatus.IGNORED:
            raise InvalidTransitionError(transaction_id, tx.status, "reconcile")
        if tx.status != TransactionStatus.PENDING:
            raise StaleStateError(
                "ImportedTransaction", transaction_id,
                expected=TransactionStatus.PENDING.value, actual=tx.status,
            )
        return tx

    @staticmethod
    def _require_direction(tx: ImportedTransaction, credit: bool, operation: str) -> None:
        if tx.is_credit != credit:
            expected = "credit" if credit else "debit"
            raise ValidationError(
                f"{operation} requires a {expected} transaction",
                field="transaction_type",
                details={"transaction_type": tx.transaction_type},
            )

    def _mark(
        self,
        tx: ImportedTransaction,
        status: TransactionStatus,
        kind: LinkKind,
        linked_id: UUID,
        actor_id: UUID,
    ) -> None:
        tx.status = status
        tx.linked_kind = kind.value
        tx.linked_id = linked_id
        tx.reconciled_at = self._clock.now()
        tx.reconciled_by_id = actor_id
        tx.updated_by_id = actor_id
        tx.clear_suggestion()

    # =========================================================================
    # Internal: settlement paths (no commit)
    # =========================================================================

    def _settle_expense(
        self,
        tx: ImportedTransaction,
        expense_id: UUID,
        actor_id: UUID,
        adjustment_reason: str | None = None,
        expected_amount: Decimal | None = None,
    ) -> ReconciliationOutcome:
        self._require_direction(tx, credit=False, operation="reconcile_expense")
        expense = self._repo.get_expense(tx.tenant_id, expense_id, lock=True)
        if expense.status != ExpenseStatus.PENDING or expense.bank_id is not None:
            raise StaleStateError(
                "Expense", expense_id, expected=ExpenseStatus.PENDING.value, actual=expense.status,
            )
        if expected_amount is not None and not amounts_equal(
            expense.amount, expected_amount, self._settings.amount_epsilon,
        ):
            raise StaleStateError("Expense", expense_id, expected=expected_amount, actual=expense.amount)

        plan = self._coverage.cover(
            transaction_amount=tx.amount,
            targets=[CoverageTarget(target_id=expense.id, pending_balance=expense.amount)],
            policy=self._policy,
            reason=adjustment_reason,
        )

        expense.status = ExpenseStatus.PAID
        expense.paid_amount = plan.lines[0].cash
        expense.bank_id = tx.bank_id
        expense.external_id = tx.external_id
        expense.statement_import_id = tx.statement_import_id
        expense.imported_transaction_id = tx.id
        expense.paid_at = _start_of_day(tx.transaction_date)
        expense.updated_by_id = actor_id

        adjustment_id = None
        if plan.has_adjustment:
            adjustment = Adjustment(
                tenant_id=tx.tenant_id,
                adjustment_type=AdjustmentType.PAYMENT,
                expected_amount=plan.total_selected,
                received_amount=plan.transaction_amount,
                adjustment_amount=plan.difference,
                reason=plan.reason,
                adjustment_date=tx.transaction_date,
                expense_id=expense.id,
                bank_id=tx.bank_id,
                imported_transaction_id=tx.id,
                created_by_id=actor_id,
            )
            self._repo.add(adjustment)
            self._repo.flush()
            adjustment_id = adjustment.id
            logger.info("adjustment_recorded", extra={
                "adjustment_id": str(adjustment.id),
                "expected_amount": str(plan.total_selected),
                "received_amount": str(plan.transaction_amount),
                "adjustment_amount": str(plan.difference),
            })

        self._mark(tx, TransactionStatus.RECONCILED, LinkKind.EXPENSE, expense.id, actor_id)
        return ReconciliationOutcome(
            transaction_id=tx.id,
            status=TransactionStatus.RECONCILED.value,
            linked_kind=LinkKind.EXPENSE.value,
            linked_id=expense.id,
            adjustment_id=adjustment_id,
            record_ids=(expense.id,),
        )

    def _settle_invoices(
        self,
        tx: ImportedTransaction,
        selections: Sequence[InvoiceSelection],
        actor_id: UUID,
        adjustment_reason: str | None,
        notes: str | None,
    ) -> ReconciliationOutcome:
        self._require_direction(tx, credit=True, operation="reconcile_invoices")
        epsilon = self._settings.amount_epsilon

        invoices: list[Invoice] = []
        targets: list[CoverageTarget] = []
        for selection in collapse_selections(selections):
            invoice = self._repo.get_invoice(tx.tenant_id, selection.invoice_id, lock=True)
            if selection.allocation_id is not None:
                allocation = self._repo.get_allocation(tx.tenant_id, selection.allocation_id)
                if allocation.invoice_id != invoice.id:
                    raise NotFoundError("InvoiceAllocation", selection.allocation_id)
            pending = invoice.pending_balance
            if pending < epsilon:
                raise StaleStateError("Invoice", invoice.id, expected=selection.pending_balance, actual=pending)
            if selection.pending_balance is not None and not amounts_equal(
                selection.pending_balance, pending, epsilon,
            ):
                raise StaleStateError("Invoice", invoice.id, expected=selection.pending_balance, actual=pending)
            invoices.append(invoice)
            targets.append(CoverageTarget(target_id=invoice.id, pending_balance=pending))

        plan = self._coverage.cover(
            transaction_amount=tx.amount,
            targets=targets,
            policy=self._policy,
            reason=adjustment_reason,
        )

        receipt_notes = notes.strip() if notes and notes.strip() else None
        for line, invoice in zip(plan.lines, invoices):
            self._repo.add(InvoiceReceipt(
                tenant_id=tx.tenant_id,
                invoice_id=invoice.id,
                bank_id=tx.bank_id,
                amount=line.cash,
                adjustment_amount=line.adjustment_amount,
                receipt_date=tx.transaction_date,
                imported_transaction_id=tx.id,
                notes=receipt_notes,
                created_by_id=actor_id,
            ))
        self._repo.flush()
        for invoice in invoices:
            refresh_invoice(self._repo, invoice, epsilon)
            invoice.updated_by_id = actor_id

        first = invoices[0]
        adjustment_id = None
        if plan.has_adjustment:
            adjustment_notes = receipt_notes
            if len(invoices) > 1:
                linked = f"{len(invoices)} invoices linked"
                adjustment_notes = f"{linked}; {receipt_notes}" if receipt_notes else linked
            adjustment = Adjustment(
                tenant_id=tx.tenant_id,
                adjustment_type=AdjustmentType.RECEIPT,
                expected_amount=plan.total_selected,
                received_amount=plan.transaction_amount,
                adjustment_amount=plan.difference,
                reason=plan.reason,
                notes=adjustment_notes,
                adjustment_date=tx.transaction_date,
                invoice_id=first.id,
                bank_id=tx.bank_id,
                imported_transaction_id=tx.id,
                created_by_id=actor_id,
            )
            self._repo.add(adjustment)
            self._repo.flush()
            adjustment_id = adjustment.id
            logger.info("adjustment_recorded", extra={
                "adjustment_id": str(adjustment.id),
                "expected_amount": str(plan.total_selected),
                "received_amount": str(plan.transaction_amount),
                "adjustment_amount": str(plan.difference),
            })

        self._mark(tx, TransactionStatus.RECONCILED, LinkKind.INVOICE, first.id, actor_id)
        return ReconciliationOutcome(
            transaction_id=tx.id,
            status=TransactionStatus.RECONCILED.value,
            linked_kind=LinkKind.INVOICE.value,
            linked_id=first.id,
            adjustment_id=adjustment_id,
            record_ids=tuple(invoice.id for invoice in invoices),
        )

    def _settle_payable(
        self,
        tx: ImportedTransaction,
        payable_id: UUID,
        actor_id: UUID,
        adjustment_reason: str | None,
        expected_pending_balance: Decimal | None,
    ) -> ReconciliationOutcome:
        epsilon = self._settings.amount_epsilon
        payable = self._repo.get_payable(tx.tenant_id, payable_id, lock=True)
        if payable.status == PayableStatus.CANCELLED:
            raise ValidationError(f"Payable {payable_id} is cancelled", field="payable_id")

        pending = payable.amount_to_pay - payable_settled(self._repo, payable)
        if pending < epsilon:
            raise StaleStateError("Payable", payable_id, expected=expected_pending_balance, actual=pending)
        if expected_pending_balance is not None and not amounts_equal(
            expected_pending_balance, pending, epsilon,
        ):
            raise StaleStateError("Payable", payable_id, expected=expected_pending_balance, actual=pending)

        plan = self._coverage.cover(
            transaction_amount=tx.amount,
            targets=[CoverageTarget(target_id=payable.id, pending_balance=pending)],
            policy=self._policy,
            reason=adjustment_reason,
        )
        line = plan.lines[0]

        payment = Payment(
            tenant_id=tx.tenant_id,
            payable_id=payable.id,
            bank_id=tx.bank_id,
            amount=line.cash,
            adjustment_amount=line.adjustment_amount,
            payment_date=tx.transaction_date,
            imported_transaction_id=tx.id,
            created_by_id=actor_id,
        )
        self._repo.add(payment)
        self._repo.flush()
        refresh_payable(self._repo, payable, self._clock.now(), epsilon)
        payable.updated_by_id = actor_id

        adjustment_id = None
        if plan.has_adjustment:
            adjustment = Adjustment(
                tenant_id=tx.tenant_id,
                adjustment_type=AdjustmentType.PAYMENT,
                expected_amount=plan.total_selected,
                received_amount=plan.transaction_amount,
                adjustment_amount=plan.difference,
                reason=plan.reason,
                adjustment_date=tx.transaction_date,
                payable_id=payable.id,
                bank_id=tx.bank_id,
                imported_transaction_id=tx.id,
                created_by_id=actor_id,
            )
            self._repo.add(adjustment)
            self._repo.flush()
            adjustment_id = adjustment.id

        self._mark(tx, TransactionStatus.RECONCILED, LinkKind.PAYABLE, payable.id, actor_id)
        return ReconciliationOutcome(
            transaction_id=tx.id,
            status=TransactionStatus.RECONCILED.value,
            linked_kind=LinkKind.PAYABLE.value,
            linked_id=payable.id,
            adjustment_id=adjustment_id,
            record_ids=(payment.id,),
        )

    # =========================================================================
    # Internal: reversal (no commit)
    # =========================================================================

    def _delete_created_record(self, tx: ImportedTransaction) -> None:
        if tx.linked_kind == LinkKind.EXPENSE:
            record = self._repo.get_expense(tx.tenant_id, tx.linked_id, lock=True)
        else:
            record = self._repo.get_revenue(tx.tenant_id, tx.linked_id)
        if record.imported_transaction_id != tx.id:
            raise StaleStateError(
                type(record).__name__, record.id,
                expected=str(tx.id), actual=str(record.imported_transaction_id),
            )
        self._repo.delete(record)
        self._repo.flush()

    def _unwind_reconciliation(self, tx: ImportedTransaction, reason: str, actor_id: UUID) -> None:
        now = self._clock.now()
        epsilon = self._settings.amount_epsilon

        if tx.linked_kind == LinkKind.EXPENSE:
            expense = self._repo.get_expense(tx.tenant_id, tx.linked_id, lock=True)
            expense.status = ExpenseStatus.PENDING
            expense.paid_amount = None
            expense.bank_id = None
            expense.external_id = None
            expense.statement_import_id = None
            expense.imported_transaction_id = None
            expense.paid_at = None
            expense.updated_by_id = actor_id

        invoice_ids: list[UUID] = []
        for receipt in self._repo.receipts_for_transaction(tx.id):
            if receipt.is_reversed:
                continue
            receipt.reversed_at = now
            receipt.reversed_by_id = actor_id
            receipt.reversal_reason = reason
            if receipt.invoice_id not in invoice_ids:
                invoice_ids.append(receipt.invoice_id)

        payable_ids: list[UUID] = []
        for payment in self._repo.payments_for_transaction(tx.id):
            if payment.is_reversed:
                continue
            payment.reversed_at = now
            payment.reversed_by_id = actor_id
            payment.reversal_reason = reason
            if payment.payable_id is not None and payment.payable_id not in payable_ids:
                payable_ids.append(payment.payable_id)

        for adjustment in self._repo.adjustments_for_transaction(tx.id):
            if adjustment.reversed_at is None:
                adjustment.reversed_at = now

        self._repo.flush()
        for invoice_id in invoice_ids:
            invoice = self._repo.get_invoice(tx.tenant_id, invoice_id, lock=True)
            refresh_invoice(self._repo, invoice, epsilon)
            invoice.updated_by_id = actor_id
        for payable_id in payable_ids:
            payable = self._repo.get_payable(tx.tenant_id, payable_id, lock=True)
            refresh_payable(self._repo, payable, now, epsilon)
            payable.updated_by_id = actor_id
