"""
Tests for ReconciliationService.

Covers:
- Invoice settlement with and without adjustments
- Tolerance ceiling refusal with nothing persisted
- Stale-state detection on re-read
- Expense, payable and create-record paths
- Ignore and reverse state transitions
- Reversal restores balances and statuses
"""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from ledger_config import LedgerSettings
from ledger_engines.credit_coverage import InvoiceSelection
from ledger_engines.payee_allocation import AllocationRequestLine
from ledger_kernel.exceptions import (
    AdjustmentReasonRequiredError,
    InvalidTransitionError,
    NotFoundError,
    ReversalReasonRequiredError,
    StaleStateError,
    ToleranceExceededError,
    ValidationError,
)
from ledger_kernel.models import (
    Adjustment,
    AdjustmentType,
    Expense,
    ExpenseStatus,
    InvoiceReceipt,
    InvoiceStatus,
    Payable,
    PayableStatus,
    Payment,
    Revenue,
    TransactionStatus,
)
from ledger_services import (
    AllocationService,
    BalanceService,
    MatchingService,
    ReconciliationService,
    SqlLedgerRepository,
)


@pytest.fixture
def service(session, deterministic_clock, settings):
    return ReconciliationService(session, clock=deterministic_clock, settings=settings)


@pytest.fixture
def balance_of(session, tenant_id):
    balances = BalanceService(SqlLedgerRepository(session))

    def _balance(bank_id):
        return balances.bank_balance(tenant_id, bank_id).balance

    return _balance


def _count(session, model) -> int:
    return session.execute(select(func.count()).select_from(model)).scalar_one()


class TestReconcileInvoices:

    def test_short_receipt_settles_invoice_with_adjustment(
        self, service, session, tenant_id, test_actor_id, bank, make_invoice,
        make_transaction, balance_of,
    ):
        invoice = make_invoice(Decimal("1000.00"))
        tx = make_transaction(Decimal("950.00"))

        outcome = service.reconcile_invoices(
            tenant_id, tx.id, [InvoiceSelection(invoice.id)], test_actor_id,
            adjustment_reason="Bank fee withheld",
        )

        session.refresh(invoice)
        assert invoice.total_received == Decimal("1000.00")
        assert invoice.status == InvoiceStatus.RECEIVED
        assert outcome.status == TransactionStatus.RECONCILED.value
        assert outcome.linked_id == invoice.id

        adjustment = session.get(Adjustment, outcome.adjustment_id)
        assert adjustment.adjustment_type == AdjustmentType.RECEIPT
        assert adjustment.adjustment_amount == Decimal("-50.00")
        assert adjustment.expected_amount == Decimal("1000.00")
        assert adjustment.received_amount == Decimal("950.00")
        assert adjustment.reason == "Bank fee withheld"

        receipt = session.execute(select(InvoiceReceipt)).scalar_one()
        assert receipt.amount == Decimal("950.00")
        assert receipt.credited_amount == Decimal("1000.00")
        assert balance_of(bank.id) == Decimal("950.00")

    def test_exact_match_across_two_invoices_has_no_adjustment(
        self, service, session, tenant_id, test_actor_id, make_invoice, make_transaction,
    ):
        first = make_invoice(Decimal("300.00"))
        second = make_invoice(Decimal("300.30"))
        tx = make_transaction(Decimal("600.30"))

        outcome = service.reconcile_invoices(
            tenant_id, tx.id,
            [InvoiceSelection(first.id), InvoiceSelection(second.id)],
            test_actor_id,
        )

        session.refresh(first)
        session.refresh(second)
        assert outcome.adjustment_id is None
        assert first.status == InvoiceStatus.RECEIVED
        assert second.status == InvoiceStatus.RECEIVED
        assert _count(session, Adjustment) == 0
        assert _count(session, InvoiceReceipt) == 2

    def test_excess_lands_on_last_invoice(
        self, service, session, tenant_id, test_actor_id, make_invoice, make_transaction,
    ):
        first = make_invoice(Decimal("100.00"))
        second = make_invoice(Decimal("200.00"))
        tx = make_transaction(Decimal("320.00"))

        outcome = service.reconcile_invoices(
            tenant_id, tx.id,
            [InvoiceSelection(first.id), InvoiceSelection(second.id)],
            test_actor_id, adjustment_reason="Interest paid by customer",
        )

        receipts = {
            r.invoice_id: r for r in session.execute(select(InvoiceReceipt)).scalars()
        }
        assert receipts[first.id].amount == Decimal("100.00")
        assert receipts[second.id].amount == Decimal("220.00")
        assert receipts[second.id].credited_amount == Decimal("200.00")

        adjustment = session.get(Adjustment, outcome.adjustment_id)
        assert adjustment.notes == "2 invoices linked"
        assert adjustment.invoice_id == first.id

    def test_difference_above_ceiling_refused(
        self, service, session, tenant_id, test_actor_id, make_invoice, make_transaction,
    ):
        invoice = make_invoice(Decimal("1000.00"))
        tx = make_transaction(Decimal("1500.01"))

        with pytest.raises(ToleranceExceededError):
            service.reconcile_invoices(
                tenant_id, tx.id, [InvoiceSelection(invoice.id)], test_actor_id,
                adjustment_reason="Too much",
            )

        session.refresh(invoice)
        session.refresh(tx)
        assert invoice.total_received == Decimal("0")
        assert tx.status == TransactionStatus.PENDING
        assert _count(session, InvoiceReceipt) == 0
        assert _count(session, Adjustment) == 0

    def test_difference_at_ceiling_accepted(
        self, service, tenant_id, test_actor_id, make_invoice, make_transaction,
    ):
        invoice = make_invoice(Decimal("1000.00"))
        tx = make_transaction(Decimal("1500.00"))

        outcome = service.reconcile_invoices(
            tenant_id, tx.id, [InvoiceSelection(invoice.id)], test_actor_id,
            adjustment_reason="Late payment interest",
        )

        assert outcome.adjustment_id is not None

    def test_adjustment_without_reason_refused(
        self, service, session, tenant_id, test_actor_id, make_invoice, make_transaction,
    ):
        invoice = make_invoice(Decimal("1000.00"))
        tx = make_transaction(Decimal("990.00"))

        with pytest.raises(AdjustmentReasonRequiredError):
            service.reconcile_invoices(
                tenant_id, tx.id, [InvoiceSelection(invoice.id)], test_actor_id,
                adjustment_reason="   ",
            )

        assert _count(session, InvoiceReceipt) == 0

    def test_debit_transaction_rejected(
        self, service, tenant_id, test_actor_id, make_invoice, make_transaction,
    ):
        invoice = make_invoice(Decimal("100.00"))
        tx = make_transaction(Decimal("100.00"), credit=False)

        with pytest.raises(ValidationError):
            service.reconcile_invoices(
                tenant_id, tx.id, [InvoiceSelection(invoice.id)], test_actor_id,
            )

    def test_stale_pending_balance_refused(
        self, service, session, tenant_id, test_actor_id, make_invoice, make_transaction,
    ):
        invoice = make_invoice(Decimal("1000.00"))
        tx = make_transaction(Decimal("900.00"))

        with pytest.raises(StaleStateError):
            service.reconcile_invoices(
                tenant_id, tx.id,
                [InvoiceSelection(invoice.id, pending_balance=Decimal("900.00"))],
                test_actor_id,
            )

        assert _count(session, InvoiceReceipt) == 0

    def test_settled_invoice_is_stale(
        self, service, tenant_id, test_actor_id, make_invoice, make_transaction,
    ):
        invoice = make_invoice(Decimal("100.00"))
        first = make_transaction(Decimal("100.00"))
        second = make_transaction(Decimal("100.00"))
        service.reconcile_invoices(tenant_id, first.id, [InvoiceSelection(invoice.id)], test_actor_id)

        with pytest.raises(StaleStateError):
            service.reconcile_invoices(
                tenant_id, second.id, [InvoiceSelection(invoice.id)], test_actor_id,
            )

    def test_already_reconciled_transaction_is_stale(
        self, service, tenant_id, test_actor_id, make_invoice, make_transaction,
    ):
        first = make_invoice(Decimal("100.00"))
        second = make_invoice(Decimal("100.00"))
        tx = make_transaction(Decimal("100.00"))
        service.reconcile_invoices(tenant_id, tx.id, [InvoiceSelection(first.id)], test_actor_id)

        with pytest.raises(StaleStateError):
            service.reconcile_invoices(
                tenant_id, tx.id, [InvoiceSelection(second.id)], test_actor_id,
            )

    def test_allocations_of_one_invoice_counted_once(
        self, service, session, tenant_id, test_actor_id, settings, make_invoice,
        make_payee, make_transaction,
    ):
        invoice = make_invoice(Decimal("900.00"))
        payees = [make_payee() for _ in range(3)]
        allocation = AllocationService(session, settings=settings).allocate_invoice(
            tenant_id, invoice.id,
            [AllocationRequestLine(p.id, Decimal("300.00")) for p in payees],
            test_actor_id,
        )
        tx = make_transaction(Decimal("900.00"))

        outcome = service.reconcile_invoices(
            tenant_id, tx.id,
            [InvoiceSelection(invoice.id, allocation_id=a) for a in allocation.allocation_ids],
            test_actor_id,
        )

        session.refresh(invoice)
        assert outcome.adjustment_id is None
        assert outcome.record_ids == (invoice.id,)
        assert invoice.total_received == Decimal("900.00")
        assert _count(session, InvoiceReceipt) == 1

    def test_other_tenant_invoice_not_found(
        self, service, tenant_id, other_tenant_id, test_actor_id, make_invoice, make_transaction,
    ):
        foreign = make_invoice(Decimal("100.00"), tenant=other_tenant_id)
        tx = make_transaction(Decimal("100.00"))

        with pytest.raises(NotFoundError):
            service.reconcile_invoices(tenant_id, tx.id, [InvoiceSelection(foreign.id)], test_actor_id)


class TestReconcileExpense:

    def test_expense_marked_paid(
        self, service, session, tenant_id, test_actor_id, bank, make_expense,
        make_transaction, balance_of,
    ):
        expense = make_expense(Decimal("230.45"))
        tx = make_transaction(Decimal("230.45"), credit=False)

        outcome = service.reconcile_expense(tenant_id, tx.id, expense.id, test_actor_id)

        session.refresh(expense)
        assert outcome.linked_id == expense.id
        assert expense.status == ExpenseStatus.PAID
        assert expense.bank_id == bank.id
        assert expense.external_id == tx.external_id
        assert balance_of(bank.id) == Decimal("-230.45")

    def test_amount_difference_requires_reason(
        self, service, session, tenant_id, test_actor_id, make_expense, make_transaction,
    ):
        expense = make_expense(Decimal("230.45"))
        tx = make_transaction(Decimal("230.00"), credit=False)

        with pytest.raises(AdjustmentReasonRequiredError):
            service.reconcile_expense(tenant_id, tx.id, expense.id, test_actor_id)

        session.refresh(expense)
        assert expense.status == ExpenseStatus.PENDING
        assert _count(session, Adjustment) == 0

    def test_close_amount_settles_with_payment_adjustment(
        self, service, session, tenant_id, test_actor_id, bank, make_expense,
        make_transaction, balance_of,
    ):
        expense = make_expense(Decimal("100.00"))
        tx = make_transaction(Decimal("98.00"), credit=False)

        outcome = service.reconcile_expense(
            tenant_id, tx.id, expense.id, test_actor_id, adjustment_reason="Supplier discount",
        )

        session.refresh(expense)
        adjustment = session.get(Adjustment, outcome.adjustment_id)
        assert expense.status == ExpenseStatus.PAID
        assert expense.paid_amount == Decimal("98.00")
        assert adjustment.adjustment_type == AdjustmentType.PAYMENT
        assert adjustment.expense_id == expense.id
        assert adjustment.expected_amount == Decimal("100.00")
        assert adjustment.received_amount == Decimal("98.00")
        assert adjustment.adjustment_amount == Decimal("-2.00")
        assert balance_of(bank.id) == Decimal("-98.00")

    def test_expense_difference_above_ceiling_refused(
        self, service, session, tenant_id, test_actor_id, make_expense, make_transaction,
    ):
        expense = make_expense(Decimal("2000.00"))
        tx = make_transaction(Decimal("1400.00"), credit=False)

        with pytest.raises(ToleranceExceededError):
            service.reconcile_expense(
                tenant_id, tx.id, expense.id, test_actor_id, adjustment_reason="Partial",
            )

        session.refresh(expense)
        assert expense.status == ExpenseStatus.PENDING

    def test_reversal_stamps_expense_adjustment(
        self, service, session, tenant_id, test_actor_id, bank, make_expense,
        make_transaction, balance_of,
    ):
        expense = make_expense(Decimal("100.00"))
        tx = make_transaction(Decimal("98.00"), credit=False)
        outcome = service.reconcile_expense(
            tenant_id, tx.id, expense.id, test_actor_id, adjustment_reason="Supplier discount",
        )

        service.reverse(tenant_id, tx.id, "Wrong supplier", test_actor_id)

        session.refresh(expense)
        assert expense.status == ExpenseStatus.PENDING
        assert expense.paid_amount is None
        assert session.get(Adjustment, outcome.adjustment_id).reversed_at is not None
        assert balance_of(bank.id) == Decimal("0")

    def test_paid_expense_is_stale(
        self, service, tenant_id, test_actor_id, make_expense, make_transaction,
    ):
        expense = make_expense(Decimal("50.00"))
        first = make_transaction(Decimal("50.00"), credit=False)
        second = make_transaction(Decimal("50.00"), credit=False)
        service.reconcile_expense(tenant_id, first.id, expense.id, test_actor_id)

        with pytest.raises(StaleStateError):
            service.reconcile_expense(tenant_id, second.id, expense.id, test_actor_id)

    def test_credit_transaction_rejected(
        self, service, tenant_id, test_actor_id, make_expense, make_transaction,
    ):
        expense = make_expense(Decimal("50.00"))
        tx = make_transaction(Decimal("50.00"), credit=True)

        with pytest.raises(ValidationError):
            service.reconcile_expense(tenant_id, tx.id, expense.id, test_actor_id)


class TestReconcilePayable:

    @pytest.fixture
    def payable_id(self, session, tenant_id, test_actor_id, settings, make_invoice, make_payee):
        invoice = make_invoice(Decimal("1000.00"))
        payee = make_payee(fee_rate=Decimal("10"))
        result = AllocationService(session, settings=settings).allocate_invoice(
            tenant_id, invoice.id, [AllocationRequestLine(payee.id, Decimal("1000.00"))],
            test_actor_id,
        )
        return result.payable_ids[0]

    def test_payable_paid_by_debit(
        self, service, session, tenant_id, test_actor_id, bank, payable_id,
        make_transaction, balance_of,
    ):
        tx = make_transaction(Decimal("900.00"), credit=False)

        outcome = service.reconcile_payable(tenant_id, tx.id, payable_id, test_actor_id)

        payment = session.get(Payment, outcome.record_ids[0])
        payable = session.get(Payable, payable_id)
        assert payment.imported_transaction_id == tx.id
        assert payment.adjustment_amount == Decimal("0")
        assert payable.status == PayableStatus.PAID
        assert payable.paid_at is not None
        assert balance_of(bank.id) == Decimal("-900.00")

    def test_short_payment_settles_with_adjustment(
        self, service, session, tenant_id, test_actor_id, payable_id, make_transaction,
    ):
        tx = make_transaction(Decimal("880.00"), credit=False)

        outcome = service.reconcile_payable(
            tenant_id, tx.id, payable_id, test_actor_id,
            expected_pending_balance=Decimal("900.00"), adjustment_reason="Transfer fee",
        )

        payable = session.get(Payable, payable_id)
        adjustment = session.get(Adjustment, outcome.adjustment_id)
        assert payable.status == PayableStatus.PAID
        assert adjustment.adjustment_type == AdjustmentType.PAYMENT
        assert adjustment.payable_id == payable_id
        assert adjustment.adjustment_amount == Decimal("-20.00")

    def test_stale_expected_pending_balance(
        self, service, tenant_id, test_actor_id, payable_id, make_transaction,
    ):
        tx = make_transaction(Decimal("900.00"), credit=False)

        with pytest.raises(StaleStateError):
            service.reconcile_payable(
                tenant_id, tx.id, payable_id, test_actor_id,
                expected_pending_balance=Decimal("850.00"),
            )

    def test_credit_transaction_rejected(
        self, service, tenant_id, test_actor_id, payable_id, make_transaction,
    ):
        tx = make_transaction(Decimal("900.00"), credit=True)

        with pytest.raises(ValidationError):
            service.reconcile_payable(tenant_id, tx.id, payable_id, test_actor_id)

    def test_reverse_returns_payable_to_pending(
        self, service, session, tenant_id, test_actor_id, bank, payable_id,
        make_transaction, balance_of,
    ):
        tx = make_transaction(Decimal("900.00"), credit=False)
        service.reconcile_payable(tenant_id, tx.id, payable_id, test_actor_id)

        service.reverse(tenant_id, tx.id, "Paid the wrong payee", test_actor_id)

        payable = session.get(Payable, payable_id)
        session.refresh(payable)
        assert payable.status == PayableStatus.PENDING
        assert payable.paid_at is None
        assert balance_of(bank.id) == Decimal("0")


class TestCreateIgnoreReverse:

    def test_create_expense_from_debit(
        self, service, session, tenant_id, test_actor_id, bank, make_transaction, balance_of,
    ):
        tx = make_transaction(Decimal("75.00"), credit=False, description="Card fee")

        outcome = service.create_record(tenant_id, tx.id, test_actor_id)

        expense = session.get(Expense, outcome.linked_id)
        assert outcome.status == TransactionStatus.CREATED.value
        assert expense.status == ExpenseStatus.PAID
        assert expense.description == "Card fee"
        assert expense.imported_transaction_id == tx.id
        assert balance_of(bank.id) == Decimal("-75.00")

    def test_create_revenue_from_credit(
        self, service, session, tenant_id, test_actor_id, bank, make_transaction, balance_of,
    ):
        tx = make_transaction(Decimal("40.00"), credit=True)

        outcome = service.create_record(tenant_id, tx.id, test_actor_id, description="Refund")

        revenue = session.get(Revenue, outcome.linked_id)
        assert revenue.description == "Refund"
        assert revenue.external_id == tx.external_id
        assert balance_of(bank.id) == Decimal("40.00")

    def test_reverse_created_record_deletes_it(
        self, service, session, tenant_id, test_actor_id, bank, make_transaction, balance_of,
    ):
        tx = make_transaction(Decimal("75.00"), credit=False)
        service.create_record(tenant_id, tx.id, test_actor_id)

        outcome = service.reverse(tenant_id, tx.id, "Booked by mistake", test_actor_id)

        session.refresh(tx)
        assert outcome.status == TransactionStatus.PENDING.value
        assert tx.status == TransactionStatus.PENDING
        assert tx.reversal_reason == "Booked by mistake"
        assert _count(session, Expense) == 0
        assert balance_of(bank.id) == Decimal("0")

    def test_ignore_is_terminal(
        self, service, session, tenant_id, test_actor_id, make_invoice, make_transaction,
    ):
        invoice = make_invoice(Decimal("10.00"))
        tx = make_transaction(Decimal("10.00"))

        service.ignore(tenant_id, tx.id, test_actor_id)
        session.refresh(tx)
        assert tx.status == TransactionStatus.IGNORED

        with pytest.raises(InvalidTransitionError):
            service.ignore(tenant_id, tx.id, test_actor_id)
        with pytest.raises(InvalidTransitionError):
            service.reverse(tenant_id, tx.id, "Undo", test_actor_id)
        with pytest.raises(InvalidTransitionError):
            service.reconcile_invoices(tenant_id, tx.id, [InvoiceSelection(invoice.id)], test_actor_id)

    def test_reverse_pending_rejected(self, service, tenant_id, test_actor_id, make_transaction):
        tx = make_transaction(Decimal("10.00"))

        with pytest.raises(InvalidTransitionError):
            service.reverse(tenant_id, tx.id, "Nothing to undo", test_actor_id)

    def test_reverse_requires_reason(
        self, service, tenant_id, test_actor_id, make_transaction,
    ):
        tx = make_transaction(Decimal("10.00"), credit=False)
        service.create_record(tenant_id, tx.id, test_actor_id)

        with pytest.raises(ReversalReasonRequiredError):
            service.reverse(tenant_id, tx.id, "  ", test_actor_id)

    def test_reverse_invoice_settlement_restores_state(
        self, service, session, tenant_id, test_actor_id, bank, make_invoice,
        make_transaction, balance_of,
    ):
        invoice = make_invoice(Decimal("1000.00"))
        tx = make_transaction(Decimal("950.00"))
        outcome = service.reconcile_invoices(
            tenant_id, tx.id, [InvoiceSelection(invoice.id)], test_actor_id,
            adjustment_reason="Bank fee withheld",
        )

        service.reverse(tenant_id, tx.id, "Wrong invoice", test_actor_id)

        session.refresh(invoice)
        receipt = session.execute(select(InvoiceReceipt)).scalar_one()
        adjustment = session.get(Adjustment, outcome.adjustment_id)
        assert invoice.total_received == Decimal("0")
        assert invoice.status == InvoiceStatus.PENDING
        assert receipt.is_reversed
        assert receipt.reversal_reason == "Wrong invoice"
        assert adjustment.reversed_at is not None
        assert balance_of(bank.id) == Decimal("0")

        again = service.reconcile_invoices(
            tenant_id, tx.id, [InvoiceSelection(invoice.id)], test_actor_id,
            adjustment_reason="Bank fee withheld",
        )
        assert again.status == TransactionStatus.RECONCILED.value

    def test_reverse_expense_reconciliation(
        self, service, session, tenant_id, test_actor_id, make_expense, make_transaction,
    ):
        expense = make_expense(Decimal("20.00"))
        tx = make_transaction(Decimal("20.00"), credit=False)
        service.reconcile_expense(tenant_id, tx.id, expense.id, test_actor_id)

        service.reverse(tenant_id, tx.id, "Duplicate", test_actor_id)

        session.refresh(expense)
        assert expense.status == ExpenseStatus.PENDING
        assert expense.bank_id is None
        assert expense.paid_at is None


class TestAcceptSuggestion:

    def test_accepts_cached_invoice_suggestion(
        self, service, session, tenant_id, test_actor_id, make_invoice, make_transaction,
    ):
        invoice = make_invoice(Decimal("500.00"))
        tx = make_transaction(Decimal("500.00"))
        tx.suggested_kind = "invoice"
        tx.suggested_id = invoice.id
        tx.suggested_amount = Decimal("500.00")
        tx.suggested_confidence = "high"
        session.commit()

        outcome = service.accept_suggestion(tenant_id, tx.id, test_actor_id)

        session.refresh(tx)
        assert outcome.linked_id == invoice.id
        assert tx.status == TransactionStatus.RECONCILED
        assert tx.suggested_kind is None

    def test_accepts_cached_expense_suggestion(
        self, service, session, tenant_id, test_actor_id, make_expense, make_transaction,
    ):
        expense = make_expense(Decimal("80.00"))
        tx = make_transaction(Decimal("80.00"), credit=False)
        tx.suggested_kind = "expense"
        tx.suggested_id = expense.id
        tx.suggested_amount = Decimal("80.00")
        session.commit()

        outcome = service.accept_suggestion(tenant_id, tx.id, test_actor_id)

        assert outcome.linked_id == expense.id

    def test_low_confidence_expense_suggestion_accepted_with_reason(
        self, session, tenant_id, test_actor_id, deterministic_clock, bank, make_expense,
        make_transaction, balance_of,
    ):
        settings = LedgerSettings(surface_low_confidence=True)
        expense = make_expense(Decimal("100.00"))
        tx = make_transaction(Decimal("98.00"), credit=False)
        MatchingService(session, settings=settings).suggest_matches(tenant_id, bank.id)
        session.refresh(tx)
        assert tx.suggested_kind == "expense"
        assert tx.suggested_confidence == "low"

        service = ReconciliationService(session, clock=deterministic_clock, settings=settings)
        outcome = service.accept_suggestion(
            tenant_id, tx.id, test_actor_id, adjustment_reason="Bank fee",
        )

        session.refresh(expense)
        assert outcome.linked_id == expense.id
        assert outcome.adjustment_id is not None
        assert expense.status == ExpenseStatus.PAID
        assert balance_of(bank.id) == Decimal("-98.00")

    def test_moved_suggestion_is_stale(
        self, service, session, tenant_id, test_actor_id, make_invoice, make_transaction,
    ):
        invoice = make_invoice(Decimal("500.00"))
        tx = make_transaction(Decimal("500.00"))
        tx.suggested_kind = "invoice"
        tx.suggested_id = invoice.id
        tx.suggested_amount = Decimal("450.00")
        session.commit()

        with pytest.raises(StaleStateError):
            service.accept_suggestion(tenant_id, tx.id, test_actor_id)

    def test_no_suggestion_rejected(self, service, tenant_id, test_actor_id, make_transaction):
        tx = make_transaction(Decimal("500.00"))

        with pytest.raises(ValidationError):
            service.accept_suggestion(tenant_id, tx.id, test_actor_id)

    def test_already_imported_suggestion_rejected(
        self, service, session, tenant_id, test_actor_id, make_transaction,
    ):
        tx = make_transaction(Decimal("500.00"))
        tx.suggested_kind = "already_imported"
        session.commit()

        with pytest.raises(ValidationError):
            service.accept_suggestion(tenant_id, tx.id, test_actor_id)
