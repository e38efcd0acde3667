"""Tests for MatchingService over in-memory and SQL ledger readers."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from ledger_config import LedgerSettings
from ledger_engines.matching import (
    ALREADY_IMPORTED,
    MatchCandidate,
    MatchConfidence,
    TransactionLine,
)
from ledger_engines.payee_allocation import AllocationRequestLine
from ledger_kernel.models import ImportedTransaction, TransactionStatus
from ledger_services import AllocationService, MatchingService, ReconciliationService
from tests.fakes import InMemoryLedgerReader

TENANT = uuid4()


def _line(amount: str, credit: bool = True, external_id: str | None = None, day: int = 10):
    return TransactionLine(
        transaction_id=uuid4(),
        external_id=external_id or f"FIT-{uuid4().hex[:8]}",
        amount=Decimal(amount),
        is_credit=credit,
        transaction_date=date(2024, 1, day),
    )


def _candidate(kind: str, amount: str, day: int | None = 10, document_id=None):
    return MatchCandidate(
        kind=kind,
        document_id=document_id or uuid4(),
        amount=Decimal(amount),
        expected_date=date(2024, 1, day) if day else None,
    )


class TestSuggestWithReader:

    def test_direction_selects_pool(self, settings):
        invoice = _candidate("invoice", "500.00")
        expense = _candidate("expense", "500.00")
        reader = InMemoryLedgerReader(invoices=[invoice], expenses=[expense])
        service = MatchingService(settings=settings, reader=reader)

        credit, debit = service.suggest(TENANT, [_line("500.00"), _line("500.00", credit=False)])

        assert credit.suggestion.document_id == invoice.document_id
        assert debit.suggestion.document_id == expense.document_id
        assert credit.suggestion.confidence == MatchConfidence.HIGH

    def test_pools_loaded_once_per_call(self, settings):
        reader = InMemoryLedgerReader(invoices=[_candidate("invoice", "10.00")])
        service = MatchingService(settings=settings, reader=reader)

        service.suggest(TENANT, [_line("10.00"), _line("20.00"), _line("10.00")])

        assert reader.calls == ["invoices"]

    def test_booked_external_id_short_circuits(self, settings):
        reader = InMemoryLedgerReader(
            expenses=[_candidate("expense", "75.00")], booked={"FIT-BOOKED"},
        )
        service = MatchingService(settings=settings, reader=reader)

        (result,) = service.suggest(TENANT, [_line("75.00", credit=False, external_id="FIT-BOOKED")])

        assert result.suggestion.kind == ALREADY_IMPORTED
        assert result.suggestion.document_id is None

    def test_low_confidence_hidden_by_default(self, settings):
        reader = InMemoryLedgerReader(invoices=[_candidate("invoice", "1000.00")])
        service = MatchingService(settings=settings, reader=reader)

        (result,) = service.suggest(TENANT, [_line("980.00")])

        assert result.suggestion is None

    def test_low_confidence_surfaced_when_enabled(self):
        reader = InMemoryLedgerReader(invoices=[_candidate("invoice", "1000.00")])
        service = MatchingService(
            settings=LedgerSettings(surface_low_confidence=True), reader=reader,
        )

        (result,) = service.suggest(TENANT, [_line("980.00")])

        assert result.suggestion.confidence == MatchConfidence.LOW

    def test_exact_amount_far_date_is_medium(self, settings):
        reader = InMemoryLedgerReader(invoices=[_candidate("invoice", "300.00", day=None)])
        service = MatchingService(settings=settings, reader=reader)

        (result,) = service.suggest(TENANT, [_line("300.00")])

        assert result.suggestion.confidence == MatchConfidence.MEDIUM
        assert result.suggestion.date_difference_days == 999


class TestSuggestMatches:

    @pytest.fixture
    def service(self, session, settings):
        return MatchingService(session, settings=settings)

    def test_suggestions_cached_without_status_change(
        self, service, session, tenant_id, bank, make_invoice, make_expense, make_transaction,
    ):
        invoice = make_invoice(Decimal("1500.00"))
        expense = make_expense(Decimal("99.90"), due_date=date(2024, 2, 20))
        credit = make_transaction(Decimal("1500.00"))
        debit = make_transaction(Decimal("99.90"), credit=False)
        unmatched = make_transaction(Decimal("1.23"))

        results = service.suggest_matches(tenant_id, bank.id)

        assert len(results) == 3
        for row in (credit, debit, unmatched):
            session.refresh(row)
        assert credit.suggested_id == invoice.id
        assert credit.suggested_confidence == "high"
        assert debit.suggested_id == expense.id
        assert debit.suggested_confidence == "medium"
        assert unmatched.suggested_kind is None
        assert {r.status for r in (credit, debit, unmatched)} == {TransactionStatus.PENDING}

    def test_only_pending_transactions_refreshed(
        self, service, session, tenant_id, bank, make_invoice, make_transaction,
    ):
        make_invoice(Decimal("40.00"))
        done = make_transaction(Decimal("40.00"))
        done.status = TransactionStatus.IGNORED
        session.commit()

        results = service.suggest_matches(tenant_id, bank.id)

        session.refresh(done)
        assert results == []
        assert done.suggested_kind is None

    def test_allocated_invoice_suggested_once(
        self, service, session, tenant_id, test_actor_id, settings, bank,
        make_invoice, make_payee, make_transaction,
    ):
        invoice = make_invoice(Decimal("900.00"))
        payees = [make_payee() for _ in range(3)]
        AllocationService(session, settings=settings).allocate_invoice(
            tenant_id, invoice.id,
            [AllocationRequestLine(p.id, Decimal("300.00")) for p in payees],
            test_actor_id,
        )
        make_transaction(Decimal("900.00"))

        (result,) = service.suggest_matches(tenant_id, bank.id)

        assert result.suggestion.document_id == invoice.id

    def test_booked_external_id_marked_already_imported(
        self, service, session, tenant_id, test_actor_id, bank, make_bank, make_transaction,
    ):
        first = make_transaction(Decimal("12.00"), credit=False, external_id="FIT-DUP")
        ReconciliationService(session, settings=LedgerSettings()).create_record(
            tenant_id, first.id, test_actor_id,
        )
        savings = make_bank("Savings account")
        repeat = make_transaction(
            Decimal("12.00"), credit=False, external_id="FIT-DUP", bank_id=savings.id,
        )

        (result,) = service.suggest_matches(tenant_id, savings.id)

        assert result.suggestion.kind == ALREADY_IMPORTED
        row = session.execute(
            select(ImportedTransaction).where(ImportedTransaction.id == repeat.id)
        ).scalar_one()
        assert row.suggested_kind == ALREADY_IMPORTED
        assert row.suggested_id is None
