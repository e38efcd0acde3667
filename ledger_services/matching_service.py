"""
ledger_services.matching_service -- Match suggestions for imported transactions.

Responsibility:
    Build the candidate pools for pending bank transactions, run the pure
    MatchingEngine, and cache the chosen suggestion on each transaction.

Architecture position:
    Services -- orchestration over ledger_engines.matching and the ledger
    repository.  Pool building goes through the ``LedgerReader`` protocol.

Invariants enforced:
    - Debits are matched against open expenses, credits against open
      invoices (pending balance, one candidate per allocation collapsed to
      one per invoice by the engine).
    - Refreshing suggestions never changes a transaction's status.

Failure modes:
    - NotFoundError if the bank does not belong to the tenant.

Audit relevance:
    The cached suggested_amount is the pending balance the engine saw;
    acceptance compares it against a fresh read (StaleStateError).
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_config import LedgerSettings, get_active_settings
from ledger_engines.matching import (
    MatchCandidate,
    MatchingEngine,
    MatchPolicy,
    MatchSuggestion,
    TransactionLine,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models import ImportedTransaction
from ledger_services.repository import LedgerReader, SqlLedgerRepository, to_transaction_line

logger = get_logger("services.matching")


def policy_from_settings(settings: LedgerSettings) -> MatchPolicy:
    return MatchPolicy(
        amount_epsilon=settings.amount_epsilon,
        close_match_ratio=settings.close_match_ratio,
        high_confidence_days=settings.high_confidence_days,
        missing_date_days=settings.missing_date_days,
        surface_low_confidence=settings.surface_low_confidence,
    )


@dataclass(frozen=True)
class TransactionSuggestion:
    """A transaction paired with its suggestion (None when nothing qualified)."""

    transaction_id: UUID
    suggestion: MatchSuggestion | None


class _CandidatePools:
    """Per-call cache of the tenant's candidate pools."""

    def __init__(self, reader: LedgerReader, tenant_id: UUID):
        self._reader = reader
        self._tenant_id = tenant_id
        self._expenses: list[MatchCandidate] | None = None
        self._invoices: list[MatchCandidate] | None = None
        self._booked: set[str] | None = None

    def for_transaction(self, transaction: TransactionLine) -> list[MatchCandidate]:
        if transaction.is_credit:
            if self._invoices is None:
                self._invoices = self._reader.open_invoice_candidates(self._tenant_id)
            return self._invoices
        if self._expenses is None:
            self._expenses = self._reader.open_expense_candidates(self._tenant_id)
        return self._expenses

    @property
    def booked_external_ids(self) -> set[str]:
        if self._booked is None:
            self._booked = self._reader.booked_external_ids(self._tenant_id)
        return self._booked


class MatchingService:
    """
    Computes and caches match suggestions.

    Contract:
        ``suggest`` is read-only and works with any LedgerReader.
        ``apply_suggestions`` writes suggestion fields without committing
        (the caller owns the transaction).  ``suggest_matches`` is the
        standalone refresh operation and commits.
    """

    def __init__(
        self,
        session: Session | None = None,
        settings: LedgerSettings | None = None,
        reader: LedgerReader | None = None,
        engine: MatchingEngine | None = None,
    ):
        self._session = session
        self._settings = settings or get_active_settings()
        self._repo = SqlLedgerRepository(session) if session is not None else None
        self._reader: LedgerReader | None = reader or self._repo
        self._engine = engine or MatchingEngine()
        self._policy = policy_from_settings(self._settings)

    def suggest(
        self,
        tenant_id: UUID,
        transactions: Sequence[TransactionLine],
    ) -> list[TransactionSuggestion]:
        """Suggestions for the given transactions, without side effects."""
        pools = _CandidatePools(self._reader, tenant_id)
        results = []
        for transaction in transactions:
            suggestion = self._engine.suggest(
                transaction=transaction,
                candidates=pools.for_transaction(transaction),
                policy=self._policy,
                booked_external_ids=pools.booked_external_ids,
            )
            results.append(TransactionSuggestion(transaction.transaction_id, suggestion))
        return results

    def apply_suggestions(
        self,
        tenant_id: UUID,
        rows: Sequence[ImportedTransaction],
    ) -> list[TransactionSuggestion]:
        """Cache suggestions on transaction rows (no commit)."""
        by_id = {row.id: row for row in rows}
        results = self.suggest(tenant_id, [to_transaction_line(row) for row in rows])

        for result in results:
            row = by_id[result.transaction_id]
            suggestion = result.suggestion
            if suggestion is None:
                row.clear_suggestion()
                continue
            row.suggested_kind = suggestion.kind
            row.suggested_id = suggestion.document_id
            row.suggested_confidence = suggestion.confidence.value
            row.suggested_amount = suggestion.amount
        return results

    def suggest_matches(self, tenant_id: UUID, bank_id: UUID) -> list[TransactionSuggestion]:
        """Refresh suggestions on every pending transaction of a bank."""
        with LogContext.bind(tenant_id=tenant_id):
            try:
                self._repo.get_bank(tenant_id, bank_id)
                rows = self._repo.pending_transaction_rows(tenant_id, bank_id)
                results = self.apply_suggestions(tenant_id, rows)
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info("match_suggestions_refreshed", extra={
                "bank_id": str(bank_id),
                "transaction_count": len(rows),
                "suggestion_count": sum(1 for r in results if r.suggestion is not None),
            })
            return results
