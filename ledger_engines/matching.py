"""
ledger_engines.matching -- Bank transaction matching engine.

Responsibility:
    Score open ledger documents (expenses for debits, invoices for credits)
    against one imported bank transaction and pick the single best
    suggestion, with a confidence tier.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ledger_kernel.domain and ledger_engines.tracer.

Invariants enforced:
    - Identical inputs produce identical outputs; no clock access.
    - A candidate is considered only when its amount is an exact match
      (``|diff| < amount_epsilon``) or a close match
      (``|diff| / tx_amount < close_match_ratio``).
    - Candidates repeating the same document are collapsed to their first
      occurrence, so an invoice listed once per allocation is one unit.
    - A transaction already booked as an expense or revenue short-circuits
      to a synthetic ``already_imported`` suggestion and is never matched
      further.

Failure modes:
    - None raised.  An empty pool or no qualifying candidate returns None.

Audit relevance:
    The suggestion (kind, id, confidence, amount seen) is persisted on the
    transaction and re-validated at acceptance time.  Invocations are
    traced via ``@traced_engine``.
"""

from __future__ import annotations

from collections.abc import Callable, Collection, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.amounts import ZERO
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.matching")

ALREADY_IMPORTED = "already_imported"


class MatchConfidence(str, Enum):
    """Confidence tier of a suggestion."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Lower is better."""
        return _TIER_RANK[self]


_TIER_RANK = {
    MatchConfidence.HIGH: 0,
    MatchConfidence.MEDIUM: 1,
    MatchConfidence.LOW: 2,
}


@dataclass(frozen=True)
class MatchPolicy:
    """
    Thresholds for matching.

    Immutable; built by the service from ``LedgerSettings``.
    """

    amount_epsilon: Decimal = Decimal("0.01")
    close_match_ratio: Decimal = Decimal("0.05")
    high_confidence_days: int = 5
    missing_date_days: int = 999
    surface_low_confidence: bool = False


@dataclass(frozen=True)
class TransactionLine:
    """The bank movement being matched."""

    transaction_id: UUID
    external_id: str
    amount: Decimal
    is_credit: bool
    transaction_date: date


@dataclass(frozen=True)
class MatchCandidate:
    """
    An open document that could explain a transaction.

    ``amount`` is what is still open: an expense's amount, or an invoice's
    pending balance.  ``expected_date`` is the due date or expected
    receipt date.
    """

    kind: str
    document_id: UUID
    amount: Decimal
    expected_date: date | None = None
    description: str = ""


@dataclass(frozen=True)
class MatchSuggestion:
    """A scored candidate."""

    kind: str
    document_id: UUID | None
    confidence: MatchConfidence
    amount: Decimal | None
    amount_difference: Decimal
    date_difference_days: int
    description: str = ""

    @property
    def is_already_imported(self) -> bool:
        return self.kind == ALREADY_IMPORTED


def evaluate_candidate(
    transaction: TransactionLine,
    candidate: MatchCandidate,
    policy: MatchPolicy,
) -> MatchSuggestion | None:
    """Score one candidate, or None when its amount is neither exact nor close."""
    amount_diff = abs(candidate.amount - transaction.amount)
    exact = amount_diff < policy.amount_epsilon
    close = (
        transaction.amount > ZERO
        and amount_diff / transaction.amount < policy.close_match_ratio
    )
    if not (exact or close):
        return None

    if candidate.expected_date is None:
        date_diff = policy.missing_date_days
    else:
        date_diff = abs((candidate.expected_date - transaction.transaction_date).days)

    if exact and date_diff <= policy.high_confidence_days:
        confidence = MatchConfidence.HIGH
    elif exact:
        confidence = MatchConfidence.MEDIUM
    else:
        confidence = MatchConfidence.LOW

    return MatchSuggestion(
        kind=candidate.kind,
        document_id=candidate.document_id,
        confidence=confidence,
        amount=candidate.amount,
        amount_difference=amount_diff,
        date_difference_days=date_diff,
        description=candidate.description,
    )


def rank_by_tier(suggestions: Sequence[MatchSuggestion]) -> list[MatchSuggestion]:
    """Default ranking: confidence tier, first-seen wins inside a tier.

    ``sorted`` is stable, so candidate order breaks ties.
    """
    return sorted(suggestions, key=lambda s: s.confidence.rank)


def collapse_documents(candidates: Sequence[MatchCandidate]) -> list[MatchCandidate]:
    """Keep the first occurrence of each (kind, document_id)."""
    seen: set[tuple[str, UUID]] = set()
    unique: list[MatchCandidate] = []
    for candidate in candidates:
        key = (candidate.kind, candidate.document_id)
        if key in seen:
            continue
        seen.add(key)
        unique.append(candidate)
    return unique


RankingPolicy = Callable[[Sequence[MatchSuggestion]], list[MatchSuggestion]]


class MatchingEngine:
    """
    Suggests the best open document for a bank transaction.

    Contract:
        Pure functions -- no I/O, no database access.  Callers supply the
        candidate pool in a stable order (it decides tie-breaks).
    Guarantees:
        - ``rank`` returns every qualifying candidate, best first.
        - ``suggest`` returns at most one suggestion and never a LOW one
          unless ``policy.surface_low_confidence`` is set.
    Non-goals:
        - Does not persist suggestions or change transaction status.
    """

    def __init__(self, ranking: RankingPolicy = rank_by_tier) -> None:
        self._ranking = ranking

    def rank(
        self,
        transaction: TransactionLine,
        candidates: Sequence[MatchCandidate],
        policy: MatchPolicy,
    ) -> list[MatchSuggestion]:
        """Score and rank every candidate; LOW included."""
        scored = []
        for candidate in collapse_documents(candidates):
            suggestion = evaluate_candidate(transaction, candidate, policy)
            if suggestion is not None:
                scored.append(suggestion)
        return self._ranking(scored)

    @traced_engine(
        "matching", "1.0",
        fingerprint_fields=("transaction", "candidates", "booked_external_ids"),
    )
    def suggest(
        self,
        transaction: TransactionLine,
        candidates: Sequence[MatchCandidate],
        policy: MatchPolicy,
        booked_external_ids: Collection[str] = frozenset(),
    ) -> MatchSuggestion | None:
        """
        Pick the single suggestion for a transaction.

        Args:
            transaction: The bank movement.
            candidates: Open documents of the right direction, in pool order.
            policy: Matching thresholds.
            booked_external_ids: External ids already carried by the tenant's
                expenses and revenues.

        Returns:
            The top suggestion, a synthetic already-imported suggestion, or
            None.
        """
        if transaction.external_id in booked_external_ids:
            logger.info("match_already_imported", extra={
                "transaction_id": str(transaction.transaction_id),
                "external_id": transaction.external_id,
            })
            return MatchSuggestion(
                kind=ALREADY_IMPORTED,
                document_id=None,
                confidence=MatchConfidence.HIGH,
                amount=None,
                amount_difference=ZERO,
                date_difference_days=0,
                description="Transaction already imported",
            )

        ranked = self.rank(transaction, candidates, policy)
        if not policy.surface_low_confidence:
            ranked = [s for s in ranked if s.confidence != MatchConfidence.LOW]

        best = ranked[0] if ranked else None
        logger.info("match_search_completed", extra={
            "transaction_id": str(transaction.transaction_id),
            "candidates_evaluated": len(candidates),
            "suggestions_found": len(ranked),
            "kind": best.kind if best else None,
            "document_id": str(best.document_id) if best else None,
            "confidence": best.confidence.value if best else None,
        })
        return best
