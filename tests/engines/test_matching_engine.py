"""
Tests for the Matching Engine.

Covers:
- Exact / close / rejected amounts
- Confidence tiers and the date window
- Tier ranking and first-seen tie-break
- Document collapsing (one invoice, several allocations)
- Already-imported short-circuit
- LOW suggestions hidden unless enabled
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_engines.matching import (
    ALREADY_IMPORTED,
    MatchCandidate,
    MatchConfidence,
    MatchingEngine,
    MatchPolicy,
    TransactionLine,
    collapse_documents,
    evaluate_candidate,
    rank_by_tier,
)

TX_DATE = date(2024, 3, 15)


def _tx(amount: str, external_id: str = "FIT-1", credit: bool = True) -> TransactionLine:
    return TransactionLine(
        transaction_id=uuid4(),
        external_id=external_id,
        amount=Decimal(amount),
        is_credit=credit,
        transaction_date=TX_DATE,
    )


def _candidate(amount: str, expected: date | None = TX_DATE, kind: str = "invoice", doc=None):
    return MatchCandidate(
        kind=kind,
        document_id=doc or uuid4(),
        amount=Decimal(amount),
        expected_date=expected,
    )


class TestEvaluateCandidate:
    """Scoring a single candidate."""

    def setup_method(self):
        self.policy = MatchPolicy()

    def test_exact_amount_same_day_is_high(self):
        result = evaluate_candidate(_tx("100.00"), _candidate("100.00"), self.policy)

        assert result.confidence == MatchConfidence.HIGH
        assert result.amount_difference == Decimal("0.00")
        assert result.date_difference_days == 0

    def test_exact_amount_within_five_days_is_high(self):
        result = evaluate_candidate(
            _tx("100.00"), _candidate("100.00", date(2024, 3, 20)), self.policy,
        )

        assert result.confidence == MatchConfidence.HIGH
        assert result.date_difference_days == 5

    def test_exact_amount_outside_window_is_medium(self):
        result = evaluate_candidate(
            _tx("100.00"), _candidate("100.00", date(2024, 3, 21)), self.policy,
        )

        assert result.confidence == MatchConfidence.MEDIUM
        assert result.date_difference_days == 6

    def test_date_before_transaction_counts_absolute_days(self):
        result = evaluate_candidate(
            _tx("100.00"), _candidate("100.00", date(2024, 3, 12)), self.policy,
        )

        assert result.date_difference_days == 3
        assert result.confidence == MatchConfidence.HIGH

    def test_missing_date_uses_sentinel_days(self):
        result = evaluate_candidate(_tx("100.00"), _candidate("100.00", None), self.policy)

        assert result.date_difference_days == 999
        assert result.confidence == MatchConfidence.MEDIUM

    def test_difference_under_one_cent_is_exact(self):
        result = evaluate_candidate(_tx("100.00"), _candidate("100.009"), self.policy)

        assert result.confidence == MatchConfidence.HIGH

    def test_close_amount_is_low(self):
        # 4.00 / 100.00 = 4% < 5%
        result = evaluate_candidate(_tx("100.00"), _candidate("104.00"), self.policy)

        assert result.confidence == MatchConfidence.LOW
        assert result.amount_difference == Decimal("4.00")

    def test_five_percent_difference_is_rejected(self):
        assert evaluate_candidate(_tx("100.00"), _candidate("105.00"), self.policy) is None

    def test_far_amount_is_rejected(self):
        assert evaluate_candidate(_tx("100.00"), _candidate("250.00"), self.policy) is None


class TestRanking:
    """Tier ranking and tie-break."""

    def test_rank_by_tier_orders_high_medium_low(self):
        engine = MatchingEngine()
        low = _candidate("103.00")
        medium = _candidate("100.00", date(2024, 5, 1))
        high = _candidate("100.00")

        ranked = engine.rank(_tx("100.00"), [low, medium, high], MatchPolicy())

        assert [s.document_id for s in ranked] == [
            high.document_id, medium.document_id, low.document_id,
        ]

    def test_first_seen_wins_within_tier(self):
        engine = MatchingEngine()
        first = _candidate("100.00", date(2024, 3, 16))
        second = _candidate("100.00", date(2024, 3, 15))

        best = engine.suggest(
            transaction=_tx("100.00"),
            candidates=[first, second],
            policy=MatchPolicy(),
        )

        # Both HIGH; the closer date does not win, pool order does.
        assert best.document_id == first.document_id

    def test_ranking_policy_is_replaceable(self):
        def closest_date_first(suggestions):
            return sorted(rank_by_tier(suggestions), key=lambda s: s.date_difference_days)

        engine = MatchingEngine(ranking=closest_date_first)
        first = _candidate("100.00", date(2024, 3, 18))
        second = _candidate("100.00", date(2024, 3, 15))

        best = engine.suggest(
            transaction=_tx("100.00"),
            candidates=[first, second],
            policy=MatchPolicy(),
        )

        assert best.document_id == second.document_id


class TestCollapse:
    """An invoice with several allocations is one candidate."""

    def test_collapse_keeps_first_occurrence(self):
        doc = uuid4()
        candidates = [
            _candidate("900.00", doc=doc),
            _candidate("900.00", doc=doc),
            _candidate("900.00", doc=doc),
        ]

        assert len(collapse_documents(candidates)) == 1

    def test_same_id_different_kind_is_not_collapsed(self):
        doc = uuid4()
        candidates = [
            _candidate("900.00", doc=doc, kind="invoice"),
            _candidate("900.00", doc=doc, kind="expense"),
        ]

        assert len(collapse_documents(candidates)) == 2

    def test_three_allocations_rank_once(self):
        doc = uuid4()
        ranked = MatchingEngine().rank(
            _tx("900.00"),
            [_candidate("900.00", doc=doc) for _ in range(3)],
            MatchPolicy(),
        )

        assert len(ranked) == 1


class TestSuggest:
    """Top pick, visibility and the already-imported short-circuit."""

    def setup_method(self):
        self.engine = MatchingEngine()

    def test_no_candidates_returns_none(self):
        assert self.engine.suggest(
            transaction=_tx("10.00"), candidates=[], policy=MatchPolicy(),
        ) is None

    def test_low_hidden_by_default(self):
        result = self.engine.suggest(
            transaction=_tx("100.00"),
            candidates=[_candidate("103.00")],
            policy=MatchPolicy(),
        )

        assert result is None

    def test_low_surfaced_when_enabled(self):
        result = self.engine.suggest(
            transaction=_tx("100.00"),
            candidates=[_candidate("103.00")],
            policy=MatchPolicy(surface_low_confidence=True),
        )

        assert result.confidence == MatchConfidence.LOW

    def test_already_imported_short_circuits(self):
        result = self.engine.suggest(
            transaction=_tx("100.00", external_id="FIT-9"),
            candidates=[_candidate("100.00")],
            policy=MatchPolicy(),
            booked_external_ids={"FIT-9"},
        )

        assert result.kind == ALREADY_IMPORTED
        assert result.is_already_imported
        assert result.document_id is None
        assert result.confidence == MatchConfidence.HIGH

    def test_suggest_emits_engine_trace(self, captured_logs):
        self.engine.suggest(
            transaction=_tx("100.00"),
            candidates=[_candidate("100.00")],
            policy=MatchPolicy(),
        )

        traces = [r for r in captured_logs() if r["message"] == "LEDGER_ENGINE_TRACE"]
        assert traces
        assert traces[-1]["engine_name"] == "matching"
        assert len(traces[-1]["input_fingerprint"]) == 16

    @pytest.mark.parametrize("amount", ["0.01", "1.00", "99999.99"])
    def test_exact_match_always_found(self, amount):
        result = self.engine.suggest(
            transaction=_tx(amount),
            candidates=[_candidate(amount)],
            policy=MatchPolicy(),
        )

        assert result is not None
        assert result.confidence == MatchConfidence.HIGH
