"""
Module: ledger_engines.credit_coverage
Responsibility:
    Decide how one bank movement settles one or more open obligations
    (invoices for credits, a payable for debits): how much each is
    credited, how the cash is spread over the resulting receipts or
    payments, and whether a bounded adjustment is needed.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Selections are collapsed to the first entry per target, so an invoice
      picked once per allocation is claimed once.
    - Each target is claimed at its full pending balance.
    - ``difference = transaction_amount - total_selected``.
      ``|difference| < epsilon``: no adjustment.
      ``|difference| <= ceiling``: adjustment, only with a non-blank reason.
      ``|difference| > ceiling``: refused.
    - Cash conservation: the cash of all lines sums to the transaction
      amount exactly.  Cash is spread in selection order, each line capped
      at its share, any excess on the last line.

Failure modes:
    - ValidationError: empty selection, or a target with nothing pending.
    - AdjustmentReasonRequiredError: in-tolerance difference without reason.
    - ToleranceExceededError: difference above the ceiling.

Audit relevance:
    A plan with ``has_adjustment`` becomes exactly one Adjustment row with
    ``expected_amount = total_selected`` and
    ``received_amount = transaction_amount``.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.amounts import ZERO
from ledger_kernel.exceptions import (
    AdjustmentReasonRequiredError,
    ToleranceExceededError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.credit_coverage")


@dataclass(frozen=True)
class InvoiceSelection:
    """
    An invoice allocation picked by the operator.

    ``pending_balance`` is what the caller saw; the service compares it
    with a fresh read before committing.
    """

    invoice_id: UUID
    allocation_id: UUID | None = None
    pending_balance: Decimal | None = None


@dataclass(frozen=True)
class CoverageTarget:
    """An obligation to settle, with its current pending balance."""

    target_id: UUID
    pending_balance: Decimal


@dataclass(frozen=True)
class CoveragePolicy:
    epsilon: Decimal = Decimal("0.01")
    ceiling: Decimal = Decimal("500.00")


@dataclass(frozen=True)
class CoverageLine:
    """
    Settlement of one target.

    ``share`` is what the target is credited, ``cash`` is the money that
    moved for it.
    """

    target_id: UUID
    share: Decimal
    cash: Decimal

    @property
    def adjustment_amount(self) -> Decimal:
        return self.cash - self.share


@dataclass(frozen=True)
class CoveragePlan:
    """
    The complete settlement of one bank movement.

    Guarantees:
        - ``sum(line.cash) == transaction_amount``.
        - ``sum(line.share) == total_selected``.
        - ``has_adjustment`` implies a non-blank ``reason``.
    """

    transaction_amount: Decimal
    total_selected: Decimal
    difference: Decimal
    has_adjustment: bool
    lines: tuple[CoverageLine, ...]
    reason: str | None = None

    @property
    def target_count(self) -> int:
        return len(self.lines)


def collapse_selections(selections: Sequence[InvoiceSelection]) -> list[InvoiceSelection]:
    """First selection per invoice wins; order is preserved."""
    seen: set[UUID] = set()
    unique: list[InvoiceSelection] = []
    for selection in selections:
        if selection.invoice_id in seen:
            continue
        seen.add(selection.invoice_id)
        unique.append(selection)
    return unique


def spread_cash(amount: Decimal, shares: Sequence[Decimal]) -> list[Decimal]:
    """Spread ``amount`` over shares in order; excess lands on the last."""
    remaining = amount
    cash: list[Decimal] = []
    last = len(shares) - 1
    for index, share in enumerate(shares):
        portion = remaining if index == last else min(share, remaining)
        cash.append(portion)
        remaining -= portion
    return cash


class CreditCoverageEngine:
    """
    Plans the settlement of obligations by one bank movement.

    Contract:
        Pure -- no I/O.  Returns a complete plan or raises.
    """

    @traced_engine(
        "credit_coverage", "1.0",
        fingerprint_fields=("transaction_amount", "targets", "policy"),
    )
    def cover(
        self,
        transaction_amount: Decimal,
        targets: Sequence[CoverageTarget],
        policy: CoveragePolicy,
        reason: str | None = None,
    ) -> CoveragePlan:
        """
        Plan a settlement.

        Args:
            transaction_amount: Positive amount of the bank movement.
            targets: Obligations in selection order, already collapsed.
            policy: Epsilon and adjustment ceiling.
            reason: Operator's justification for a difference.

        Raises:
            ValidationError, AdjustmentReasonRequiredError,
            ToleranceExceededError.
        """
        if not targets:
            raise ValidationError("Select at least one item to settle", field="selections")
        for target in targets:
            if target.pending_balance <= ZERO:
                raise ValidationError(
                    f"{target.target_id} has nothing pending",
                    field="selections",
                    details={"target_id": str(target.target_id)},
                )

        total_selected = sum((t.pending_balance for t in targets), ZERO)
        difference = transaction_amount - total_selected
        magnitude = abs(difference)

        if magnitude > policy.ceiling:
            logger.warning("coverage_tolerance_exceeded", extra={
                "transaction_amount": str(transaction_amount),
                "total_selected": str(total_selected),
                "difference": str(difference),
                "ceiling": str(policy.ceiling),
            })
            raise ToleranceExceededError(
                expected=total_selected,
                received=transaction_amount,
                difference=difference,
                ceiling=policy.ceiling,
            )

        has_adjustment = magnitude >= policy.epsilon
        clean_reason = reason.strip() if reason else None
        if has_adjustment and not clean_reason:
            raise AdjustmentReasonRequiredError(difference)

        shares = [t.pending_balance for t in targets]
        lines = tuple(
            CoverageLine(target_id=t.target_id, share=share, cash=cash)
            for t, share, cash in zip(targets, shares, spread_cash(transaction_amount, shares))
        )

        logger.info("coverage_planned", extra={
            "transaction_amount": str(transaction_amount),
            "total_selected": str(total_selected),
            "difference": str(difference),
            "has_adjustment": has_adjustment,
            "target_count": len(lines),
        })
        return CoveragePlan(
            transaction_amount=transaction_amount,
            total_selected=total_selected,
            difference=difference,
            has_adjustment=has_adjustment,
            lines=lines,
            reason=clean_reason if has_adjustment else None,
        )
