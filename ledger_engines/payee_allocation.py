"""
Module: ledger_engines.payee_allocation
Responsibility:
    Split an invoice's gross value across payees and compute, per line,
    the administrative fee and the amount owed to the payee.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Payee fee rates arrive as an explicit mapping; the engine never reads
    the payee directory itself.

Invariants enforced:
    - ``admin_fee = allocated_gross_value * fee_rate / 100`` rounded
      ROUND_HALF_UP to two places.
    - ``amount_to_pay = allocated_gross_value - admin_fee``.
    - ``|sum(allocated_gross_value) - gross_value| <= tolerance``; otherwise
      no plan is produced.

Failure modes:
    - ValidationError: no lines, a line without payee, a non-positive value.
    - NotFoundError: a payee id missing from the directory.
    - AllocationSumMismatchError: shares do not add up to the gross value.

Audit relevance:
    Each planned line snapshots the fee rate it was computed with.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.amounts import ZERO
from ledger_kernel.exceptions import (
    AllocationSumMismatchError,
    NotFoundError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.payee_allocation")

_CENTS = Decimal("0.01")
_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class AllocationRequestLine:
    """One requested payee share."""

    payee_id: UUID | None
    allocated_gross_value: Decimal


@dataclass(frozen=True)
class PlannedAllocation:
    """
    One computed payee share.

    Guarantees:
        - ``admin_fee + amount_to_pay == allocated_gross_value``.
    """

    line_number: int
    payee_id: UUID
    allocated_gross_value: Decimal
    fee_rate: Decimal
    admin_fee: Decimal
    amount_to_pay: Decimal


@dataclass(frozen=True)
class AllocationPlan:
    """The full, validated split of one invoice."""

    gross_value: Decimal
    lines: tuple[PlannedAllocation, ...]

    @property
    def total_allocated(self) -> Decimal:
        return sum((line.allocated_gross_value for line in self.lines), ZERO)

    @property
    def total_admin_fee(self) -> Decimal:
        return sum((line.admin_fee for line in self.lines), ZERO)

    @property
    def total_to_pay(self) -> Decimal:
        return sum((line.amount_to_pay for line in self.lines), ZERO)


def compute_admin_fee(allocated_gross_value: Decimal, fee_rate: Decimal) -> Decimal:
    """Fee for one share; fee_rate is a percentage."""
    return (allocated_gross_value * fee_rate / _HUNDRED).quantize(
        _CENTS, rounding=ROUND_HALF_UP,
    )


class PayeeAllocationEngine:
    """
    Computes payee allocation plans.

    Contract:
        Pure -- no I/O.  Either returns a complete plan or raises; a partial
        plan is never returned.
    """

    @traced_engine(
        "payee_allocation", "1.0",
        fingerprint_fields=("gross_value", "lines", "fee_rates"),
    )
    def plan(
        self,
        gross_value: Decimal,
        lines: Sequence[AllocationRequestLine],
        fee_rates: Mapping[UUID, Decimal],
        tolerance: Decimal = Decimal("0.01"),
    ) -> AllocationPlan:
        """
        Validate the requested split and compute fees.

        Args:
            gross_value: Invoice gross value.
            lines: Requested shares, in display order.
            fee_rates: Payee directory lookup ``{payee_id: fee_rate}``.
            tolerance: Maximum accepted gap between the sum and gross.

        Raises:
            ValidationError, NotFoundError, AllocationSumMismatchError.
        """
        if not lines:
            raise ValidationError("At least one allocation line is required", field="lines")

        planned: list[PlannedAllocation] = []
        for number, line in enumerate(lines, start=1):
            if line.payee_id is None:
                raise ValidationError(
                    f"Allocation line {number} has no payee",
                    field="payee_id",
                    details={"line_number": number},
                )
            if line.allocated_gross_value is None or line.allocated_gross_value <= ZERO:
                raise ValidationError(
                    f"Allocation line {number} must have a positive value",
                    field="allocated_gross_value",
                    details={"line_number": number},
                )
            fee_rate = fee_rates.get(line.payee_id)
            if fee_rate is None:
                raise NotFoundError("Payee", line.payee_id)

            admin_fee = compute_admin_fee(line.allocated_gross_value, fee_rate)
            planned.append(PlannedAllocation(
                line_number=number,
                payee_id=line.payee_id,
                allocated_gross_value=line.allocated_gross_value,
                fee_rate=fee_rate,
                admin_fee=admin_fee,
                amount_to_pay=line.allocated_gross_value - admin_fee,
            ))

        plan = AllocationPlan(gross_value=gross_value, lines=tuple(planned))
        if abs(plan.total_allocated - gross_value) > tolerance:
            logger.warning("allocation_sum_mismatch", extra={
                "gross_value": str(gross_value),
                "allocated_total": str(plan.total_allocated),
            })
            raise AllocationSumMismatchError(gross_value, plan.total_allocated, tolerance)

        logger.info("allocation_planned", extra={
            "gross_value": str(gross_value),
            "line_count": len(planned),
            "total_admin_fee": str(plan.total_admin_fee),
            "total_to_pay": str(plan.total_to_pay),
        })
        return plan
