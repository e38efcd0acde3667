"""
Settlement status derivation.

Responsibility:
    Derive invoice and payable statuses from their settled totals.  Used
    after every commit and every reversal, so statuses always follow the
    surviving (non-reversed) rows instead of being adjusted incrementally.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Invoice: ``received`` when ``total_received >= net_value - epsilon``,
      ``partially_received`` when anything was received, else ``pending``.
    - Payable: ``paid`` when ``settled >= amount_to_pay - epsilon``,
      ``partially_paid`` when anything was settled, else ``pending``.
    - Totals are recomputed from rows, never decremented.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from ledger_kernel.domain.amounts import EPSILON, ZERO

INVOICE_PENDING = "pending"
INVOICE_PARTIALLY_RECEIVED = "partially_received"
INVOICE_RECEIVED = "received"

PAYABLE_PENDING = "pending"
PAYABLE_PARTIALLY_PAID = "partially_paid"
PAYABLE_PAID = "paid"


@dataclass(frozen=True)
class SettledAmount:
    """A receipt or payment, reduced to what settlement needs."""

    credited: Decimal
    is_reversed: bool = False


def settled_total(rows: Iterable[SettledAmount]) -> Decimal:
    """Sum of credited amounts over non-reversed rows."""
    return sum((row.credited for row in rows if not row.is_reversed), ZERO)


def invoice_status(
    net_value: Decimal,
    total_received: Decimal,
    epsilon: Decimal = EPSILON,
) -> str:
    if total_received >= net_value - epsilon:
        return INVOICE_RECEIVED
    if total_received > ZERO:
        return INVOICE_PARTIALLY_RECEIVED
    return INVOICE_PENDING


def payable_status(
    amount_to_pay: Decimal,
    settled: Decimal,
    epsilon: Decimal = EPSILON,
) -> str:
    if settled >= amount_to_pay - epsilon:
        return PAYABLE_PAID
    if settled > ZERO:
        return PAYABLE_PARTIALLY_PAID
    return PAYABLE_PENDING
