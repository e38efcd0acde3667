"""
ledger_engines.balance -- Derived bank balance.

Responsibility:
    Compute a bank account's balance from its initial balance and the
    ledger rows that reference it.  The balance is never stored.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The balance service
    loads the rows; this module only adds them up.

Invariants enforced:
    - ``balance = initial_balance + revenues + receipts
      + reversed_payment_returns - payment_outflows - paid_expenses``.
    - Every payment ever made is an outflow; a reversed payment also
      contributes its return, so a reversal restores the balance exactly.
    - Revenues created by a payment reversal are bookkeeping mirrors and
      are excluded (the return is already counted above).
    - Reversed receipts and unpaid expenses contribute nothing.

Audit relevance:
    ``BankBalance`` exposes each component so a reviewer can reconcile the
    figure against the statement line by line.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.amounts import ZERO

PAYMENT_REVERSAL_SOURCE = "payment_reversal"


@dataclass(frozen=True)
class RevenueRow:
    amount: Decimal
    source: str = "manual"


@dataclass(frozen=True)
class CashRow:
    """A receipt or payment."""

    amount: Decimal
    is_reversed: bool = False


@dataclass(frozen=True)
class ExpenseRow:
    amount: Decimal
    is_paid: bool = True


@dataclass(frozen=True)
class BalanceInputs:
    """Everything that moves one bank's balance."""

    bank_id: UUID
    initial_balance: Decimal
    revenues: Sequence[RevenueRow] = ()
    receipts: Sequence[CashRow] = ()
    payments: Sequence[CashRow] = ()
    expenses: Sequence[ExpenseRow] = ()


@dataclass(frozen=True)
class BankBalance:
    """
    A bank balance with its breakdown.

    Guarantees:
        - ``balance`` equals the signed sum of the components.
    """

    bank_id: UUID
    initial_balance: Decimal
    revenue_total: Decimal
    receipt_total: Decimal
    reversed_payment_returns: Decimal
    payment_outflows: Decimal
    paid_expense_total: Decimal

    @property
    def money_in(self) -> Decimal:
        return self.revenue_total + self.receipt_total + self.reversed_payment_returns

    @property
    def money_out(self) -> Decimal:
        return self.payment_outflows + self.paid_expense_total

    @property
    def balance(self) -> Decimal:
        return self.initial_balance + self.money_in - self.money_out


class BalanceCalculator:
    """Pure balance computation."""

    @traced_engine("balance", "1.0", fingerprint_fields=("inputs",))
    def compute(self, inputs: BalanceInputs) -> BankBalance:
        return BankBalance(
            bank_id=inputs.bank_id,
            initial_balance=inputs.initial_balance,
            revenue_total=sum(
                (r.amount for r in inputs.revenues if r.source != PAYMENT_REVERSAL_SOURCE),
                ZERO,
            ),
            receipt_total=sum(
                (r.amount for r in inputs.receipts if not r.is_reversed), ZERO,
            ),
            reversed_payment_returns=sum(
                (p.amount for p in inputs.payments if p.is_reversed), ZERO,
            ),
            payment_outflows=sum((p.amount for p in inputs.payments), ZERO),
            paid_expense_total=sum(
                (e.amount for e in inputs.expenses if e.is_paid), ZERO,
            ),
        )
