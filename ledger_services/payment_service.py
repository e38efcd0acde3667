"""
ledger_services.payment_service -- Manual payments against payables.

Responsibility:
    Register a payment to a payee outside of statement reconciliation and
    reverse a payment with an audited reason.

Architecture position:
    Services -- owns the transaction boundary; payable status derivation
    is shared with the reconciliation service.

Invariants enforced:
    - Payment amounts are positive and never exceed the remaining balance
      by more than the amount epsilon.
    - Payments are never deleted.  Reversal stamps reversed_at/by/reason
      and books a ``payment_reversal`` revenue, which balances exclude.
    - A payment created by statement reconciliation is undone by reversing
      the reconciliation, not here.

Failure modes:
    - ValidationError: non-positive or excessive amount, cancelled payable,
      payment tied to a bank transaction.
    - ReversalReasonRequiredError / AlreadyReversedError.
    - NotFoundError: unknown payable, payment or bank.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_config import LedgerSettings, get_active_settings
from ledger_kernel.domain.amounts import ZERO, to_amount
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import (
    AlreadyReversedError,
    ReversalReasonRequiredError,
    ValidationError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models import PayableStatus, Payment, Revenue, RevenueSource
from ledger_services.reconciliation_service import payable_settled, refresh_payable
from ledger_services.repository import SqlLedgerRepository

logger = get_logger("services.payment")


@dataclass(frozen=True)
class PaymentOutcome:
    payment_id: UUID
    payable_id: UUID | None
    payable_status: str | None
    remaining: Decimal | None


class PaymentService:
    """
    Registers and reverses payable payments.

    Contract:
        Each public method commits on success and rolls back on failure.
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

    def register_payment(
        self,
        tenant_id: UUID,
        payable_id: UUID,
        bank_id: UUID,
        amount: Decimal,
        payment_date: date,
        actor_id: UUID,
        notes: str | None = None,
    ) -> PaymentOutcome:
        with LogContext.bind(tenant_id=tenant_id, actor_id=actor_id):
            try:
                amount = to_amount(amount)
                if amount <= ZERO:
                    raise ValidationError("Payment amount must be positive", field="amount")

                payable = self._repo.get_payable(tenant_id, payable_id, lock=True)
                if payable.status == PayableStatus.CANCELLED:
                    raise ValidationError(f"Payable {payable_id} is cancelled", field="payable_id")
                self._repo.get_bank(tenant_id, bank_id)

                epsilon = self._settings.amount_epsilon
                remaining = payable.amount_to_pay - payable_settled(self._repo, payable)
                if amount > remaining + epsilon:
                    raise ValidationError(
                        f"Payment of {amount} exceeds the remaining balance of {remaining}",
                        field="amount",
                        details={"remaining": str(remaining)},
                    )

                payment = Payment(
                    tenant_id=tenant_id,
                    payable_id=payable.id,
                    bank_id=bank_id,
                    amount=amount,
                    adjustment_amount=ZERO,
                    payment_date=payment_date,
                    notes=notes,
                    created_by_id=actor_id,
                )
                self._repo.add(payment)
                self._repo.flush()
                refresh_payable(self._repo, payable, self._clock.now(), epsilon)
                payable.updated_by_id = actor_id
                remaining_after = payable.amount_to_pay - payable_settled(self._repo, payable)
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info("payment_registered", extra={
                "payment_id": str(payment.id),
                "payable_id": str(payable_id),
                "amount": str(amount),
                "payable_status": payable.status,
            })
            return PaymentOutcome(
                payment_id=payment.id,
                payable_id=payable.id,
                payable_status=PayableStatus(payable.status).value,
                remaining=remaining_after,
            )

    def reverse_payment(
        self,
        tenant_id: UUID,
        payment_id: UUID,
        reason: str,
        actor_id: UUID,
    ) -> PaymentOutcome:
        with LogContext.bind(tenant_id=tenant_id, actor_id=actor_id):
            try:
                if not reason or not reason.strip():
                    raise ReversalReasonRequiredError("Payment", payment_id)
                reason = reason.strip()

                payment = self._repo.get_payment(tenant_id, payment_id, lock=True)
                if payment.is_reversed:
                    raise AlreadyReversedError("Payment", payment_id)
                if payment.imported_transaction_id is not None:
                    raise ValidationError(
                        f"Payment {payment_id} came from bank transaction "
                        f"{payment.imported_transaction_id}; reverse that reconciliation instead",
                        field="payment_id",
                    )

                now = self._clock.now()
                payment.reversed_at = now
                payment.reversed_by_id = actor_id
                payment.reversal_reason = reason
                payment.updated_by_id = actor_id

                self._repo.add(Revenue(
                    tenant_id=tenant_id,
                    bank_id=payment.bank_id,
                    amount=payment.amount,
                    description=f"Payment reversal {payment.id}",
                    revenue_date=self._clock.today(),
                    source=RevenueSource.PAYMENT_REVERSAL,
                    notes=reason,
                    created_by_id=actor_id,
                ))
                self._repo.flush()

                payable = None
                remaining = None
                if payment.payable_id is not None:
                    payable = self._repo.get_payable(tenant_id, payment.payable_id, lock=True)
                    refresh_payable(self._repo, payable, now, self._settings.amount_epsilon)
                    payable.updated_by_id = actor_id
                    remaining = payable.amount_to_pay - payable_settled(self._repo, payable)
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info("payment_reversed", extra={
                "payment_id": str(payment_id),
                "amount": str(payment.amount),
                "reason": reason,
            })
            return PaymentOutcome(
                payment_id=payment.id,
                payable_id=payment.payable_id,
                payable_status=(
                    PayableStatus(payable.status).value if payable else None
                ),
                remaining=remaining,
            )
