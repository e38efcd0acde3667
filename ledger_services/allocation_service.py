"""
ledger_services.allocation_service -- Invoice to payee allocation.

Responsibility:
    Preview and commit the split of an invoice's gross value across
    payees.  Committing replaces the invoice's allocations and payables as
    a set.

Architecture position:
    Services -- owns the transaction boundary; delegates fee computation
    and validation to ledger_engines.payee_allocation.

Invariants enforced:
    - ``|sum(allocated) - gross| <= allocation_tolerance`` or nothing is
      persisted.
    - Re-allocation is refused while any current payable of the invoice
      has a non-reversed payment (PaymentsExistError).
    - Payables are deleted before the allocations they reference; payments
      and adjustments of replaced payables keep their rows (the foreign key
      is set to NULL).

Failure modes:
    - ValidationError / AllocationSumMismatchError / PaymentsExistError.
    - NotFoundError for an unknown invoice or payee.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_config import LedgerSettings, get_active_settings
from ledger_engines.payee_allocation import (
    AllocationPlan,
    AllocationRequestLine,
    PayeeAllocationEngine,
)
from ledger_kernel.exceptions import PaymentsExistError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models import InvoiceAllocation, Payable, PayableStatus
from ledger_services.repository import SqlLedgerRepository

logger = get_logger("services.allocation")


@dataclass(frozen=True)
class AllocationResult:
    invoice_id: UUID
    plan: AllocationPlan
    allocation_ids: tuple[UUID, ...]
    payable_ids: tuple[UUID, ...]


class AllocationService:
    """
    Allocates invoices to payees.

    Contract:
        ``preview_allocation`` never writes.  ``allocate_invoice`` commits
        on success and rolls back on any failure.
    """

    def __init__(self, session: Session, settings: LedgerSettings | None = None):
        self._session = session
        self._settings = settings or get_active_settings()
        self._repo = SqlLedgerRepository(session)
        self._engine = PayeeAllocationEngine()

    def preview_allocation(
        self,
        tenant_id: UUID,
        invoice_id: UUID,
        lines: Sequence[AllocationRequestLine],
    ) -> AllocationPlan:
        """Compute the plan for a requested split without persisting it."""
        invoice = self._repo.get_invoice(tenant_id, invoice_id)
        return self._plan(tenant_id, invoice.gross_value, lines)

    def allocate_invoice(
        self,
        tenant_id: UUID,
        invoice_id: UUID,
        lines: Sequence[AllocationRequestLine],
        actor_id: UUID,
    ) -> AllocationResult:
        """Replace the invoice's allocations and payables with a new split."""
        with LogContext.bind(tenant_id=tenant_id, actor_id=actor_id):
            try:
                invoice = self._repo.get_invoice(tenant_id, invoice_id, lock=True)
                plan = self._plan(tenant_id, invoice.gross_value, lines)

                active = self._repo.active_payment_count(invoice.id)
                if active:
                    raise PaymentsExistError(invoice.id, active)

                for payable in self._repo.payables_for_invoice(invoice.id):
                    self._repo.delete(payable)
                self._repo.flush()
                for allocation in self._repo.allocations_for_invoice(invoice.id):
                    self._repo.delete(allocation)
                self._repo.flush()

                allocations: list[InvoiceAllocation] = []
                for line in plan.lines:
                    allocation = InvoiceAllocation(
                        tenant_id=tenant_id,
                        invoice_id=invoice.id,
                        payee_id=line.payee_id,
                        line_number=line.line_number,
                        allocated_gross_value=line.allocated_gross_value,
                        fee_rate=line.fee_rate,
                        admin_fee=line.admin_fee,
                        amount_to_pay=line.amount_to_pay,
                        created_by_id=actor_id,
                    )
                    self._repo.add(allocation)
                    allocations.append(allocation)
                self._repo.flush()

                payables: list[Payable] = []
                for allocation in allocations:
                    payable = Payable(
                        tenant_id=tenant_id,
                        invoice_id=invoice.id,
                        allocation_id=allocation.id,
                        payee_id=allocation.payee_id,
                        amount_to_pay=allocation.amount_to_pay,
                        status=PayableStatus.PENDING,
                        expected_payment_date=invoice.expected_receipt_date,
                        created_by_id=actor_id,
                    )
                    self._repo.add(payable)
                    payables.append(payable)
                self._repo.flush()

                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info("invoice_allocated", extra={
                "invoice_id": str(invoice_id),
                "line_count": len(plan.lines),
                "total_allocated": str(plan.total_allocated),
                "total_admin_fee": str(plan.total_admin_fee),
            })
            return AllocationResult(
                invoice_id=invoice_id,
                plan=plan,
                allocation_ids=tuple(a.id for a in allocations),
                payable_ids=tuple(p.id for p in payables),
            )

    def _plan(
        self,
        tenant_id: UUID,
        gross_value,
        lines: Sequence[AllocationRequestLine],
    ) -> AllocationPlan:
        fee_rates = self._repo.payee_fee_rates(tenant_id, (line.payee_id for line in lines))
        return self._engine.plan(
            gross_value=gross_value,
            lines=list(lines),
            fee_rates=fee_rates,
            tolerance=self._settings.allocation_tolerance,
        )
