"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Reconciliation failures must be rendered to the operator precisely ("the
difference of 612.40 exceeds the 500.00 ceiling", "this file was already
imported in another company").  Callers catch by type and read structured
attributes; they never parse messages.

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        service.reconcile_invoices(...)
    except ToleranceExceededError as e:
        api_response(code=e.code, difference=e.difference, ceiling=e.ceiling)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerError (base)
    |
    +-- ValidationError
    |   +-- AllocationSumMismatchError
    |   +-- AdjustmentReasonRequiredError
    |   +-- ReversalReasonRequiredError
    |   +-- AlreadyReversedError
    |   +-- InvalidTransitionError
    |   +-- PaymentsExistError
    |
    +-- ToleranceExceededError
    +-- DuplicateImportError
    +-- StaleStateError
    +-- NotFoundError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                       | When Raised
---------------------------|--------------------------------------------------
VALIDATION_FAILED          | Caller input fails an invariant
ALLOCATION_SUM_MISMATCH    | Sum of payee shares differs from gross by > 0.01
ADJUSTMENT_REASON_REQUIRED | In-tolerance difference committed without reason
REVERSAL_REASON_REQUIRED   | Reversal requested without reason
ALREADY_REVERSED           | Payment/receipt already carries reversed_at
INVALID_TRANSITION         | Transaction status does not allow the operation
PAYMENTS_EXIST             | Re-allocation blocked by live payments
TOLERANCE_EXCEEDED         | |difference| above the adjustment ceiling
DUPLICATE_IMPORT           | File hash already imported (statement/invoice)
STALE_STATE                | Concurrent mutation invalidated an assumption
NOT_FOUND                  | Entity missing or owned by another tenant

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Nothing here is retried automatically.  StaleStateError means the
   operator must look at fresh data; DuplicateImportError is final.

2. Reversal failures (missing reason, already reversed) are validation
   errors, not fatal ones: the transaction keeps its current status.

3. NotFoundError is also raised for rows owned by another tenant, so the
   existence of foreign rows is never disclosed.
"""

from decimal import Decimal
from typing import Any
from uuid import UUID


class LedgerError(Exception):
    """
    Base exception for all ledger errors.

    All subclasses have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_ERROR"


# Validation


class ValidationError(LedgerError):
    """Caller input fails an invariant."""

    code: str = "VALIDATION_FAILED"

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.field = field
        self.details = details or {}
        super().__init__(message)


class AllocationSumMismatchError(ValidationError):
    """Payee shares do not add up to the invoice gross value."""

    code: str = "ALLOCATION_SUM_MISMATCH"

    def __init__(self, invoice_gross: Decimal, allocated_total: Decimal, tolerance: Decimal):
        self.invoice_gross = invoice_gross
        self.allocated_total = allocated_total
        self.tolerance = tolerance
        super().__init__(
            f"Allocated total {allocated_total} differs from gross value "
            f"{invoice_gross} by more than {tolerance}",
            field="allocations",
        )


class AdjustmentReasonRequiredError(ValidationError):
    """A non-zero difference within tolerance was committed without a reason."""

    code: str = "ADJUSTMENT_REASON_REQUIRED"

    def __init__(self, difference: Decimal):
        self.difference = difference
        super().__init__(
            f"A reason is required to commit a difference of {difference}",
            field="adjustment_reason",
        )


class ReversalReasonRequiredError(ValidationError):
    """Reversal requested without a reason."""

    code: str = "REVERSAL_REASON_REQUIRED"

    def __init__(self, entity_type: str, entity_id: str | UUID):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"A reason is required to reverse {entity_type} {entity_id}",
            field="reason",
        )


class AlreadyReversedError(ValidationError):
    """Payment or receipt was already reversed."""

    code: str = "ALREADY_REVERSED"

    def __init__(self, entity_type: str, entity_id: str | UUID):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} is already reversed")


class InvalidTransitionError(ValidationError):
    """Imported transaction status does not allow the requested operation."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, transaction_id: str | UUID, current_status: str, operation: str):
        self.transaction_id = transaction_id
        self.current_status = current_status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} transaction {transaction_id} in status {current_status}"
        )


class PaymentsExistError(ValidationError):
    """Re-allocation would orphan payment history."""

    code: str = "PAYMENTS_EXIST"

    def __init__(self, invoice_id: str | UUID, payment_count: int):
        self.invoice_id = invoice_id
        self.payment_count = payment_count
        super().__init__(
            f"Invoice {invoice_id} has {payment_count} active payment(s); "
            "reverse them before re-allocating"
        )


# Tolerance


class ToleranceExceededError(LedgerError):
    """Difference between received and expected amount is above the ceiling."""

    code: str = "TOLERANCE_EXCEEDED"

    def __init__(self, expected: Decimal, received: Decimal, difference: Decimal, ceiling: Decimal):
        self.expected = expected
        self.received = received
        self.difference = difference
        self.ceiling = ceiling
        super().__init__(
            f"Difference {difference} between received {received} and expected "
            f"{expected} exceeds the adjustment ceiling of {ceiling}"
        )


# Import


class DuplicateImportError(LedgerError):
    """
    The file hash was already imported.

    ``same_tenant`` tells the caller whether the earlier import belongs to
    the requesting tenant ("here") or to another one ("elsewhere").
    """

    code: str = "DUPLICATE_IMPORT"

    def __init__(
        self,
        file_hash: str,
        kind: str,
        existing_id: str | UUID | None = None,
        same_tenant: bool = True,
    ):
        self.file_hash = file_hash
        self.kind = kind
        self.existing_id = existing_id
        self.same_tenant = same_tenant
        self.scope = "here" if same_tenant else "elsewhere"
        where = "in this company" if same_tenant else "in another company"
        super().__init__(f"{kind} file {file_hash[:12]} was already imported {where}")


# Concurrency


class StaleStateError(LedgerError):
    """A concurrent mutation invalidated the state the caller acted on."""

    code: str = "STALE_STATE"

    def __init__(
        self,
        entity_type: str,
        entity_id: str | UUID,
        expected: Any = None,
        actual: Any = None,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{entity_type} {entity_id} changed since it was read "
            f"(expected {expected}, found {actual})"
        )


# Lookup


class NotFoundError(LedgerError):
    """Referenced entity does not exist for this tenant."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str | UUID):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")
