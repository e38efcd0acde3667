"""
ledger_services -- Package init and public API.

Responsibility:
    Stateful orchestration services that compose the pure engines
    (ledger_engines/) with database sessions and the clock.  This is the
    only layer that holds sessions and decides transaction boundaries.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

    Dependency direction (enforced by tests/architecture/test_layer_boundaries.py):
        ledger_services/ -> ledger_engines/  (allowed)
        ledger_services/ -> ledger_kernel/   (allowed)
        ledger_engines/  -> ledger_services/ (FORBIDDEN)
        ledger_kernel/   -> ledger_services/ (FORBIDDEN)

Failure modes:
    - ImportError at startup if a service's dependency graph is broken.
"""

from ledger_kernel.logging_config import get_logger

logger = get_logger("services")

from ledger_services.allocation_service import AllocationResult, AllocationService
from ledger_services.balance_service import BalanceService
from ledger_services.import_service import (
    BulkImportItem,
    ImportService,
    InvoiceImportOutcome,
    InvoiceImportResult,
    StatementImportResult,
)
from ledger_services.matching_service import MatchingService, TransactionSuggestion
from ledger_services.payment_service import PaymentOutcome, PaymentService
from ledger_services.reconciliation_service import (
    ReconciliationOutcome,
    ReconciliationService,
)
from ledger_services.repository import LedgerReader, SqlLedgerRepository

__all__ = [
    "AllocationResult",
    "AllocationService",
    "BalanceService",
    "BulkImportItem",
    "ImportService",
    "InvoiceImportOutcome",
    "InvoiceImportResult",
    "LedgerReader",
    "MatchingService",
    "PaymentOutcome",
    "PaymentService",
    "ReconciliationOutcome",
    "ReconciliationService",
    "SqlLedgerRepository",
    "StatementImportResult",
    "TransactionSuggestion",
]
