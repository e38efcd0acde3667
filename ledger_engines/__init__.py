"""
Module: ledger_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the import surface for ledger_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ledger_kernel.domain, ledger_kernel.exceptions and
    ledger_kernel.logging_config.  MUST NOT import ledger_services.

Invariants enforced:
    - Engines never read the clock; dates are passed in.
    - Decimal-only arithmetic; floats are rejected upstream.
    - Identical inputs always produce identical outputs.

Audit relevance:
    Engine entry points are wrapped with ``@traced_engine`` and emit
    LEDGER_ENGINE_TRACE records.
"""

from ledger_engines.balance import (
    BalanceCalculator,
    BalanceInputs,
    BankBalance,
    CashRow,
    ExpenseRow,
    RevenueRow,
)
from ledger_engines.credit_coverage import (
    CoverageLine,
    CoveragePlan,
    CoveragePolicy,
    CoverageTarget,
    CreditCoverageEngine,
    InvoiceSelection,
    collapse_selections,
    spread_cash,
)
from ledger_engines.matching import (
    ALREADY_IMPORTED,
    MatchCandidate,
    MatchConfidence,
    MatchingEngine,
    MatchPolicy,
    MatchSuggestion,
    TransactionLine,
    rank_by_tier,
)
from ledger_engines.payee_allocation import (
    AllocationPlan,
    AllocationRequestLine,
    PayeeAllocationEngine,
    PlannedAllocation,
    compute_admin_fee,
)
from ledger_engines.settlement import (
    SettledAmount,
    invoice_status,
    payable_status,
    settled_total,
)
from ledger_engines.tracer import traced_engine

__all__ = [
    "BalanceCalculator",
    "BalanceInputs",
    "BankBalance",
    "CashRow",
    "ExpenseRow",
    "RevenueRow",
    "CoverageLine",
    "CoveragePlan",
    "CoveragePolicy",
    "CoverageTarget",
    "CreditCoverageEngine",
    "InvoiceSelection",
    "collapse_selections",
    "spread_cash",
    "ALREADY_IMPORTED",
    "MatchCandidate",
    "MatchConfidence",
    "MatchingEngine",
    "MatchPolicy",
    "MatchSuggestion",
    "TransactionLine",
    "rank_by_tier",
    "AllocationPlan",
    "AllocationRequestLine",
    "PayeeAllocationEngine",
    "PlannedAllocation",
    "compute_admin_fee",
    "SettledAmount",
    "invoice_status",
    "payable_status",
    "settled_total",
    "traced_engine",
]
