"""Ledger store models for the ledger kernel."""

from ledger_kernel.models.adjustment import Adjustment, AdjustmentType
from ledger_kernel.models.bank import Bank, Payee
from ledger_kernel.models.invoice import Invoice, InvoiceReceipt, InvoiceStatus
from ledger_kernel.models.ledger_entry import (
    Expense,
    ExpenseStatus,
    Revenue,
    RevenueSource,
)
from ledger_kernel.models.payable import (
    InvoiceAllocation,
    Payable,
    PayableStatus,
    Payment,
)
from ledger_kernel.models.statement import (
    ImportBatch,
    ImportedTransaction,
    LinkKind,
    TransactionStatus,
    TransactionType,
)

__all__ = [
    "Adjustment",
    "AdjustmentType",
    "Bank",
    "Payee",
    "Invoice",
    "InvoiceReceipt",
    "InvoiceStatus",
    "Expense",
    "ExpenseStatus",
    "Revenue",
    "RevenueSource",
    "InvoiceAllocation",
    "Payable",
    "PayableStatus",
    "Payment",
    "ImportBatch",
    "ImportedTransaction",
    "LinkKind",
    "TransactionStatus",
    "TransactionType",
]
