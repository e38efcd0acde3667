"""
Ledger Kernel

Persistence and shared infrastructure for the reconciliation and
allocation engine:
- Tenant-scoped ledger store (invoices, payables, receipts, payments,
  expenses, revenues, adjustments, statement imports)
- Typed exception hierarchy
- Structured JSON logging
- Injectable clock and fixed-point amount helpers
"""

__version__ = "0.1.0"
