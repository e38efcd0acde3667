"""
ledger_services.balance_service -- Bank balance read model.

Balances are never stored.  Each call reads the bank's rows through a
``LedgerReader`` and hands them to the pure BalanceCalculator, so the
figure always reflects the current ledger, reversals included.
"""

from __future__ import annotations

from uuid import UUID

from ledger_engines.balance import BalanceCalculator, BankBalance
from ledger_kernel.logging_config import get_logger
from ledger_services.repository import LedgerReader

logger = get_logger("services.balance")


class BalanceService:
    """Read-only balance queries."""

    def __init__(self, reader: LedgerReader, calculator: BalanceCalculator | None = None):
        self._reader = reader
        self._calculator = calculator or BalanceCalculator()

    def bank_balance(self, tenant_id: UUID, bank_id: UUID) -> BankBalance:
        inputs = self._reader.balance_inputs(tenant_id, bank_id)
        return self._calculator.compute(inputs=inputs)

    def tenant_balances(self, tenant_id: UUID) -> dict[UUID, BankBalance]:
        balances = {
            bank_id: self.bank_balance(tenant_id, bank_id)
            for bank_id in self._reader.bank_ids(tenant_id)
        }
        logger.debug("tenant_balances_computed", extra={
            "tenant_id": str(tenant_id),
            "bank_count": len(balances),
        })
        return balances
