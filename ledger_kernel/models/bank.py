"""
Module: ledger_kernel.models.bank
Responsibility: ORM persistence for bank accounts and payees, the two
    reference entities the reconciliation engine reads but never derives.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - A bank's current balance is NEVER stored.  Only ``initial_balance``
      is persisted; the balance calculator derives the rest on every read.
    - ``fee_rate`` is a percentage (12.5 means 12.5%) and non-negative.

Failure modes:
    - IntegrityError on duplicate (tenant_id, name) for banks and payees.

Audit relevance:
    Changing a payee's fee_rate does not rewrite history: allocations
    snapshot the rate they were computed with.
"""

from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TenantScopedBase


class Bank(TenantScopedBase):
    """
    A tenant's bank account.

    Contract:
        Statement imports, receipts, payments, expenses and revenues all
        reference a Bank.  The balance is derived (see
        ``ledger_engines.balance``).
    """

    __tablename__ = "banks"

    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_banks_tenant_name"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    agency: Mapped[str | None] = mapped_column(String(20), nullable=True)
    account_number: Mapped[str | None] = mapped_column(String(40), nullable=True)
    initial_balance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Bank(id={self.id!r}, name={self.name!r})>"


class Payee(TenantScopedBase):
    """
    Individual or entity entitled to a share of an invoice.

    Contract:
        Backs the payee directory: a read-only ``{id, fee_rate}`` lookup
        used by the payee allocation engine.
    """

    __tablename__ = "payees"

    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_payees_tenant_name"),
        CheckConstraint("fee_rate >= 0", name="ck_payees_fee_rate_non_negative"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    fee_rate: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False, default=Decimal("0"))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Payee(id={self.id!r}, name={self.name!r}, fee_rate={self.fee_rate!r})>"
