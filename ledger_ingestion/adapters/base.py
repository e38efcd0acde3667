"""
Parser protocols and parsed-record DTOs for statement and invoice files.

Contract:
    StatementParser.parse() turns raw statement bytes into a ParsedStatement
    with ordered lines.  InvoiceDataParser.parse() turns raw invoice bytes
    into one InvoiceData record.  Parsers never touch the database; the
    import gate hashes the same bytes and persists the result.

Architecture: ledger_ingestion/adapters.  Bytes in, DTOs out; no DB or
service imports.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Protocol, runtime_checkable

_RETENTION_EPSILON = Decimal("0.01")


@dataclass(frozen=True)
class ParsedStatementLine:
    """One statement movement.  ``amount`` is positive; direction is in is_credit."""

    external_id: str
    amount: Decimal
    is_credit: bool
    transaction_date: date
    description: str
    raw_type: str = "OTHER"
    check_number: str | None = None


@dataclass(frozen=True)
class StatementAccount:
    bank_code: str | None = None
    branch_id: str | None = None
    account_id: str | None = None
    account_type: str | None = None


@dataclass(frozen=True)
class ParsedStatement:
    """A parsed statement file."""

    lines: tuple[ParsedStatementLine, ...]
    account: StatementAccount = StatementAccount()
    currency: str = "BRL"
    start_date: date | None = None
    end_date: date | None = None
    ledger_balance: Decimal | None = None
    balance_date: date | None = None


@dataclass(frozen=True)
class InvoiceData:
    """
    Structured invoice data extracted from a source document.

    ``net_value_from_source`` is the net figure printed on the document, or
    zero when the document does not carry one.
    """

    invoice_number: str
    gross_value: Decimal
    issue_date: date | None = None
    expected_receipt_date: date | None = None
    invoice_type: str | None = None
    issuer_ref: str | None = None
    payer_ref: str | None = None
    net_value_from_source: Decimal = Decimal("0")
    total_deductions: Decimal = Decimal("0")
    iss_value: Decimal = Decimal("0")
    irrf_value: Decimal = Decimal("0")
    inss_value: Decimal = Decimal("0")
    csll_value: Decimal = Decimal("0")
    pis_value: Decimal = Decimal("0")
    cofins_value: Decimal = Decimal("0")
    is_tax_retained: bool = False

    @property
    def has_retention(self) -> bool:
        return self.total_deductions > _RETENTION_EPSILON or self.is_tax_retained

    def resolved_net_value(self) -> Decimal:
        """Net value to book.

        The document's own net value when positive; otherwise gross minus
        deductions (and the retained service tax) when a retention applies;
        otherwise the gross value.
        """
        if self.net_value_from_source > 0:
            return self.net_value_from_source
        if self.has_retention:
            retained = self.iss_value if self.is_tax_retained else Decimal("0")
            return self.gross_value - self.total_deductions - retained
        return self.gross_value


@runtime_checkable
class StatementParser(Protocol):
    """Protocol for bank statement parsers."""

    def parse(self, raw: bytes) -> ParsedStatement:
        ...


@runtime_checkable
class InvoiceDataParser(Protocol):
    """Protocol for invoice document parsers (extraction lives outside this package)."""

    def parse(self, raw: bytes) -> InvoiceData:
        ...
