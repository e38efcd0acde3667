"""Statement and invoice parsers (bytes in, DTOs out; no DB)."""

from ledger_ingestion.adapters.base import (
    InvoiceData,
    InvoiceDataParser,
    ParsedStatement,
    ParsedStatementLine,
    StatementAccount,
    StatementParser,
)
from ledger_ingestion.adapters.ofx_adapter import OfxStatementParser, is_ofx

__all__ = [
    "InvoiceData",
    "InvoiceDataParser",
    "ParsedStatement",
    "ParsedStatementLine",
    "StatementAccount",
    "StatementParser",
    "OfxStatementParser",
    "is_ofx",
]
