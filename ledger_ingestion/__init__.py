"""
ledger_ingestion -- parsers feeding the import gate.

Architecture position:
    Ingestion -- above ledger_kernel (domain helpers and logging only),
    below ledger_services.  Parsers are pure: they never open files or
    sessions; the import service hands them the bytes it hashed.
"""

from ledger_ingestion.adapters import (
    InvoiceData,
    InvoiceDataParser,
    OfxStatementParser,
    ParsedStatement,
    ParsedStatementLine,
    StatementAccount,
    StatementParser,
    is_ofx,
)

__all__ = [
    "InvoiceData",
    "InvoiceDataParser",
    "OfxStatementParser",
    "ParsedStatement",
    "ParsedStatementLine",
    "StatementAccount",
    "StatementParser",
    "is_ofx",
]
