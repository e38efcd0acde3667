"""
OFX statement adapter.

Reads SGML (OFX 1.x) and XML (OFX 2.x) bank statements as exported by
Brazilian banks.  Tags may be left unclosed (``<TAG>value``) or closed
(``<TAG>value</TAG>``); STMTTRN blocks likewise.  TRNAMT accepts a comma
decimal separator; its sign gives the direction and the stored amount is
absolute.  Lines without FITID or TRNAMT are skipped.  Lines are returned
newest first.
"""

from __future__ import annotations

import re
from datetime import date
from decimal import Decimal, InvalidOperation

from ledger_ingestion.adapters.base import (
    ParsedStatement,
    ParsedStatementLine,
    StatementAccount,
)
from ledger_kernel.domain.amounts import to_amount
from ledger_kernel.logging_config import get_logger

logger = get_logger("ingestion.ofx")

DEFAULT_DESCRIPTION = "No description"
DEFAULT_CURRENCY = "BRL"

_TRANSACTION_BLOCK = re.compile(
    r"<STMTTRN>([\s\S]*?)</STMTTRN>"
    r"|<STMTTRN>([\s\S]*?)(?=<STMTTRN>|</BANKTRANLIST>|</STMTTRNRS>)",
    re.IGNORECASE,
)
_ACCOUNT_BLOCKS = (
    re.compile(
        r"<BANKACCTFROM>([\s\S]*?)</BANKACCTFROM>|<BANKACCTFROM>([\s\S]*?)(?=<BANKTRANLIST>)",
        re.IGNORECASE,
    ),
    re.compile(
        r"<CCACCTFROM>([\s\S]*?)</CCACCTFROM>|<CCACCTFROM>([\s\S]*?)(?=<BANKTRANLIST>)",
        re.IGNORECASE,
    ),
)
_TIMEZONE = re.compile(r"\[.*\]")


def extract_tag(content: str, tag: str) -> str | None:
    """Value of the first ``tag`` in content, or None."""
    match = re.search(rf"<{tag}>([^<\n]+)", content, re.IGNORECASE)
    if match and match.group(1).strip():
        return match.group(1).strip()
    match = re.search(rf"<{tag}>([^<]*)</{tag}>", content, re.IGNORECASE)
    if match and match.group(1).strip():
        return match.group(1).strip()
    return None


def parse_ofx_date(value: str | None) -> date | None:
    """Parse ``YYYYMMDD[HHMMSS[.XXX]][tz]``; the time part is dropped."""
    if not value:
        return None
    clean = _TIMEZONE.sub("", value).strip()
    if len(clean) < 8 or not clean[:8].isdigit():
        return None
    try:
        return date(int(clean[0:4]), int(clean[4:6]), int(clean[6:8]))
    except ValueError:
        return None


def parse_ofx_amount(value: str | None) -> Decimal | None:
    if not value:
        return None
    try:
        return Decimal(value.strip().replace(",", "."))
    except InvalidOperation:
        return None


def is_ofx(raw: bytes) -> bool:
    """Sniff whether raw bytes look like an OFX statement."""
    content = _decode(raw)
    has_header = "OFXHEADER" in content or "<OFX>" in content or "<OFX " in content
    has_transactions = "STMTTRN" in content or "BANKTRANLIST" in content
    return has_header or has_transactions


def _decode(raw: bytes) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        # SGML exports declare CHARSET:1252 and are not valid UTF-8.
        return raw.decode("latin-1")


class OfxStatementParser:
    """Parse OFX bytes into a ParsedStatement.

    ``default_currency`` applies when the file carries no CURDEF.
    """

    def __init__(self, default_currency: str = DEFAULT_CURRENCY):
        self.default_currency = default_currency

    def parse(self, raw: bytes) -> ParsedStatement:
        content = _decode(raw).replace("\r\n", "\n").replace("\r", "\n")

        lines = self._parse_transactions(content)
        # Newest first; sort is stable so file order breaks ties.
        lines.sort(key=lambda line: line.transaction_date, reverse=True)

        balance = extract_tag(content, "BALAMT")
        statement = ParsedStatement(
            lines=tuple(lines),
            account=self._parse_account(content),
            currency=extract_tag(content, "CURDEF") or self.default_currency,
            start_date=parse_ofx_date(extract_tag(content, "DTSTART")),
            end_date=parse_ofx_date(extract_tag(content, "DTEND")),
            ledger_balance=to_amount(parse_ofx_amount(balance)) if balance else None,
            balance_date=parse_ofx_date(extract_tag(content, "DTASOF")),
        )
        logger.info("ofx_statement_parsed", extra={
            "line_count": len(statement.lines),
            "currency": statement.currency,
        })
        return statement

    def _parse_transactions(self, content: str) -> list[ParsedStatementLine]:
        lines: list[ParsedStatementLine] = []
        for match in _TRANSACTION_BLOCK.finditer(content):
            block = match.group(1) or match.group(2)
            if not block:
                continue

            fitid = extract_tag(block, "FITID")
            amount = parse_ofx_amount(extract_tag(block, "TRNAMT"))
            if not fitid or amount is None:
                logger.warning("ofx_line_skipped", extra={
                    "fitid": fitid,
                    "reason": "missing_fitid_or_amount",
                })
                continue

            posted = parse_ofx_date(extract_tag(block, "DTPOSTED"))
            if posted is None:
                logger.warning("ofx_line_skipped", extra={
                    "fitid": fitid,
                    "reason": "invalid_posted_date",
                })
                continue

            trntype = extract_tag(block, "TRNTYPE")
            description = (
                extract_tag(block, "MEMO")
                or extract_tag(block, "NAME")
                or trntype
                or DEFAULT_DESCRIPTION
            )
            lines.append(ParsedStatementLine(
                external_id=fitid,
                amount=to_amount(abs(amount)),
                is_credit=amount >= 0,
                transaction_date=posted,
                description=description,
                raw_type=trntype or "OTHER",
                check_number=extract_tag(block, "CHECKNUM"),
            ))
        return lines

    def _parse_account(self, content: str) -> StatementAccount:
        block = content
        for pattern in _ACCOUNT_BLOCKS:
            match = pattern.search(content)
            if match and (match.group(1) or match.group(2)):
                block = match.group(1) or match.group(2)
                break
        return StatementAccount(
            bank_code=extract_tag(block, "BANKID"),
            branch_id=extract_tag(block, "BRANCHID"),
            account_id=extract_tag(block, "ACCTID"),
            account_type=extract_tag(block, "ACCTTYPE"),
        )
