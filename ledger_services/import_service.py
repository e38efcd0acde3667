"""
ledger_services.import_service -- Import/dedup gate for statements and invoices.

Responsibility:
    Accept raw statement and invoice files, refuse files that were already
    imported (SHA-256 of the bytes), persist what they carry, and compute
    match suggestions for new bank transactions.

Architecture position:
    Services -- owns the transaction boundary.  Parsing is delegated to a
    ``StatementParser`` / ``InvoiceDataParser`` supplied by the caller;
    hashing to ``ledger_kernel.utils.hashing``.

Invariants enforced:
    - A statement file is imported once per (tenant, bank).  The duplicate
      check runs before any transaction row exists; the batch row is
      inserted first so that a concurrent loser hits the unique constraint
      and gets DuplicateImportError.
    - Statement lines whose (bank, external_id) already exists, or repeat
      within the file, are skipped and counted.
    - An invoice file is imported once across ALL tenants (content hash).
      ``update_mode`` may overwrite values only for the same tenant.
    - Bulk invoice import isolates each file in its own transaction: one
      failure never aborts its siblings.

Failure modes:
    - DuplicateImportError (``scope`` "here" or "elsewhere").
    - NotFoundError for an unknown bank.
    - Parser exceptions propagate (single import) or are reported per item
      (bulk import).

Audit relevance:
    ``statement_imports`` rows record which file produced which
    transactions.  Once the batch row exists its id is bound into the log
    context as ``import_id`` for everything logged while storing lines.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_config import LedgerSettings, get_active_settings
from ledger_engines.settlement import invoice_status
from ledger_ingestion.adapters import OfxStatementParser
from ledger_ingestion.adapters.base import (
    InvoiceData,
    InvoiceDataParser,
    ParsedStatementLine,
    StatementParser,
)
from ledger_kernel.domain.amounts import ZERO, to_amount
from ledger_kernel.exceptions import DuplicateImportError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models import (
    ImportBatch,
    ImportedTransaction,
    Invoice,
    InvoiceStatus,
    TransactionStatus,
    TransactionType,
)
from ledger_kernel.utils.hashing import hash_file_bytes
from ledger_services.matching_service import MatchingService
from ledger_services.repository import SqlLedgerRepository

logger = get_logger("services.import")


class InvoiceImportOutcome(str, Enum):
    SUCCESS = "success"
    DUPLICATE = "duplicate"
    UPDATED = "updated"
    ERROR = "error"


@dataclass(frozen=True)
class StatementImportResult:
    import_id: UUID
    file_hash: str
    imported_count: int
    skipped_count: int
    suggestion_count: int


@dataclass(frozen=True)
class InvoiceImportResult:
    outcome: InvoiceImportOutcome
    invoice_id: UUID | None
    invoice_number: str | None
    file_hash: str


@dataclass(frozen=True)
class BulkImportItem:
    """Per-file report of a bulk invoice import."""

    file_name: str
    outcome: InvoiceImportOutcome
    message: str
    invoice_id: UUID | None = None
    invoice_number: str | None = None


_VALUE_FIELDS = (
    "gross_value",
    "total_deductions",
    "iss_value",
    "irrf_value",
    "inss_value",
    "csll_value",
    "pis_value",
    "cofins_value",
)


class ImportService:
    """
    The import/dedup gate.

    Contract:
        ``import_statement`` and ``import_invoice`` each run in one
        transaction: commit on success, rollback and re-raise on failure.
        ``import_invoices`` never raises for a single bad file.
    """

    def __init__(
        self,
        session: Session,
        settings: LedgerSettings | None = None,
        matching: MatchingService | None = None,
    ):
        self._session = session
        self._settings = settings or get_active_settings()
        self._repo = SqlLedgerRepository(session)
        self._matching = matching or MatchingService(session, settings=self._settings)

    # =========================================================================
    # Statements
    # =========================================================================

    def ofx_parser(self) -> OfxStatementParser:
        """An OFX parser that falls back to the configured default currency."""
        return OfxStatementParser(default_currency=self._settings.default_currency)

    def import_statement(
        self,
        tenant_id: UUID,
        bank_id: UUID,
        file_bytes: bytes,
        parser: StatementParser,
        actor_id: UUID,
        file_name: str | None = None,
    ) -> StatementImportResult:
        """Import a bank statement file into one bank account."""
        file_hash = hash_file_bytes(file_bytes)
        with LogContext.bind(tenant_id=tenant_id, actor_id=actor_id):
            try:
                self._repo.get_bank(tenant_id, bank_id)
                existing = self._repo.find_statement_import(tenant_id, bank_id, file_hash)
                if existing is not None:
                    raise DuplicateImportError(file_hash, "statement", existing.id, same_tenant=True)

                statement = parser.parse(file_bytes)

                batch = ImportBatch(
                    tenant_id=tenant_id,
                    bank_id=bank_id,
                    file_hash=file_hash,
                    file_name=file_name,
                    created_by_id=actor_id,
                )
                self._repo.add(batch)
                self._flush_or_duplicate(file_hash, "statement")

                with LogContext.bind(import_id=batch.id):
                    new_rows, skipped = self._store_lines(batch, statement.lines, actor_id)
                    suggestions = self._matching.apply_suggestions(tenant_id, new_rows)
                    suggestion_count = sum(1 for s in suggestions if s.suggestion is not None)
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info("statement_imported", extra={
                "import_id": str(batch.id),
                "bank_id": str(bank_id),
                "file_hash": file_hash,
                "imported_count": len(new_rows),
                "skipped_count": skipped,
                "suggestion_count": suggestion_count,
            })
            return StatementImportResult(
                import_id=batch.id,
                file_hash=file_hash,
                imported_count=len(new_rows),
                skipped_count=skipped,
                suggestion_count=suggestion_count,
            )

    # =========================================================================
    # Invoices
    # =========================================================================

    def import_invoice(
        self,
        tenant_id: UUID,
        file_bytes: bytes,
        parser: InvoiceDataParser,
        actor_id: UUID,
        update_mode: bool = False,
    ) -> InvoiceImportResult:
        """Import one invoice file, or refresh its values in update mode."""
        file_hash = hash_file_bytes(file_bytes)
        with LogContext.bind(tenant_id=tenant_id, actor_id=actor_id):
            try:
                data = parser.parse(file_bytes)
                existing = self._repo.find_invoice_by_hash(file_hash)
                if existing is not None:
                    same_tenant = existing.tenant_id == tenant_id
                    if not (update_mode and same_tenant):
                        raise DuplicateImportError(
                            file_hash,
                            "invoice",
                            existing.id if same_tenant else None,
                            same_tenant=same_tenant,
                        )
                    self._apply_values(existing, data)
                    existing.updated_by_id = actor_id
                    self._session.commit()
                    logger.info("invoice_updated", extra={
                        "invoice_id": str(existing.id),
                        "invoice_number": existing.invoice_number,
                        "net_value": str(existing.net_value),
                    })
                    return InvoiceImportResult(
                        outcome=InvoiceImportOutcome.UPDATED,
                        invoice_id=existing.id,
                        invoice_number=existing.invoice_number,
                        file_hash=file_hash,
                    )

                invoice = Invoice(
                    tenant_id=tenant_id,
                    invoice_number=data.invoice_number,
                    invoice_type=data.invoice_type,
                    issuer_ref=data.issuer_ref,
                    payer_ref=data.payer_ref,
                    issue_date=data.issue_date,
                    expected_receipt_date=data.expected_receipt_date,
                    total_received=ZERO,
                    status=InvoiceStatus.PENDING,
                    content_hash=file_hash,
                    created_by_id=actor_id,
                )
                self._apply_values(invoice, data)
                self._repo.add(invoice)
                self._flush_or_duplicate(file_hash, "invoice", tenant_id=tenant_id)
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info("invoice_imported", extra={
                "invoice_id": str(invoice.id),
                "invoice_number": invoice.invoice_number,
                "gross_value": str(invoice.gross_value),
                "net_value": str(invoice.net_value),
            })
            return InvoiceImportResult(
                outcome=InvoiceImportOutcome.SUCCESS,
                invoice_id=invoice.id,
                invoice_number=invoice.invoice_number,
                file_hash=file_hash,
            )

    def import_invoices(
        self,
        tenant_id: UUID,
        files: Sequence[tuple[str, bytes]],
        parser: InvoiceDataParser,
        actor_id: UUID,
        update_mode: bool = False,
    ) -> list[BulkImportItem]:
        """Import ``(file_name, bytes)`` pairs one by one, reporting each."""
        items: list[BulkImportItem] = []
        for file_name, content in files:
            try:
                result = self.import_invoice(tenant_id, content, parser, actor_id, update_mode)
            except DuplicateImportError as exc:
                message = (
                    "Invoice already imported in this company"
                    if exc.same_tenant
                    else "Invoice already imported in another company"
                )
                items.append(BulkImportItem(file_name, InvoiceImportOutcome.DUPLICATE, message))
                continue
            except Exception as exc:
                logger.warning("invoice_import_item_failed", extra={
                    "file_name": file_name,
                    "error": str(exc),
                })
                items.append(BulkImportItem(file_name, InvoiceImportOutcome.ERROR, str(exc)))
                continue

            message = (
                "Values updated"
                if result.outcome == InvoiceImportOutcome.UPDATED
                else "Imported"
            )
            items.append(BulkImportItem(
                file_name=file_name,
                outcome=result.outcome,
                message=message,
                invoice_id=result.invoice_id,
                invoice_number=result.invoice_number,
            ))

        logger.info("invoice_bulk_import_completed", extra={
            "file_count": len(files),
            "success": sum(1 for i in items if i.outcome == InvoiceImportOutcome.SUCCESS),
            "updated": sum(1 for i in items if i.outcome == InvoiceImportOutcome.UPDATED),
            "duplicate": sum(1 for i in items if i.outcome == InvoiceImportOutcome.DUPLICATE),
            "error": sum(1 for i in items if i.outcome == InvoiceImportOutcome.ERROR),
        })
        return items

    # =========================================================================
    # Internal
    # =========================================================================

    def _store_lines(
        self,
        batch: ImportBatch,
        lines: Sequence[ParsedStatementLine],
        actor_id: UUID,
    ) -> tuple[list[ImportedTransaction], int]:
        """Insert lines not yet known for the batch's bank; return them and the skip count."""
        known = self._repo.existing_external_ids(
            batch.tenant_id, batch.bank_id, [line.external_id for line in lines],
        )
        new_rows: list[ImportedTransaction] = []
        skipped = 0
        for line in lines:
            if line.external_id in known:
                skipped += 1
                continue
            known.add(line.external_id)
            row = ImportedTransaction(
                tenant_id=batch.tenant_id,
                bank_id=batch.bank_id,
                statement_import_id=batch.id,
                external_id=line.external_id,
                amount=to_amount(line.amount),
                transaction_type=(
                    TransactionType.CREDIT if line.is_credit else TransactionType.DEBIT
                ),
                transaction_date=line.transaction_date,
                description=line.description,
                status=TransactionStatus.PENDING,
                created_by_id=actor_id,
            )
            self._repo.add(row)
            new_rows.append(row)

        batch.transaction_count = len(new_rows)
        batch.skipped_count = skipped
        self._repo.flush()
        logger.debug("statement_lines_stored", extra={
            "imported_count": len(new_rows),
            "skipped_count": skipped,
        })
        return new_rows, skipped

    def _apply_values(self, invoice: Invoice, data: InvoiceData) -> None:
        for name in _VALUE_FIELDS:
            setattr(invoice, name, to_amount(getattr(data, name)))
        invoice.is_tax_retained = data.is_tax_retained
        invoice.net_value = to_amount(data.resolved_net_value())
        if data.invoice_type:
            invoice.invoice_type = data.invoice_type
        if invoice.total_received is not None:
            invoice.status = invoice_status(
                invoice.net_value, invoice.total_received, self._settings.amount_epsilon,
            )

    def _flush_or_duplicate(
        self,
        file_hash: str,
        kind: str,
        tenant_id: UUID | None = None,
    ) -> None:
        """Flush; a unique violation means a concurrent import won the race."""
        try:
            self._repo.flush()
        except IntegrityError as exc:
            self._session.rollback()
            same_tenant = True
            if tenant_id is not None:
                winner = self._repo.find_invoice_by_hash(file_hash)
                same_tenant = winner is None or winner.tenant_id == tenant_id
            logger.warning("import_race_lost", extra={"file_hash": file_hash, "kind": kind})
            raise DuplicateImportError(file_hash, kind, same_tenant=same_tenant) from exc
