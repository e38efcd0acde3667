"""Tests for InvoiceData net value resolution."""

from decimal import Decimal

from ledger_ingestion.adapters.base import InvoiceData, InvoiceDataParser
from tests.fakes import StaticInvoiceParser


class TestResolvedNetValue:

    def test_source_net_value_wins(self):
        data = InvoiceData(
            invoice_number="1",
            gross_value=Decimal("1000.00"),
            net_value_from_source=Decimal("912.50"),
            total_deductions=Decimal("50.00"),
        )

        assert data.resolved_net_value() == Decimal("912.50")

    def test_deductions_applied_when_retained(self):
        data = InvoiceData(
            invoice_number="2",
            gross_value=Decimal("1000.00"),
            total_deductions=Decimal("61.50"),
            iss_value=Decimal("50.00"),
            is_tax_retained=True,
        )

        assert data.has_retention
        assert data.resolved_net_value() == Decimal("888.50")

    def test_deductions_without_retained_tax(self):
        data = InvoiceData(
            invoice_number="3",
            gross_value=Decimal("1000.00"),
            total_deductions=Decimal("61.50"),
            iss_value=Decimal("50.00"),
        )

        assert data.resolved_net_value() == Decimal("938.50")

    def test_gross_when_no_retention(self):
        data = InvoiceData(invoice_number="4", gross_value=Decimal("1000.00"))

        assert not data.has_retention
        assert data.resolved_net_value() == Decimal("1000.00")

    def test_negligible_deductions_are_not_retention(self):
        data = InvoiceData(
            invoice_number="5",
            gross_value=Decimal("1000.00"),
            total_deductions=Decimal("0.01"),
        )

        assert data.resolved_net_value() == Decimal("1000.00")


class TestParserProtocol:

    def test_static_parser_satisfies_protocol(self):
        assert isinstance(StaticInvoiceParser({}), InvoiceDataParser)
