"""Tests for settlement status derivation."""

from decimal import Decimal

import pytest

from ledger_engines.settlement import (
    SettledAmount,
    invoice_status,
    payable_status,
    settled_total,
)


class TestSettledTotal:

    def test_reversed_rows_excluded(self):
        rows = [
            SettledAmount(Decimal("100.00")),
            SettledAmount(Decimal("50.00"), is_reversed=True),
            SettledAmount(Decimal("25.00")),
        ]

        assert settled_total(rows) == Decimal("125.00")

    def test_empty_is_zero(self):
        assert settled_total([]) == Decimal("0")


class TestInvoiceStatus:

    @pytest.mark.parametrize(
        "received, expected",
        [
            ("0", "pending"),
            ("0.01", "partially_received"),
            ("999.98", "partially_received"),
            ("999.99", "received"),
            ("1000.00", "received"),
            ("1000.50", "received"),
        ],
    )
    def test_thresholds(self, received, expected):
        assert invoice_status(Decimal("1000.00"), Decimal(received)) == expected


class TestPayableStatus:

    @pytest.mark.parametrize(
        "settled, expected",
        [
            ("0", "pending"),
            ("100.00", "partially_paid"),
            ("539.99", "paid"),
            ("540.00", "paid"),
        ],
    )
    def test_thresholds(self, settled, expected):
        assert payable_status(Decimal("540.00"), Decimal(settled)) == expected
