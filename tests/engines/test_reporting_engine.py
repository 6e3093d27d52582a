"""
Tests for report aggregation.

Covers:
- Trailing monthly revenue window (zero-filled, oldest first)
- Revenue by client, status breakdown, method distribution
- Average payment days, outstanding totals and summary figures
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from invoflow_kernel.domain.dtos import InvoiceStatus, PaymentMethod
from invoflow_engines.reporting import (
    build_report_bundle,
    collection_rate,
    trailing_months,
)

TODAY = date(2026, 3, 15)


@pytest.fixture
def acme():
    return uuid4()


@pytest.fixture
def globex():
    return uuid4()


@pytest.fixture
def portfolio(invoice_dto, acme, globex):
    """
    Four invoices:
      acme   paid 1100 (issued Jan 10, paid 10 days later, bank transfer)
      acme   paid  400 (issued Mar 1, paid 4 days later, credit card)
      globex sent  300 (unpaid)
      globex overdue 200 with a partial payment of 50 in February (cash)
    """
    return [
        invoice_dto(
            client_id=acme, status=InvoiceStatus.PAID, issue_date=date(2026, 1, 10),
            total="1100", paid_after_days=10,
        ),
        invoice_dto(
            client_id=acme, status=InvoiceStatus.PAID, issue_date=date(2026, 3, 1),
            total="400", paid_after_days=4, method=PaymentMethod.CREDIT_CARD,
        ),
        invoice_dto(client_id=globex, status=InvoiceStatus.SENT, total="300"),
        invoice_dto(
            client_id=globex, status=InvoiceStatus.OVERDUE, issue_date=date(2026, 2, 1),
            total="200", paid_after_days=5, paid_amount="50", method=PaymentMethod.CASH,
        ),
    ]


class TestTrailingMonths:

    def test_window_crosses_year_boundary(self):
        months = trailing_months(date(2026, 2, 20), 3)

        assert months == [date(2025, 12, 1), date(2026, 1, 1), date(2026, 2, 1)]


class TestBuildReportBundle:

    def test_revenue_by_month(self, portfolio, acme, globex):
        bundle = build_report_bundle(
            invoices=portfolio,
            client_labels={acme: "Acme", globex: "Globex"},
            today=TODAY,
            window_months=3,
        )

        assert [(m.key, m.label, m.revenue) for m in bundle.revenue_by_month] == [
            ("2026-01", "Jan 2026", Decimal("1100.00")),
            ("2026-02", "Feb 2026", Decimal("50.00")),
            ("2026-03", "Mar 2026", Decimal("400.00")),
        ]

    def test_default_window_is_twelve_zero_filled_months(self, portfolio):
        bundle = build_report_bundle(invoices=portfolio, client_labels={}, today=TODAY)

        assert len(bundle.revenue_by_month) == 12
        assert bundle.revenue_by_month[0].key == "2025-04"
        assert bundle.revenue_by_month[0].revenue == Decimal("0.00")

    def test_revenue_by_client_counts_paid_invoices(self, portfolio, acme, globex):
        bundle = build_report_bundle(
            invoices=portfolio,
            client_labels={acme: "Acme", globex: "Globex"},
            today=TODAY,
        )

        assert [(c.label, c.revenue) for c in bundle.revenue_by_client] == [
            ("Acme", Decimal("1500.00")),
        ]

    def test_unknown_client_label(self, invoice_dto):
        paid = invoice_dto(status=InvoiceStatus.PAID, paid_after_days=1)

        bundle = build_report_bundle(invoices=[paid], client_labels={}, today=TODAY)

        assert bundle.revenue_by_client[0].label == "Unknown"

    def test_top_clients_limit(self, invoice_dto):
        invoices = [
            invoice_dto(status=InvoiceStatus.PAID, total=str(100 * (i + 1)), paid_after_days=1)
            for i in range(4)
        ]

        bundle = build_report_bundle(
            invoices=invoices, client_labels={}, today=TODAY, top_clients=2,
        )

        assert [c.revenue for c in bundle.revenue_by_client] == [
            Decimal("400.00"), Decimal("300.00"),
        ]

    def test_status_breakdown_lists_every_status(self, portfolio):
        bundle = build_report_bundle(invoices=portfolio, client_labels={}, today=TODAY)
        by_status = {b.status: (b.count, b.total) for b in bundle.status_breakdown}

        assert by_status[InvoiceStatus.PAID] == (2, Decimal("1500.00"))
        assert by_status[InvoiceStatus.SENT] == (1, Decimal("300.00"))
        assert by_status[InvoiceStatus.OVERDUE] == (1, Decimal("200.00"))
        assert by_status[InvoiceStatus.DRAFT] == (0, Decimal("0.00"))
        assert by_status[InvoiceStatus.CANCELLED] == (0, Decimal("0.00"))

    def test_method_distribution_by_amount(self, portfolio):
        bundle = build_report_bundle(invoices=portfolio, client_labels={}, today=TODAY)

        assert [(m.method, m.count, m.amount) for m in bundle.method_distribution] == [
            (PaymentMethod.BANK_TRANSFER, 1, Decimal("1100.00")),
            (PaymentMethod.CREDIT_CARD, 1, Decimal("400.00")),
            (PaymentMethod.CASH, 1, Decimal("50.00")),
        ]

    def test_avg_payment_days_over_paid_invoices(self, portfolio):
        bundle = build_report_bundle(invoices=portfolio, client_labels={}, today=TODAY)

        assert bundle.avg_payment_days == 7  # (10 + 4) / 2

    def test_outstanding_uses_balance_due(self, portfolio):
        bundle = build_report_bundle(invoices=portfolio, client_labels={}, today=TODAY)

        assert bundle.outstanding.sent == Decimal("300.00")
        assert bundle.outstanding.overdue == Decimal("150.00")
        assert bundle.outstanding.total == Decimal("450.00")
        assert bundle.outstanding.invoice_count == 2

    def test_summary(self, portfolio):
        bundle = build_report_bundle(invoices=portfolio, client_labels={}, today=TODAY)
        summary = bundle.summary

        assert summary.total_revenue == Decimal("1550.00")
        assert summary.total_invoiced == Decimal("2000.00")
        assert summary.invoice_count == 4
        assert summary.avg_invoice_value == Decimal("500.00")
        assert summary.collection_rate == Decimal("77.50")
        assert summary.paid_this_month == Decimal("400.00")

    def test_empty_history(self):
        bundle = build_report_bundle(invoices=[], client_labels={}, today=TODAY)

        assert bundle.summary.collection_rate == Decimal("0")
        assert bundle.summary.avg_invoice_value == Decimal("0")
        assert bundle.avg_payment_days == 0
        assert bundle.revenue_by_client == ()
        assert bundle.method_distribution == ()

    def test_window_must_be_positive(self):
        with pytest.raises(ValueError):
            build_report_bundle(invoices=[], client_labels={}, today=TODAY, window_months=0)


class TestCollectionRate:

    def test_zero_invoiced(self):
        assert collection_rate(Decimal("10"), Decimal("0")) == Decimal("0")

    def test_percentage_rounded(self):
        assert collection_rate(Decimal("1"), Decimal("3")) == Decimal("33.33")
