"""
Tests for ReportingService -- report aggregation over stored invoices.
"""

from datetime import date
from decimal import Decimal

import pytest

from invoflow_kernel.domain.dtos import InvoiceStatus, PaymentMethod
from invoflow_kernel.exceptions import ValidationError
from invoflow_services.reporting_service import ReportingService


@pytest.fixture
def history(services, owner, client, second_client, make_invoice):
    """
    Acme: 1100 issued Feb 1, paid in full today (bank transfer).
    Bob:  550 sent, 50 paid by card; one draft of 1100.
    """
    paid = make_invoice(status="sent", issue_date=date(2026, 2, 1))
    services.payments.record_payment(owner.id, paid.id, paid.total, "bank_transfer")
    open_invoice = make_invoice(
        status="sent",
        client_id=second_client.id,
        items=[{"description": "Workshop", "quantity": 1, "rate": 500}],
    )
    services.payments.record_payment(owner.id, open_invoice.id, 50, "credit_card")
    make_invoice(client_id=second_client.id)
    return paid, open_invoice


class TestAggregateReports:

    def test_summary_figures(self, services, owner, history):
        bundle = services.reporting.aggregate_reports(owner.id)

        summary = bundle.summary
        assert summary.invoice_count == 3
        assert summary.total_invoiced == Decimal("2750.00")
        assert summary.total_revenue == Decimal("1150.00")
        assert summary.paid_this_month == Decimal("1150.00")

    def test_revenue_window_ends_this_month(self, services, owner, history):
        bundle = services.reporting.aggregate_reports(owner.id, window_months=2)

        assert [(m.key, m.revenue) for m in bundle.revenue_by_month] == [
            ("2026-02", Decimal("0.00")),
            ("2026-03", Decimal("1150.00")),
        ]

    def test_clients_labelled_by_display_name(self, services, owner, history):
        bundle = services.reporting.aggregate_reports(owner.id)

        assert [(c.label, c.revenue) for c in bundle.revenue_by_client] == [
            ("Acme Ltd", Decimal("1100.00")),
        ]

    def test_breakdowns(self, services, owner, history):
        bundle = services.reporting.aggregate_reports(owner.id)

        by_status = {b.status: b.count for b in bundle.status_breakdown}
        assert by_status[InvoiceStatus.PAID] == 1
        assert by_status[InvoiceStatus.SENT] == 1
        assert by_status[InvoiceStatus.DRAFT] == 1
        assert {m.method for m in bundle.method_distribution} == {
            PaymentMethod.BANK_TRANSFER, PaymentMethod.CREDIT_CARD,
        }
        assert bundle.outstanding.sent == Decimal("500.00")
        assert bundle.outstanding.overdue == Decimal("0.00")

    def test_scoped_to_owner(self, services, other_owner, history):
        bundle = services.reporting.aggregate_reports(other_owner.id)

        assert bundle.summary.invoice_count == 0
        assert bundle.summary.total_revenue == Decimal("0.00")

    def test_window_validated(self, services, owner):
        with pytest.raises(ValidationError) as exc_info:
            services.reporting.aggregate_reports(owner.id, window_months=0)

        assert exc_info.value.field == "window_months"

    def test_configured_defaults(self, session, clock, owner, history):
        reporting = ReportingService(session, clock=clock, window_months=3, top_clients=1)

        bundle = reporting.aggregate_reports(owner.id)

        assert len(bundle.revenue_by_month) == 3
        assert len(bundle.revenue_by_client) == 1
