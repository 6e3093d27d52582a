"""
Tests for payment-date prediction.

Covers:
- No-history fallback
- Recency-weighted average and confidence formula
- Risk classification and due-date clamping
- Large-invoice adjustment
- Determinism
"""

from datetime import date, timedelta
from decimal import Decimal

from invoflow_engines.payment_prediction import (
    RiskLevel,
    days_to_pay,
    predict_payment_date,
)

TODAY = date(2026, 3, 15)


def _history(invoice_dto, delays_oldest_first, total="1000"):
    """Paid invoices newest first, as the selector returns them."""
    invoices = [
        invoice_dto(
            number=f"INV-{i:03d}",
            issue_date=date(2025, 1, 1) + timedelta(days=30 * i),
            total=total,
            paid_after_days=delay,
        )
        for i, delay in enumerate(delays_oldest_first)
    ]
    return list(reversed(invoices))


class TestDaysToPay:

    def test_days_from_issue_to_first_payment(self, invoice_dto):
        invoice = invoice_dto(issue_date=date(2026, 1, 1), paid_after_days=12)

        assert days_to_pay(invoice) == 12.0

    def test_unpaid_invoice_has_no_delay(self, invoice_dto):
        assert days_to_pay(invoice_dto()) is None

    def test_payment_before_issue_floors_at_zero(self, invoice_dto):
        invoice = invoice_dto(issue_date=date(2026, 1, 10), paid_after_days=-3)

        assert days_to_pay(invoice) == 0.0


class TestNoHistory:

    def test_falls_back_to_due_date_plus_buffer(self):
        due = TODAY + timedelta(days=30)

        prediction = predict_payment_date(
            history=[], invoice_total=Decimal("500"), due_date=due, today=TODAY,
        )

        assert prediction.predicted_date == due + timedelta(days=3)
        assert prediction.confidence == 30
        assert prediction.risk_level == RiskLevel.MEDIUM
        assert prediction.history_count == 0

    def test_unpaid_history_counts_as_none(self, invoice_dto):
        prediction = predict_payment_date(
            history=[invoice_dto()],
            invoice_total=Decimal("500"),
            due_date=TODAY,
            today=TODAY,
        )

        assert prediction.confidence == 30


class TestWeightedPrediction:

    def test_steady_payer_predicted_low_risk(self, invoice_dto):
        """Delays 5, 10, 15 (oldest to newest) for a 1000 invoice due in 30 days."""
        history = _history(invoice_dto, [5, 10, 15])
        due = TODAY + timedelta(days=30)

        prediction = predict_payment_date(
            history=history,
            invoice_total=Decimal("1000"),
            due_date=due,
            today=TODAY,
        )

        # (15*3 + 10*2 + 5*1) / 6 = 11.67 -> 12; newest weighs most
        assert prediction.predicted_date == due
        assert prediction.risk_level == RiskLevel.LOW
        # stddev 4.08 -> 0.7 * 79.59 + 12 = 67.7 -> 68
        assert prediction.confidence == 68
        assert prediction.confidence < 95
        assert prediction.avg_days_to_pay == 10
        assert prediction.history_count == 3
        assert "12 days" in prediction.reasoning

    def test_prediction_never_before_due_date(self, invoice_dto):
        history = _history(invoice_dto, [1, 1, 1])
        due = TODAY + timedelta(days=20)

        prediction = predict_payment_date(
            history=history, invoice_total=Decimal("1000"), due_date=due, today=TODAY,
        )

        assert prediction.predicted_date == due

    def test_medium_risk_when_up_to_two_weeks_late(self, invoice_dto):
        history = _history(invoice_dto, [40, 40])
        due = TODAY + timedelta(days=30)

        prediction = predict_payment_date(
            history=history, invoice_total=Decimal("1000"), due_date=due, today=TODAY,
        )

        assert prediction.predicted_date == TODAY + timedelta(days=40)
        assert prediction.risk_level == RiskLevel.MEDIUM

    def test_high_risk_when_more_than_two_weeks_late(self, invoice_dto):
        history = _history(invoice_dto, [60])
        due = TODAY + timedelta(days=30)

        prediction = predict_payment_date(
            history=history, invoice_total=Decimal("1000"), due_date=due, today=TODAY,
        )

        assert prediction.risk_level == RiskLevel.HIGH
        assert prediction.predicted_date == TODAY + timedelta(days=60)

    def test_identical_delays_capped_confidence(self, invoice_dto):
        """Zero spread and 5+ invoices: 0.7 * 100 + 20 = 90."""
        history = _history(invoice_dto, [10] * 6)

        prediction = predict_payment_date(
            history=history,
            invoice_total=Decimal("1000"),
            due_date=TODAY + timedelta(days=30),
            today=TODAY,
        )

        assert prediction.confidence == 90

    def test_only_twenty_most_recent_invoices_used(self, invoice_dto):
        history = _history(invoice_dto, [10] * 25)

        prediction = predict_payment_date(
            history=history,
            invoice_total=Decimal("1000"),
            due_date=TODAY + timedelta(days=30),
            today=TODAY,
        )

        assert prediction.history_count == 20

    def test_large_invoice_adds_three_days(self, invoice_dto):
        history = _history(invoice_dto, [10, 10], total="1000")
        due = TODAY + timedelta(days=5)

        normal = predict_payment_date(
            history=history, invoice_total=Decimal("1500"), due_date=due, today=TODAY,
        )
        large = predict_payment_date(
            history=history, invoice_total=Decimal("1500.01"), due_date=due, today=TODAY,
        )

        assert large.predicted_date == normal.predicted_date + timedelta(days=3)
        assert "larger than average" in large.reasoning
        assert "larger than average" not in normal.reasoning

    def test_deterministic(self, invoice_dto):
        history = _history(invoice_dto, [3, 9, 27])
        kwargs = dict(
            history=history,
            invoice_total=Decimal("700"),
            due_date=TODAY + timedelta(days=14),
            today=TODAY,
        )

        assert predict_payment_date(**kwargs) == predict_payment_date(**kwargs)
