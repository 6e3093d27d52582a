"""
Tests for payment reconciliation arithmetic.
"""

from dataclasses import dataclass
from decimal import Decimal

from hypothesis import given
from hypothesis import strategies as st

from invoflow_kernel.domain.reconciliation import (
    balance_due,
    is_settled,
    payment_fits,
    total_paid,
)


@dataclass
class _Payment:
    amount: Decimal
    status: str = "completed"


class TestTotalPaid:

    def test_sums_completed_payments(self):
        payments = [_Payment(Decimal("100.10")), _Payment(Decimal("0.20"))]

        assert total_paid(payments) == Decimal("100.30")

    def test_empty(self):
        assert total_paid([]) == Decimal("0.00")


class TestBalanceDue:

    def test_total_minus_paid(self):
        assert balance_due(Decimal("1100"), [_Payment(Decimal("250.5"))]) == Decimal("849.50")


class TestPaymentFits:

    def test_exact_balance_fits(self):
        assert payment_fits(Decimal("1100"), Decimal("1000"), Decimal("100"))

    def test_one_cent_over_rejected(self):
        assert not payment_fits(Decimal("1100"), Decimal("1000"), Decimal("100.01"))


class TestIsSettled:

    def test_exact(self):
        assert is_settled(Decimal("1100.00"), Decimal("1100.00"))

    def test_within_tolerance(self):
        assert is_settled(Decimal("1100.00"), Decimal("1099.995"))

    def test_one_cent_short(self):
        assert not is_settled(Decimal("1100.00"), Decimal("1099.99"))


money = st.decimals(min_value=Decimal("0.01"), max_value=Decimal("100000"), places=2)


class TestReconciliationProperties:

    @given(total=money, amounts=st.lists(money, max_size=8))
    def test_accepted_payments_never_exceed_total(self, total, amounts):
        paid = Decimal("0.00")
        for amount in amounts:
            if payment_fits(total, paid, amount):
                paid += amount

        assert paid <= total
        assert balance_due(total, [_Payment(paid)]) >= Decimal("0")

    @given(total=money)
    def test_paying_the_balance_settles(self, total):
        assert payment_fits(total, Decimal("0"), total)
        assert is_settled(total, total_paid([_Payment(total)]))
