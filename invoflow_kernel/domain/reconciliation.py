"""
Payment reconciliation arithmetic (``invoflow_kernel.domain.reconciliation``).

Responsibility
--------------
Given an invoice total and the payments recorded against it, compute the
amount paid and the balance due, decide whether a new payment fits, and
whether the invoice is settled.

Architecture position
---------------------
**Kernel domain layer** -- pure functions.  ZERO I/O.  Balance due is
always derived from payments and never stored.

Invariants enforced
-------------------
* Only completed payments count towards the amount paid.
* A payment fits when ``paid + amount <= total``.
* An invoice is settled when ``|paid - total| < MONEY_TOLERANCE``.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Protocol

from invoflow_kernel.db.types import MONEY_TOLERANCE, ZERO, round_money
from invoflow_kernel.domain.dtos import PaymentStatus


class PaymentLike(Protocol):
    amount: Decimal
    status: str


def total_paid(payments: Iterable[PaymentLike]) -> Decimal:
    """Sum of completed payment amounts."""
    paid = ZERO
    for payment in payments:
        if PaymentStatus(payment.status) == PaymentStatus.COMPLETED:
            paid += payment.amount
    return round_money(paid)


def balance_due(total: Decimal, payments: Iterable[PaymentLike]) -> Decimal:
    """Invoice total minus completed payments."""
    return round_money(total - total_paid(payments))


def payment_fits(total: Decimal, paid: Decimal, amount: Decimal) -> bool:
    """True when ``amount`` does not push cumulative payments past ``total``."""
    return paid + amount <= total


def is_settled(total: Decimal, paid: Decimal) -> bool:
    """True when cumulative payments match the total within tolerance."""
    return abs(paid - total) < MONEY_TOLERANCE
