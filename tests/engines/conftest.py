"""
Builders for engine tests.

Engines take frozen DTOs, so these tests never touch the database.
"""

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from invoflow_kernel.domain.dtos import (
    Invoice,
    InvoiceLine,
    InvoiceStatus,
    Payment,
    PaymentGateway,
    PaymentMethod,
    PaymentStatus,
)


def make_line(description, quantity="1", rate="100", position=0) -> InvoiceLine:
    qty = Decimal(str(quantity))
    unit = Decimal(str(rate))
    return InvoiceLine(
        id=uuid4(),
        position=position,
        description=description,
        quantity=qty,
        rate=unit,
        amount=(qty * unit).quantize(Decimal("0.01")),
    )


def make_payment(invoice_id, amount, paid_at, method=PaymentMethod.BANK_TRANSFER) -> Payment:
    return Payment(
        id=uuid4(),
        invoice_id=invoice_id,
        amount=Decimal(str(amount)),
        method=method,
        gateway=PaymentGateway.MANUAL,
        status=PaymentStatus.COMPLETED,
        paid_at=paid_at,
    )


def make_invoice_dto(
    *,
    client_id=None,
    user_id=None,
    number="INV-001",
    status=InvoiceStatus.SENT,
    issue_date=date(2026, 1, 1),
    due_date=None,
    total="1000",
    lines=None,
    paid_after_days=None,
    paid_amount=None,
    method=PaymentMethod.BANK_TRANSFER,
    currency="USD",
) -> Invoice:
    """
    Build an Invoice DTO.  ``paid_after_days`` adds one completed payment
    that many days after the issue date (midnight UTC).
    """
    invoice_id = uuid4()
    amount = Decimal(str(total))
    payments = ()
    if paid_after_days is not None:
        paid_at = datetime.combine(issue_date, time.min, tzinfo=timezone.utc) + timedelta(
            days=paid_after_days
        )
        payments = (
            make_payment(invoice_id, paid_amount or amount, paid_at, method=method),
        )
    paid = sum((p.amount for p in payments), Decimal("0"))
    return Invoice(
        id=invoice_id,
        user_id=user_id or uuid4(),
        client_id=client_id or uuid4(),
        number=number,
        status=status,
        issue_date=issue_date,
        due_date=due_date or issue_date + timedelta(days=30),
        subtotal=amount,
        tax_rate=Decimal("0"),
        tax=Decimal("0"),
        total=amount,
        currency=currency,
        items=tuple(lines or (make_line("Consulting", 1, amount),)),
        amount_paid=paid,
        balance_due=amount - paid,
        payments=payments,
    )


@pytest.fixture
def invoice_dto():
    return make_invoice_dto


@pytest.fixture
def line_dto():
    return make_line
