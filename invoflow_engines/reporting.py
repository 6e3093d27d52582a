"""
Module: invoflow_engines.reporting
Responsibility:
    Group a user's invoices and payments into the summary tables behind the
    dashboard, analytics and reports views.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  ``today`` anchors the
    trailing month window and "this month".

Invariants enforced:
    - Revenue counts completed payments only.
    - Monthly buckets cover exactly ``window_months`` calendar months ending
      with the current month, oldest first, zero-filled.
    - Client ranking is by revenue descending; ties keep input order.
    - collection_rate is 0 when nothing has been invoiced.
    - avg_payment_days is the rounded mean days from issue to first payment
      over paid invoices, 0 without data.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Mapping, Sequence
from uuid import UUID

from invoflow_kernel.db.types import ZERO, ensure_utc, round_half_up, round_money
from invoflow_kernel.domain.dtos import (
    Invoice,
    InvoiceStatus,
    PaymentMethod,
    PaymentStatus,
)
from invoflow_engines.payment_prediction import days_to_pay
from invoflow_engines.recurrence import add_months
from invoflow_engines.tracer import traced_engine

DEFAULT_WINDOW_MONTHS = 12
DEFAULT_TOP_CLIENTS = 10

_MONTH_ABBR = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class MonthlyRevenue:
    key: str
    label: str
    revenue: Decimal


@dataclass(frozen=True)
class ClientRevenue:
    client_id: UUID
    label: str
    revenue: Decimal


@dataclass(frozen=True)
class StatusBucket:
    status: InvoiceStatus
    count: int
    total: Decimal


@dataclass(frozen=True)
class MethodBucket:
    method: PaymentMethod
    count: int
    amount: Decimal


@dataclass(frozen=True)
class OutstandingSummary:
    total: Decimal
    overdue: Decimal
    sent: Decimal
    invoice_count: int


@dataclass(frozen=True)
class ReportSummary:
    total_revenue: Decimal
    total_invoiced: Decimal
    invoice_count: int
    avg_invoice_value: Decimal
    collection_rate: Decimal
    paid_this_month: Decimal


@dataclass(frozen=True)
class ReportBundle:
    revenue_by_month: tuple[MonthlyRevenue, ...]
    revenue_by_client: tuple[ClientRevenue, ...]
    status_breakdown: tuple[StatusBucket, ...]
    method_distribution: tuple[MethodBucket, ...]
    avg_payment_days: int
    outstanding: OutstandingSummary
    summary: ReportSummary


def month_key(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def month_label(value: date) -> str:
    return f"{_MONTH_ABBR[value.month - 1]} {value.year}"


def trailing_months(today: date, window_months: int) -> list[date]:
    """First day of each month in the window, oldest first."""
    current = today.replace(day=1)
    return [add_months(current, -offset) for offset in range(window_months - 1, -1, -1)]


def _completed(invoice: Invoice):
    return [p for p in invoice.payments if p.status == PaymentStatus.COMPLETED]


def revenue_by_month(
    invoices: Sequence[Invoice], today: date, window_months: int,
) -> tuple[MonthlyRevenue, ...]:
    buckets = {month_key(m): ZERO for m in trailing_months(today, window_months)}
    for invoice in invoices:
        for payment in _completed(invoice):
            key = month_key(ensure_utc(payment.paid_at).date())
            if key in buckets:
                buckets[key] += payment.amount
    return tuple(
        MonthlyRevenue(key=month_key(m), label=month_label(m), revenue=round_money(buckets[month_key(m)]))
        for m in trailing_months(today, window_months)
    )


def revenue_by_client(
    invoices: Sequence[Invoice],
    client_labels: Mapping[UUID, str],
    limit: int,
) -> tuple[ClientRevenue, ...]:
    totals: dict[UUID, Decimal] = {}
    for invoice in invoices:
        if invoice.status != InvoiceStatus.PAID:
            continue
        paid = sum((p.amount for p in _completed(invoice)), ZERO)
        totals[invoice.client_id] = totals.get(invoice.client_id, ZERO) + paid
    ranked = sorted(totals.items(), key=lambda kv: kv[1], reverse=True)
    return tuple(
        ClientRevenue(
            client_id=client_id,
            label=client_labels.get(client_id, "Unknown"),
            revenue=round_money(amount),
        )
        for client_id, amount in ranked[:limit]
    )


def status_breakdown(invoices: Sequence[Invoice]) -> tuple[StatusBucket, ...]:
    counts = {status: 0 for status in InvoiceStatus}
    sums = {status: ZERO for status in InvoiceStatus}
    for invoice in invoices:
        counts[invoice.status] += 1
        sums[invoice.status] += invoice.total
    return tuple(
        StatusBucket(status=status, count=counts[status], total=round_money(sums[status]))
        for status in InvoiceStatus
    )


def method_distribution(invoices: Sequence[Invoice]) -> tuple[MethodBucket, ...]:
    counts: dict[PaymentMethod, int] = {}
    amounts: dict[PaymentMethod, Decimal] = {}
    for invoice in invoices:
        for payment in _completed(invoice):
            counts[payment.method] = counts.get(payment.method, 0) + 1
            amounts[payment.method] = amounts.get(payment.method, ZERO) + payment.amount
    return tuple(
        MethodBucket(method=method, count=counts[method], amount=round_money(amounts[method]))
        for method in sorted(amounts, key=lambda m: amounts[m], reverse=True)
    )


def average_payment_days(invoices: Sequence[Invoice]) -> int:
    delays = [
        d for d in (
            days_to_pay(inv) for inv in invoices if inv.status == InvoiceStatus.PAID
        )
        if d is not None
    ]
    if not delays:
        return 0
    return round_half_up(sum(delays) / len(delays))


def outstanding_summary(invoices: Sequence[Invoice]) -> OutstandingSummary:
    sent = ZERO
    overdue = ZERO
    count = 0
    for invoice in invoices:
        if invoice.status == InvoiceStatus.SENT:
            sent += invoice.balance_due
        elif invoice.status == InvoiceStatus.OVERDUE:
            overdue += invoice.balance_due
        else:
            continue
        count += 1
    return OutstandingSummary(
        total=round_money(sent + overdue),
        overdue=round_money(overdue),
        sent=round_money(sent),
        invoice_count=count,
    )


def collection_rate(total_revenue: Decimal, total_invoiced: Decimal) -> Decimal:
    """Payments received as a percentage of amount invoiced (0 when nothing invoiced)."""
    if total_invoiced <= ZERO:
        return ZERO
    return round_money(total_revenue / total_invoiced * _HUNDRED)


def summarize(invoices: Sequence[Invoice], today: date) -> ReportSummary:
    total_revenue = ZERO
    paid_this_month = ZERO
    for invoice in invoices:
        for payment in _completed(invoice):
            total_revenue += payment.amount
            paid_on = ensure_utc(payment.paid_at).date()
            if (paid_on.year, paid_on.month) == (today.year, today.month):
                paid_this_month += payment.amount
    total_invoiced = sum((inv.total for inv in invoices), ZERO)
    count = len(invoices)
    return ReportSummary(
        total_revenue=round_money(total_revenue),
        total_invoiced=round_money(total_invoiced),
        invoice_count=count,
        avg_invoice_value=round_money(total_invoiced / count) if count else ZERO,
        collection_rate=collection_rate(total_revenue, total_invoiced),
        paid_this_month=round_money(paid_this_month),
    )


@traced_engine(
    "reporting", "1.0", fingerprint_fields=("today", "window_months", "top_clients"),
)
def build_report_bundle(
    *,
    invoices: Sequence[Invoice],
    client_labels: Mapping[UUID, str],
    today: date,
    window_months: int = DEFAULT_WINDOW_MONTHS,
    top_clients: int = DEFAULT_TOP_CLIENTS,
) -> ReportBundle:
    """Aggregate every report table from one user's invoices (with payments)."""
    if window_months < 1:
        raise ValueError("window_months must be at least 1")
    return ReportBundle(
        revenue_by_month=revenue_by_month(invoices, today, window_months),
        revenue_by_client=revenue_by_client(invoices, client_labels, top_clients),
        status_breakdown=status_breakdown(invoices),
        method_distribution=method_distribution(invoices),
        avg_payment_days=average_payment_days(invoices),
        outstanding=outstanding_summary(invoices),
        summary=summarize(invoices, today),
    )
