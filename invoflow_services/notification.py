"""
invoflow_services.notification -- Outbound client notifications.

Responsibility:
    Defines the outbound message contract (``OutboundMessage`` ->
    ``DeliveryReceipt``) used when an invoice is sent, a reminder goes out,
    or an online payment is confirmed, plus two sinks: one that writes a
    structured log record and one that records messages in memory.

Architecture position:
    Services -- boundary adapter.  Invoice and payment services depend on
    the ``NotificationSink`` protocol only.

Invariants enforced:
    - Services submit after the state change has been flushed; a sink
      failure propagates and the caller's transaction rolls back.

Non-goals:
    - HTML templating and real delivery (SMTP, provider APIs).
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Protocol, runtime_checkable

from invoflow_kernel.domain.clock import Clock, SystemClock
from invoflow_kernel.domain.dtos import Client, Invoice, Payment, User
from invoflow_kernel.logging_config import get_logger
from invoflow_engines.duplicate_detection import format_money

logger = get_logger("services.notification")


@dataclass(frozen=True)
class OutboundMessage:
    """A rendered message addressed to one recipient."""
    recipient: str
    subject: str
    body: str
    category: str = "general"


@dataclass(frozen=True)
class DeliveryReceipt:
    message_id: str
    accepted: bool
    submitted_at: datetime
    detail: str | None = None


@runtime_checkable
class NotificationSink(Protocol):
    def submit(self, message: OutboundMessage) -> DeliveryReceipt:
        ...


class LoggingNotificationSink:
    """Writes every message as a ``notification_submitted`` log record."""

    def __init__(self, clock: Clock | None = None):
        self._clock = clock or SystemClock()

    def submit(self, message: OutboundMessage) -> DeliveryReceipt:
        message_id = f"msg_{uuid.uuid4().hex}"
        logger.info(
            "notification_submitted",
            extra={
                "message_id": message_id,
                "recipient": message.recipient,
                "subject": message.subject,
                "category": message.category,
            },
        )
        return DeliveryReceipt(
            message_id=message_id,
            accepted=True,
            submitted_at=self._clock.now_utc(),
        )


@dataclass
class RecordingNotificationSink:
    """In-memory sink; ``messages`` keeps submission order."""

    messages: list[OutboundMessage] = field(default_factory=list)

    def submit(self, message: OutboundMessage) -> DeliveryReceipt:
        self.messages.append(message)
        return DeliveryReceipt(
            message_id=f"rec_{len(self.messages)}",
            accepted=True,
            submitted_at=datetime.min,
        )

    def by_category(self, category: str) -> list[OutboundMessage]:
        return [m for m in self.messages if m.category == category]


# ---------------------------------------------------------------------------
# Message builders
# ---------------------------------------------------------------------------


def _sender(user: User) -> str:
    return user.business_name or user.name


def invoice_message(user: User, client: Client, invoice: Invoice) -> OutboundMessage:
    return OutboundMessage(
        recipient=client.email,
        subject=f"Invoice {invoice.number} from {_sender(user)}",
        body=(
            f"Hello {client.name},\n\n"
            f"Invoice {invoice.number} for "
            f"{format_money(invoice.total, invoice.currency)} is due on "
            f"{invoice.due_date.isoformat()}.\n"
        ),
        category="invoice",
    )


def reminder_message(user: User, client: Client, invoice: Invoice) -> OutboundMessage:
    return OutboundMessage(
        recipient=client.email,
        subject=f"Payment reminder: invoice {invoice.number}",
        body=(
            f"Hello {client.name},\n\n"
            f"This is a reminder that {format_money(invoice.balance_due, invoice.currency)} "
            f"remains due on invoice {invoice.number} "
            f"(due {invoice.due_date.isoformat()}).\n"
        ),
        category="reminder",
    )


def payment_confirmation_message(
    user: User, client: Client, invoice: Invoice, payment: Payment,
) -> OutboundMessage:
    amount: Decimal = payment.amount
    return OutboundMessage(
        recipient=client.email,
        subject=f"Payment received for invoice {invoice.number}",
        body=(
            f"Hello {client.name},\n\n"
            f"{_sender(user)} received your payment of "
            f"{format_money(amount, invoice.currency)}. "
            f"Transaction: {payment.gateway_payment_id or payment.id}.\n"
        ),
        category="payment_confirmation",
    )
