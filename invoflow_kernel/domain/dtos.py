"""
Domain DTOs (``invoflow_kernel.domain.dtos``).

Responsibility
--------------
Frozen dataclass value objects and enums for the nouns of invoicing: users,
clients, invoices and their lines, payments, and recurring templates.
Services and selectors return these instead of ORM instances.

Architecture position
---------------------
**Kernel domain layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* All DTOs are ``frozen=True``.
* All monetary fields use ``Decimal`` -- NEVER ``float``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class InvoiceStatus(str, Enum):
    """Invoice lifecycle states."""
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "bank_transfer"
    CREDIT_CARD = "credit_card"
    PAYPAL = "paypal"
    CHECK = "check"
    CASH = "cash"
    OTHER = "other"


class PaymentGateway(str, Enum):
    MANUAL = "manual"
    ONLINE = "online"


class PaymentStatus(str, Enum):
    COMPLETED = "completed"


class RecurrenceFrequency(str, Enum):
    """Cadence of a recurring invoice template."""
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"


@dataclass(frozen=True)
class LineItemInput:
    """A caller-supplied invoice line before totals are computed."""
    description: str
    quantity: Decimal
    rate: Decimal


@dataclass(frozen=True)
class User:
    id: UUID
    email: str
    name: str
    business_name: str | None
    address: str | None
    phone: str | None
    tax_id: str | None
    currency: str
    invoice_counter: int


@dataclass(frozen=True)
class Client:
    id: UUID
    user_id: UUID
    name: str
    email: str
    company: str | None = None
    phone: str | None = None
    address: str | None = None
    notes: str | None = None

    @property
    def display_name(self) -> str:
        """Company when present, otherwise the contact name."""
        return self.company or self.name


@dataclass(frozen=True)
class ClientSummary:
    """A client with its invoicing totals, as listed to the owner."""
    client: Client
    total_invoiced: Decimal
    outstanding: Decimal
    invoice_count: int


@dataclass(frozen=True)
class InvoiceLine:
    id: UUID
    position: int
    description: str
    quantity: Decimal
    rate: Decimal
    amount: Decimal


@dataclass(frozen=True)
class Payment:
    id: UUID
    invoice_id: UUID
    amount: Decimal
    method: PaymentMethod
    gateway: PaymentGateway
    status: PaymentStatus
    paid_at: datetime
    reference: str | None = None
    gateway_payment_id: str | None = None


@dataclass(frozen=True)
class Invoice:
    """
    An invoice with its lines and reconciliation figures.

    ``amount_paid`` and ``balance_due`` are derived from completed payments
    at read time; ``subtotal``, ``tax`` and ``total`` are stored.
    """
    id: UUID
    user_id: UUID
    client_id: UUID
    number: str
    status: InvoiceStatus
    issue_date: date
    due_date: date
    subtotal: Decimal
    tax_rate: Decimal
    tax: Decimal
    total: Decimal
    currency: str
    items: tuple[InvoiceLine, ...]
    amount_paid: Decimal
    balance_due: Decimal
    reminder_count: int = 0
    notes: str | None = None
    terms: str | None = None
    sent_at: datetime | None = None
    last_reminded_at: datetime | None = None
    recurring_invoice_id: UUID | None = None
    payments: tuple[Payment, ...] = ()


@dataclass(frozen=True)
class RecurringTemplate:
    """A recurring invoice blueprint and its cadence."""
    id: UUID
    user_id: UUID
    client_id: UUID
    frequency: RecurrenceFrequency
    next_date: date
    active: bool
    items: tuple[LineItemInput, ...]
    tax_rate: Decimal
    currency: str
    estimated_total: Decimal
    notes: str | None = None
    terms: str | None = None
    generated_count: int = 0
    last_generated_at: datetime | None = None
