"""
Invoice ORM models (``invoflow_kernel.models.invoice``).

Responsibility
--------------
Persistence for invoices and their line items.  Totals are stored, not
derived on read; the balance due is derived from payments in ``to_dto``.

Invariants enforced
-------------------
* ``(user_id, number)`` is unique -- numbers never repeat for one user.
* ``(recurring_invoice_id, recurring_cycle_date)`` is unique -- a recurring
  template materialises at most one invoice per cycle.
* Items are owned by their invoice (delete-orphan cascade); payments are
  NOT cascaded and must be removed explicitly before the invoice.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from invoflow_kernel.db.base import OwnedByUser, TrackedBase
from invoflow_kernel.db.types import ensure_utc, normalize_decimal, round_money
from invoflow_kernel.domain.dtos import Invoice, InvoiceLine, InvoiceStatus
from invoflow_kernel.domain.reconciliation import total_paid

if TYPE_CHECKING:
    from invoflow_kernel.models.client import ClientModel
    from invoflow_kernel.models.payment import PaymentModel

# Named so a violation can be told apart from a duplicate number
RECURRING_CYCLE_CONSTRAINT = "uq_invoices_recurring_cycle"


class InvoiceModel(OwnedByUser, TrackedBase):
    """
    ORM model for invoices.

    Guarantees:
        - status stored as the InvoiceStatus value.
        - sequence_number is the owner's counter value at creation and
          orders invoices newest-first without relying on timestamps.
    """

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("user_id", "number", name="uq_invoices_user_number"),
        UniqueConstraint(
            "recurring_invoice_id",
            "recurring_cycle_date",
            name=RECURRING_CYCLE_CONSTRAINT,
        ),
        Index("idx_invoices_user_status", "user_id", "status"),
        Index("idx_invoices_client_id", "client_id"),
        Index("idx_invoices_due_date", "due_date"),
    )

    client_id: Mapped[UUID] = mapped_column(ForeignKey("clients.id"), nullable=False)
    number: Mapped[str] = mapped_column(String(50), nullable=False)
    sequence_number: Mapped[int] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=InvoiceStatus.DRAFT.value, nullable=False
    )
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(nullable=False)
    tax: Mapped[Decimal] = mapped_column(nullable=False)
    total: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    terms: Mapped[str | None] = mapped_column(Text, nullable=True)
    reminder_count: Mapped[int] = mapped_column(default=0, nullable=False)
    last_reminded_at: Mapped[datetime | None] = mapped_column(nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
    recurring_invoice_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("recurring_invoices.id", ondelete="SET NULL"), nullable=True
    )
    recurring_cycle_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    items: Mapped[list["InvoiceItemModel"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItemModel.position",
        lazy="selectin",
    )

    payments: Mapped[list["PaymentModel"]] = relationship(
        back_populates="invoice",
        order_by="PaymentModel.paid_at",
        lazy="selectin",
    )

    client: Mapped["ClientModel"] = relationship(lazy="joined")

    def to_dto(self, include_payments: bool = True) -> Invoice:
        """Convert ORM model to frozen dataclass with derived balance."""
        total = round_money(self.total)
        paid = total_paid(self.payments)
        return Invoice(
            id=self.id,
            user_id=self.user_id,
            client_id=self.client_id,
            number=self.number,
            status=InvoiceStatus(self.status),
            issue_date=self.issue_date,
            due_date=self.due_date,
            subtotal=round_money(self.subtotal),
            tax_rate=normalize_decimal(self.tax_rate),
            tax=round_money(self.tax),
            total=total,
            currency=self.currency,
            items=tuple(item.to_dto() for item in self.items),
            amount_paid=paid,
            balance_due=round_money(total - paid),
            reminder_count=self.reminder_count,
            notes=self.notes,
            terms=self.terms,
            sent_at=ensure_utc(self.sent_at),
            last_reminded_at=ensure_utc(self.last_reminded_at),
            recurring_invoice_id=self.recurring_invoice_id,
            payments=(
                tuple(p.to_dto() for p in self.payments) if include_payments else ()
            ),
        )


class InvoiceItemModel(TrackedBase):
    """
    ORM model for invoice line items.

    Guarantees:
        - amount == round(quantity * rate) at the time of the last edit.
        - position preserves caller ordering.
    """

    __tablename__ = "invoice_items"

    __table_args__ = (
        Index("idx_invoice_items_invoice_id", "invoice_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(nullable=False, default=0)
    description: Mapped[str] = mapped_column(String(1000), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    rate: Mapped[Decimal] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    invoice: Mapped[InvoiceModel] = relationship(back_populates="items")

    def to_dto(self) -> InvoiceLine:
        return InvoiceLine(
            id=self.id,
            position=self.position,
            description=self.description,
            quantity=normalize_decimal(self.quantity),
            rate=normalize_decimal(self.rate),
            amount=round_money(self.amount),
        )
