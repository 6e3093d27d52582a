"""Payment ORM model."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from invoflow_kernel.db.base import TrackedBase
from invoflow_kernel.db.types import ensure_utc, round_money
from invoflow_kernel.domain.dtos import (
    Payment,
    PaymentGateway,
    PaymentMethod,
    PaymentStatus,
)

if TYPE_CHECKING:
    from invoflow_kernel.models.invoice import InvoiceModel


class PaymentModel(TrackedBase):
    """
    ORM model for payments against an invoice.

    Guarantees:
        - amount > 0 (ck_payments_amount_positive).
        - Tenant scoping goes through the parent invoice's user_id.
    """

    __tablename__ = "payments"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
        Index("idx_payments_invoice_id", "invoice_id"),
        Index("idx_payments_paid_at", "paid_at"),
    )

    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("invoices.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    method: Mapped[str] = mapped_column(String(30), nullable=False)
    gateway: Mapped[str] = mapped_column(
        String(20), default=PaymentGateway.MANUAL.value, nullable=False
    )
    gateway_payment_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=PaymentStatus.COMPLETED.value, nullable=False
    )
    paid_at: Mapped[datetime] = mapped_column(nullable=False)
    reference: Mapped[str | None] = mapped_column(String(500), nullable=True)

    invoice: Mapped["InvoiceModel"] = relationship(back_populates="payments")

    def to_dto(self) -> Payment:
        return Payment(
            id=self.id,
            invoice_id=self.invoice_id,
            amount=round_money(self.amount),
            method=PaymentMethod(self.method),
            gateway=PaymentGateway(self.gateway),
            status=PaymentStatus(self.status),
            paid_at=ensure_utc(self.paid_at),
            reference=self.reference,
            gateway_payment_id=self.gateway_payment_id,
        )
