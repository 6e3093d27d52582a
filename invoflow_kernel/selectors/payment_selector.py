"""
Module: invoflow_kernel.selectors.payment_selector
Responsibility: Read-side payment queries scoped through the owning invoice.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select

from invoflow_kernel.domain.dtos import Payment
from invoflow_kernel.models.invoice import InvoiceModel
from invoflow_kernel.models.payment import PaymentModel
from invoflow_kernel.selectors.base import BaseSelector


class PaymentSelector(BaseSelector):
    """Read-only access to payments as ``Payment`` DTOs."""

    def list_payments(
        self,
        user_id: UUID,
        invoice_id: UUID | None = None,
        paid_from: datetime | None = None,
        paid_to: datetime | None = None,
    ) -> list[Payment]:
        """Payments of a user's invoices, newest first."""
        stmt = (
            select(PaymentModel)
            .join(InvoiceModel, InvoiceModel.id == PaymentModel.invoice_id)
            .where(InvoiceModel.user_id == user_id)
        )
        if invoice_id is not None:
            stmt = stmt.where(PaymentModel.invoice_id == invoice_id)
        if paid_from is not None:
            stmt = stmt.where(PaymentModel.paid_at >= paid_from)
        if paid_to is not None:
            stmt = stmt.where(PaymentModel.paid_at <= paid_to)
        stmt = stmt.order_by(PaymentModel.paid_at.desc())
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]
