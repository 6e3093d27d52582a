"""
Recurring invoice template ORM model.

``template_data`` holds the invoice blueprint as JSON with Decimal values
serialised as strings::

    {
        "items": [{"description": "...", "quantity": "1", "rate": "100.00"}],
        "notes": "...", "terms": "...", "tax_rate": "10", "currency": "USD"
    }
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from invoflow_kernel.db.base import OwnedByUser, TrackedBase
from invoflow_kernel.db.types import ZERO, ensure_utc, round_money
from invoflow_kernel.domain.dtos import (
    LineItemInput,
    RecurrenceFrequency,
    RecurringTemplate,
)


def template_items(data: dict[str, Any]) -> tuple[LineItemInput, ...]:
    """Decode the item list stored in ``template_data``."""
    return tuple(
        LineItemInput(
            description=str(item["description"]),
            quantity=Decimal(str(item["quantity"])),
            rate=Decimal(str(item["rate"])),
        )
        for item in data.get("items", [])
    )


class RecurringInvoiceModel(OwnedByUser, TrackedBase):
    """
    ORM model for recurring invoice templates.

    Guarantees:
        - next_date only moves forward, one cadence unit per materialised cycle.
        - active=False pauses generation without losing the schedule.
    """

    __tablename__ = "recurring_invoices"

    __table_args__ = (
        Index("idx_recurring_invoices_user_id", "user_id"),
        Index("idx_recurring_invoices_due", "active", "next_date"),
    )

    client_id: Mapped[UUID] = mapped_column(ForeignKey("clients.id"), nullable=False)
    frequency: Mapped[str] = mapped_column(String(20), nullable=False)
    next_date: Mapped[date] = mapped_column(Date, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    template_data: Mapped[dict[str, Any]] = mapped_column(nullable=False)
    generated_count: Mapped[int] = mapped_column(default=0, nullable=False)
    last_generated_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def to_dto(self) -> RecurringTemplate:
        data = self.template_data or {}
        items = template_items(data)
        estimated = sum((item.quantity * item.rate for item in items), ZERO)
        return RecurringTemplate(
            id=self.id,
            user_id=self.user_id,
            client_id=self.client_id,
            frequency=RecurrenceFrequency(self.frequency),
            next_date=self.next_date,
            active=self.active,
            items=items,
            tax_rate=Decimal(str(data.get("tax_rate", "0"))),
            currency=data.get("currency", "USD"),
            estimated_total=round_money(estimated),
            notes=data.get("notes"),
            terms=data.get("terms"),
            generated_count=self.generated_count,
            last_generated_at=ensure_utc(self.last_generated_at),
        )
