"""
Module: invoflow_kernel.selectors.client_selector
Responsibility: Read-side client queries, including per-client invoicing
    totals for the client list.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import or_, select

from invoflow_kernel.db.types import ZERO, round_money
from invoflow_kernel.domain.dtos import Client, ClientSummary, InvoiceStatus
from invoflow_kernel.exceptions import ClientNotFoundError
from invoflow_kernel.models.client import ClientModel
from invoflow_kernel.models.invoice import InvoiceModel
from invoflow_kernel.selectors.base import BaseSelector

_OPEN_STATUSES = (InvoiceStatus.SENT.value, InvoiceStatus.OVERDUE.value)


class ClientSelector(BaseSelector):
    """Read-only access to clients."""

    def get(self, user_id: UUID, client_id: UUID) -> Client:
        """
        Raises:
            ClientNotFoundError: If absent or owned by another user.
        """
        model = self.session.execute(
            select(ClientModel).where(
                ClientModel.id == client_id,
                ClientModel.user_id == user_id,
            )
        ).scalar_one_or_none()
        if model is None:
            raise ClientNotFoundError(client_id)
        return model.to_dto()

    def list_with_totals(
        self, user_id: UUID, search: str | None = None,
    ) -> list[ClientSummary]:
        """
        Clients ordered by name, each with total invoiced, outstanding
        balance of sent/overdue invoices, and invoice count.

        ``search`` matches name, email or company case-insensitively.
        """
        stmt = select(ClientModel).where(ClientModel.user_id == user_id)
        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(
                or_(
                    ClientModel.name.ilike(pattern),
                    ClientModel.email.ilike(pattern),
                    ClientModel.company.ilike(pattern),
                )
            )
        clients = self.session.execute(
            stmt.order_by(ClientModel.name.asc())
        ).scalars().all()

        invoices = self.session.execute(
            select(InvoiceModel).where(InvoiceModel.user_id == user_id)
        ).scalars().unique().all()

        by_client: dict[UUID, list[InvoiceModel]] = {}
        for invoice in invoices:
            by_client.setdefault(invoice.client_id, []).append(invoice)

        summaries: list[ClientSummary] = []
        for client in clients:
            owned = by_client.get(client.id, [])
            total_invoiced = sum((inv.total for inv in owned), ZERO)
            outstanding = sum(
                (inv.to_dto(include_payments=False).balance_due
                 for inv in owned if inv.status in _OPEN_STATUSES),
                ZERO,
            )
            summaries.append(
                ClientSummary(
                    client=client.to_dto(),
                    total_invoiced=round_money(total_invoiced),
                    outstanding=round_money(outstanding),
                    invoice_count=len(owned),
                )
            )
        return summaries

    def labels(self, user_id: UUID) -> dict[UUID, str]:
        """Map client id to display label (company, else name)."""
        rows = self.session.execute(
            select(ClientModel).where(ClientModel.user_id == user_id)
        ).scalars()
        return {c.id: c.display_name for c in rows}
