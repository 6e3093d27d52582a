"""
Module: invoflow_kernel.selectors.invoice_selector
Responsibility: Read-side invoice queries -- single lookups, filtered lists,
    and the history windows consumed by the insight scorers and reporting.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Every query is scoped by user_id.
    - "Most recent" means highest sequence_number (the owner's counter at
      creation), which is stable even when creation timestamps tie.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Sequence
from uuid import UUID

from sqlalchemy import Select, or_, select

from invoflow_kernel.domain.dtos import Invoice, InvoiceStatus
from invoflow_kernel.exceptions import InvoiceNotFoundError
from invoflow_kernel.models.client import ClientModel
from invoflow_kernel.models.invoice import InvoiceModel
from invoflow_kernel.selectors.base import BaseSelector


class InvoiceSelector(BaseSelector):
    """Read-only access to invoices as ``Invoice`` DTOs."""

    def _owned(self, user_id: UUID) -> Select:
        return select(InvoiceModel).where(InvoiceModel.user_id == user_id)

    def _dtos(self, stmt: Select) -> list[Invoice]:
        return [m.to_dto() for m in self.session.execute(stmt).scalars().unique()]

    def get(self, user_id: UUID, invoice_id: UUID) -> Invoice:
        """
        Fetch one invoice with items, payments and balance due.

        Raises:
            InvoiceNotFoundError: If absent or owned by another user.
        """
        model = self.session.execute(
            self._owned(user_id).where(InvoiceModel.id == invoice_id)
        ).scalar_one_or_none()
        if model is None:
            raise InvoiceNotFoundError(invoice_id)
        return model.to_dto()

    def list_invoices(
        self,
        user_id: UUID,
        status: InvoiceStatus | str | None = None,
        search: str | None = None,
        client_id: UUID | None = None,
    ) -> list[Invoice]:
        """
        List invoices newest first.

        ``search`` matches the invoice number, client name or client company,
        case-insensitively.
        """
        stmt = self._owned(user_id)
        if status is not None:
            stmt = stmt.where(InvoiceModel.status == InvoiceStatus(status).value)
        if client_id is not None:
            stmt = stmt.where(InvoiceModel.client_id == client_id)
        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.join(ClientModel, ClientModel.id == InvoiceModel.client_id).where(
                or_(
                    InvoiceModel.number.ilike(pattern),
                    ClientModel.name.ilike(pattern),
                    ClientModel.company.ilike(pattern),
                )
            )
        return self._dtos(stmt.order_by(InvoiceModel.sequence_number.desc()))

    def all_for_user(self, user_id: UUID) -> list[Invoice]:
        """Every invoice of a user, oldest first (reporting input)."""
        return self._dtos(
            self._owned(user_id).order_by(InvoiceModel.sequence_number.asc())
        )

    # -------------------------------------------------------------------------
    # Insight history windows
    # -------------------------------------------------------------------------

    def paid_for_client(
        self, user_id: UUID, client_id: UUID, limit: int = 20,
    ) -> list[Invoice]:
        """The client's most recent paid invoices by issue date, newest first."""
        stmt = (
            self._owned(user_id)
            .where(
                InvoiceModel.client_id == client_id,
                InvoiceModel.status == InvoiceStatus.PAID.value,
            )
            .order_by(
                InvoiceModel.issue_date.desc(),
                InvoiceModel.sequence_number.desc(),
            )
            .limit(limit)
        )
        return self._dtos(stmt)

    def recent_for_client(
        self, user_id: UUID, client_id: UUID, limit: int = 50,
    ) -> list[Invoice]:
        """The client's most recently created invoices, newest first."""
        stmt = (
            self._owned(user_id)
            .where(InvoiceModel.client_id == client_id)
            .order_by(InvoiceModel.sequence_number.desc())
            .limit(limit)
        )
        return self._dtos(stmt)

    def recent_for_user(self, user_id: UUID, limit: int = 100) -> list[Invoice]:
        """The user's most recently created invoices, newest first."""
        stmt = (
            self._owned(user_id)
            .order_by(InvoiceModel.sequence_number.desc())
            .limit(limit)
        )
        return self._dtos(stmt)

    def in_issue_window(
        self,
        user_id: UUID,
        client_id: UUID,
        around: date,
        window_days: int,
        exclude_ids: Sequence[UUID] = (),
    ) -> list[Invoice]:
        """Non-cancelled client invoices issued within +/- ``window_days``."""
        stmt = self._owned(user_id).where(
            InvoiceModel.client_id == client_id,
            InvoiceModel.status != InvoiceStatus.CANCELLED.value,
            InvoiceModel.issue_date >= around - timedelta(days=window_days),
            InvoiceModel.issue_date <= around + timedelta(days=window_days),
        )
        if exclude_ids:
            stmt = stmt.where(InvoiceModel.id.not_in(list(exclude_ids)))
        return self._dtos(stmt.order_by(InvoiceModel.sequence_number.desc()))

    def users_with_past_due(self, today: date) -> list[UUID]:
        """Owners that have at least one sent invoice past its due date."""
        stmt = (
            select(InvoiceModel.user_id)
            .where(
                InvoiceModel.status == InvoiceStatus.SENT.value,
                InvoiceModel.due_date < today,
            )
            .distinct()
        )
        return sorted(self.session.execute(stmt).scalars().all(), key=str)
