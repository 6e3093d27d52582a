"""
invoflow_services.client_service -- Client management for one owner.

Responsibility:
    Create, read, list, update and delete a user's clients.  The list view
    carries per-client invoicing totals from ``ClientSelector``.

Architecture position:
    Services -- orchestration over kernel models and selectors.

Invariants enforced:
    - A client belongs to exactly one user; lookups for another user's
      client raise ClientNotFoundError.
    - Deletion is refused while the client has at least one invoice
      (ClientHasInvoicesError).  Recurring templates for the client are
      removed with it.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, select

from invoflow_kernel.domain.dtos import Client, ClientSummary
from invoflow_kernel.exceptions import (
    ClientHasInvoicesError,
    ClientNotFoundError,
    ValidationError,
)
from invoflow_kernel.logging_config import get_logger
from invoflow_kernel.models.client import ClientModel
from invoflow_kernel.models.invoice import InvoiceModel
from invoflow_kernel.models.recurring_invoice import RecurringInvoiceModel
from invoflow_kernel.selectors.client_selector import ClientSelector
from invoflow_kernel.services.base import BaseService
from invoflow_services.validation import optional_text, require_text, validate_email

logger = get_logger("services.client")

_UPDATABLE = ("name", "email", "company", "phone", "address", "notes")


class ClientService(BaseService):
    """Owner-scoped client CRUD."""

    def _load(self, user_id: UUID, client_id: UUID) -> ClientModel:
        model = self.session.execute(
            select(ClientModel).where(
                ClientModel.id == client_id,
                ClientModel.user_id == user_id,
            )
        ).scalar_one_or_none()
        if model is None:
            raise ClientNotFoundError(client_id)
        return model

    def create_client(
        self,
        user_id: UUID,
        name: str,
        email: str,
        company: str | None = None,
        phone: str | None = None,
        address: str | None = None,
        notes: str | None = None,
    ) -> Client:
        client = ClientModel(
            user_id=user_id,
            name=require_text(name, "name"),
            email=validate_email(email),
            company=optional_text(company, "company", 255),
            phone=optional_text(phone, "phone", 50),
            address=optional_text(address, "address"),
            notes=optional_text(notes, "notes"),
        )
        self.session.add(client)
        self.session.flush()
        logger.info(
            "client_created",
            extra={"user_id": str(user_id), "client_id": str(client.id)},
        )
        return client.to_dto()

    def get_client(self, user_id: UUID, client_id: UUID) -> Client:
        return ClientSelector(self.session).get(user_id, client_id)

    def list_clients(
        self, user_id: UUID, search: str | None = None,
    ) -> list[ClientSummary]:
        return ClientSelector(self.session).list_with_totals(user_id, search)

    def update_client(self, user_id: UUID, client_id: UUID, **fields: Any) -> Client:
        unknown = set(fields) - set(_UPDATABLE)
        if unknown:
            raise ValidationError(sorted(unknown)[0], "is not a client field")

        client = self._load(user_id, client_id)
        if "name" in fields:
            client.name = require_text(fields["name"], "name")
        if "email" in fields:
            client.email = validate_email(fields["email"])
        if "company" in fields:
            client.company = optional_text(fields["company"], "company", 255)
        if "phone" in fields:
            client.phone = optional_text(fields["phone"], "phone", 50)
        if "address" in fields:
            client.address = optional_text(fields["address"], "address")
        if "notes" in fields:
            client.notes = optional_text(fields["notes"], "notes")
        self.session.flush()

        logger.info(
            "client_updated",
            extra={"client_id": str(client_id), "fields": sorted(fields)},
        )
        return client.to_dto()

    def delete_client(self, user_id: UUID, client_id: UUID) -> None:
        client = self._load(user_id, client_id)
        invoice_count = self.session.execute(
            select(func.count(InvoiceModel.id)).where(
                InvoiceModel.client_id == client_id
            )
        ).scalar_one()
        if invoice_count:
            logger.warning(
                "client_delete_rejected",
                extra={"client_id": str(client_id), "invoice_count": invoice_count},
            )
            raise ClientHasInvoicesError(client_id, invoice_count)

        self.session.execute(
            delete(RecurringInvoiceModel).where(
                RecurringInvoiceModel.client_id == client_id
            )
        )
        self.session.delete(client)
        self.session.flush()
        logger.info(
            "client_deleted",
            extra={"user_id": str(user_id), "client_id": str(client_id)},
        )
