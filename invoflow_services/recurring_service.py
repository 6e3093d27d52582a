"""
invoflow_services.recurring_service -- Recurring invoice templates.

Responsibility:
    Stores reusable invoice blueprints with a cadence and materialises the
    cycles that have fallen due into concrete invoices.

Architecture position:
    Services -- composes the recurrence engine (pure cadence arithmetic)
    with InvoiceService, which owns numbering and totals.

Invariants enforced:
    - A template belongs to one user and one of that user's clients.
    - The estimated total is sum(quantity * rate) and is never stored as
      an invoice total; every materialised invoice recomputes its totals.
    - Materialisation is idempotent per (template, cycle date): the cycle
      date is stored on the invoice under a unique constraint and
      ``next_date`` only moves past cycles that now have an invoice.
    - Missed runs are caught up in one pass; afterwards ``next_date`` is
      strictly after today.

Audit relevance:
    ``recurring_template_created``, ``recurring_cycle_materialized`` and
    ``recurring_materialization_completed`` carry template and invoice ids.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import select

from invoflow_kernel.db.types import validate_currency
from invoflow_kernel.domain.clock import Clock
from invoflow_kernel.domain.dtos import (
    Invoice,
    LineItemInput,
    RecurrenceFrequency,
    RecurringTemplate,
)
from invoflow_kernel.exceptions import (
    RecurringCycleAlreadyGeneratedError,
    RecurringInvoiceNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from invoflow_kernel.logging_config import LogContext, get_logger
from invoflow_kernel.models.invoice import InvoiceModel
from invoflow_kernel.models.recurring_invoice import RecurringInvoiceModel, template_items
from invoflow_kernel.models.user import UserModel
from invoflow_kernel.selectors.client_selector import ClientSelector
from invoflow_kernel.services.base import BaseService
from invoflow_engines.recurrence import due_cycles
from invoflow_engines.totals import coerce_line_items, validate_tax_rate
from invoflow_services.invoice_service import DEFAULT_PAYMENT_TERMS_DAYS, InvoiceService
from invoflow_services.validation import optional_text, require_date

logger = get_logger("services.recurring")


def _parse_frequency(value: Any) -> RecurrenceFrequency:
    try:
        return RecurrenceFrequency(value)
    except ValueError:
        raise ValidationError("frequency", f"unknown frequency: {value}") from None


def _encode_template(
    items: Sequence[LineItemInput],
    tax_rate: Any,
    currency: str,
    notes: str | None,
    terms: str | None,
) -> dict[str, Any]:
    return {
        "items": [
            {
                "description": item.description,
                "quantity": str(item.quantity),
                "rate": str(item.rate),
            }
            for item in items
        ],
        "tax_rate": str(tax_rate),
        "currency": currency,
        "notes": notes,
        "terms": terms,
    }


class RecurringInvoiceService(BaseService):
    """
    Template CRUD plus schedule materialisation.

    Contract:
        ``materialize_due`` may be called any number of times per day; only
        cycles without an invoice are generated.

    Non-goals:
        - Does NOT schedule itself; ``invoflow_batch`` drives it.
    """

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        invoices: InvoiceService | None = None,
        auto_send: bool = False,
        payment_terms_days: int = DEFAULT_PAYMENT_TERMS_DAYS,
    ):
        super().__init__(session, clock)
        self._invoices = invoices or InvoiceService(
            session, clock=self.clock, payment_terms_days=payment_terms_days
        )
        self._auto_send = auto_send
        self._payment_terms_days = payment_terms_days
        self._clients = ClientSelector(session)

    def _load(
        self, user_id: UUID, template_id: UUID, lock: bool = False,
    ) -> RecurringInvoiceModel:
        stmt = select(RecurringInvoiceModel).where(
            RecurringInvoiceModel.id == template_id,
            RecurringInvoiceModel.user_id == user_id,
        )
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        model = self.session.execute(stmt).scalar_one_or_none()
        if model is None:
            raise RecurringInvoiceNotFoundError(template_id)
        return model

    # =========================================================================
    # Templates
    # =========================================================================

    def create_template(
        self,
        user_id: UUID,
        client_id: UUID,
        frequency: RecurrenceFrequency | str,
        next_date: date | str,
        items: Sequence[LineItemInput | Mapping[str, Any]],
        notes: str | None = None,
        terms: str | None = None,
        tax_rate: Any = 0,
        currency: str | None = None,
    ) -> RecurringTemplate:
        """
        Store a template for one of the user's clients.

        Raises:
            ValidationError: Bad frequency, date, items or tax rate.
            ClientNotFoundError: Client absent or owned by another user.
        """
        cadence = _parse_frequency(frequency)
        start = require_date(next_date, "next_date")
        validated = coerce_line_items(items)
        rate = validate_tax_rate(tax_rate)
        self._clients.get(user_id, client_id)

        if currency is None:
            owner = self.session.get(UserModel, user_id)
            if owner is None:
                raise UserNotFoundError(user_id)
            code = owner.currency
        else:
            code = validate_currency(currency)

        template = RecurringInvoiceModel(
            user_id=user_id,
            client_id=client_id,
            frequency=cadence.value,
            next_date=start,
            active=True,
            template_data=_encode_template(
                validated,
                rate,
                code,
                optional_text(notes, "notes"),
                optional_text(terms, "terms"),
            ),
            generated_count=0,
        )
        self.session.add(template)
        self.session.flush()

        logger.info(
            "recurring_template_created",
            extra={
                "user_id": str(user_id),
                "template_id": str(template.id),
                "frequency": cadence.value,
                "next_date": start.isoformat(),
            },
        )
        return template.to_dto()

    def list_templates(self, user_id: UUID) -> list[RecurringTemplate]:
        rows = self.session.execute(
            select(RecurringInvoiceModel)
            .where(RecurringInvoiceModel.user_id == user_id)
            .order_by(RecurringInvoiceModel.next_date, RecurringInvoiceModel.created_at)
        ).scalars()
        return [row.to_dto() for row in rows]

    def get_template(self, user_id: UUID, template_id: UUID) -> RecurringTemplate:
        return self._load(user_id, template_id).to_dto()

    def update_template(
        self,
        user_id: UUID,
        template_id: UUID,
        active: bool | None = None,
        frequency: RecurrenceFrequency | str | None = None,
        next_date: date | str | None = None,
    ) -> RecurringTemplate:
        """Pause/resume (``active``) or reschedule a template."""
        template = self._load(user_id, template_id, lock=True)
        changed: list[str] = []
        if active is not None:
            template.active = bool(active)
            changed.append("active")
        if frequency is not None:
            template.frequency = _parse_frequency(frequency).value
            changed.append("frequency")
        if next_date is not None:
            template.next_date = require_date(next_date, "next_date")
            changed.append("next_date")
        self.session.flush()

        logger.info(
            "recurring_template_updated",
            extra={
                "template_id": str(template_id),
                "fields": changed,
                "active": template.active,
            },
        )
        return template.to_dto()

    def delete_template(self, user_id: UUID, template_id: UUID) -> None:
        """Invoices already generated keep existing; their link is cleared."""
        template = self._load(user_id, template_id)
        generated = self.session.execute(
            select(InvoiceModel).where(InvoiceModel.recurring_invoice_id == template_id)
        ).unique().scalars().all()
        for invoice in generated:
            invoice.recurring_invoice_id = None
        self.session.delete(template)
        self.session.flush()
        logger.info(
            "recurring_template_deleted",
            extra={"user_id": str(user_id), "template_id": str(template_id)},
        )

    # =========================================================================
    # Materialisation
    # =========================================================================

    def due_template_ids(self, user_id: UUID | None = None) -> list[UUID]:
        """Active templates whose next date is on or before today."""
        stmt = select(RecurringInvoiceModel.id).where(
            RecurringInvoiceModel.active.is_(True),
            RecurringInvoiceModel.next_date <= self.clock.today(),
        )
        if user_id is not None:
            stmt = stmt.where(RecurringInvoiceModel.user_id == user_id)
        stmt = stmt.order_by(RecurringInvoiceModel.next_date)
        return list(self.session.execute(stmt).scalars().all())

    def _cycle_exists(self, template_id: UUID, cycle: date) -> bool:
        found = self.session.execute(
            select(InvoiceModel.id).where(
                InvoiceModel.recurring_invoice_id == template_id,
                InvoiceModel.recurring_cycle_date == cycle,
            )
        ).first()
        return found is not None

    def materialize_template(self, template_id: UUID) -> list[Invoice]:
        """
        Generate one invoice per due cycle of a single template.

        Returns:
            The invoices created by this call, oldest cycle first.
        """
        template = self.session.execute(
            select(RecurringInvoiceModel)
            .where(RecurringInvoiceModel.id == template_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if template is None:
            raise RecurringInvoiceNotFoundError(template_id)
        if not template.active:
            return []

        today = self.clock.today()
        schedule = due_cycles(template.next_date, today, template.frequency)
        data = template.template_data or {}
        items = template_items(data)
        created: list[Invoice] = []

        with LogContext.bind(user_id=str(template.user_id)):
            for cycle in schedule.cycle_dates:
                if self._cycle_exists(template.id, cycle):
                    logger.info(
                        "recurring_cycle_skipped",
                        extra={
                            "template_id": str(template.id),
                            "cycle_date": cycle.isoformat(),
                        },
                    )
                    continue

                try:
                    invoice = self._invoices.create_invoice(
                        template.user_id,
                        template.client_id,
                        issue_date=cycle,
                        due_date=cycle + timedelta(days=self._payment_terms_days),
                        tax_rate=data.get("tax_rate", "0"),
                        items=items,
                        notes=data.get("notes"),
                        terms=data.get("terms"),
                        currency=data.get("currency"),
                        recurring_invoice_id=template.id,
                        recurring_cycle_date=cycle,
                    )
                except RecurringCycleAlreadyGeneratedError:
                    # Another run generated the cycle after the check above
                    logger.info(
                        "recurring_cycle_skipped",
                        extra={
                            "template_id": str(template.id),
                            "cycle_date": cycle.isoformat(),
                        },
                    )
                    continue
                if self._auto_send:
                    invoice = self._invoices.send_invoice(template.user_id, invoice.id)

                template.generated_count = (template.generated_count or 0) + 1
                template.last_generated_at = self.clock.now_utc()
                created.append(invoice)
                logger.info(
                    "recurring_cycle_materialized",
                    extra={
                        "template_id": str(template.id),
                        "cycle_date": cycle.isoformat(),
                        "invoice_id": str(invoice.id),
                        "number": invoice.number,
                    },
                )

        template.next_date = schedule.next_date
        self.session.flush()
        return created

    def materialize_due(self, user_id: UUID | None = None) -> list[Invoice]:
        """
        Materialise every due active template, for one user or for all.

        Returns:
            Every invoice created, grouped by template.
        """
        created: list[Invoice] = []
        template_ids = self.due_template_ids(user_id)
        for template_id in template_ids:
            created.extend(self.materialize_template(template_id))

        logger.info(
            "recurring_materialization_completed",
            extra={
                "user_id": str(user_id) if user_id else None,
                "as_of": self.clock.today().isoformat(),
                "templates": len(template_ids),
                "invoices_created": len(created),
            },
        )
        return created
