"""
invoflow_services.invoice_service -- Invoice lifecycle orchestration.

Responsibility:
    Creates, edits, sends, reminds, cancels, duplicates and deletes
    invoices, and sweeps past-due sent invoices to overdue.  Numbers come
    from InvoiceNumberingService, totals from the totals engine and every
    status write is checked against ``INVOICE_WORKFLOW``.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Composes ``compute_invoice_totals`` (pure engine) with kernel models,
    selectors and the numbering service.

Invariants enforced:
    - total = subtotal + tax with amounts rounded half-up to 2 places,
      recomputed whenever items or the tax rate change.
    - Invoice numbers come from the owner's locked counter only.
    - Status changes follow the workflow; ``paid`` and ``overdue`` are
      never set by hand, and paid/cancelled invoices reject edits to
      items, tax, client, dates and currency (InvoiceLockedError).
    - The overdue sweep is idempotent: a second run in the same day
      changes nothing.
    - A sent invoice with nothing left to pay (a zero total, or an edit
      down to the amount already paid) is settled to ``paid`` at once.
    - The invoice row is locked (SELECT ... FOR UPDATE) for every
      read-then-write.

Failure modes:
    - ValidationError: malformed items, tax rate, dates or fields.
    - ClientNotFoundError / InvoiceNotFoundError: absent or not owned.
    - InvalidStatusTransitionError, InvoiceLockedError,
      InvoiceNotRemindableError, InvoiceHasPaymentsError,
      DuplicateInvoiceNumberError, RecurringCycleAlreadyGeneratedError.

Audit relevance:
    Every mutation logs a snake_case event (``invoice_created``,
    ``invoice_sent``, ``invoice_status_changed``, ``overdue_sweep_completed``
    ...) with user and invoice ids.

Usage:
    service = InvoiceService(session, clock=clock)
    invoice = service.create_invoice(
        user_id, client_id,
        issue_date=date(2026, 3, 1), due_date=date(2026, 3, 31),
        tax_rate=Decimal("10"),
        items=[{"description": "Design", "quantity": 1, "rate": 1000}],
    )
    service.send_invoice(user_id, invoice.id)
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from invoflow_kernel.db.types import ZERO, validate_currency
from invoflow_kernel.domain.clock import Clock
from invoflow_kernel.domain.dtos import Invoice, InvoiceStatus, LineItemInput
from invoflow_kernel.domain.lifecycle import (
    INITIAL_STATUSES,
    MANUAL_STATUS_TARGETS,
    REMINDABLE_STATUSES,
    assert_transition,
    is_locked,
)
from invoflow_kernel.domain.reconciliation import is_settled, total_paid
from invoflow_kernel.exceptions import (
    DuplicateInvoiceNumberError,
    InvalidStatusTransitionError,
    InvoiceHasPaymentsError,
    InvoiceLockedError,
    InvoiceNotFoundError,
    InvoiceNotRemindableError,
    RecurringCycleAlreadyGeneratedError,
    UserNotFoundError,
    ValidationError,
)
from invoflow_kernel.logging_config import LogContext, get_logger
from invoflow_kernel.models.invoice import (
    RECURRING_CYCLE_CONSTRAINT,
    InvoiceItemModel,
    InvoiceModel,
)
from invoflow_kernel.models.user import UserModel
from invoflow_kernel.selectors.client_selector import ClientSelector
from invoflow_kernel.selectors.invoice_selector import InvoiceSelector
from invoflow_kernel.services.base import BaseService
from invoflow_kernel.services.numbering_service import InvoiceNumberingService
from invoflow_engines.totals import (
    InvoiceTotals,
    compute_invoice_totals,
    recompute_tax,
    validate_tax_rate,
)
from invoflow_services.notification import (
    LoggingNotificationSink,
    NotificationSink,
    invoice_message,
    reminder_message,
)
from invoflow_services.validation import optional_text, require_date

logger = get_logger("services.invoice")

DEFAULT_PAYMENT_TERMS_DAYS = 30

_UPDATABLE_FIELDS = frozenset({
    "client_id", "issue_date", "due_date", "notes", "terms",
    "currency", "tax_rate", "items", "status",
})

# Fields frozen once an invoice is paid or cancelled
_LOCKED_FIELDS = frozenset({
    "client_id", "issue_date", "due_date", "currency", "tax_rate", "items",
})

# Workflow action behind each status a caller may request directly
_MANUAL_ACTIONS = {
    InvoiceStatus.SENT: "send",
    InvoiceStatus.CANCELLED: "cancel",
}


def _parse_status(value: Any) -> InvoiceStatus:
    try:
        return InvoiceStatus(value)
    except ValueError:
        raise ValidationError("status", f"unknown status: {value}") from None


def _violates_cycle_constraint(exc: IntegrityError) -> bool:
    # PostgreSQL names the constraint; SQLite lists its columns
    message = str(exc.orig)
    return RECURRING_CYCLE_CONSTRAINT in message or "recurring_cycle_date" in message


class InvoiceService(BaseService):
    """
    Owner-facing invoice operations.

    Contract:
        Every method takes the owning ``user_id``; invoices and clients of
        other users are reported as not found.

    Non-goals:
        - Does NOT record payments (PaymentService).
        - Does NOT commit; the caller owns the transaction.
    """

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        notifier: NotificationSink | None = None,
        numbering: InvoiceNumberingService | None = None,
        payment_terms_days: int = DEFAULT_PAYMENT_TERMS_DAYS,
    ):
        super().__init__(session, clock)
        self._notifier = notifier or LoggingNotificationSink(self.clock)
        self._numbering = numbering or InvoiceNumberingService(session)
        self._payment_terms_days = payment_terms_days
        self._invoices = InvoiceSelector(session)
        self._clients = ClientSelector(session)

    # =========================================================================
    # Internals
    # =========================================================================

    def _load(self, user_id: UUID, invoice_id: UUID, lock: bool = False) -> InvoiceModel:
        stmt = select(InvoiceModel).where(
            InvoiceModel.id == invoice_id,
            InvoiceModel.user_id == user_id,
        )
        if lock:
            stmt = stmt.with_for_update(of=InvoiceModel).execution_options(
                populate_existing=True
            )
        model = self.session.execute(stmt).unique().scalar_one_or_none()
        if model is None:
            raise InvoiceNotFoundError(invoice_id)
        return model

    def _owner(self, user_id: UUID) -> UserModel:
        user = self.session.get(UserModel, user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    @staticmethod
    def _apply_totals(invoice: InvoiceModel, totals: InvoiceTotals) -> None:
        invoice.items.clear()
        for line in totals.lines:
            invoice.items.append(
                InvoiceItemModel(
                    position=line.position,
                    description=line.description,
                    quantity=line.quantity,
                    rate=line.rate,
                    amount=line.amount,
                )
            )
        invoice.subtotal = totals.subtotal
        invoice.tax_rate = totals.tax_rate
        invoice.tax = totals.tax
        invoice.total = totals.total

    def _set_status(
        self, invoice: InvoiceModel, target: InvoiceStatus, action: str,
    ) -> InvoiceStatus:
        current = InvoiceStatus(invoice.status)
        assert_transition(invoice.id, current, target, action)
        invoice.status = target.value
        if current != target:
            logger.info(
                "invoice_status_changed",
                extra={
                    "invoice_id": str(invoice.id),
                    "from_status": current.value,
                    "to_status": target.value,
                    "action": action,
                },
            )
        return current

    # =========================================================================
    # Create / read
    # =========================================================================

    def create_invoice(
        self,
        user_id: UUID,
        client_id: UUID,
        issue_date: date | str,
        due_date: date | str,
        tax_rate: Any,
        items: Sequence[LineItemInput | Mapping[str, Any]],
        notes: str | None = None,
        terms: str | None = None,
        status: InvoiceStatus | str = InvoiceStatus.DRAFT,
        currency: str | None = None,
        *,
        recurring_invoice_id: UUID | None = None,
        recurring_cycle_date: date | None = None,
    ) -> Invoice:
        """
        Create an invoice in ``draft`` or ``sent`` status.

        Creating directly as ``sent`` stamps ``sent_at`` but does not notify
        the client; use ``send_invoice`` for that.
        """
        initial = _parse_status(status)
        if initial not in INITIAL_STATUSES:
            raise ValidationError("status", "new invoices must be draft or sent")
        issued = require_date(issue_date, "issue_date")
        due = require_date(due_date, "due_date")
        if due < issued:
            raise ValidationError("due_date", "must be on or after the issue date")

        self._clients.get(user_id, client_id)
        totals = compute_invoice_totals(items=items, tax_rate=tax_rate)
        code = (
            validate_currency(currency) if currency is not None
            else self._owner(user_id).currency
        )

        allocated = self._numbering.next_number(user_id)
        invoice = InvoiceModel(
            user_id=user_id,
            client_id=client_id,
            number=allocated.number,
            sequence_number=allocated.sequence,
            status=initial.value,
            issue_date=issued,
            due_date=due,
            currency=code,
            notes=optional_text(notes, "notes"),
            terms=optional_text(terms, "terms"),
            reminder_count=0,
            sent_at=self.clock.now_utc() if initial == InvoiceStatus.SENT else None,
            recurring_invoice_id=recurring_invoice_id,
            recurring_cycle_date=recurring_cycle_date,
        )
        self._apply_totals(invoice, totals)

        try:
            with self.session.begin_nested():
                self.session.add(invoice)
                self.session.flush()
        except IntegrityError as exc:
            if recurring_cycle_date is not None and _violates_cycle_constraint(exc):
                logger.warning(
                    "recurring_cycle_conflict",
                    extra={
                        "template_id": str(recurring_invoice_id),
                        "cycle_date": recurring_cycle_date.isoformat(),
                    },
                )
                raise RecurringCycleAlreadyGeneratedError(
                    recurring_invoice_id, recurring_cycle_date
                ) from exc
            logger.warning(
                "invoice_number_conflict",
                extra={"user_id": str(user_id), "number": allocated.number},
            )
            raise DuplicateInvoiceNumberError(allocated.number) from exc
        self._settle_if_nothing_due(invoice)

        with LogContext.bind(user_id=str(user_id), invoice_id=str(invoice.id)):
            logger.info(
                "invoice_created",
                extra={
                    "number": invoice.number,
                    "status": invoice.status,
                    "total": str(invoice.total),
                    "item_count": len(totals.lines),
                    "recurring_invoice_id": (
                        str(recurring_invoice_id) if recurring_invoice_id else None
                    ),
                },
            )
        return invoice.to_dto()

    def get_invoice(self, user_id: UUID, invoice_id: UUID) -> Invoice:
        return self._invoices.get(user_id, invoice_id)

    def list_invoices(
        self,
        user_id: UUID,
        status: InvoiceStatus | str | None = None,
        search: str | None = None,
        client_id: UUID | None = None,
    ) -> list[Invoice]:
        """Newest first; ``status="all"`` is the same as no filter."""
        if status == "all":
            status = None
        if status is not None:
            status = _parse_status(status)
        return self._invoices.list_invoices(
            user_id, status=status, search=search, client_id=client_id
        )

    # =========================================================================
    # Update / delete
    # =========================================================================

    def update_invoice(self, user_id: UUID, invoice_id: UUID, **fields: Any) -> Invoice:
        """
        Apply a partial update.

        Items are replaced wholesale.  A new tax rate without items
        recomputes tax and total from the stored subtotal.  ``status`` may
        only be set to ``sent`` or ``cancelled`` and must be a legal
        transition from the current status.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(sorted(unknown)[0], "is not an invoice field")

        invoice = self._load(user_id, invoice_id, lock=True)
        current = InvoiceStatus(invoice.status)
        if is_locked(current) and _LOCKED_FIELDS & set(fields):
            raise InvoiceLockedError(invoice_id, current.value)

        if fields.get("client_id") is not None:
            self._clients.get(user_id, fields["client_id"])
            invoice.client_id = fields["client_id"]

        issued = invoice.issue_date
        due = invoice.due_date
        if fields.get("issue_date") is not None:
            issued = require_date(fields["issue_date"], "issue_date")
        if fields.get("due_date") is not None:
            due = require_date(fields["due_date"], "due_date")
        if due < issued:
            raise ValidationError("due_date", "must be on or after the issue date")
        invoice.issue_date = issued
        invoice.due_date = due

        if "notes" in fields:
            invoice.notes = optional_text(fields["notes"], "notes")
        if "terms" in fields:
            invoice.terms = optional_text(fields["terms"], "terms")
        if fields.get("currency") is not None:
            invoice.currency = validate_currency(fields["currency"])

        if fields.get("items") is not None:
            tax_rate = fields.get("tax_rate")
            totals = compute_invoice_totals(
                items=fields["items"],
                tax_rate=invoice.tax_rate if tax_rate is None else tax_rate,
            )
            self._check_covers_payments(invoice, totals.total)
            self._apply_totals(invoice, totals)
        elif fields.get("tax_rate") is not None:
            rate = validate_tax_rate(fields["tax_rate"])
            tax, total = recompute_tax(invoice.subtotal, rate)
            self._check_covers_payments(invoice, total)
            invoice.tax_rate = rate
            invoice.tax = tax
            invoice.total = total

        if fields.get("status") is not None:
            target = _parse_status(fields["status"])
            if target != current:
                if target not in MANUAL_STATUS_TARGETS:
                    raise InvalidStatusTransitionError(
                        invoice_id, current.value, target.value
                    )
                self._set_status(invoice, target, _MANUAL_ACTIONS[target])
                if target == InvoiceStatus.SENT and invoice.sent_at is None:
                    invoice.sent_at = self.clock.now_utc()

        self.session.flush()
        self._settle_if_nothing_due(invoice)
        logger.info(
            "invoice_updated",
            extra={
                "user_id": str(user_id),
                "invoice_id": str(invoice_id),
                "fields": sorted(fields),
                "total": str(invoice.total),
            },
        )
        return invoice.to_dto()

    def _settle_if_nothing_due(self, invoice: InvoiceModel) -> None:
        """A sent or overdue invoice whose payments already cover the total is paid."""
        if invoice.status not in (InvoiceStatus.SENT.value, InvoiceStatus.OVERDUE.value):
            return
        if is_settled(invoice.total, total_paid(invoice.payments)):
            self._set_status(invoice, InvoiceStatus.PAID, "settle")
            self.session.flush()

    @staticmethod
    def _check_covers_payments(invoice: InvoiceModel, new_total: Decimal) -> None:
        paid = total_paid(invoice.payments)
        if paid > ZERO and new_total < paid:
            raise ValidationError(
                "items", f"total cannot fall below the amount already paid ({paid})"
            )

    def delete_invoice(
        self, user_id: UUID, invoice_id: UUID, remove_payments: bool = True,
    ) -> None:
        """
        Delete an invoice: payments first, then items, then the invoice.

        Raises:
            InvoiceHasPaymentsError: ``remove_payments`` is False and the
                invoice still has payments.
        """
        invoice = self._load(user_id, invoice_id, lock=True)
        payments = list(invoice.payments)
        if payments and not remove_payments:
            raise InvoiceHasPaymentsError(invoice_id, len(payments))

        for payment in payments:
            self.session.delete(payment)
        self.session.flush()
        self.session.expire(invoice, ["payments"])

        self.session.delete(invoice)
        self.session.flush()
        logger.info(
            "invoice_deleted",
            extra={
                "user_id": str(user_id),
                "invoice_id": str(invoice_id),
                "payments_removed": len(payments),
            },
        )

    # =========================================================================
    # Lifecycle actions
    # =========================================================================

    def send_invoice(self, user_id: UUID, invoice_id: UUID) -> Invoice:
        """Mark a draft (or re-send a sent) invoice as sent and notify the client."""
        invoice = self._load(user_id, invoice_id, lock=True)
        self._set_status(invoice, InvoiceStatus.SENT, "send")
        invoice.sent_at = self.clock.now_utc()
        self.session.flush()

        dto = invoice.to_dto()
        receipt = self._notifier.submit(
            invoice_message(
                self._owner(user_id).to_dto(), invoice.client.to_dto(), dto
            )
        )
        logger.info(
            "invoice_sent",
            extra={
                "user_id": str(user_id),
                "invoice_id": str(invoice_id),
                "number": invoice.number,
                "recipient": invoice.client.email,
                "message_id": receipt.message_id,
            },
        )
        self._settle_if_nothing_due(invoice)
        return invoice.to_dto()

    def send_reminder(self, user_id: UUID, invoice_id: UUID) -> Invoice:
        """Remind the client of a sent or overdue invoice; status is unchanged."""
        invoice = self._load(user_id, invoice_id, lock=True)
        status = InvoiceStatus(invoice.status)
        if status not in REMINDABLE_STATUSES:
            raise InvoiceNotRemindableError(invoice_id, status.value)

        invoice.reminder_count = (invoice.reminder_count or 0) + 1
        invoice.last_reminded_at = self.clock.now_utc()
        self.session.flush()

        dto = invoice.to_dto()
        receipt = self._notifier.submit(
            reminder_message(
                self._owner(user_id).to_dto(), invoice.client.to_dto(), dto
            )
        )
        logger.info(
            "invoice_reminder_sent",
            extra={
                "user_id": str(user_id),
                "invoice_id": str(invoice_id),
                "reminder_count": invoice.reminder_count,
                "message_id": receipt.message_id,
            },
        )
        return dto

    def cancel_invoice(self, user_id: UUID, invoice_id: UUID) -> Invoice:
        invoice = self._load(user_id, invoice_id, lock=True)
        self._set_status(invoice, InvoiceStatus.CANCELLED, "cancel")
        self.session.flush()
        return invoice.to_dto()

    def duplicate_invoice(self, user_id: UUID, invoice_id: UUID) -> Invoice:
        """
        Copy an invoice into a new draft issued today and due after the
        payment terms, with a fresh number and no payments.
        """
        source = self._load(user_id, invoice_id)
        today = self.clock.today()
        copy = self.create_invoice(
            user_id,
            source.client_id,
            issue_date=today,
            due_date=today + timedelta(days=self._payment_terms_days),
            tax_rate=source.tax_rate,
            items=[
                LineItemInput(
                    description=item.description,
                    quantity=item.quantity,
                    rate=item.rate,
                )
                for item in source.items
            ],
            notes=source.notes,
            terms=source.terms,
            status=InvoiceStatus.DRAFT,
            currency=source.currency,
        )
        logger.info(
            "invoice_duplicated",
            extra={
                "user_id": str(user_id),
                "source_invoice_id": str(invoice_id),
                "invoice_id": str(copy.id),
                "number": copy.number,
            },
        )
        return copy

    def sweep_overdue(self, user_id: UUID) -> int:
        """
        Flip every sent invoice of ``user_id`` whose due date is before
        today to overdue.

        Returns:
            Number of invoices changed (0 on an immediate second run).
        """
        today = self.clock.today()
        candidates = self.session.execute(
            select(InvoiceModel)
            .where(
                InvoiceModel.user_id == user_id,
                InvoiceModel.status == InvoiceStatus.SENT.value,
                InvoiceModel.due_date < today,
            )
            .order_by(InvoiceModel.sequence_number)
            .with_for_update(of=InvoiceModel)
            .execution_options(populate_existing=True)
        ).unique().scalars().all()

        for invoice in candidates:
            self._set_status(invoice, InvoiceStatus.OVERDUE, "sweep_overdue")
        self.session.flush()

        logger.info(
            "overdue_sweep_completed",
            extra={
                "user_id": str(user_id),
                "as_of": today.isoformat(),
                "updated": len(candidates),
            },
        )
        return len(candidates)
