"""
invoflow_services.payment_service -- Payment recording and reconciliation.

Responsibility:
    Records manual payments against an owner's invoice, processes the
    public full-balance online payment, reports balances and payment
    lists, and deletes payments (reverting a paid invoice when its balance
    reopens).

Architecture position:
    Services -- stateful orchestration over kernel models and the pure
    reconciliation arithmetic in ``invoflow_kernel.domain.reconciliation``.

Invariants enforced:
    - amount > 0 and cumulative completed payments never exceed the total
      (PaymentExceedsBalanceError; the invoice is left unchanged).
    - Draft, sent and overdue invoices accept payments; paid and cancelled
      ones do not.
    - When |paid - total| < 0.01 the invoice moves to ``paid``.
    - The invoice row is locked with SELECT ... FOR UPDATE before the
      balance is read, so two concurrent payments serialise on PostgreSQL.
    - Balance due is always derived from payments, never stored.

Failure modes:
    - ValidationError: non-positive amount or unknown method.
    - InvoiceNotFoundError / PaymentNotFoundError.
    - InvoiceNotPayableError, PaymentExceedsBalanceError, NoBalanceDueError.

Audit relevance:
    ``payment_recorded``, ``online_payment_processed`` and
    ``payment_deleted`` events carry invoice id, amount and resulting
    balance.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select

from invoflow_kernel.db.types import ZERO, ensure_utc, round_money, to_decimal
from invoflow_kernel.domain.clock import Clock
from invoflow_kernel.domain.dtos import (
    Invoice,
    InvoiceLine,
    InvoiceStatus,
    Payment,
    PaymentGateway,
    PaymentMethod,
    PaymentStatus,
)
from invoflow_kernel.domain.lifecycle import PAYABLE_STATUSES, assert_transition
from invoflow_kernel.domain.reconciliation import (
    balance_due,
    is_settled,
    payment_fits,
    total_paid,
)
from invoflow_kernel.exceptions import (
    InvoiceNotFoundError,
    InvoiceNotPayableError,
    NoBalanceDueError,
    PaymentExceedsBalanceError,
    PaymentNotFoundError,
    ValidationError,
)
from invoflow_kernel.logging_config import LogContext, get_logger
from invoflow_kernel.models.invoice import InvoiceModel
from invoflow_kernel.models.payment import PaymentModel
from invoflow_kernel.models.user import UserModel
from invoflow_kernel.selectors.invoice_selector import InvoiceSelector
from invoflow_kernel.selectors.payment_selector import PaymentSelector
from invoflow_kernel.services.base import BaseService
from invoflow_services.notification import (
    LoggingNotificationSink,
    NotificationSink,
    payment_confirmation_message,
)
from invoflow_services.validation import optional_text

logger = get_logger("services.payment")


@dataclass(frozen=True)
class PublicInvoiceView:
    """What an unauthenticated payer sees on the payment page."""
    id: UUID
    number: str
    status: InvoiceStatus
    issue_date: date
    due_date: date
    subtotal: Decimal
    tax_rate: Decimal
    tax: Decimal
    total: Decimal
    currency: str
    amount_paid: Decimal
    balance_due: Decimal
    items: tuple[InvoiceLine, ...]
    client_name: str
    business_name: str
    business_email: str
    notes: str | None = None
    terms: str | None = None


def _parse_method(value: Any) -> PaymentMethod:
    try:
        return PaymentMethod(value)
    except ValueError:
        raise ValidationError("method", f"unknown payment method: {value}") from None


def _positive_amount(value: Any) -> Decimal:
    amount = round_money(to_decimal(value, "amount"))
    if amount <= ZERO:
        raise ValidationError("amount", "amount must be positive")
    return amount


class PaymentService(BaseService):
    """
    Payment recording against invoices.

    Contract:
        Owner-facing methods take ``user_id``; ``process_online_payment``
        and ``get_public_invoice`` are the public payer path and look the
        invoice up by id alone.

    Non-goals:
        - Does NOT talk to a real payment gateway.
        - Does NOT de-duplicate retried requests; every call is a new
          payment.
    """

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        notifier: NotificationSink | None = None,
    ):
        super().__init__(session, clock)
        self._notifier = notifier or LoggingNotificationSink(self.clock)

    def _lock_invoice(self, invoice_id: UUID, user_id: UUID | None = None) -> InvoiceModel:
        stmt = (
            select(InvoiceModel)
            .where(InvoiceModel.id == invoice_id)
            .with_for_update(of=InvoiceModel)
            .execution_options(populate_existing=True)
        )
        if user_id is not None:
            stmt = stmt.where(InvoiceModel.user_id == user_id)
        invoice = self.session.execute(stmt).unique().scalar_one_or_none()
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id)
        return invoice

    def _settle_if_paid(self, invoice: InvoiceModel, paid: Decimal) -> None:
        if is_settled(invoice.total, paid):
            current = InvoiceStatus(invoice.status)
            assert_transition(invoice.id, current, InvoiceStatus.PAID, "record_payment")
            invoice.status = InvoiceStatus.PAID.value
            logger.info(
                "invoice_status_changed",
                extra={
                    "invoice_id": str(invoice.id),
                    "from_status": current.value,
                    "to_status": InvoiceStatus.PAID.value,
                },
            )

    # =========================================================================
    # Manual payments
    # =========================================================================

    def record_payment(
        self,
        user_id: UUID,
        invoice_id: UUID,
        amount: Any,
        method: PaymentMethod | str,
        reference: str | None = None,
        paid_at: datetime | None = None,
    ) -> Payment:
        """
        Record a manual payment.

        Raises:
            ValidationError: amount <= 0 or unknown method.
            InvoiceNotPayableError: invoice is paid or cancelled.
            PaymentExceedsBalanceError: paid + amount > total.
        """
        value = _positive_amount(amount)
        payment_method = _parse_method(method)

        invoice = self._lock_invoice(invoice_id, user_id)
        status = InvoiceStatus(invoice.status)
        if status not in PAYABLE_STATUSES:
            raise InvoiceNotPayableError(invoice_id, status.value)

        paid = total_paid(invoice.payments)
        if not payment_fits(invoice.total, paid, value):
            remaining = round_money(invoice.total - paid)
            logger.warning(
                "payment_rejected",
                extra={
                    "invoice_id": str(invoice_id),
                    "amount": str(value),
                    "balance_due": str(remaining),
                },
            )
            raise PaymentExceedsBalanceError(invoice_id, value, remaining)

        payment = PaymentModel(
            amount=value,
            method=payment_method.value,
            gateway=PaymentGateway.MANUAL.value,
            status=PaymentStatus.COMPLETED.value,
            paid_at=ensure_utc(paid_at) or self.clock.now_utc(),
            reference=optional_text(reference, "reference", 500),
        )
        invoice.payments.append(payment)
        self.session.flush()

        self._settle_if_paid(invoice, paid + value)
        self.session.flush()

        with LogContext.bind(user_id=str(user_id), invoice_id=str(invoice_id)):
            logger.info(
                "payment_recorded",
                extra={
                    "payment_id": str(payment.id),
                    "amount": str(value),
                    "method": payment_method.value,
                    "balance_due": str(round_money(invoice.total - paid - value)),
                    "status": invoice.status,
                },
            )
        return payment.to_dto()

    # =========================================================================
    # Public online payment
    # =========================================================================

    def get_public_invoice(self, invoice_id: UUID) -> PublicInvoiceView:
        """
        Payment page data for an invoice, without owner authentication.

        Raises:
            InvoiceNotFoundError: Unknown id.
            InvoiceNotPayableError: The invoice has been cancelled.
        """
        invoice = self.session.execute(
            select(InvoiceModel).where(InvoiceModel.id == invoice_id)
        ).unique().scalar_one_or_none()
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id)
        if invoice.status == InvoiceStatus.CANCELLED.value:
            raise InvoiceNotPayableError(invoice_id, invoice.status)

        dto = invoice.to_dto()
        owner = self.session.get(UserModel, invoice.user_id)
        return PublicInvoiceView(
            id=dto.id,
            number=dto.number,
            status=dto.status,
            issue_date=dto.issue_date,
            due_date=dto.due_date,
            subtotal=dto.subtotal,
            tax_rate=dto.tax_rate,
            tax=dto.tax,
            total=dto.total,
            currency=dto.currency,
            amount_paid=dto.amount_paid,
            balance_due=dto.balance_due,
            items=dto.items,
            client_name=invoice.client.display_name,
            business_name=owner.business_name or owner.name,
            business_email=owner.email,
            notes=dto.notes,
            terms=dto.terms,
        )

    def _gateway_payment_id(self) -> str:
        epoch_ms = int(self.clock.now_utc().timestamp() * 1000)
        return f"pay_{epoch_ms}_{secrets.token_hex(4)}"

    def process_online_payment(
        self,
        invoice_id: UUID,
        method: PaymentMethod | str = PaymentMethod.CREDIT_CARD,
        payer_name: str | None = None,
        payer_email: str | None = None,
    ) -> Payment:
        """
        Pay the entire remaining balance through the (simulated) gateway.

        Raises:
            InvoiceNotPayableError: paid or cancelled invoice.
            NoBalanceDueError: nothing left to pay.
        """
        payment_method = _parse_method(method or PaymentMethod.CREDIT_CARD)
        invoice = self._lock_invoice(invoice_id)
        status = InvoiceStatus(invoice.status)
        if status not in PAYABLE_STATUSES:
            raise InvoiceNotPayableError(invoice_id, status.value)

        paid = total_paid(invoice.payments)
        remaining = round_money(invoice.total - paid)
        if remaining <= ZERO:
            raise NoBalanceDueError(invoice_id)

        client = invoice.client
        payer = optional_text(payer_name, "payer_name") or client.name
        payment = PaymentModel(
            amount=remaining,
            method=payment_method.value,
            gateway=PaymentGateway.ONLINE.value,
            gateway_payment_id=self._gateway_payment_id(),
            status=PaymentStatus.COMPLETED.value,
            paid_at=self.clock.now_utc(),
            reference=f"Online payment by {payer}",
        )
        invoice.payments.append(payment)
        self.session.flush()

        self._settle_if_paid(invoice, paid + remaining)
        self.session.flush()

        dto = payment.to_dto()
        owner = self.session.get(UserModel, invoice.user_id)
        receipt = self._notifier.submit(
            payment_confirmation_message(
                owner.to_dto(), client.to_dto(), invoice.to_dto(), dto
            )
        )
        logger.info(
            "online_payment_processed",
            extra={
                "invoice_id": str(invoice_id),
                "payment_id": str(payment.id),
                "amount": str(remaining),
                "method": payment_method.value,
                "gateway_payment_id": payment.gateway_payment_id,
                "payer_email": payer_email or client.email,
                "message_id": receipt.message_id,
            },
        )
        return dto

    # =========================================================================
    # Queries
    # =========================================================================

    def get_balance(self, user_id: UUID, invoice_id: UUID) -> Decimal:
        invoice = InvoiceSelector(self.session).get(user_id, invoice_id)
        return balance_due(invoice.total, invoice.payments)

    @staticmethod
    def balance_due(invoice: Invoice) -> Decimal:
        return balance_due(invoice.total, invoice.payments)

    def list_payments(
        self,
        user_id: UUID,
        invoice_id: UUID | None = None,
        paid_from: datetime | None = None,
        paid_to: datetime | None = None,
    ) -> list[Payment]:
        if invoice_id is not None:
            InvoiceSelector(self.session).get(user_id, invoice_id)
        return PaymentSelector(self.session).list_payments(
            user_id, invoice_id=invoice_id, paid_from=paid_from, paid_to=paid_to
        )

    # =========================================================================
    # Deletion
    # =========================================================================

    def delete_payment(self, user_id: UUID, payment_id: UUID) -> Invoice:
        """
        Remove a payment.  A paid invoice whose balance reopens goes back to
        ``draft`` if it was never sent, otherwise to ``sent``, or ``overdue``
        when its due date has passed.

        Returns:
            The invoice after the payment was removed.
        """
        payment = self.session.execute(
            select(PaymentModel)
            .join(InvoiceModel, InvoiceModel.id == PaymentModel.invoice_id)
            .where(PaymentModel.id == payment_id, InvoiceModel.user_id == user_id)
        ).scalar_one_or_none()
        if payment is None:
            raise PaymentNotFoundError(payment_id)

        invoice = self._lock_invoice(payment.invoice_id, user_id)
        invoice.payments.remove(payment)
        self.session.delete(payment)
        self.session.flush()

        paid = total_paid(invoice.payments)
        if invoice.status == InvoiceStatus.PAID.value and not is_settled(invoice.total, paid):
            if invoice.sent_at is None:
                reopened = InvoiceStatus.DRAFT
            elif invoice.due_date < self.clock.today():
                reopened = InvoiceStatus.OVERDUE
            else:
                reopened = InvoiceStatus.SENT
            assert_transition(invoice.id, InvoiceStatus.PAID, reopened, "reopen")
            invoice.status = reopened.value
            logger.info(
                "invoice_status_changed",
                extra={
                    "invoice_id": str(invoice.id),
                    "from_status": InvoiceStatus.PAID.value,
                    "to_status": reopened.value,
                    "reason": "payment_deleted",
                },
            )
        self.session.flush()

        logger.info(
            "payment_deleted",
            extra={
                "user_id": str(user_id),
                "invoice_id": str(invoice.id),
                "payment_id": str(payment_id),
                "balance_due": str(round_money(invoice.total - paid)),
            },
        )
        return invoice.to_dto()
