"""
Typed exception hierarchy for the invoicing kernel.

===============================================================================
HIERARCHY
===============================================================================

Every error raised by a service inherits from InvoFlowError and carries:
  1. a ``code`` class attribute (machine-readable, API-safe)
  2. a ``kind`` class attribute (validation / not_found / conflict / internal)
  3. structured attributes instead of information buried in the message

    InvoFlowError (base)
    |
    +-- ValidationError
    |
    +-- NotFoundError
    |   +-- UserNotFoundError
    |   +-- ClientNotFoundError
    |   +-- InvoiceNotFoundError
    |   +-- PaymentNotFoundError
    |   +-- RecurringInvoiceNotFoundError
    |
    +-- ConflictError
        +-- PaymentExceedsBalanceError
        +-- InvoiceNotPayableError
        +-- NoBalanceDueError
        +-- InvalidStatusTransitionError
        +-- InvoiceLockedError
        +-- InvoiceHasPaymentsError
        +-- InvoiceNotRemindableError
        +-- ClientHasInvoicesError
        +-- DuplicateInvoiceNumberError
        +-- RecurringCycleAlreadyGeneratedError
        +-- EmailAlreadyRegisteredError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Kind        | Code                      | When Raised
------------|---------------------------|-------------------------------------------
validation  | VALIDATION_ERROR          | Malformed or missing input field
------------|---------------------------|-------------------------------------------
not_found   | USER_NOT_FOUND            | User id unknown
            | CLIENT_NOT_FOUND          | Client missing or owned by another user
            | INVOICE_NOT_FOUND         | Invoice missing or owned by another user
            | PAYMENT_NOT_FOUND         | Payment missing or owned by another user
            | RECURRING_NOT_FOUND       | Template missing or owned by another user
------------|---------------------------|-------------------------------------------
conflict    | PAYMENT_EXCEEDS_BALANCE   | paid + amount > invoice total
            | INVOICE_NOT_PAYABLE       | Invoice status does not accept payments
            | NO_BALANCE_DUE            | Online payment against a settled invoice
            | INVALID_STATUS_TRANSITION | Transition not in the invoice workflow
            | INVOICE_LOCKED            | Editing a paid or cancelled invoice
            | INVOICE_HAS_PAYMENTS      | Deleting an invoice that still has payments
            | INVOICE_NOT_REMINDABLE    | Reminder for an invoice not sent or overdue
            | CLIENT_HAS_INVOICES       | Deleting a client that still has invoices
            | DUPLICATE_INVOICE_NUMBER  | Number already used by this user
            | RECURRING_CYCLE_EXISTS    | Template cycle already has its invoice
            | EMAIL_ALREADY_REGISTERED  | Signup with an email already in use
------------|---------------------------|-------------------------------------------
internal    | INTERNAL_ERROR            | Anything not listed above

Not-found is raised for records owned by another user as well, so callers
cannot discover whether other tenants' records exist.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

from invoflow_kernel.logging_config import get_logger

logger = get_logger("exceptions")

GENERIC_INTERNAL_MESSAGE = "An unexpected error occurred. Please try again."


class InvoFlowError(Exception):
    """
    Base exception for all invoicing kernel errors.

    All subclasses must have ``code`` and ``kind`` class attributes.
    """

    code: str = "INVOFLOW_ERROR"
    kind: str = "internal"

    def details(self) -> dict[str, Any]:
        """Structured, user-safe attributes of this error."""
        return {
            k: v for k, v in vars(self).items()
            if not k.startswith("_")
        }


# Validation


class ValidationError(InvoFlowError):
    """Input is malformed or missing a required value."""

    code: str = "VALIDATION_ERROR"
    kind: str = "validation"

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


# Not found


class NotFoundError(InvoFlowError):
    """Base exception for records that are absent or not owned by the caller."""

    code: str = "NOT_FOUND"
    kind: str = "not_found"
    entity_type: str = "record"

    def __init__(self, entity_id: Any):
        self.entity_id = str(entity_id)
        super().__init__(f"{self.entity_type.capitalize()} not found: {entity_id}")


class UserNotFoundError(NotFoundError):
    code: str = "USER_NOT_FOUND"
    entity_type: str = "user"


class ClientNotFoundError(NotFoundError):
    code: str = "CLIENT_NOT_FOUND"
    entity_type: str = "client"


class InvoiceNotFoundError(NotFoundError):
    code: str = "INVOICE_NOT_FOUND"
    entity_type: str = "invoice"


class PaymentNotFoundError(NotFoundError):
    code: str = "PAYMENT_NOT_FOUND"
    entity_type: str = "payment"


class RecurringInvoiceNotFoundError(NotFoundError):
    code: str = "RECURRING_NOT_FOUND"
    entity_type: str = "recurring invoice"


# Conflict


class ConflictError(InvoFlowError):
    """Base exception for requests that contradict current state."""

    code: str = "CONFLICT"
    kind: str = "conflict"


class PaymentExceedsBalanceError(ConflictError):
    """Payment would push cumulative payments above the invoice total."""

    code: str = "PAYMENT_EXCEEDS_BALANCE"

    def __init__(self, invoice_id: Any, amount: Decimal, balance_due: Decimal):
        self.invoice_id = str(invoice_id)
        self.amount = amount
        self.balance_due = balance_due
        super().__init__(
            f"Payment of {amount} exceeds remaining balance of {balance_due}"
        )


class InvoiceNotPayableError(ConflictError):
    """Invoice status does not accept payments."""

    code: str = "INVOICE_NOT_PAYABLE"

    def __init__(self, invoice_id: Any, status: str):
        self.invoice_id = str(invoice_id)
        self.status = status
        super().__init__(f"Invoice {invoice_id} cannot accept payments while {status}")


class NoBalanceDueError(ConflictError):
    """Invoice has nothing left to pay."""

    code: str = "NO_BALANCE_DUE"

    def __init__(self, invoice_id: Any):
        self.invoice_id = str(invoice_id)
        super().__init__(f"No balance due on invoice {invoice_id}")


class InvalidStatusTransitionError(ConflictError):
    """Requested status change is not part of the invoice workflow."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, invoice_id: Any, from_status: str, to_status: str):
        self.invoice_id = str(invoice_id)
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invoice {invoice_id} cannot move from {from_status} to {to_status}"
        )


class InvoiceLockedError(ConflictError):
    """Paid and cancelled invoices reject edits to items, tax and parties."""

    code: str = "INVOICE_LOCKED"

    def __init__(self, invoice_id: Any, status: str):
        self.invoice_id = str(invoice_id)
        self.status = status
        super().__init__(f"Invoice {invoice_id} is {status} and can no longer be edited")


class InvoiceHasPaymentsError(ConflictError):
    """Invoice still has payments and cannot be deleted."""

    code: str = "INVOICE_HAS_PAYMENTS"

    def __init__(self, invoice_id: Any, payment_count: int):
        self.invoice_id = str(invoice_id)
        self.payment_count = payment_count
        super().__init__(
            f"Invoice {invoice_id} has {payment_count} payment(s); remove them first"
        )


class InvoiceNotRemindableError(ConflictError):
    """Reminders go out for sent and overdue invoices only."""

    code: str = "INVOICE_NOT_REMINDABLE"

    def __init__(self, invoice_id: Any, status: str):
        self.invoice_id = str(invoice_id)
        self.status = status
        super().__init__(
            f"Can only send reminders for sent or overdue invoices (invoice is {status})"
        )


class ClientHasInvoicesError(ConflictError):
    """Client still has invoices and cannot be deleted."""

    code: str = "CLIENT_HAS_INVOICES"

    def __init__(self, client_id: Any, invoice_count: int):
        self.client_id = str(client_id)
        self.invoice_count = invoice_count
        super().__init__(
            f"Cannot delete client with existing invoices ({invoice_count})"
        )


class DuplicateInvoiceNumberError(ConflictError):
    """Invoice number already used by this user."""

    code: str = "DUPLICATE_INVOICE_NUMBER"

    def __init__(self, number: str):
        self.number = number
        super().__init__(f"Invoice number already in use: {number}")


class RecurringCycleAlreadyGeneratedError(ConflictError):
    """A template cycle already has its invoice."""

    code: str = "RECURRING_CYCLE_EXISTS"

    def __init__(self, template_id: Any, cycle_date: date):
        self.template_id = str(template_id)
        self.cycle_date = cycle_date
        super().__init__(
            f"Recurring invoice {template_id} already generated the {cycle_date} cycle"
        )


class EmailAlreadyRegisteredError(ConflictError):
    """Another user already signed up with this email."""

    code: str = "EMAIL_ALREADY_REGISTERED"

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Email already registered: {email}")


# =============================================================================
# User-facing error objects
# =============================================================================


def error_payload(exc: BaseException) -> dict[str, Any]:
    """
    Convert an exception into the structured object returned to callers.

    Known errors keep their kind, code, message and structured fields.
    Anything else is logged with its traceback and reported generically,
    so internal detail never reaches the caller.
    """
    if isinstance(exc, InvoFlowError):
        payload: dict[str, Any] = {
            "kind": exc.kind,
            "code": exc.code,
            "message": str(exc),
        }
        for key, value in exc.details().items():
            payload.setdefault(
                key, str(value) if isinstance(value, Decimal) else value
            )
        return payload

    logger.error(
        "unexpected_error",
        exc_info=(type(exc), exc, exc.__traceback__),
    )
    return {
        "kind": "internal",
        "code": "INTERNAL_ERROR",
        "message": GENERIC_INTERNAL_MESSAGE,
    }
