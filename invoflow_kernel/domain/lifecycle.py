"""
Invoice lifecycle (``invoflow_kernel.domain.lifecycle``).

Responsibility
--------------
Pure state-machine definition for invoice status.  Services consult
``INVOICE_WORKFLOW`` before every status write; nothing else may change
``InvoiceModel.status``.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Only transitions listed in ``INVOICE_WORKFLOW`` are legal.
* ``paid`` and ``cancelled`` are terminal for owner actions: no item, tax
  or manual status changes.  The only way out of ``paid`` is ``reopen``,
  taken when a payment is deleted and the balance is due again.
* Reminders and partial payments leave status untouched.  A draft may
  be paid directly; settling it in full skips ``sent``.
* An invoice that reaches ``sent`` with nothing left to pay (a zero total,
  or an edit down to the amount already paid) is settled straight away.
"""

from __future__ import annotations

from dataclasses import dataclass

from invoflow_kernel.domain.dtos import InvoiceStatus
from invoflow_kernel.exceptions import InvalidStatusTransitionError


@dataclass(frozen=True)
class Guard:
    """A condition that must hold before a transition fires (descriptive only)."""
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition."""
    from_state: InvoiceStatus
    to_state: InvoiceStatus
    action: str
    guard: Guard | None = None


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle."""
    name: str
    description: str
    initial_state: InvoiceStatus
    states: tuple[InvoiceStatus, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[InvoiceStatus, ...] = ()

    def allows(
        self,
        from_state: InvoiceStatus,
        to_state: InvoiceStatus,
        action: str | None = None,
    ) -> bool:
        return any(
            t.from_state == from_state
            and t.to_state == to_state
            and (action is None or t.action == action)
            for t in self.transitions
        )

    def actions_from(self, from_state: InvoiceStatus) -> tuple[str, ...]:
        return tuple(t.action for t in self.transitions if t.from_state == from_state)


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

BALANCE_SETTLED = Guard(
    name="balance_settled",
    description="Cumulative payments equal the invoice total within 0.01",
)

PAST_DUE = Guard(
    name="past_due",
    description="Due date is strictly before today",
)

BALANCE_REOPENED = Guard(
    name="balance_reopened",
    description="A payment was deleted and the balance due is positive again",
)

# -----------------------------------------------------------------------------
# Workflow
# -----------------------------------------------------------------------------

_S = InvoiceStatus

INVOICE_WORKFLOW = Workflow(
    name="invoice",
    description="Invoice lifecycle from draft to settlement",
    initial_state=_S.DRAFT,
    states=tuple(InvoiceStatus),
    transitions=(
        Transition(_S.DRAFT, _S.SENT, action="send"),
        Transition(_S.DRAFT, _S.CANCELLED, action="cancel"),
        Transition(_S.DRAFT, _S.PAID, action="record_payment", guard=BALANCE_SETTLED),
        Transition(_S.SENT, _S.SENT, action="send"),
        Transition(_S.SENT, _S.PAID, action="record_payment", guard=BALANCE_SETTLED),
        Transition(_S.SENT, _S.PAID, action="settle", guard=BALANCE_SETTLED),
        Transition(_S.SENT, _S.OVERDUE, action="sweep_overdue", guard=PAST_DUE),
        Transition(_S.SENT, _S.CANCELLED, action="cancel"),
        Transition(_S.OVERDUE, _S.PAID, action="record_payment", guard=BALANCE_SETTLED),
        Transition(_S.OVERDUE, _S.PAID, action="settle", guard=BALANCE_SETTLED),
        Transition(_S.PAID, _S.DRAFT, action="reopen", guard=BALANCE_REOPENED),
        Transition(_S.PAID, _S.SENT, action="reopen", guard=BALANCE_REOPENED),
        Transition(_S.PAID, _S.OVERDUE, action="reopen", guard=BALANCE_REOPENED),
    ),
    terminal_states=(_S.PAID, _S.CANCELLED),
)

# Statuses that accept payments
PAYABLE_STATUSES: frozenset[InvoiceStatus] = frozenset({_S.DRAFT, _S.SENT, _S.OVERDUE})

# Statuses for which reminders may be sent
REMINDABLE_STATUSES: frozenset[InvoiceStatus] = frozenset({_S.SENT, _S.OVERDUE})

# Statuses a caller may request directly through an update
MANUAL_STATUS_TARGETS: frozenset[InvoiceStatus] = frozenset({_S.SENT, _S.CANCELLED})

# Statuses an invoice may be created in
INITIAL_STATUSES: frozenset[InvoiceStatus] = frozenset({_S.DRAFT, _S.SENT})


def is_locked(status: InvoiceStatus) -> bool:
    """True when items, tax and parties can no longer change."""
    return status in INVOICE_WORKFLOW.terminal_states


def assert_transition(
    invoice_id: object,
    from_state: InvoiceStatus,
    to_state: InvoiceStatus,
    action: str | None = None,
) -> None:
    """
    Raise InvalidStatusTransitionError unless the workflow allows the move
    (through ``action`` when one is given).
    """
    if not INVOICE_WORKFLOW.allows(from_state, to_state, action):
        raise InvalidStatusTransitionError(
            invoice_id, from_state.value, to_state.value
        )
