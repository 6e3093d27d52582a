"""
InvoiceNumberingService -- per-user monotonic invoice numbers.

Responsibility:
    Allocates the next invoice number for a user from the single canonical
    counter, ``UserModel.invoice_counter``.  Every creation path (create,
    duplicate, recurring materialisation) goes through here.

Architecture position:
    Kernel > Services.

Invariants enforced:
    - Monotonicity: the user row is locked with SELECT ... FOR UPDATE before
      the counter is read and incremented, so concurrent allocations for the
      same user serialise.  The (user_id, number) unique constraint backs
      this up.
    - The increment is part of the caller's transaction; a rollback returns
      the number to the pool.

Failure modes:
    - UserNotFoundError if the user does not exist.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from invoflow_kernel.exceptions import UserNotFoundError
from invoflow_kernel.logging_config import get_logger
from invoflow_kernel.models.user import UserModel

logger = get_logger("services.numbering")

DEFAULT_PREFIX = "INV-"
DEFAULT_WIDTH = 3


def format_invoice_number(
    sequence: int, prefix: str = DEFAULT_PREFIX, width: int = DEFAULT_WIDTH,
) -> str:
    """``7`` -> ``INV-007``; wider sequences are never truncated."""
    return f"{prefix}{sequence:0{width}d}"


@dataclass(frozen=True)
class AllocatedNumber:
    sequence: int
    number: str


class InvoiceNumberingService:
    """
    Allocates invoice numbers from the owner's locked counter row.

    Contract:
        ``next_number(user_id)`` returns a number never handed out before
        for that user within committed history.
    """

    def __init__(
        self,
        session: Session,
        prefix: str = DEFAULT_PREFIX,
        width: int = DEFAULT_WIDTH,
    ):
        self._session = session
        self._prefix = prefix
        self._width = width

    def next_number(self, user_id: UUID) -> AllocatedNumber:
        user = self._session.execute(
            select(UserModel)
            .where(UserModel.id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if user is None:
            raise UserNotFoundError(user_id)

        user.invoice_counter = (user.invoice_counter or 0) + 1
        self._session.flush()

        allocated = AllocatedNumber(
            sequence=user.invoice_counter,
            number=format_invoice_number(
                user.invoice_counter, self._prefix, self._width
            ),
        )
        logger.debug(
            "invoice_number_allocated",
            extra={"user_id": str(user_id), "number": allocated.number},
        )
        return allocated
