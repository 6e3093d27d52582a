"""
BaseService -- abstract base for write-side services.

Responsibility:
    Provides the common constructor and session-handling contract for every
    service that mutates invoicing state.  Services receive a SQLAlchemy
    ``Session`` and use ``session.flush()`` -- never ``session.commit()``.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's transaction
      and never commit or roll back themselves.  The caller (request handler,
      ``session_scope()``, batch runner or test) owns commit/rollback.
"""

from abc import ABC

from sqlalchemy.orm import Session

from invoflow_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for write-side services.

    Contract:
        Accepts a ``Session`` and an optional ``Clock`` from the caller.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
