"""
Batch tasks: invoicing (recurring materialisation, overdue sweep).

Each task builds its services on a clock frozen at the run's ``as_of``, so
every item of one run sees the same "today".
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from invoflow_batch.tasks.base import BatchItemInput, BatchTaskResult, user_scope
from invoflow_config import AppConfig
from invoflow_kernel.domain.clock import DeterministicClock
from invoflow_kernel.exceptions import InvoFlowError
from invoflow_kernel.selectors.invoice_selector import InvoiceSelector
from invoflow_services.notification import NotificationSink
from invoflow_services.orchestrator import InvoicingServices, build_services


class _InvoiceTask:
    """Shared service wiring for the invoicing tasks."""

    def __init__(
        self,
        config: AppConfig | None = None,
        notifier: NotificationSink | None = None,
    ):
        self._config = config
        self._notifier = notifier

    def _services(self, session: Session, as_of: datetime) -> InvoicingServices:
        return build_services(
            session,
            clock=DeterministicClock(as_of),
            config=self._config,
            notifier=self._notifier,
        )


class MaterializeRecurringTask(_InvoiceTask):
    """One item per active template whose next date has arrived."""

    @property
    def task_type(self) -> str:
        return "invoices.materialize_recurring"

    @property
    def description(self) -> str:
        return "Generate invoices for recurring templates that have fallen due"

    def prepare_items(
        self,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> tuple[BatchItemInput, ...]:
        due = self._services(session, as_of).recurring.due_template_ids(
            user_scope(parameters)
        )
        return tuple(
            BatchItemInput(
                item_index=i,
                item_key=str(template_id),
                payload={"template_id": str(template_id)},
            )
            for i, template_id in enumerate(due)
        )

    def execute_item(
        self,
        item: BatchItemInput,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> BatchTaskResult:
        recurring = self._services(session, as_of).recurring
        try:
            created = recurring.materialize_template(item.uuid("template_id"))
        except InvoFlowError as exc:
            return BatchTaskResult.rejected(exc)
        # The schedule still advances when every cycle already had an invoice
        return BatchTaskResult.succeeded(
            template_id=item.payload["template_id"],
            invoice_ids=[str(inv.id) for inv in created],
            invoice_numbers=[inv.number for inv in created],
        )


class SweepOverdueTask(_InvoiceTask):
    """One item per owner with at least one sent invoice past its due date."""

    @property
    def task_type(self) -> str:
        return "invoices.sweep_overdue"

    @property
    def description(self) -> str:
        return "Flip sent invoices past their due date to overdue"

    def prepare_items(
        self,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> tuple[BatchItemInput, ...]:
        only = user_scope(parameters)
        owners = [
            owner_id
            for owner_id in InvoiceSelector(session).users_with_past_due(
                DeterministicClock(as_of).today()
            )
            if only is None or owner_id == only
        ]
        return tuple(
            BatchItemInput(item_index=i, item_key=str(o), payload={"user_id": str(o)})
            for i, o in enumerate(owners)
        )

    def execute_item(
        self,
        item: BatchItemInput,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> BatchTaskResult:
        invoices = self._services(session, as_of).invoices
        try:
            updated = invoices.sweep_overdue(item.uuid("user_id"))
        except InvoFlowError as exc:
            return BatchTaskResult.rejected(exc)
        if updated == 0:
            return BatchTaskResult.skipped()
        return BatchTaskResult.succeeded(user_id=item.payload["user_id"], updated=updated)
