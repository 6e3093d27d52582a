"""
invoflow_services.insight_service -- Heuristic invoice insights.

Responsibility:
    Loads the history windows each scorer needs through InvoiceSelector
    and hands them, with today's date from the injected clock, to the pure
    engines in ``invoflow_engines``.

Architecture position:
    Services -- read-only orchestration.  No writes, no side effects.

Invariants enforced:
    - Identical stored history and clock give identical results.
    - Client ownership is checked before any history is read.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from typing import Any
from uuid import UUID

from invoflow_kernel.db.types import round_money, to_decimal
from invoflow_kernel.domain.clock import Clock
from invoflow_kernel.logging_config import get_logger
from invoflow_kernel.selectors.client_selector import ClientSelector
from invoflow_kernel.selectors.invoice_selector import InvoiceSelector
from invoflow_kernel.services.base import BaseService
from invoflow_engines import scoring
from invoflow_engines.duplicate_detection import (
    DuplicateCandidate,
    DuplicateCheck,
    detect_duplicate,
)
from invoflow_engines.line_item_suggestion import LineItemSuggestion, suggest_line_items
from invoflow_engines.payment_prediction import PaymentPrediction, predict_payment_date
from invoflow_engines.totals import coerce_line_items
from invoflow_services.validation import require_date

logger = get_logger("services.insight")


class InsightService(BaseService):
    """Payment-date prediction, line-item suggestions and duplicate checks."""

    def __init__(self, session, clock: Clock | None = None):
        super().__init__(session, clock)
        self._invoices = InvoiceSelector(session)
        self._clients = ClientSelector(session)

    def predict_payment_date(
        self,
        user_id: UUID,
        client_id: UUID,
        total: Any,
        due_date: date | str,
    ) -> PaymentPrediction:
        self._clients.get(user_id, client_id)
        history = self._invoices.paid_for_client(
            user_id, client_id, limit=scoring.PREDICTION_HISTORY_LIMIT
        )
        prediction = predict_payment_date(
            history=history,
            invoice_total=round_money(to_decimal(total, "total")),
            due_date=require_date(due_date, "due_date"),
            today=self.clock.today(),
        )
        logger.debug(
            "payment_date_predicted",
            extra={
                "client_id": str(client_id),
                "history_count": prediction.history_count,
                "risk_level": prediction.risk_level.value,
            },
        )
        return prediction

    def suggest_line_items(
        self,
        user_id: UUID,
        client_id: UUID,
        filter_text: str | None = None,
    ) -> list[LineItemSuggestion]:
        self._clients.get(user_id, client_id)
        client_history = self._invoices.recent_for_client(
            user_id, client_id, limit=scoring.CLIENT_ITEM_HISTORY_LIMIT
        )
        user_history = self._invoices.recent_for_user(
            user_id, limit=scoring.USER_ITEM_HISTORY_LIMIT
        )
        return suggest_line_items(
            client_history=client_history,
            user_history=user_history,
            filter_text=filter_text,
        )

    def detect_duplicate(
        self,
        user_id: UUID,
        client_id: UUID,
        total: Any,
        issue_date: date | str,
        items: Sequence[Any] | None = None,
        exclude_invoice_id: UUID | None = None,
    ) -> DuplicateCheck:
        """
        Compare a prospective invoice with the client's invoices issued
        within 30 days either side.  ``exclude_invoice_id`` leaves out the
        invoice being edited.
        """
        self._clients.get(user_id, client_id)
        issued = require_date(issue_date, "issue_date")
        candidate = DuplicateCandidate(
            client_id=client_id,
            total=round_money(to_decimal(total, "total")),
            issue_date=issued,
            items=coerce_line_items(items) if items else (),
        )
        existing = self._invoices.in_issue_window(
            user_id,
            client_id,
            around=issued,
            window_days=scoring.DUPLICATE_WINDOW_DAYS,
            exclude_ids=[exclude_invoice_id] if exclude_invoice_id else (),
        )
        check = detect_duplicate(candidate=candidate, existing=existing)
        if check.is_duplicate:
            logger.info(
                "possible_duplicate_invoice",
                extra={
                    "client_id": str(client_id),
                    "confidence": check.confidence,
                    "similar": [s.number for s in check.similar_invoices],
                },
            )
        return check
