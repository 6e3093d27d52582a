"""
invoflow_services.reporting_service -- Dashboard report aggregation.

Loads one owner's invoices (with payments) and client labels, then builds
every report table with the pure ``build_report_bundle`` engine.
"""

from __future__ import annotations

from uuid import UUID

from invoflow_kernel.domain.clock import Clock
from invoflow_kernel.exceptions import ValidationError
from invoflow_kernel.logging_config import get_logger
from invoflow_kernel.selectors.client_selector import ClientSelector
from invoflow_kernel.selectors.invoice_selector import InvoiceSelector
from invoflow_kernel.services.base import BaseService
from invoflow_engines.reporting import (
    DEFAULT_TOP_CLIENTS,
    DEFAULT_WINDOW_MONTHS,
    ReportBundle,
    build_report_bundle,
)

logger = get_logger("services.reporting")


class ReportingService(BaseService):
    """Read-only report aggregation for one owner."""

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        window_months: int = DEFAULT_WINDOW_MONTHS,
        top_clients: int = DEFAULT_TOP_CLIENTS,
    ):
        super().__init__(session, clock)
        self._window_months = window_months
        self._top_clients = top_clients

    def aggregate_reports(
        self, user_id: UUID, window_months: int | None = None,
    ) -> ReportBundle:
        """
        Raises:
            ValidationError: ``window_months`` below 1.
        """
        window = self._window_months if window_months is None else window_months
        if window < 1:
            raise ValidationError("window_months", "must be at least 1")

        invoices = InvoiceSelector(self.session).all_for_user(user_id)
        labels = ClientSelector(self.session).labels(user_id)
        bundle = build_report_bundle(
            invoices=invoices,
            client_labels=labels,
            today=self.clock.today(),
            window_months=window,
            top_clients=self._top_clients,
        )
        logger.info(
            "reports_aggregated",
            extra={
                "user_id": str(user_id),
                "window_months": window,
                "invoice_count": bundle.summary.invoice_count,
            },
        )
        return bundle
