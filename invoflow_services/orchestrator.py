"""
invoflow_services.orchestrator -- Central DI container for invoicing services.

Responsibility:
    Creates every service exactly once for a session and wires them
    together: one clock, one notification sink and one numbering service
    are shared by everything that needs them.

Architecture position:
    Services -- the only place where services are constructed and composed.
    Callers (request handlers, batch tasks, tests) take services from here.

Invariants enforced:
    - Single-instance lifecycle: InvoiceService is shared by the recurring
      service, so every creation path uses the same numbering service.
    - All services share the same Session and Clock instances.

Usage:
    from invoflow_config import get_active_config
    from invoflow_services.orchestrator import build_services

    services = build_services(session, config=get_active_config())
    services.invoices.create_invoice(...)
    services.payments.record_payment(...)
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from invoflow_config import AppConfig, get_active_config
from invoflow_kernel.domain.clock import Clock, SystemClock
from invoflow_kernel.logging_config import get_logger
from invoflow_kernel.services.numbering_service import InvoiceNumberingService
from invoflow_services.account_service import AccountService
from invoflow_services.client_service import ClientService
from invoflow_services.insight_service import InsightService
from invoflow_services.invoice_service import InvoiceService
from invoflow_services.notification import LoggingNotificationSink, NotificationSink
from invoflow_services.payment_service import PaymentService
from invoflow_services.recurring_service import RecurringInvoiceService
from invoflow_services.reporting_service import ReportingService

logger = get_logger("services.orchestrator")


class InvoicingServices:
    """
    Central factory for invoicing services.

    Contract:
        Receives a Session, an AppConfig and optional Clock/NotificationSink.
        Exposes each service as a public attribute.

    Non-goals:
        - Does NOT manage transaction boundaries (caller's responsibility).
        - Does NOT own the Session lifecycle (no commit/rollback).
    """

    def __init__(
        self,
        session: Session,
        config: AppConfig,
        clock: Clock | None = None,
        notifier: NotificationSink | None = None,
    ) -> None:
        self._session = session
        self.config = config
        self.clock = clock or SystemClock()
        self.notifier = notifier or LoggingNotificationSink(self.clock)

        self.numbering = InvoiceNumberingService(
            session,
            prefix=config.invoice_number_prefix,
            width=config.invoice_number_width,
        )

        self.accounts = AccountService(
            session, self.clock, default_currency=config.default_currency,
        )
        self.clients = ClientService(session, self.clock)
        self.invoices = InvoiceService(
            session,
            clock=self.clock,
            notifier=self.notifier,
            numbering=self.numbering,
            payment_terms_days=config.payment_terms_days,
        )
        self.payments = PaymentService(session, clock=self.clock, notifier=self.notifier)
        self.recurring = RecurringInvoiceService(
            session,
            clock=self.clock,
            invoices=self.invoices,
            auto_send=config.recurring_auto_send,
            payment_terms_days=config.payment_terms_days,
        )
        self.insights = InsightService(session, clock=self.clock)
        self.reporting = ReportingService(
            session,
            clock=self.clock,
            window_months=config.report_window_months,
            top_clients=config.top_clients_limit,
        )

    @property
    def session(self) -> Session:
        return self._session


def build_services(
    session: Session,
    clock: Clock | None = None,
    config: AppConfig | None = None,
    notifier: NotificationSink | None = None,
) -> InvoicingServices:
    """Wire services for ``session``; defaults to the packaged configuration."""
    if config is None:
        config = get_active_config()
    services = InvoicingServices(session, config, clock=clock, notifier=notifier)
    logger.debug(
        "services_built",
        extra={
            "payment_terms_days": config.payment_terms_days,
            "recurring_auto_send": config.recurring_auto_send,
        },
    )
    return services
