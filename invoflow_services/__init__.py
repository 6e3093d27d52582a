"""
invoflow_services -- Package init and public API.

Responsibility:
    Stateful orchestration services that compose the pure calculation
    engines (invoflow_engines/) with database sessions, the injected clock
    and the outbound notification sink.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

    Dependency direction:
        invoflow_services/ -> invoflow_engines/  (allowed)
        invoflow_services/ -> invoflow_kernel/   (allowed)
        invoflow_engines/  -> invoflow_services/ (FORBIDDEN)
        invoflow_kernel/   -> invoflow_services/ (FORBIDDEN)

Invariants enforced:
    - DI transparency: service wiring is centralised in
      ``InvoicingServices``; callers outside tests use ``build_services``.
"""

from invoflow_kernel.logging_config import get_logger

logger = get_logger("services")

from invoflow_services.account_service import AccountService
from invoflow_services.client_service import ClientService
from invoflow_services.insight_service import InsightService
from invoflow_services.invoice_service import InvoiceService
from invoflow_services.notification import (
    DeliveryReceipt,
    LoggingNotificationSink,
    NotificationSink,
    OutboundMessage,
    RecordingNotificationSink,
)
from invoflow_services.orchestrator import InvoicingServices, build_services
from invoflow_services.payment_service import PaymentService, PublicInvoiceView
from invoflow_services.recurring_service import RecurringInvoiceService
from invoflow_services.reporting_service import ReportingService

__all__ = [
    "AccountService",
    "ClientService",
    "DeliveryReceipt",
    "InsightService",
    "InvoiceService",
    "InvoicingServices",
    "LoggingNotificationSink",
    "NotificationSink",
    "OutboundMessage",
    "PaymentService",
    "PublicInvoiceView",
    "RecordingNotificationSink",
    "RecurringInvoiceService",
    "ReportingService",
    "build_services",
]
