"""Read-only selectors returning frozen DTOs."""

from invoflow_kernel.selectors.client_selector import ClientSelector
from invoflow_kernel.selectors.invoice_selector import InvoiceSelector
from invoflow_kernel.selectors.payment_selector import PaymentSelector

__all__ = ["ClientSelector", "InvoiceSelector", "PaymentSelector"]
