"""ORM models.  Importing this package registers every table on Base.metadata."""

from invoflow_kernel.models.client import ClientModel
from invoflow_kernel.models.invoice import InvoiceItemModel, InvoiceModel
from invoflow_kernel.models.payment import PaymentModel
from invoflow_kernel.models.recurring_invoice import RecurringInvoiceModel
from invoflow_kernel.models.user import UserModel

__all__ = [
    "ClientModel",
    "InvoiceItemModel",
    "InvoiceModel",
    "PaymentModel",
    "RecurringInvoiceModel",
    "UserModel",
]
