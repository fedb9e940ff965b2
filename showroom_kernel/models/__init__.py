"""ORM models for the showroom kernel."""

from showroom_kernel.models.cashflow import CashFlowEntry
from showroom_kernel.models.customer import Customer
from showroom_kernel.models.invoice import Invoice, InvoiceStatus
from showroom_kernel.models.product import Product

__all__ = [
    "Customer",
    "Product",
    "Invoice",
    "InvoiceStatus",
    "CashFlowEntry",
]
