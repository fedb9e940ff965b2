"""Services for the showroom kernel (stores, posting unit, coordinator)."""

from showroom_kernel.services.customer_service import CustomerService
from showroom_kernel.services.invoice_coordinator import (
    CommandResult,
    CommandSnapshot,
    CommandStatus,
    InvoiceCoordinator,
)
from showroom_kernel.services.invoice_service import InvoiceService
from showroom_kernel.services.notification_service import (
    LoggingNotifier,
    NotificationDispatcher,
)
from showroom_kernel.services.product_locks import LockRegistry, ProductLockRegistry
from showroom_kernel.services.product_service import ProductService
from showroom_kernel.services.retry_policy import RetryExhaustedError, RetryPolicy
from showroom_kernel.services.sequence_service import SequenceService
from showroom_kernel.services.unit_of_work import SqlUnitOfWork, Stores

__all__ = [
    "CommandResult",
    "CommandSnapshot",
    "CommandStatus",
    "CustomerService",
    "InvoiceCoordinator",
    "InvoiceService",
    "LockRegistry",
    "LoggingNotifier",
    "NotificationDispatcher",
    "ProductLockRegistry",
    "ProductService",
    "RetryExhaustedError",
    "RetryPolicy",
    "SequenceService",
    "SqlUnitOfWork",
    "Stores",
]
