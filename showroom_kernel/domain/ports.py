"""Store ports -- the collaborator contracts the kernel depends on.

The resolver only needs the lookup halves; the coordinator's posting unit
needs the mutating halves, all bound to one transaction.  SQLAlchemy-backed
implementations live in ``showroom_kernel.services``; tests may pass plain
in-memory fakes.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol, runtime_checkable
from uuid import UUID

from showroom_kernel.domain.dtos import (
    CashFlowRecord,
    CustomerDetails,
    CustomerRef,
    PostedInvoice,
    PricedInvoiceDraft,
    ProductRef,
)


@runtime_checkable
class CustomerLookup(Protocol):
    """Exact customer lookup by phone digits."""

    def find_by_phone(self, phone: str) -> CustomerRef | None:
        ...


@runtime_checkable
class CustomerStore(CustomerLookup, Protocol):
    """Customer lookup plus the registration collaborator."""

    def register(self, details: CustomerDetails) -> CustomerRef:
        ...


@runtime_checkable
class ProductLookup(Protocol):
    """Exact product lookup by catalog code."""

    def find_by_code(self, code: str) -> ProductRef | None:
        ...


@runtime_checkable
class ProductStore(ProductLookup, Protocol):
    """Product lookup plus stock mutation (only inside the posting unit)."""

    def decrement_stock(self, product: ProductRef, quantity: int) -> int:
        """Decrement stock and return what remains.

        Raises:
            InsufficientStockError: When stock < quantity; nothing changes.
        """
        ...


@runtime_checkable
class InvoiceStore(Protocol):
    """Invoice and cash-flow writes (only inside the posting unit)."""

    def insert_invoice(self, draft: PricedInvoiceDraft, command_id: str) -> UUID:
        ...

    def insert_cashflow(self, invoice_id: UUID, amount: Decimal) -> UUID:
        ...

    def mark_posted(self, invoice_id: UUID) -> PostedInvoice:
        ...

    def find_by_command(self, command_id: str) -> PostedInvoice | None:
        ...

    def cashflow_for(self, invoice_id: UUID) -> CashFlowRecord | None:
        ...


@runtime_checkable
class Notifier(Protocol):
    """Email/SMS collaborator, called only after an invoice is POSTED."""

    def invoice_posted(self, invoice: PostedInvoice, customer: CustomerRef) -> None:
        ...
