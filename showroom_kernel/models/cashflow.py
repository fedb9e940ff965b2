"""
Module: showroom_kernel.models.cashflow
Responsibility: ORM persistence for cash-flow ledger entries.  Exactly one
    entry is written per posted invoice, inside the same transaction as the
    stock decrement and the invoice row.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - invoice_id is unique (uq_cashflow_invoice): one entry per invoice.
    - amount equals the invoice final_amount.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from showroom_kernel.db.base import TrackedBase


class CashFlowEntry(TrackedBase):
    """
    Cash inflow recorded for a posted invoice.

    The row id is the transaction id returned by
    ``InvoiceService.insert_cashflow``.
    """

    __tablename__ = "cashflow_entries"

    __table_args__ = (
        UniqueConstraint("invoice_id", name="uq_cashflow_invoice"),
        UniqueConstraint("transaction_number", name="uq_cashflow_transaction_number"),
    )

    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("invoices.id"), nullable=False)

    transaction_number: Mapped[str] = mapped_column(String(20), nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    entry_date: Mapped[date] = mapped_column(Date, nullable=False)

    def __repr__(self) -> str:
        return f"<CashFlowEntry {self.transaction_number}: {self.amount} {self.currency}>"
