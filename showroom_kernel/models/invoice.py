"""
Module: showroom_kernel.models.invoice
Responsibility: ORM persistence for sales invoices produced from voice
    commands.
Architecture position: Kernel > Models.  May import from db/base.py and
    the exceptions module only.

Invariants enforced:
    - command_id is unique (uq_invoice_command): at most one invoice per
      voice command, so a retried or duplicated confirmation can never
      post twice.
    - invoice_number is unique and allocated from the locked
      "invoice" sequence counter.
    - status moves PENDING -> POSTED or PENDING -> VOIDED exactly once;
      a final status is never reused (transition_to enforces this).
    - final_amount = total_amount - discount, all at ledger precision.

Failure modes:
    - IntegrityError on a second invoice for the same command_id.
    - InvalidInvoiceTransitionError when leaving a final status.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from showroom_kernel.db.base import TrackedBase
from showroom_kernel.exceptions import InvalidInvoiceTransitionError


class InvoiceStatus(str, Enum):
    """Invoice lifecycle status."""

    PENDING = "pending"
    POSTED = "posted"
    VOIDED = "voided"


_ALLOWED_TRANSITIONS: dict[InvoiceStatus, frozenset[InvoiceStatus]] = {
    InvoiceStatus.PENDING: frozenset({InvoiceStatus.POSTED, InvoiceStatus.VOIDED}),
    InvoiceStatus.POSTED: frozenset(),
    InvoiceStatus.VOIDED: frozenset(),
}


class Invoice(TrackedBase):
    """
    A sales invoice.

    Contract:
        Rows are inserted PENDING inside the posting transaction and moved
        to POSTED before that transaction commits.  A PENDING row visible
        after commit can only come from a non-transactional store or an
        interrupted process, and is swept to VOIDED by
        ``InvoiceService.void_stale_pending``.
    """

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("command_id", name="uq_invoice_command"),
        UniqueConstraint("invoice_number", name="uq_invoice_number"),
        Index("idx_invoice_customer", "customer_id"),
        Index("idx_invoice_product", "product_id"),
        Index("idx_invoice_status", "status"),
    )

    invoice_number: Mapped[str] = mapped_column(String(20), nullable=False)

    # Idempotency key: the voice command this invoice was posted for
    command_id: Mapped[str] = mapped_column(String(64), nullable=False)

    customer_id: Mapped[UUID] = mapped_column(ForeignKey("customers.id"), nullable=False)

    product_id: Mapped[UUID] = mapped_column(ForeignKey("products.id"), nullable=False)

    quantity: Mapped[int] = mapped_column(nullable=False, default=1)

    unit_price: Mapped[Decimal] = mapped_column(nullable=False)

    # Gross amount before discount
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)

    discount_percent: Mapped[Decimal] = mapped_column(nullable=False)

    discount: Mapped[Decimal] = mapped_column(nullable=False)

    final_amount: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    # seat_count / material / finish_type / finish_shade as sold
    variant: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    draft_fingerprint: Mapped[str] = mapped_column(String(64), nullable=False)

    status: Mapped[InvoiceStatus] = mapped_column(
        String(20),
        nullable=False,
        default=InvoiceStatus.PENDING,
    )

    status_changed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    @property
    def status_enum(self) -> InvoiceStatus:
        """Status as the enum, whatever the driver handed back."""
        return InvoiceStatus(self.status)

    @property
    def is_posted(self) -> bool:
        return self.status_enum == InvoiceStatus.POSTED

    def transition_to(self, status: InvoiceStatus, at: datetime) -> None:
        """
        Move the invoice to a final status.

        Raises:
            InvalidInvoiceTransitionError: If the current status is final.
        """
        current = self.status_enum
        if status not in _ALLOWED_TRANSITIONS[current]:
            raise InvalidInvoiceTransitionError(
                str(self.id), current.value, status.value
            )
        self.status = status.value
        self.status_changed_at = at

    def __repr__(self) -> str:
        return f"<Invoice {self.invoice_number}: {self.final_amount} {self.currency} ({self.status_enum.value})>"
