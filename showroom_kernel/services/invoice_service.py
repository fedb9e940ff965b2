"""
InvoiceService -- invoice and cash-flow persistence.

Responsibility:
    SQLAlchemy-backed InvoiceStore: inserts the PENDING invoice, the
    matching cash-flow entry, and moves the invoice to POSTED.  Also owns
    the recovery sweep that voids PENDING invoices left behind by an
    interrupted process.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by the posting unit (SqlUnitOfWork) inside ONE transaction
    together with ProductService.decrement_stock.

Invariants enforced:
    - Values are written verbatim from the PricedInvoiceDraft; nothing is
      re-priced here.  The draft fingerprint is stored with the row.
    - At most one invoice per command_id (uq_invoice_command).
    - At most one cash-flow entry per invoice (uq_cashflow_invoice).
    - invoice_number / transaction_number come from SequenceService.
    - PENDING -> POSTED | VOIDED only, enforced by Invoice.transition_to.

Failure modes:
    - IntegrityError: a second invoice for the same command_id.
    - InvalidInvoiceTransitionError: posting or voiding a final invoice.
    - LookupError: mark_posted / insert_cashflow for an unknown invoice id.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from showroom_kernel.db.base import SYSTEM_ACTOR_ID
from showroom_kernel.domain.clock import Clock, SystemClock
from showroom_kernel.domain.dtos import CashFlowRecord, PostedInvoice, PricedInvoiceDraft
from showroom_kernel.logging_config import LogContext, get_logger
from showroom_kernel.models.cashflow import CashFlowEntry
from showroom_kernel.models.invoice import Invoice, InvoiceStatus
from showroom_kernel.services.base import StoreService
from showroom_kernel.services.sequence_service import SequenceService

logger = get_logger("services.invoice")


class InvoiceService(StoreService):
    """
    Invoice store bound to one session.

    Args:
        session: SQLAlchemy session (the posting transaction).
        clock: Source of status timestamps and cash-flow dates.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._sequences = SequenceService(session)

    def insert_invoice(self, draft: PricedInvoiceDraft, command_id: str) -> UUID:
        """Insert the PENDING invoice for a confirmed draft."""
        order = draft.order
        invoice = Invoice(
            invoice_number=self._sequences.next_number(SequenceService.INVOICE),
            command_id=command_id,
            customer_id=order.customer.id,
            product_id=order.product.id,
            quantity=draft.quantity,
            unit_price=draft.unit_price,
            total_amount=draft.gross_amount,
            discount_percent=order.discount_percent,
            discount=draft.discount_amount,
            final_amount=draft.final_amount,
            currency=draft.currency,
            variant=order.variant(),
            draft_fingerprint=draft.fingerprint,
            status=InvoiceStatus.PENDING.value,
            status_changed_at=self._clock.now(),
            created_by_id=SYSTEM_ACTOR_ID,
        )
        self._add(invoice)

        logger.info(
            "invoice_inserted",
            extra={
                "invoice_id": str(invoice.id),
                "invoice_number": invoice.invoice_number,
                "command_id": command_id,
                "final_amount": str(draft.final_amount),
            },
        )
        return invoice.id

    def insert_cashflow(self, invoice_id: UUID, amount: Decimal) -> UUID:
        """Record the cash inflow for an invoice; returns the transaction id."""
        invoice = self._get(invoice_id)
        entry = CashFlowEntry(
            invoice_id=invoice.id,
            transaction_number=self._sequences.next_number(SequenceService.CASHFLOW),
            amount=amount,
            currency=invoice.currency,
            entry_date=self._clock.now().date(),
            created_by_id=SYSTEM_ACTOR_ID,
        )
        self._add(entry)

        logger.info(
            "cashflow_inserted",
            extra={
                "transaction_id": str(entry.id),
                "invoice_id": str(invoice_id),
                "amount": str(amount),
            },
        )
        return entry.id

    def mark_posted(self, invoice_id: UUID) -> PostedInvoice:
        """
        Move a PENDING invoice to POSTED.

        Raises:
            InvalidInvoiceTransitionError: If the invoice is already final.
        """
        invoice = self._get(invoice_id)
        invoice.transition_to(InvoiceStatus.POSTED, self._clock.now())
        self.session.flush()
        return PostedInvoice.from_model(invoice)

    def find_by_command(self, command_id: str) -> PostedInvoice | None:
        invoice = self.session.execute(
            select(Invoice).where(Invoice.command_id == command_id)
        ).scalar_one_or_none()
        return PostedInvoice.from_model(invoice) if invoice is not None else None

    def cashflow_for(self, invoice_id: UUID) -> CashFlowRecord | None:
        entry = self.session.execute(
            select(CashFlowEntry).where(CashFlowEntry.invoice_id == invoice_id)
        ).scalar_one_or_none()
        return CashFlowRecord.from_model(entry) if entry is not None else None

    def void_stale_pending(self, older_than_seconds: float) -> list[UUID]:
        """
        Void PENDING invoices that have been pending too long.

        The posting unit never commits a PENDING invoice, so a PENDING row
        older than a posting attempt was left behind by a store without
        transactional writes or by a killed process.  It is voided, never
        posted: the stock and cash-flow state it belonged to is unknown.

        Returns:
            Ids of the invoices voided.
        """
        now = self._clock.now()
        cutoff = now - timedelta(seconds=older_than_seconds)
        stale = self.session.execute(
            select(Invoice).where(
                Invoice.status == InvoiceStatus.PENDING.value,
                Invoice.status_changed_at < cutoff,
            )
        ).scalars().all()

        voided: list[UUID] = []
        for invoice in stale:
            invoice.transition_to(InvoiceStatus.VOIDED, now)
            voided.append(invoice.id)
            with LogContext.bind(invoice_id=str(invoice.id)):
                logger.warning(
                    "invoice_voided",
                    extra={
                        "invoice_number": invoice.invoice_number,
                        "command_id": invoice.command_id,
                    },
                )
        self.session.flush()
        return voided

    def _get(self, invoice_id: UUID) -> Invoice:
        invoice = self.session.get(Invoice, invoice_id)
        if invoice is None:
            raise LookupError(f"Invoice {invoice_id} does not exist")
        return invoice

