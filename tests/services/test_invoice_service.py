"""Tests for InvoiceService persistence and the stale-PENDING sweep."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from showroom_kernel.domain.dtos import ResolvedOrder
from showroom_kernel.domain.pricing import PricingEngine
from showroom_kernel.exceptions import InvalidInvoiceTransitionError
from showroom_kernel.models.invoice import Invoice, InvoiceStatus
from showroom_kernel.services.invoice_service import InvoiceService


@pytest.fixture
def draft(customer, sofa):
    order = ResolvedOrder(
        customer=customer,
        product=sofa,
        seat_count=2,
        material="mahogany",
        finish_type="lacquer",
        finish_shade="light",
        discount_percent=Decimal("10"),
    )
    return PricingEngine().price(order)


@pytest.fixture
def invoices(session, deterministic_clock):
    return InvoiceService(session, deterministic_clock)


class TestPosting:
    def test_insert_then_post(self, session, invoices, draft, customer, sofa):
        invoice_id = invoices.insert_invoice(draft, "cmd-1")
        invoices.insert_cashflow(invoice_id, draft.final_amount)
        posted = invoices.mark_posted(invoice_id)
        session.commit()

        assert posted.invoice_number == "INV-000001"
        assert posted.status == "posted"
        assert posted.customer_id == customer.id
        assert posted.product_id == sofa.id
        assert posted.total_amount == Decimal("50000.00")
        assert posted.discount == Decimal("5000.00")
        assert posted.final_amount == Decimal("45000.00")
        assert posted.currency == "BDT"

        cashflow = invoices.cashflow_for(invoice_id)
        assert cashflow.transaction_number == "CF-000001"
        assert cashflow.amount == Decimal("45000.00")
        assert cashflow.date == date(2025, 1, 1)

    def test_row_carries_draft_values(self, session, invoices, draft):
        invoice_id = invoices.insert_invoice(draft, "cmd-1")
        row = session.get(Invoice, invoice_id)
        assert row.draft_fingerprint == draft.fingerprint
        assert row.variant["material"] == "mahogany"
        assert row.status_enum == InvoiceStatus.PENDING

    def test_find_by_command(self, session, invoices, draft):
        invoice_id = invoices.insert_invoice(draft, "cmd-1")
        assert invoices.find_by_command("cmd-1").id == invoice_id
        assert invoices.find_by_command("cmd-2") is None

    def test_one_invoice_per_command(self, session, invoices, draft):
        invoices.insert_invoice(draft, "cmd-1")
        with pytest.raises(IntegrityError):
            invoices.insert_invoice(draft, "cmd-1")

    def test_posted_is_final(self, session, invoices, draft):
        invoice_id = invoices.insert_invoice(draft, "cmd-1")
        invoices.mark_posted(invoice_id)
        with pytest.raises(InvalidInvoiceTransitionError) as exc_info:
            invoices.mark_posted(invoice_id)
        assert exc_info.value.from_status == "posted"

    def test_unknown_invoice(self, invoices, engine):
        with pytest.raises(LookupError):
            invoices.insert_cashflow(uuid4(), Decimal("1.00"))


class TestVoidStalePending:
    def test_old_pending_voided(self, session, invoices, draft, deterministic_clock, captured_logs):
        stale_id = invoices.insert_invoice(draft, "cmd-stale")
        session.commit()
        deterministic_clock.advance(600)
        fresh_id = invoices.insert_invoice(draft, "cmd-fresh")
        session.commit()

        voided = invoices.void_stale_pending(older_than_seconds=300)
        session.commit()

        assert voided == [stale_id]
        assert session.get(Invoice, stale_id).status_enum == InvoiceStatus.VOIDED
        assert session.get(Invoice, fresh_id).status_enum == InvoiceStatus.PENDING
        assert any(r["message"] == "invoice_voided" for r in captured_logs())

    def test_posted_never_voided(self, session, invoices, draft, deterministic_clock):
        invoice_id = invoices.insert_invoice(draft, "cmd-1")
        invoices.mark_posted(invoice_id)
        session.commit()
        deterministic_clock.advance(3600)

        assert invoices.void_stale_pending(older_than_seconds=60) == []
