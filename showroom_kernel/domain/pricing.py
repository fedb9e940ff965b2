"""
PricingEngine -- ResolvedOrder to PricedInvoiceDraft.

Responsibility:
    Computes gross amount, discount amount and final amount for a resolved
    order, and renders the confirmation preview.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Exact decimal arithmetic, never binary floating point.
    - gross = unit_price * quantity using the exact catalog price; only
      the amounts are rounded, never the unit price.
    - discount_amount = round_half_up(gross * pct / 100) at ledger precision.
    - final_amount = round_half_up(gross - discount_amount), so
      0 <= final <= gross for any pct in [0, 100].
    - The preview is rendered FROM the draft and carries the draft's
      fingerprint; the posted values are the draft's values verbatim.
      Nothing downstream re-prices.
"""

from __future__ import annotations

from decimal import Decimal

from showroom_kernel.db.types import LEDGER_DECIMAL_PLACES, round_money
from showroom_kernel.domain.dtos import InvoicePreview, PricedInvoiceDraft, ResolvedOrder
from showroom_kernel.exceptions import PricingError

HUNDRED = Decimal("100")


def _exact_price(value: Decimal, places: int) -> Decimal:
    """The catalog price without the storage padding (50000.000000000 -> 50000.00)."""
    rounded = round_money(value, places)
    return rounded if rounded == value else value.normalize()


class PricingEngine:
    """
    Deterministic invoice pricing.

    Args:
        currency: ISO 4217 code printed on drafts and written to the ledger.
        decimal_places: Ledger precision (2 for BDT/USD).
    """

    def __init__(self, currency: str = "BDT", decimal_places: int = LEDGER_DECIMAL_PLACES):
        self._currency = currency
        self._decimal_places = decimal_places

    @property
    def currency(self) -> str:
        return self._currency

    def price(self, order: ResolvedOrder, unit_price: Decimal | None = None) -> PricedInvoiceDraft:
        """
        Price an order.

        Args:
            order: The resolved order.
            unit_price: Price per unit; defaults to the product's catalog
                price captured at resolution time.

        Raises:
            PricingError: If the unit price is negative or not finite.
        """
        if unit_price is None:
            unit_price = order.product.unit_price
        unit_price = Decimal(unit_price)
        if not unit_price.is_finite() or unit_price < 0:
            raise PricingError(order.product.code, unit_price, "unit price must be >= 0")

        places = self._decimal_places
        unit = _exact_price(unit_price, places)
        gross = unit * order.quantity
        discount = round_money(gross * order.discount_percent / HUNDRED, places)
        final = round_money(gross - discount, places)

        return PricedInvoiceDraft(
            order=order,
            unit_price=unit,
            quantity=order.quantity,
            gross_amount=round_money(gross, places),
            discount_amount=discount,
            final_amount=final,
            currency=self._currency,
            currency_precision=places,
        )

    def preview(self, draft: PricedInvoiceDraft) -> InvoicePreview:
        """Render the confirmation preview for a draft."""
        order = draft.order
        variant = ", ".join(
            f"{name.replace('_', ' ')}: {value}"
            for name, value in order.variant().items()
            if value is not None
        )
        cur = draft.currency
        lines = [
            f"Customer: {order.customer.name} ({order.customer.phone})",
            f"Product:  {order.product.code} {order.product.name}",
        ]
        if variant:
            lines.append(f"Variant:  {variant}")
        lines.extend([
            f"Quantity: {draft.quantity} x {draft.unit_price:,} {cur}",
            f"Total:    {draft.gross_amount:,} {cur}",
            f"Discount: {order.discount_percent}% = {draft.discount_amount:,} {cur}",
            f"Payable:  {draft.final_amount:,} {cur}",
        ])
        return InvoicePreview(
            fingerprint=draft.fingerprint,
            lines=tuple(lines),
            final_amount=draft.final_amount,
            currency=cur,
        )
