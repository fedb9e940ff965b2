"""
EntityResolver -- Intent to ResolvedOrder.

Responsibility:
    The boundary between the pure matcher output and external state.  Turns
    raw slot text into validated values and store references: phone ->
    customer, product code -> catalog product, variant words -> members of
    the product's allowed variant set.

Architecture position:
    Kernel > Domain.  The ONLY component that performs lookups, and it
    performs them only through the CustomerLookup / ProductLookup ports it
    is handed.  It holds no state between calls.

Invariants enforced:
    - All-or-nothing: a ResolvedOrder is returned only if every lookup and
      every check succeeded.  There is no partially-filled order.
    - No fuzzy matching: a malformed code fails loudly with
      InvalidProductCodeError; an unknown well-formed code fails with
      ProductNotFoundError.  No default product is ever substituted.
    - Discounts outside [0, 100] fail with DiscountOutOfRangeError, never
      clamped.
    - A variant value outside the allowed set fails with
      VariantMismatchError naming the attribute, never defaulted.

Check order (cheap, lookup-free checks first):
    1. required slots present (phone, product_code)
    2. product code shape
    3. discount range
    4. customer lookup      -> CustomerNotFoundError (registration branch)
    5. product lookup       -> ProductNotFoundError
    6. quantity and variant attributes
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from showroom_kernel.domain.dtos import (
    DISCOUNT_PERCENT,
    FINISH_SHADE,
    FINISH_TYPE,
    MATERIAL,
    PHONE,
    PRODUCT_CODE,
    QUANTITY,
    SEAT_COUNT,
    VARIANT_ATTRIBUTES,
    Intent,
    ProductRef,
    ResolvedOrder,
)
from showroom_kernel.domain.ports import CustomerLookup, ProductLookup
from showroom_kernel.domain.tokenizer import PRODUCT_CODE_PATTERN
from showroom_kernel.exceptions import (
    CustomerNotFoundError,
    DiscountOutOfRangeError,
    MissingSlotError,
    InvalidProductCodeError,
    ProductNotFoundError,
    VariantMismatchError,
)
from showroom_kernel.logging_config import get_logger

logger = get_logger("domain.resolver")

MIN_DISCOUNT = Decimal("0")
MAX_DISCOUNT = Decimal("100")


def normalize_phone(raw: str) -> str:
    """Digits only; spoken phone numbers sometimes carry a leading '+'."""
    return "".join(ch for ch in raw if ch.isdigit())


def parse_discount(raw: str | None) -> Decimal:
    """
    Parse and range-check a discount percent.

    A missing discount is 0.

    Raises:
        DiscountOutOfRangeError: If the value is not within [0, 100].
    """
    if raw is None:
        return Decimal("0")
    try:
        value = Decimal(raw)
    except InvalidOperation as exc:
        raise DiscountOutOfRangeError(Decimal("NaN")) from exc
    if not value.is_finite() or value < MIN_DISCOUNT or value > MAX_DISCOUNT:
        raise DiscountOutOfRangeError(value)
    return value


class EntityResolver:
    """
    Resolves an Intent against customer and product lookups.

    Contract:
        ``resolve`` either returns a complete ResolvedOrder or raises a
        ResolutionError subclass.  It never writes to a store.

    Non-goals:
        - Does NOT register unknown customers; CustomerNotFoundError tells
          the coordinator to branch into registration.
        - Does NOT read or reserve stock; that happens only in the posting
          unit.
    """

    def resolve(
        self,
        intent: Intent,
        customer_lookup: CustomerLookup,
        product_lookup: ProductLookup,
    ) -> ResolvedOrder:
        """
        Resolve an intent.

        Raises:
            MissingSlotError, InvalidProductCodeError, DiscountOutOfRangeError,
            CustomerNotFoundError, ProductNotFoundError, VariantMismatchError
        """
        phone_text = intent.text(PHONE)
        if phone_text is None:
            raise MissingSlotError(PHONE)
        code = intent.text(PRODUCT_CODE)
        if code is None:
            raise MissingSlotError(PRODUCT_CODE)

        if not PRODUCT_CODE_PATTERN.match(code):
            raise InvalidProductCodeError(code)

        discount_percent = parse_discount(intent.text(DISCOUNT_PERCENT))

        phone = normalize_phone(phone_text)
        customer = customer_lookup.find_by_phone(phone)
        if customer is None:
            raise CustomerNotFoundError(phone)

        product = product_lookup.find_by_code(code)
        if product is None:
            raise ProductNotFoundError(code)

        quantity = self._resolve_quantity(intent, product)
        variant = {
            attribute: self._resolve_variant(intent, product, attribute)
            for attribute in VARIANT_ATTRIBUTES
        }
        seat_count = variant[SEAT_COUNT]

        order = ResolvedOrder(
            customer=customer,
            product=product,
            seat_count=int(seat_count) if seat_count is not None else None,
            material=variant[MATERIAL],
            finish_type=variant[FINISH_TYPE],
            finish_shade=variant[FINISH_SHADE],
            discount_percent=discount_percent,
            quantity=quantity,
        )
        logger.info(
            "intent_resolved",
            extra={
                "customer_id": str(customer.id),
                "product_code": product.code,
                "quantity": quantity,
                "discount_percent": str(discount_percent),
            },
        )
        return order

    def _resolve_quantity(self, intent: Intent, product: ProductRef) -> int:
        raw = intent.text(QUANTITY)
        if raw is None:
            return 1
        quantity = int(raw) if raw.isdigit() else 0
        if quantity < 1:
            raise VariantMismatchError(product.code, QUANTITY, raw, ("1 or more",))
        return quantity

    def _resolve_variant(
        self, intent: Intent, product: ProductRef, attribute: str
    ) -> str | None:
        allowed = product.allowed(attribute)
        raw = intent.text(attribute)

        if raw is None:
            if len(allowed) > 1:
                raise VariantMismatchError(product.code, attribute, None, allowed)
            # Single-option attribute: the only possible value
            return allowed[0] if allowed else None

        value = raw.lower()
        if attribute == SEAT_COUNT and value.isdigit():
            value = str(int(value))
        if value not in allowed:
            raise VariantMismatchError(product.code, attribute, raw, allowed)
        return value
