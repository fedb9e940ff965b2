"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures that flow through the command
    pipeline: SlotValue and Intent (matcher output), CustomerRef and
    ProductRef (store references), ResolvedOrder (resolver output),
    PricedInvoiceDraft and InvoicePreview (pricing output), and PostedInvoice
    and CashFlowRecord (persistence boundary).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Free of ORM dependencies.  from_model() class methods are boundary
    converters invoked only from the service layer.

Invariants enforced:
    - Every DTO is frozen; an Intent is never mutated after the matcher
      returns it and a draft is never mutated after pricing.
    - Monetary fields are Decimal, never float.
    - PricedInvoiceDraft.fingerprint is a deterministic hash of every field
      that will be written, so preview and post can be compared exactly.

Data flow:
    Token* -> Intent -> ResolvedOrder -> PricedInvoiceDraft -> PostedInvoice
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from types import MappingProxyType
from typing import TYPE_CHECKING, Mapping
from uuid import UUID

from showroom_kernel.domain.tokenizer import Span, TokenKind
from showroom_kernel.utils.hashing import hash_payload

if TYPE_CHECKING:
    from showroom_kernel.models.cashflow import CashFlowEntry as CashFlowEntryModel
    from showroom_kernel.models.customer import Customer as CustomerModel
    from showroom_kernel.models.invoice import Invoice as InvoiceModel
    from showroom_kernel.models.product import Product as ProductModel


# Grammar roles
PHONE = "phone"
PRODUCT_CODE = "product_code"
QUANTITY = "quantity"
SEAT_COUNT = "seat_count"
MATERIAL = "material"
FINISH_TYPE = "finish_type"
FINISH_SHADE = "finish_shade"
DISCOUNT_PERCENT = "discount_percent"

SLOT_NAMES: tuple[str, ...] = (
    PHONE,
    PRODUCT_CODE,
    QUANTITY,
    SEAT_COUNT,
    MATERIAL,
    FINISH_TYPE,
    FINISH_SHADE,
    DISCOUNT_PERCENT,
)

# Attributes validated against a product's allowed variant set
VARIANT_ATTRIBUTES: tuple[str, ...] = (SEAT_COUNT, MATERIAL, FINISH_TYPE, FINISH_SHADE)


# ---------------------------------------------------------------------------
# Matcher output
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SlotValue:
    """
    Raw text that filled one grammar slot.

    ``span`` is excluded from equality: the same words spoken with
    different spacing produce equal slot values.
    """

    name: str
    text: str
    kind: TokenKind
    span: Span = field(compare=False)


@dataclass(frozen=True)
class Intent:
    """
    Unresolved slots keyed by grammar role.

    Contract:
        Built once by the matcher and never mutated.  ``templates`` names
        every template that accepted a clause, in clause order -- the exact,
        inspectable reason the utterance was accepted.
    """

    slots: Mapping[str, SlotValue]
    templates: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        unknown = set(self.slots) - set(SLOT_NAMES)
        if unknown:
            raise ValueError(f"Unknown slot(s): {sorted(unknown)}")
        object.__setattr__(self, "slots", MappingProxyType(dict(self.slots)))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Intent):
            return NotImplemented
        return dict(self.slots) == dict(other.slots) and self.templates == other.templates

    def __hash__(self) -> int:
        return hash((tuple(sorted(self.slots.items(), key=lambda kv: kv[0])), self.templates))

    def get(self, name: str) -> SlotValue | None:
        return self.slots.get(name)

    def text(self, name: str) -> str | None:
        """Raw text of a slot, or None if it was not spoken."""
        slot = self.slots.get(name)
        return slot.text if slot is not None else None


# ---------------------------------------------------------------------------
# Store references
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CustomerDetails:
    """Details captured by the customer-registration flow."""

    phone: str
    name: str
    email: str | None = None
    address: str | None = None


@dataclass(frozen=True)
class CustomerRef:
    """Reference to a customer owned by the customer store."""

    id: UUID
    phone: str
    name: str
    email: str | None = None

    @classmethod
    def from_model(cls, model: CustomerModel) -> CustomerRef:
        return cls(id=model.id, phone=model.phone, name=model.name, email=model.email)


@dataclass(frozen=True)
class ProductRef:
    """
    Reference to a catalog product owned by the product store.

    ``variants`` maps attribute name to the allowed lower-case values.
    Stock is deliberately absent: it is only read inside the posting unit.
    """

    id: UUID
    code: str
    name: str
    unit_price: Decimal
    variants: Mapping[str, frozenset[str]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        frozen = {
            attr: frozenset(str(v).lower() for v in values)
            for attr, values in dict(self.variants).items()
        }
        object.__setattr__(self, "variants", MappingProxyType(frozen))

    def __hash__(self) -> int:
        return hash((self.id, self.code))

    def allowed(self, attribute: str) -> tuple[str, ...]:
        """Allowed values for an attribute, sorted for stable messages."""
        return tuple(sorted(self.variants.get(attribute, frozenset())))

    @classmethod
    def from_model(cls, model: ProductModel) -> ProductRef:
        return cls(
            id=model.id,
            code=model.code,
            name=model.name,
            unit_price=Decimal(model.unit_price),
            variants=model.variant_options or {},
        )


# ---------------------------------------------------------------------------
# Resolver output
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ResolvedOrder:
    """
    An intent with every reference resolved and every value validated.

    Guarantees:
        - customer and product came from successful lookups.
        - variant values are members of the product's allowed sets.
        - 0 <= discount_percent <= 100 and quantity >= 1.
    """

    customer: CustomerRef
    product: ProductRef
    seat_count: int | None
    material: str | None
    finish_type: str | None
    finish_shade: str | None
    discount_percent: Decimal
    quantity: int = 1

    def variant(self) -> dict[str, str | int | None]:
        return {
            SEAT_COUNT: self.seat_count,
            MATERIAL: self.material,
            FINISH_TYPE: self.finish_type,
            FINISH_SHADE: self.finish_shade,
        }


# ---------------------------------------------------------------------------
# Pricing output
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PricedInvoiceDraft:
    """
    A fully priced invoice awaiting confirmation.

    Guarantees:
        - gross_amount = unit_price * quantity, rounded
        - final_amount = gross_amount - discount_amount
        - unit_price is the exact catalog price; the three amounts are
          quantized to currency_precision
    """

    order: ResolvedOrder
    unit_price: Decimal
    quantity: int
    gross_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal
    currency: str
    currency_precision: int

    def canonical(self) -> dict:
        """Every value the posting unit will write, in canonical form."""
        return {
            "customer_id": self.order.customer.id,
            "product_id": self.order.product.id,
            "product_code": self.order.product.code,
            "variant": self.order.variant(),
            "discount_percent": self.order.discount_percent,
            "unit_price": self.unit_price,
            "quantity": self.quantity,
            "gross_amount": self.gross_amount,
            "discount_amount": self.discount_amount,
            "final_amount": self.final_amount,
            "currency": self.currency,
            "currency_precision": self.currency_precision,
        }

    @property
    def fingerprint(self) -> str:
        return hash_payload(self.canonical())


@dataclass(frozen=True)
class InvoicePreview:
    """What the employee sees before confirming."""

    fingerprint: str
    lines: tuple[str, ...]
    final_amount: Decimal
    currency: str

    def render(self) -> str:
        return "\n".join(self.lines)


# ---------------------------------------------------------------------------
# Persistence boundary
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PostedInvoice:
    """The durable invoice record as returned to callers."""

    id: UUID
    invoice_number: str
    command_id: str
    customer_id: UUID
    product_id: UUID
    quantity: int
    total_amount: Decimal
    discount: Decimal
    final_amount: Decimal
    currency: str
    status: str
    created_at: datetime | None

    @classmethod
    def from_model(cls, model: InvoiceModel) -> PostedInvoice:
        return cls(
            id=model.id,
            invoice_number=model.invoice_number,
            command_id=model.command_id,
            customer_id=model.customer_id,
            product_id=model.product_id,
            quantity=model.quantity,
            total_amount=Decimal(model.total_amount),
            discount=Decimal(model.discount),
            final_amount=Decimal(model.final_amount),
            currency=model.currency,
            status=model.status_enum.value,
            created_at=model.created_at,
        )


@dataclass(frozen=True)
class CashFlowRecord:
    """One cash-flow ledger entry."""

    transaction_id: UUID
    transaction_number: str
    invoice_id: UUID
    amount: Decimal
    date: date

    @classmethod
    def from_model(cls, model: CashFlowEntryModel) -> CashFlowRecord:
        return cls(
            transaction_id=model.id,
            transaction_number=model.transaction_number,
            invoice_id=model.invoice_id,
            amount=Decimal(model.amount),
            date=model.entry_date,
        )
