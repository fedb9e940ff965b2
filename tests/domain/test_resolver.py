"""Tests for EntityResolver against in-memory lookups."""

from decimal import Decimal
from uuid import uuid4

import pytest

from showroom_kernel.domain.dtos import CustomerRef, Intent, ProductRef, SlotValue
from showroom_kernel.domain.grammar import match
from showroom_kernel.domain.resolver import EntityResolver, normalize_phone, parse_discount
from showroom_kernel.domain.tokenizer import Span, TokenKind, tokenize
from showroom_kernel.exceptions import (
    CustomerNotFoundError,
    DiscountOutOfRangeError,
    InvalidProductCodeError,
    MissingSlotError,
    ProductNotFoundError,
    VariantMismatchError,
)


class FakeCustomers:
    def __init__(self, *customers: CustomerRef):
        self._by_phone = {c.phone: c for c in customers}
        self.calls: list[str] = []

    def find_by_phone(self, phone):
        self.calls.append(phone)
        return self._by_phone.get(phone)


class FakeProducts:
    def __init__(self, *products: ProductRef):
        self._by_code = {p.code: p for p in products}
        self.calls: list[str] = []

    def find_by_code(self, code):
        self.calls.append(code)
        return self._by_code.get(code)


@pytest.fixture
def rahim():
    return CustomerRef(id=uuid4(), phone="01754031344", name="Rahim Chowdhury")


@pytest.fixture
def aurora():
    return ProductRef(
        id=uuid4(),
        code="AFL-SOF-103",
        name="Aurora Sofa",
        unit_price=Decimal("50000.00"),
        variants={
            "seat_count": ["1", "2", "3"],
            "material": ["Mahogany", "Oak"],
            "finish_type": ["lacquer", "matte"],
            "finish_shade": ["light", "dark"],
        },
    )


@pytest.fixture
def customers(rahim):
    return FakeCustomers(rahim)


@pytest.fixture
def products(aurora):
    return FakeProducts(aurora)


def intent_of(**slots: str) -> Intent:
    return Intent(
        {name: SlotValue(name, text, TokenKind.WORD, Span(0, 0)) for name, text in slots.items()}
    )


FULL_SLOTS = {
    "phone": "01754031344",
    "product_code": "AFL-SOF-103",
    "seat_count": "2",
    "material": "mahogany",
    "finish_type": "lacquer",
    "finish_shade": "light",
}


class TestResolve:
    def test_example_utterance(self, example_utterance, customers, products, rahim, aurora):
        order = EntityResolver().resolve(match(tokenize(example_utterance)), customers, products)

        assert order.customer == rahim
        assert order.product == aurora
        assert order.seat_count == 2
        assert order.material == "mahogany"
        assert order.finish_type == "lacquer"
        assert order.finish_shade == "light"
        assert order.discount_percent == Decimal("10")
        assert order.quantity == 1

    def test_variant_case_insensitive(self, customers, products):
        order = EntityResolver().resolve(
            intent_of(**{**FULL_SLOTS, "material": "MAHOGANY"}), customers, products
        )
        assert order.material == "mahogany"

    def test_missing_discount_is_zero(self, customers, products):
        order = EntityResolver().resolve(intent_of(**FULL_SLOTS), customers, products)
        assert order.discount_percent == Decimal("0")

    def test_quantity(self, customers, products):
        order = EntityResolver().resolve(
            intent_of(**FULL_SLOTS, quantity="3"), customers, products
        )
        assert order.quantity == 3

    def test_single_option_attribute_filled(self, rahim):
        chair = ProductRef(
            id=uuid4(),
            code="AFL-CHR-045",
            name="Lotus Arm Chair",
            unit_price=Decimal("12999.50"),
            variants={"material": ["oak"], "finish_shade": ["light", "dark"]},
        )
        order = EntityResolver().resolve(
            intent_of(phone=rahim.phone, product_code=chair.code, finish_shade="dark"),
            FakeCustomers(rahim),
            FakeProducts(chair),
        )
        assert order.material == "oak"
        assert order.finish_shade == "dark"
        assert order.seat_count is None
        assert order.finish_type is None

    def test_phone_normalized_before_lookup(self, customers, products):
        EntityResolver().resolve(
            intent_of(**{**FULL_SLOTS, "phone": "+01754031344"}), customers, products
        )
        assert customers.calls == ["01754031344"]


class TestResolveFailures:
    def test_unknown_product(self, customers, products):
        with pytest.raises(ProductNotFoundError) as exc_info:
            EntityResolver().resolve(
                intent_of(**{**FULL_SLOTS, "product_code": "AFL-SOF-999"}), customers, products
            )
        assert exc_info.value.product_code == "AFL-SOF-999"

    def test_malformed_code_never_looked_up(self, customers, products):
        with pytest.raises(InvalidProductCodeError):
            EntityResolver().resolve(
                intent_of(**{**FULL_SLOTS, "product_code": "AFLSOF103"}), customers, products
            )
        assert products.calls == []

    def test_discount_out_of_range_before_lookups(self, customers, products):
        with pytest.raises(DiscountOutOfRangeError) as exc_info:
            EntityResolver().resolve(
                intent_of(**FULL_SLOTS, discount_percent="150"), customers, products
            )
        assert exc_info.value.discount_percent == Decimal("150")
        assert customers.calls == []
        assert products.calls == []

    def test_unknown_customer(self, products):
        with pytest.raises(CustomerNotFoundError) as exc_info:
            EntityResolver().resolve(intent_of(**FULL_SLOTS), FakeCustomers(), products)
        assert exc_info.value.phone == "01754031344"
        assert products.calls == []

    def test_variant_outside_allowed_set(self, customers, products):
        with pytest.raises(VariantMismatchError) as exc_info:
            EntityResolver().resolve(
                intent_of(**{**FULL_SLOTS, "material": "teak"}), customers, products
            )
        err = exc_info.value
        assert err.attribute == "material"
        assert err.value == "teak"
        assert err.allowed == ("mahogany", "oak")

    def test_ambiguous_omitted_variant(self, customers, products):
        slots = {k: v for k, v in FULL_SLOTS.items() if k != "finish_shade"}
        with pytest.raises(VariantMismatchError) as exc_info:
            EntityResolver().resolve(intent_of(**slots), customers, products)
        assert exc_info.value.attribute == "finish_shade"
        assert exc_info.value.value is None

    def test_attribute_product_does_not_have(self, rahim):
        table = ProductRef(
            id=uuid4(), code="AFL-TBL-220", name="Table", unit_price=Decimal("1"), variants={}
        )
        with pytest.raises(VariantMismatchError) as exc_info:
            EntityResolver().resolve(
                intent_of(phone=rahim.phone, product_code=table.code, seat_count="2"),
                FakeCustomers(rahim),
                FakeProducts(table),
            )
        assert exc_info.value.allowed == ()

    def test_zero_quantity(self, customers, products):
        with pytest.raises(VariantMismatchError) as exc_info:
            EntityResolver().resolve(intent_of(**FULL_SLOTS, quantity="0"), customers, products)
        assert exc_info.value.attribute == "quantity"

    @pytest.mark.parametrize("missing", ["phone", "product_code"])
    def test_missing_required_slot(self, missing, customers, products):
        slots = {k: v for k, v in FULL_SLOTS.items() if k != missing}
        with pytest.raises(MissingSlotError) as exc_info:
            EntityResolver().resolve(intent_of(**slots), customers, products)
        assert exc_info.value.slot == missing


class TestHelpers:
    def test_normalize_phone(self):
        assert normalize_phone("+880 1754-031344") == "8801754031344"

    @pytest.mark.parametrize("raw", ["0", "100", "12.5"])
    def test_discount_bounds_inclusive(self, raw):
        assert parse_discount(raw) == Decimal(raw)

    @pytest.mark.parametrize("raw", ["-1", "100.01", "abc"])
    def test_discount_rejected(self, raw):
        with pytest.raises(DiscountOutOfRangeError):
            parse_discount(raw)
