"""
Module: showroom_kernel.models.product
Responsibility: ORM persistence for catalog products, their price, their
    on-hand stock and the variant options a sale may pick from.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - code is unique (uq_product_code) and has the catalog shape
      AAA-AAA-000 (enforced at the service boundary).
    - stock_quantity never goes negative: the only writer is
      ProductService.decrement_stock, a conditional UPDATE.
    - unit_price is Decimal (Numeric(38, 9)), never float.

Variant options are stored as JSON, e.g.::

    {"seat_count": ["1", "2", "3"], "material": ["mahogany", "oak"],
     "finish_type": ["lacquer", "matte"], "finish_shade": ["light", "dark"]}

An attribute missing from the map means the product does not vary on it.
"""

from decimal import Decimal

from sqlalchemy import JSON, Boolean, CheckConstraint, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from showroom_kernel.db.base import TrackedBase


class Product(TrackedBase):
    """
    A catalog product sold from the showroom floor.

    Guarantees:
        - code is unique and immutable once invoiced.
        - stock_quantity >= 0 (ck_product_stock_non_negative).
    """

    __tablename__ = "products"

    __table_args__ = (
        UniqueConstraint("code", name="uq_product_code"),
        CheckConstraint("stock_quantity >= 0", name="ck_product_stock_non_negative"),
        Index("idx_product_active", "is_active"),
    )

    code: Mapped[str] = mapped_column(String(20), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    unit_price: Mapped[Decimal] = mapped_column(nullable=False)

    stock_quantity: Mapped[int] = mapped_column(nullable=False, default=0)

    variant_options: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Product {self.code}: {self.name} stock={self.stock_quantity}>"
