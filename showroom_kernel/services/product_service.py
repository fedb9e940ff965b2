"""
ProductService -- catalog lookup and stock mutation.

Responsibility:
    SQLAlchemy-backed ProductStore: exact lookup by catalog code, the
    conditional stock decrement used by the posting unit, and catalog
    maintenance helpers used by seeding and tests.

Architecture position:
    Kernel > Services -- imperative shell.
    Returns ProductRef DTOs, never ORM entities.

Invariants enforced:
    - No oversell: the decrement is a single conditional
      ``UPDATE products SET stock_quantity = stock_quantity - :q
      WHERE id = :id AND stock_quantity >= :q``.  The database refuses
      the write when stock is short, even against another process that
      does not share the in-process product lock.
    - stock_quantity >= 0 is also a CHECK constraint.
    - Inactive products are invisible to lookups.

Failure modes:
    - InsufficientStockError: stock < requested.  No row changes.
    - ProductNotFoundError: maintenance helper called with an unknown code.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select, update

from showroom_kernel.db.base import SYSTEM_ACTOR_ID
from showroom_kernel.domain.dtos import ProductRef
from showroom_kernel.exceptions import InsufficientStockError, ProductNotFoundError
from showroom_kernel.logging_config import LogContext, get_logger
from showroom_kernel.models.product import Product
from showroom_kernel.services.base import StoreService

logger = get_logger("services.product")


class ProductService(StoreService):
    """Product store bound to one session."""

    def find_by_code(self, code: str) -> ProductRef | None:
        product = self.session.execute(
            select(Product).where(Product.code == code, Product.is_active.is_(True))
        ).scalar_one_or_none()
        return ProductRef.from_model(product) if product is not None else None

    def decrement_stock(self, product: ProductRef, quantity: int) -> int:
        """
        Atomically take ``quantity`` units out of stock.

        Preconditions:
            - Called inside the posting transaction, while the caller holds
              the product's lock.

        Returns:
            Remaining stock after the decrement.

        Raises:
            InsufficientStockError: If stock < quantity.
        """
        if quantity < 1:
            raise ValueError(f"quantity must be >= 1, got {quantity}")

        result = self.session.execute(
            update(Product)
            .where(Product.id == product.id, Product.stock_quantity >= quantity)
            .values(stock_quantity=Product.stock_quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        remaining = self.get_stock(product.code)

        if result.rowcount == 0:
            available = remaining or 0
            logger.warning(
                "stock_insufficient",
                extra={
                    "product_code": product.code,
                    "requested": quantity,
                    "available": available,
                },
            )
            raise InsufficientStockError(product.code, quantity, available)

        with LogContext.bind(product_id=str(product.id)):
            logger.info(
                "stock_decremented",
                extra={
                    "product_code": product.code,
                    "quantity": quantity,
                    "remaining": remaining,
                },
            )
        return remaining

    def get_stock(self, code: str) -> int | None:
        """Current stock for a code, or None if the code is unknown."""
        return self.session.execute(
            select(Product.stock_quantity).where(Product.code == code)
        ).scalar_one_or_none()

    def add_product(
        self,
        code: str,
        name: str,
        unit_price: Decimal,
        stock_quantity: int = 0,
        variant_options: dict[str, list[str]] | None = None,
    ) -> ProductRef:
        """Create a catalog entry."""
        product = Product(
            code=code,
            name=name,
            unit_price=Decimal(unit_price),
            stock_quantity=stock_quantity,
            variant_options={
                attr: [str(v).lower() for v in values]
                for attr, values in (variant_options or {}).items()
            },
            is_active=True,
            created_by_id=SYSTEM_ACTOR_ID,
        )
        self._add(product)

        logger.info(
            "product_added",
            extra={"product_code": code, "stock_quantity": stock_quantity},
        )
        return ProductRef.from_model(product)

    def restock(self, code: str, quantity: int) -> int:
        """
        Add units to stock and return the new level.

        Raises:
            ProductNotFoundError: If the code is unknown.
        """
        result = self.session.execute(
            update(Product)
            .where(Product.code == code)
            .values(stock_quantity=Product.stock_quantity + quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ProductNotFoundError(code)
        return self.get_stock(code)
