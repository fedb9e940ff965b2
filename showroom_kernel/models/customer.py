"""
Module: showroom_kernel.models.customer
Responsibility: ORM persistence for showroom customers.  The phone number is
    the business key spoken in commands ("find customer with phone ...").
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - phone is unique (uq_customer_phone) and stored as digits only.

Failure modes:
    - IntegrityError on duplicate phone (two employees registering the same
      walk-in customer at once).
"""

from sqlalchemy import Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from showroom_kernel.db.base import TrackedBase


class Customer(TrackedBase):
    """
    A customer that invoices are issued to.

    Guarantees:
        - phone is globally unique and digits-only.
        - name is required; email and address are optional contact data
          used by the notification collaborator.
    """

    __tablename__ = "customers"

    __table_args__ = (
        UniqueConstraint("phone", name="uq_customer_phone"),
        Index("idx_customer_name", "name"),
    )

    phone: Mapped[str] = mapped_column(String(15), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    address: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return f"<Customer {self.phone}: {self.name}>"
