"""
CustomerService -- customer lookup and registration.

Responsibility:
    SQLAlchemy-backed CustomerStore: exact lookup by phone digits and the
    registration collaborator used when a spoken phone number is unknown.

Architecture position:
    Kernel > Services -- imperative shell.
    Returns CustomerRef DTOs, never ORM entities.

Invariants enforced:
    - Phone numbers are stored digits-only and unique (uq_customer_phone).
    - Registering a phone that already exists returns the existing customer
      unchanged; details are never overwritten by a spoken command.

Failure modes:
    - InvalidCustomerDetailsError: phone outside 10-15 digits, or no name.
    - IntegrityError: a concurrent registration committed the same phone
      first.  The caller's transaction must be rolled back; a fresh lookup
      then finds the winner.
"""

from __future__ import annotations

from sqlalchemy import select

from showroom_kernel.db.base import SYSTEM_ACTOR_ID
from showroom_kernel.domain.dtos import CustomerDetails, CustomerRef
from showroom_kernel.domain.resolver import normalize_phone
from showroom_kernel.domain.tokenizer import PHONE_MAX_DIGITS, PHONE_MIN_DIGITS
from showroom_kernel.exceptions import InvalidCustomerDetailsError
from showroom_kernel.logging_config import get_logger
from showroom_kernel.models.customer import Customer
from showroom_kernel.services.base import StoreService

logger = get_logger("services.customer")


class CustomerService(StoreService):
    """Customer store bound to one session."""

    def find_by_phone(self, phone: str) -> CustomerRef | None:
        customer = self.session.execute(
            select(Customer).where(Customer.phone == normalize_phone(phone))
        ).scalar_one_or_none()
        return CustomerRef.from_model(customer) if customer is not None else None

    def register(self, details: CustomerDetails) -> CustomerRef:
        """
        Register a customer, or return the one already holding the phone.

        Raises:
            InvalidCustomerDetailsError: If the phone or name is unusable.
        """
        phone = normalize_phone(details.phone)
        if not PHONE_MIN_DIGITS <= len(phone) <= PHONE_MAX_DIGITS:
            raise InvalidCustomerDetailsError(
                "phone",
                details.phone,
                f"must have {PHONE_MIN_DIGITS}-{PHONE_MAX_DIGITS} digits",
            )
        name = (details.name or "").strip()
        if not name:
            raise InvalidCustomerDetailsError("name", details.name, "must not be empty")

        existing = self.find_by_phone(phone)
        if existing is not None:
            logger.info(
                "customer_already_registered",
                extra={"customer_id": str(existing.id), "phone": phone},
            )
            return existing

        customer = Customer(
            phone=phone,
            name=name,
            email=details.email,
            address=details.address,
            created_by_id=SYSTEM_ACTOR_ID,
        )
        self._add(customer)

        logger.info(
            "customer_registered",
            extra={"customer_id": str(customer.id), "phone": phone},
        )
        return CustomerRef.from_model(customer)
