"""
SqlUnitOfWork -- binds the store services to one transaction.

Responsibility:
    Opens a session from the engine's session factory and hands out the
    customer, product and invoice stores bound to it.  ``transaction()``
    commits on normal exit and rolls back on any exception, so everything
    written through the stores inside the block is atomic.

Architecture position:
    Kernel > Services -- the transactional boundary of the coordinator.
    Every coordinator step that touches the database opens its own unit:
    a short read unit for resolution, a write unit for registration, and
    exactly one write unit per posting attempt.

Invariants enforced:
    - Stock decrement, invoice insert, cash-flow insert and the POSTED
      transition share one session and one commit.
    - Sessions never outlive the block; nothing is cached across calls.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import ContextManager, Iterator, Protocol

from sqlalchemy.orm import Session, sessionmaker

from showroom_kernel.domain.clock import Clock, SystemClock
from showroom_kernel.logging_config import get_logger
from showroom_kernel.services.customer_service import CustomerService
from showroom_kernel.services.invoice_service import InvoiceService
from showroom_kernel.services.product_service import ProductService

logger = get_logger("services.unit_of_work")


@dataclass(frozen=True)
class Stores:
    """The three stores, all bound to the same transaction."""

    customers: CustomerService
    products: ProductService
    invoices: InvoiceService


class UnitOfWork(Protocol):
    def transaction(self) -> ContextManager[Stores]:
        ...


class SqlUnitOfWork:
    """
    SQLAlchemy unit of work.

    Args:
        session_factory: Usually ``showroom_kernel.db.get_session_factory()``.
        clock: Passed to InvoiceService for status timestamps.
    """

    def __init__(self, session_factory: sessionmaker[Session], clock: Clock | None = None):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()

    @contextmanager
    def transaction(self) -> Iterator[Stores]:
        session = self._session_factory()
        try:
            yield Stores(
                customers=CustomerService(session),
                products=ProductService(session),
                invoices=InvoiceService(session, self._clock),
            )
            session.commit()
        except Exception:
            session.rollback()
            logger.debug("unit_of_work_rolled_back", exc_info=True)
            raise
        finally:
            session.close()
