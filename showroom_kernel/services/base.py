"""
StoreService -- shared shape of the customer, product and invoice stores.

A store works inside a session it is handed and only ever flushes.  The
posting unit binds all three stores to one session, so the stock decrement,
the invoice row and the cash-flow row commit or roll back together; a store
that committed on its own would let a decrement outlive a failed insert.
"""

from sqlalchemy.orm import Session

from showroom_kernel.db.base import Base


class StoreService:
    def __init__(self, session: Session):
        self.session = session

    def _add(self, row: Base) -> None:
        """Stage a new row and flush, so constraint violations surface here."""
        self.session.add(row)
        self.session.flush()
