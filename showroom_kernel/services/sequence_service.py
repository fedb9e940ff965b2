"""
SequenceService -- monotonic document numbers via counter rows.

Responsibility:
    Allocates strictly increasing numbers for invoices and cash-flow
    transactions from a dedicated counter table.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by InvoiceService inside the posting transaction.

Invariants enforced:
    - Monotonicity: the counter row is the sole source of truth.  The
      aggregate-max-plus-one pattern is never used.
    - Transactional: the increment is an in-place ``UPDATE`` that takes the
      row's write lock, so concurrent allocations serialize and a rolled
      back posting returns its number.

Failure modes:
    - ValueError: The sequence was never seeded (``create_tables`` seeds
      every well-known sequence through ``ensure_sequences``).
    - OperationalError: Lock wait exceeded; surfaced to the posting retry
      loop.
"""

from sqlalchemy import BigInteger, String, select, update
from sqlalchemy.orm import Mapped, Session, mapped_column

from showroom_kernel.db.base import Base
from showroom_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row is a named sequence with its last allocated value.
    """

    __tablename__ = "sequence_counters"

    # Sequence name (e.g., "invoice", "cashflow")
    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Contract:
        Accepts a sequence name and returns the next strictly-monotonic
        integer value.  The increment is committed with the caller's
        transaction.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT create counters lazily.  Lazy creation needs a savepoint,
          and seeding at schema creation keeps allocation a single
          statement on every backend.

    Usage:
        with session_scope() as session:
            number = SequenceService(session).next_number(SequenceService.INVOICE)
    """

    # Well-known sequence names
    INVOICE = "invoice"
    CASHFLOW = "cashflow"

    PREFIXES = {
        INVOICE: "INV",
        CASHFLOW: "CF",
    }

    def __init__(self, session: Session):
        self._session = session

    def ensure_sequences(self) -> None:
        """Seed every well-known sequence that does not exist yet."""
        existing = set(
            self._session.execute(select(SequenceCounter.name)).scalars()
        )
        for name in self.PREFIXES:
            if name not in existing:
                self._session.add(SequenceCounter(name=name, current_value=0))
                logger.debug("sequence_seeded", extra={"sequence_name": name})
        self._session.flush()

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        Postconditions:
            - Returns an integer > 0 strictly greater than any previously
              committed value for this sequence.
            - The counter row stays write-locked until the caller's
              transaction completes.

        Raises:
            ValueError: If the sequence has not been seeded.
        """
        result = self._session.execute(
            update(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .values(current_value=SequenceCounter.current_value + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ValueError(f"Sequence {sequence_name!r} is not seeded")

        value = self._session.execute(
            select(SequenceCounter.current_value)
            .where(SequenceCounter.name == sequence_name)
        ).scalar_one()

        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": value},
        )
        return value

    def next_number(self, sequence_name: str) -> str:
        """Next value formatted as a document number, e.g. ``INV-000042``."""
        value = self.next_value(sequence_name)
        return f"{self.PREFIXES[sequence_name]}-{value:06d}"

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a sequence without incrementing it."""
        return self._session.execute(
            select(SequenceCounter.current_value)
            .where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
