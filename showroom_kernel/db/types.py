"""
Module: showroom_kernel.db.types
Responsibility: The ledger precision and the single sanctioned rounding
    function for monetary values.
Architecture position: Kernel > DB.  May be imported by models/, domain/ and
    services/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats for money.  All monetary amounts are Decimal.
    - round_money() is the ONLY rounding function for financial values;
      pricing, posting and preview all go through it, so the previewed and
      posted amounts can never diverge by rounding mode.
"""

from decimal import ROUND_HALF_UP, Decimal

# Ledger precision
LEDGER_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


def round_money(
    value: Decimal,
    decimal_places: int = LEDGER_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the ledger precision.

    Preconditions: value is a Decimal.
    Postconditions: Returns value quantized to ``decimal_places`` using
        ``rounding`` (half-up by default).

    Example:
        round_money(Decimal("10.555")) -> Decimal("10.56")
    """
    quantum = Decimal(1).scaleb(-decimal_places)
    return value.quantize(quantum, rounding=rounding)
