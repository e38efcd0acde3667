"""
Fixed-point amount helpers.

Responsibility:
    Canonical conversion and comparison of ledger amounts.  Every amount in
    the ledger has exactly two fractional digits and every equality test
    uses the 0.01 epsilon.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Imported by engines and services.

Invariants enforced:
    - ``to_amount`` never accepts float; floats would smuggle binary
      rounding error into the ledger.
    - Rounding is ROUND_HALF_UP to two places.

Failure modes:
    - TypeError for float input.
    - decimal.InvalidOperation for non-numeric strings.
"""

from decimal import ROUND_HALF_UP, Decimal

ZERO = Decimal("0.00")
EPSILON = Decimal("0.01")
_CENTS = Decimal("0.01")


def to_amount(value: Decimal | int | str | None) -> Decimal:
    """
    Normalize a value to a two-place Decimal.

    Preconditions:
        value is a Decimal, int, numeric string, or None (treated as zero).
    Postconditions:
        Returns a Decimal quantized to 0.01 with ROUND_HALF_UP.
    Raises:
        TypeError: if value is a float.
    """
    if value is None:
        return ZERO
    if isinstance(value, float):
        raise TypeError("Ledger amounts must not be float; pass Decimal or str")
    if not isinstance(value, Decimal):
        value = Decimal(value)
    return value.quantize(_CENTS, rounding=ROUND_HALF_UP)


def amounts_equal(a: Decimal, b: Decimal, epsilon: Decimal = EPSILON) -> bool:
    """True when ``|a - b| < epsilon``."""
    return abs(a - b) < epsilon
