"""
Decimal helpers for monetary values.

Amounts are ``Decimal`` end to end.  Floats are refused at the boundary
because a binary rounding error could hide behind the 0.0001 balance
tolerance.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

MONEY_QUANTUM = Decimal("0.01")

# Largest debit/credit difference still treated as balanced
BALANCE_TOLERANCE = Decimal("0.0001")

ZERO = Decimal("0")


def round_money(value: Decimal) -> Decimal:
    """Quantize to the currency minor unit (2 dp, half up)."""
    return value.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def to_decimal(value) -> Decimal:
    """
    Convert caller input to Decimal.

    Accepts Decimal, int and numeric strings.

    Raises:
        ValueError: for floats, booleans, non-numeric strings, NaN and
            infinities.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError(f"Unsupported monetary type: {type(value).__name__}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"Not a number: {value!r}") from None
    else:
        raise ValueError(f"Unsupported monetary type: {type(value).__name__}")
    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result
