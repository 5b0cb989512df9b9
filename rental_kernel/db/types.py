"""
Module: rental_kernel.db.types
Responsibility: Decimal helpers for monetary values.
    Centralizes precision and rounding so every model and service uses
    identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/ and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats in balance arithmetic.  All monetary amounts are Decimal.
    - round_money() is the ONLY sanctioned rounding function for money.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


def to_money(value: Decimal | int | float | str | None) -> Decimal | None:
    """
    Coerce an incoming amount to Decimal.

    Floats are converted through their shortest string form so that
    ``700.1`` becomes ``Decimal("700.1")`` rather than its binary expansion.

    Returns:
        Decimal, or None when value is None.

    Raises:
        ValueError: If value is not numeric (booleans included) or is not
            finite (NaN, Infinity).
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"Not a monetary amount: {value!r}")
    if isinstance(value, Decimal):
        amount = value
    else:
        if isinstance(value, float):
            value = repr(value)
        try:
            amount = Decimal(value)
        except (InvalidOperation, TypeError) as exc:
            raise ValueError(f"Not a monetary amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Not a finite monetary amount: {value!r}")
    return amount


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to specified decimal places.

    This is the ONLY sanctioned rounding function for money in the system.
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places else "0"
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def non_negative(value: Decimal) -> Decimal:
    """Floor a monetary value at zero."""
    return value if value > ZERO else ZERO
