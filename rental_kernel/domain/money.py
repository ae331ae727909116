"""
Money helpers -- Decimal-only arithmetic for rent, payments and fees.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Amounts are ``Decimal``; floats are converted through ``str()`` so
      binary representation error never enters a calculation.
    - Rounding is explicit: ``quantize_money`` rounds half-up to cents.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_decimal(value: Decimal | int | str | float, field: str = "amount") -> Decimal:
    """
    Coerce a numeric input to Decimal.

    Raises:
        ValueError: If the value cannot be parsed or is not finite.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid {field}: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as e:
            raise ValueError(f"Invalid {field}: {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"Invalid {field}: {value!r}")
    return result


def quantize_money(amount: Decimal, rounding: str = ROUND_HALF_UP) -> Decimal:
    """Round to two decimal places (half-up by default)."""
    return amount.quantize(CENT, rounding=rounding)
