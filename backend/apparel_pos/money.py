# Overview: Fixed-precision money primitives; every amount is an integer count of paise.

"""
Money & Rounding

All amounts inside the engine are integers in paise (1 rupee = 100 paise).
Conversion to rupees happens only at the display/API boundary.

Rounding rule (used everywhere): half away from zero.
- Paise-level results of multiplication/division round to the nearest paisa.
- The payable amount rounds to the nearest whole rupee.
- Negative amounts are rejected at component boundaries; only the
  rounding adjustment (rounded_off_amount) may be negative.

add/sub/mul/div are the checked arithmetic the calculation and payment
services use for amounts; they refuse negative inputs and results.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from fractions import Fraction

from .errors import ValidationError


PAISE_PER_RUPEE = 100
CURRENCY_SYMBOL = "₹"


def as_fraction(value) -> Fraction:
    """Exact rational from an int, float, Decimal or numeric string."""
    if isinstance(value, bool):
        raise ValidationError(f"Invalid numeric value: {value!r}")
    if isinstance(value, (int, Fraction)):
        return Fraction(value)
    if isinstance(value, float):
        # Floats arrive from JSON; go through their shortest repr, not their binary value
        return Fraction(Decimal(repr(value)))
    try:
        return Fraction(Decimal(str(value).strip()))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid numeric value: {value!r}")


def round_half_away(value) -> int:
    """Round a rational value to the nearest integer, ties away from zero."""
    frac = as_fraction(value)
    sign = -1 if frac < 0 else 1
    magnitude = abs(frac)
    whole, remainder = divmod(magnitude.numerator, magnitude.denominator)
    if remainder * 2 >= magnitude.denominator:
        whole += 1
    return sign * whole


def require_non_negative(amount: int, field: str = "amount") -> int:
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise ValidationError(f"{field} must be an integer number of paise")
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative")
    return amount


def add(*amounts: int) -> int:
    for amount in amounts:
        require_non_negative(amount)
    return sum(amounts)


def sub(minuend: int, subtrahend: int) -> int:
    result = add(minuend) - add(subtrahend)
    if result < 0:
        raise ValidationError("Result of subtraction cannot be negative")
    return result


def mul(amount: int, scalar) -> int:
    """amount x scalar, rounded to the nearest paisa."""
    require_non_negative(amount)
    factor = as_fraction(scalar)
    if factor < 0:
        raise ValidationError("Multiplier cannot be negative")
    return round_half_away(amount * factor)


def div(amount: int, scalar) -> int:
    """amount / scalar, rounded to the nearest paisa."""
    require_non_negative(amount)
    divisor = as_fraction(scalar)
    if divisor <= 0:
        raise ValidationError("Divisor must be positive")
    return round_half_away(amount / divisor)


def to_paise(rupees) -> int:
    """
    Boundary conversion from a rupee value ("999", 999.5, Decimal("1.25")) to paise.

    Values with more than two decimals are rejected rather than silently rounded.
    """
    paise = as_fraction(rupees) * PAISE_PER_RUPEE
    if paise.denominator != 1:
        raise ValidationError(f"Amount {rupees!r} has more than two decimal places")
    return require_non_negative(int(paise))


def to_rupees(paise: int) -> Decimal:
    return (Decimal(paise) / PAISE_PER_RUPEE).quantize(Decimal("0.01"))


def to_display_2dp(paise: int) -> str:
    """Two-decimal rupee string; sign preserved for rounding adjustments."""
    sign = "-" if paise < 0 else ""
    whole, fraction = divmod(abs(paise), PAISE_PER_RUPEE)
    return f"{sign}{whole}.{fraction:02d}"


def round_to_rupee(paise: int) -> int:
    """Nearest whole rupee, returned in paise (always a multiple of 100)."""
    require_non_negative(paise)
    return round_half_away(Fraction(paise, PAISE_PER_RUPEE)) * PAISE_PER_RUPEE


def rounding_adjustment(original: int, rounded: int) -> int:
    """Signed rounded - original; the only monetary value allowed to be negative."""
    return rounded - original


def group_indian(whole: int) -> str:
    """en-IN digit grouping: last three digits, then groups of two (12,34,567)."""
    digits = str(whole)
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


def format_inr(paise: int, *, decimals: bool = True) -> str:
    """
    Display string with the rupee symbol and Indian grouping.

    format_inr(12345678) -> "₹1,23,456.78"
    format_inr(223800, decimals=False) -> "₹2,238"
    """
    sign = "-" if paise < 0 else ""
    whole, fraction = divmod(abs(paise), PAISE_PER_RUPEE)
    text = f"{sign}{CURRENCY_SYMBOL}{group_indian(whole)}"
    if decimals:
        text += f".{fraction:02d}"
    return text
