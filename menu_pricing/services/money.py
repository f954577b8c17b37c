"""Currency and rate rounding for the presentation boundary.

Internal computation stays in unrounded floats; these helpers are applied
when a value leaves the service (JSON responses, persisted prices).
"""
from decimal import Decimal, ROUND_CEILING, ROUND_HALF_UP
from typing import Annotated

from pydantic import PlainSerializer

CENT = Decimal("0.01")
RATE_PLACES = Decimal("0.0001")

# Float noise below this many places is discarded before ceiling rounding,
# so 1.0700000000000003 ceils to 1.07 rather than 1.08.
_CEILING_GUARD_DIGITS = 6


def round_money(value: float) -> float:
    """Round a currency amount to cents, half-up."""
    return float(Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP))


def ceil_money(value: float) -> float:
    """Round a currency amount up to the next cent."""
    guarded = Decimal(str(round(value, _CEILING_GUARD_DIGITS)))
    return float(guarded.quantize(CENT, rounding=ROUND_CEILING))


def round_rate(value: float) -> float:
    """Round a fractional rate to 4 places (0.01% resolution), half-up."""
    return float(Decimal(str(value)).quantize(RATE_PLACES, rounding=ROUND_HALF_UP))


def to_decimal_money(value: float) -> Decimal:
    """Convert a float amount to a cent-quantized Decimal for Numeric columns."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


# Annotated field types: unrounded in Python, rounded in JSON output.
Money = Annotated[float, PlainSerializer(round_money, return_type=float, when_used="json")]
Rate = Annotated[float, PlainSerializer(round_rate, return_type=float, when_used="json")]
