"""Fixed-precision decimal helpers for money and rate arithmetic"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

MONEY_SCALE = 2
RATE_SCALE = 10

_MONEY_QUANTUM = Decimal(1).scaleb(-MONEY_SCALE)
_RATE_QUANTUM = Decimal(1).scaleb(-RATE_SCALE)

ZERO = Decimal("0.00")

Number = Union[Decimal, int, str]


def to_decimal(value: Number) -> Decimal:
    """Convert to Decimal without going through binary floating point"""
    if isinstance(value, float):
        raise TypeError("Binary floating point is not allowed in money math")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value: Number) -> Decimal:
    """Round HALF_UP to 2 fractional digits"""
    return to_decimal(value).quantize(_MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def round_rate(value: Number) -> Decimal:
    """Round HALF_UP to 10 fractional digits (intermediate rates)"""
    return to_decimal(value).quantize(_RATE_QUANTUM, rounding=ROUND_HALF_UP)


def divide(numerator: Number, denominator: Number, scale: int) -> Decimal:
    """Divide and round HALF_UP to an explicit scale"""
    quotient = to_decimal(numerator) / to_decimal(denominator)
    return quotient.quantize(Decimal(1).scaleb(-scale), rounding=ROUND_HALF_UP)


def decimal_pow(base: Decimal, exponent: int) -> Decimal:
    """Integer power by repeated multiplication, no intermediate rounding to a fixed scale"""
    if exponent < 0:
        raise ValueError("Exponent must be non-negative")
    result = Decimal(1)
    for _ in range(exponent):
        result *= base
    return result
