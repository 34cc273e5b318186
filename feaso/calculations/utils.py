"""Decimal helpers shared by the calculation modules."""

from contextlib import contextmanager
from decimal import Decimal, localcontext, ROUND_HALF_EVEN
from typing import Iterable, Iterator, Union

Number = Union[int, float, str, Decimal]

ENGINE_PRECISION = 34

ZERO = Decimal(0)
ONE = Decimal(1)
TWELVE = Decimal(12)


def to_decimal(value: Number) -> Decimal:
    """Convert an input number to Decimal via its string form.

    Going through str() keeps 0.1 as Decimal("0.1") rather than the
    binary float expansion.
    """
    if isinstance(value, Decimal):
        return value
    if value is None:
        return ZERO
    return Decimal(str(value))


@contextmanager
def engine_context() -> Iterator[None]:
    """Run a block with the engine's decimal precision.

    Uses a thread-local context so concurrent scenario runs never
    see each other's settings.
    """
    with localcontext() as ctx:
        ctx.prec = ENGINE_PRECISION
        ctx.rounding = ROUND_HALF_EVEN
        yield


def simple_monthly_rate(annual_rate: Number) -> Decimal:
    """Nominal monthly rate (annual / 12), used for interest accrual."""
    return to_decimal(annual_rate) / TWELVE


def effective_monthly_rate(annual_rate: Number) -> Decimal:
    """Compounding-equivalent monthly rate: (1 + annual)^(1/12) - 1."""
    annual = to_decimal(annual_rate)
    if annual == ZERO:
        return ZERO
    return (ONE + annual) ** (ONE / TWELVE) - ONE


def compound(monthly_rate: Decimal, months: int) -> Decimal:
    """Growth factor (1 + monthly_rate)^months."""
    if monthly_rate == ZERO or months == 0:
        return ONE
    return (ONE + monthly_rate) ** months


def dsum(values: Iterable[Decimal]) -> Decimal:
    """Sum Decimals starting from Decimal zero."""
    return sum(values, ZERO)
