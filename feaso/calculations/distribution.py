"""Distribution engine: spread a total across a span of months.

Curve shapes share one cumulative-function interface F(position, steepness)
with position in [0, 1]. A period's share is the normalised difference

    (F((t + 1) / span) - F(t / span)) / (F(1) - F(0))

so the shares telescope and a full span always sums back to the total.
Everything is evaluated in Decimal.
"""

from decimal import Decimal, localcontext
from typing import Callable, Dict, List, Mapping, Optional

from ..models.lookups import (
    BELL_CURVE_SIGMA,
    DEFAULT_S_CURVE_STEEPNESS,
    DistributionShape,
)
from .utils import Number, ONE, ZERO, to_decimal

CumulativeFunction = Callable[[Decimal, Decimal], Decimal]

_HALF = Decimal("0.5")
_TWO = Decimal(2)
_PI = Decimal("3.14159265358979323846264338327950288419716939937510")


def _logistic_cdf(position: Decimal, steepness: Decimal) -> Decimal:
    """Logistic curve centred on the middle of the span."""
    return ONE / (ONE + (-steepness * (position - _HALF)).exp())


def _erf(x: Decimal) -> Decimal:
    """Error function by its Maclaurin series.

    Converges for the |x| <= ~2.2 range a bell curve uses; the working
    precision is raised to absorb the alternating-term cancellation.
    """
    with localcontext() as ctx:
        ctx.prec += 12
        threshold = Decimal(10) ** -(ctx.prec + 2)
        x_squared = x * x
        power = x  # x^(2n+1) / n! with sign
        total = x
        n = 0
        while True:
            n += 1
            power = -power * x_squared / n
            term = power / (2 * n + 1)
            total += term
            if abs(term) < threshold:
                break
        result = total * _TWO / _PI.sqrt()
    return +result


def _gaussian_cdf(position: Decimal, steepness: Decimal) -> Decimal:
    """Normal CDF centred on the middle of the span.

    steepness is unused; the spread is fixed by BELL_CURVE_SIGMA.
    """
    sigma = to_decimal(BELL_CURVE_SIGMA)
    z = (position - _HALF) / sigma
    return _HALF * (ONE + _erf(z / _TWO.sqrt()))


CUMULATIVE_FUNCTIONS: Dict[DistributionShape, CumulativeFunction] = {
    DistributionShape.S_CURVE: _logistic_cdf,
    DistributionShape.BELL_CURVE: _gaussian_cdf,
}


def _curve_share(
    shape: DistributionShape,
    period_index: int,
    span: int,
    steepness: Decimal,
) -> Decimal:
    cdf = CUMULATIVE_FUNCTIONS[shape]
    n = Decimal(span)
    start = cdf(Decimal(period_index) / n, steepness)
    end = cdf(Decimal(period_index + 1) / n, steepness)
    full = cdf(ONE, steepness) - cdf(ZERO, steepness)
    return (end - start) / full


def distribute(
    total: Number,
    period_index: int,
    span: int,
    shape: DistributionShape,
    milestones: Optional[Mapping[int, Number]] = None,
    steepness: Optional[Number] = None,
) -> Decimal:
    """Increment of a total falling in one period of its span.

    Args:
        total: Amount to spread.
        period_index: 0-based period relative to the start of the span.
        span: Number of periods (>= 1).
        shape: Distribution shape.
        milestones: {period: fraction} map for MILESTONE.
        steepness: Logistic k for S_CURVE (default 12).

    Returns:
        The period's increment; zero outside the span.

    Raises:
        ValueError: If span is less than 1.
    """
    if span < 1:
        raise ValueError(f"Span must be at least 1, got {span}")
    if period_index < 0 or period_index >= span:
        return ZERO

    amount = to_decimal(total)

    if shape == DistributionShape.UPFRONT:
        return amount if period_index == 0 else ZERO
    if shape == DistributionShape.END:
        return amount if period_index == span - 1 else ZERO
    if shape == DistributionShape.MILESTONE:
        fraction = (milestones or {}).get(period_index)
        return amount * to_decimal(fraction) if fraction is not None else ZERO
    if shape in CUMULATIVE_FUNCTIONS:
        k = to_decimal(DEFAULT_S_CURVE_STEEPNESS if steepness is None else steepness)
        return amount * _curve_share(shape, period_index, span, k)

    # LINEAR
    return amount / Decimal(span)


def distribution_weights(
    span: int,
    shape: DistributionShape,
    milestones: Optional[Mapping[int, Number]] = None,
    steepness: Optional[Number] = None,
) -> List[Decimal]:
    """Per-period weights of a unit total across a span."""
    return [
        distribute(ONE, i, span, shape, milestones, steepness)
        for i in range(span)
    ]
