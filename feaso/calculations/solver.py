"""Residual land value: the highest purchase price that still meets a target."""

import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum
from typing import Optional

from ..models.lookups import TaxConfiguration
from ..models.project import Scenario, Site
from .engine import calculate_feasibility
from .metrics import ProjectMetrics

logger = logging.getLogger(__name__)


class ResidualTarget(Enum):
    """Metric a residual land value is solved against."""

    MARGIN_ON_COST = "margin_on_cost"
    EQUITY_IRR = "equity_irr"
    NET_PROFIT = "net_profit"


@dataclass
class ResidualLandValueResult:
    """Outcome of a residual land value search."""

    land_value: Decimal
    target: float
    target_type: ResidualTarget
    achieved: Optional[Decimal]  # Metric at land_value; None if undefined
    iterations: int
    converged: bool
    feasible: bool  # False when even a free site misses the target


def _metric(metrics: ProjectMetrics, target_type: ResidualTarget) -> Optional[Decimal]:
    return getattr(metrics, target_type.value)


def _meets(value: Optional[Decimal], target: float) -> bool:
    # An undefined IRR counts as missing the target
    return value is not None and value >= Decimal(str(target))


def _with_price(site: Site, price: float) -> Site:
    return replace(site, acquisition=replace(site.acquisition, purchase_price=price))


def solve_residual_land_value(
    scenario: Scenario,
    site: Site,
    target: float,
    target_type: ResidualTarget = ResidualTarget.MARGIN_ON_COST,
    lower_bound: float = 0.0,
    upper_bound: float = 100_000_000.0,
    tolerance: float = 1_000.0,
    max_iterations: int = 40,
    tax_scales: Optional[TaxConfiguration] = None,
) -> ResidualLandValueResult:
    """Binary search the purchase price that meets a target metric.

    Every probe re-runs the full engine, so stamp duty on an
    AUTO_STAMP_DUTY item and land-linked equity follow the price.

    Args:
        scenario: Scenario to solve.
        site: Site whose purchase price is varied.
        target: Target value (fraction for margins and IRR, dollars for profit).
        target_type: Metric to solve against.
        lower_bound: Lowest price searched.
        upper_bound: Highest price searched.
        tolerance: Stop once the bracket is narrower than this.
        max_iterations: Iteration cap.
        tax_scales: Optional tax table override.

    Returns:
        ResidualLandValueResult.

    Example:
        >>> result = solve_residual_land_value(scenario, site, target=0.20)
        >>> result.feasible, result.achieved >= Decimal("0.20")
        (True, True)
    """
    def evaluate(price: float) -> Optional[Decimal]:
        result = calculate_feasibility(scenario, _with_price(site, price), tax_scales)
        return _metric(result.metrics, target_type)

    low = lower_bound
    high = upper_bound

    achieved = evaluate(low)
    if not _meets(achieved, target):
        logger.warning(
            "Target %s of %s is not met even at a land price of %s",
            target_type.value, target, low,
        )
        return ResidualLandValueResult(
            land_value=Decimal(str(low)),
            target=target,
            target_type=target_type,
            achieved=achieved,
            iterations=1,
            converged=False,
            feasible=False,
        )

    iterations = 0
    converged = False
    while iterations < max_iterations:
        if high - low < tolerance:
            converged = True
            break
        iterations += 1
        mid = (low + high) / 2
        value = evaluate(mid)
        if _meets(value, target):
            low = mid
            achieved = value
        else:
            high = mid

    logger.info(
        "Residual land value %.2f for %s >= %s after %d iterations",
        low, target_type.value, target, iterations,
    )
    return ResidualLandValueResult(
        land_value=Decimal(str(low)),
        target=target,
        target_type=target_type,
        achieved=achieved,
        iterations=iterations,
        converged=converged or high - low < tolerance,
        feasible=True,
    )
