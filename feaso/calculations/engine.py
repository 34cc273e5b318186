"""Feasibility engine: one call from scenario inputs to monthly flows and metrics."""

import logging
from dataclasses import dataclass
from typing import List, Optional

import pandas as pd

from ..models.lookups import TaxConfiguration
from ..models.project import Scenario, Site, validate_scenario
from .costs import (
    CostSchedule,
    LineItemSummary,
    build_itemised_cashflow,
    calculate_cost_schedule,
    calculate_line_item_summaries,
)
from .metrics import ProjectMetrics, calculate_project_metrics
from .revenue import RevenueSchedule, calculate_revenue_schedule
from .timeline import Timeline, build_timeline
from .utils import engine_context
from .waterfall import MonthlyFlow, TierLimits, resolve_tier_limits, run_funding_waterfall

logger = logging.getLogger(__name__)


@dataclass
class FeasibilityResult:
    """Complete output of a feasibility run."""

    scenario: Scenario
    timeline: Timeline
    flows: List[MonthlyFlow]
    metrics: ProjectMetrics
    costs: CostSchedule
    revenues: RevenueSchedule
    limits: TierLimits
    line_items: List[LineItemSummary]

    def to_frame(self) -> pd.DataFrame:
        """Monthly flows as a DataFrame indexed by month label."""
        records = []
        for f in self.flows:
            records.append({
                "month": f.month,
                "label": f.label,
                "net_cost": float(f.net_cost),
                "gst_paid": float(f.gst_paid),
                "gross_revenue": float(f.gross_revenue),
                "gst_on_sales": float(f.gst_on_sales),
                "net_revenue": float(f.net_revenue),
                "gst_credit": float(f.gst_credit),
                "refinance_inflow": float(f.refinance_inflow),
                "senior_draw": float(f.senior.draw),
                "senior_repayment": float(f.senior.repayment),
                "senior_interest": float(f.senior.interest),
                "senior_balance": float(f.senior.balance),
                "mezzanine_draw": float(f.mezzanine.draw),
                "mezzanine_repayment": float(f.mezzanine.repayment),
                "mezzanine_interest": float(f.mezzanine.interest),
                "mezzanine_balance": float(f.mezzanine.balance),
                "equity_draw": float(f.equity_draw),
                "equity_distribution": float(f.equity_distribution),
                "equity_balance": float(f.equity_balance),
                "surplus_balance": float(f.surplus_balance),
                "investment_balance": float(f.investment_balance),
                "net_cashflow": float(f.net_cashflow),
                "cumulative_cashflow": float(f.cumulative_cashflow),
                "asset_value": float(f.asset_value),
                "depreciation": float(f.depreciation),
                "funding_shortfall": float(f.funding_shortfall),
            })
        return pd.DataFrame.from_records(records).set_index("label")

    def itemised_cashflow(self) -> pd.DataFrame:
        """Per line item net cost by month."""
        return build_itemised_cashflow(self.costs, self.timeline)


def calculate_feasibility(
    scenario: Scenario,
    site: Site,
    tax_scales: Optional[TaxConfiguration] = None,
) -> FeasibilityResult:
    """Run a scenario end to end.

    Validates inputs, builds the timeline, the revenue and cost
    schedules, resolves debt limits, runs the funding waterfall and
    aggregates metrics. The run is a pure function of its arguments and
    holds no state between calls, so scenarios may be evaluated from
    several threads at once.

    Args:
        scenario: Scenario to evaluate.
        site: Site record.
        tax_scales: Optional override of DEFAULT_TAX_SCALES.

    Returns:
        FeasibilityResult.

    Raises:
        FeasibilityInputError: If the inputs fail validation.

    Example:
        >>> result = calculate_feasibility(scenario, site)
        >>> result.metrics.is_fundable
        True
    """
    validate_scenario(scenario, site)

    with engine_context():
        timeline = build_timeline(scenario.settings, site, scenario.costs, scenario.strategy)
        logger.debug(
            "Timeline: settlement %d, construction %d-%d, horizon %d",
            timeline.settlement_month, timeline.construction_start,
            timeline.construction_end, timeline.horizon,
        )

        revenues = calculate_revenue_schedule(scenario, site, timeline)
        costs = calculate_cost_schedule(scenario, site, timeline, revenues, tax_scales)
        limits = resolve_tier_limits(
            scenario.settings.capital_stack,
            estimated_revenue=revenues.estimated_total,
            total_cost=costs.total_net,
        )
        flows = run_funding_waterfall(timeline, costs, revenues, scenario.settings, site, limits)
        metrics = calculate_project_metrics(flows, scenario, site)
        line_items = calculate_line_item_summaries(costs)

    logger.info(
        "Scenario '%s': %d months, %s strategy",
        scenario.name, len(flows), scenario.strategy.value,
    )
    return FeasibilityResult(
        scenario=scenario,
        timeline=timeline,
        flows=flows,
        metrics=metrics,
        costs=costs,
        revenues=revenues,
        limits=limits,
        line_items=line_items,
    )
