"""Calculation modules for the development feasibility engine."""

from .utils import engine_context, to_decimal
from .taxes import calculate_land_tax, calculate_stamp_duty, calculate_tax, evaluate_tax
from .distribution import CUMULATIVE_FUNCTIONS, distribute, distribution_weights
from .timeline import Timeline, build_timeline
from .revenue import (
    RefinanceEvent,
    RevenuePeriod,
    RevenueSchedule,
    calculate_revenue_schedule,
    estimate_total_revenue,
)
from .costs import (
    CostBasis,
    CostPeriod,
    CostSchedule,
    LineItemSummary,
    build_itemised_cashflow,
    calculate_cost_schedule,
    calculate_line_item_summaries,
    resolve_cost_basis,
    resolve_line_item_total,
)
from .waterfall import (
    LedgerState,
    MonthlyFlow,
    TierFlow,
    TierLimits,
    resolve_tier_limits,
    run_funding_waterfall,
)
from .metrics import (
    ProjectMetrics,
    annualise_monthly_rate,
    calculate_irr,
    calculate_npv,
    calculate_project_metrics,
    reconcile,
)

# Unified entry point
from .engine import FeasibilityResult, calculate_feasibility

# Scenario analysis
from .solver import ResidualLandValueResult, ResidualTarget, solve_residual_land_value
from .sensitivity import SensitivityCell, SensitivityMatrix, generate_sensitivity_matrix

__all__ = [
    "engine_context",
    "to_decimal",
    "calculate_land_tax",
    "calculate_stamp_duty",
    "calculate_tax",
    "evaluate_tax",
    "CUMULATIVE_FUNCTIONS",
    "distribute",
    "distribution_weights",
    "Timeline",
    "build_timeline",
    "RefinanceEvent",
    "RevenuePeriod",
    "RevenueSchedule",
    "calculate_revenue_schedule",
    "estimate_total_revenue",
    "CostBasis",
    "CostPeriod",
    "CostSchedule",
    "LineItemSummary",
    "build_itemised_cashflow",
    "calculate_cost_schedule",
    "calculate_line_item_summaries",
    "resolve_cost_basis",
    "resolve_line_item_total",
    "LedgerState",
    "MonthlyFlow",
    "TierFlow",
    "TierLimits",
    "resolve_tier_limits",
    "run_funding_waterfall",
    "ProjectMetrics",
    "annualise_monthly_rate",
    "calculate_irr",
    "calculate_npv",
    "calculate_project_metrics",
    "reconcile",
    # Engine
    "FeasibilityResult",
    "calculate_feasibility",
    # Scenario analysis
    "ResidualLandValueResult",
    "ResidualTarget",
    "solve_residual_land_value",
    "SensitivityCell",
    "SensitivityMatrix",
    "generate_sensitivity_matrix",
]
