"""Project metrics and the rate-of-return solver."""

import logging
from dataclasses import dataclass
from decimal import Decimal, DivisionByZero, InvalidOperation, Overflow
from typing import List, Optional, Sequence, Tuple

import numpy_financial as npf

from ..models.lookups import (
    CostCategory,
    IRR_EPSILON,
    IRR_INITIAL_GUESS,
    IRR_MAX_ITERATIONS,
    IRR_MAX_RATE,
)
from ..models.project import FeasibilitySettings, Scenario, Site
from .utils import Number, ONE, ZERO, dsum, effective_monthly_rate, to_decimal
from .waterfall import MonthlyFlow

CENT = Decimal("0.01")

logger = logging.getLogger(__name__)


@dataclass
class ProjectMetrics:
    """Summary metrics for a single scenario run.

    Margins are fractions (0.2 = 20%). IRRs are annualised fractions, or
    None when the rate is undefined for the cashflow.
    """

    # Revenue
    gross_realisation: Decimal  # Gross revenue plus surplus interest
    gst_collected: Decimal
    net_realisation: Decimal
    rental_outgoings: Decimal  # Opex and vacancy (hold)

    # Costs
    total_cost_net: Decimal  # Development costs plus finance
    gst_input_credits: Decimal
    total_cost_gross: Decimal
    development_cost_net: Decimal
    finance_cost: Decimal

    # Profit
    net_profit: Decimal
    margin_on_cost: Decimal
    margin_before_interest: Decimal  # Profit with finance added back (amount)
    net_gst_payable: Decimal

    # Capital
    peak_debt: Decimal
    peak_debt_month: int
    peak_debt_label: str
    peak_equity: Decimal
    margin_on_equity: Decimal
    total_equity_drawn: Decimal
    total_equity_distributed: Decimal

    # Returns
    equity_irr: Optional[Decimal]
    project_irr: Optional[Decimal]
    npv: Decimal

    # Feasibility
    funding_shortfall: Decimal
    shortfall_months: int

    # Ratios
    profit_per_unit: Decimal
    land_cost_per_sqm: Decimal
    construction_cost_per_gfa: Decimal

    # Joint venture
    jv_partner_equity: Decimal = ZERO
    jv_partner_profit: Decimal = ZERO

    @property
    def is_fundable(self) -> bool:
        return self.shortfall_months == 0


def calculate_irr(flows: Sequence[Number]) -> Optional[Decimal]:
    """Periodic internal rate of return by Newton-Raphson.

    Iterates r <- r - NPV(r) / NPV'(r) from an initial guess of 0% until
    successive guesses differ by less than IRR_EPSILON, for at most
    IRR_MAX_ITERATIONS iterations. Starting at zero, a conventional
    stream (outflows first, inflows later) converges from below.

    Args:
        flows: Periodic cashflows, outflows negative.

    Returns:
        The periodic rate, or None when it is undefined: the flows never
        change sign, the derivative vanishes, a guess leaves the range
        (-100%, IRR_MAX_RATE), the arithmetic overflows, or the
        iteration does not converge.

    Example:
        >>> round(calculate_irr([-100, 110]), 6)
        Decimal('0.100000')
    """
    values = [to_decimal(f) for f in flows]
    if not any(v > ZERO for v in values) or not any(v < ZERO for v in values):
        return None

    epsilon = to_decimal(IRR_EPSILON)
    ceiling = to_decimal(IRR_MAX_RATE)
    rate = to_decimal(IRR_INITIAL_GUESS)
    try:
        for _ in range(IRR_MAX_ITERATIONS):
            base = ONE + rate
            npv = ZERO
            derivative = ZERO
            for t, value in enumerate(values):
                discount = base ** t
                npv += value / discount
                derivative -= t * value / (discount * base)

            if derivative == ZERO:
                return None
            next_rate = rate - npv / derivative
            if not next_rate.is_finite() or next_rate <= -ONE or next_rate >= ceiling:
                logger.debug("IRR diverged (guess %s)", next_rate)
                return None
            if abs(next_rate - rate) < epsilon:
                return next_rate
            rate = next_rate
    except (Overflow, InvalidOperation, DivisionByZero):
        logger.debug("IRR arithmetic overflowed near rate %s", rate)
        return None

    logger.debug("IRR did not converge in %d iterations", IRR_MAX_ITERATIONS)
    return None


def annualise_monthly_rate(monthly_rate: Optional[Number]) -> Optional[Decimal]:
    """Compound a monthly rate to annual: (1 + r)^12 - 1. None passes through."""
    if monthly_rate is None:
        return None
    return (ONE + to_decimal(monthly_rate)) ** 12 - ONE


def calculate_npv(flows: Sequence[Number], annual_rate: Number) -> Decimal:
    """Net present value of monthly flows at an annual discount rate.

    The first flow is undiscounted (month 0). Discounting runs in float
    through numpy-financial, so the result is reported to the cent.
    """
    if not flows:
        return ZERO.quantize(CENT)
    monthly = float(effective_monthly_rate(annual_rate))
    return to_decimal(npf.npv(monthly, [float(f) for f in flows])).quantize(CENT)


def equity_cashflows(flows: List[MonthlyFlow]) -> List[Decimal]:
    """Equity distributions less draws per month."""
    return [f.equity_distribution - f.equity_draw for f in flows]


def project_cashflows(flows: List[MonthlyFlow]) -> List[Decimal]:
    """Unlevered monthly cashflow: net revenue less net development cost."""
    return [f.net_revenue - f.net_cost for f in flows]


def _ratio(numerator: Decimal, denominator: Decimal) -> Decimal:
    return numerator / denominator if denominator > ZERO else ZERO


def calculate_project_metrics(
    flows: List[MonthlyFlow],
    scenario: Scenario,
    site: Site,
) -> ProjectMetrics:
    """Aggregate the monthly series into summary metrics.

    Args:
        flows: Waterfall output.
        scenario: Scenario the flows were produced from.
        site: Site record.

    Returns:
        ProjectMetrics.
    """
    settings: FeasibilitySettings = scenario.settings

    gross_revenue = dsum(f.gross_revenue for f in flows)
    surplus_interest = dsum(f.surplus_interest for f in flows)
    gross_realisation = gross_revenue + surplus_interest
    gst_collected = dsum(f.gst_on_sales for f in flows)
    rental_outgoings = dsum(f.rental_opex + f.vacancy_loss for f in flows)
    # Built from per-month net revenue so reconcile() checks the schedule
    net_realisation = dsum(f.net_revenue for f in flows) + rental_outgoings + surplus_interest

    development_cost_net = dsum(dsum(f.cost_breakdown.values()) for f in flows)
    finance_cost = dsum(f.finance_cost for f in flows)
    gst_input_credits = dsum(f.gst_credit for f in flows)  # Credits received
    total_cost_net = development_cost_net + finance_cost
    total_cost_gross = dsum(f.gross_cost for f in flows) + finance_cost

    net_profit = net_realisation - rental_outgoings - total_cost_net

    peak_debt = ZERO
    peak_debt_month = 0
    for flow in flows:
        if flow.total_debt > peak_debt:
            peak_debt = flow.total_debt
            peak_debt_month = flow.month
    peak_debt_label = flows[peak_debt_month].label if flows else ""

    peak_equity = max((f.equity_balance for f in flows), default=ZERO)
    peak_equity = max(peak_equity, ZERO)

    equity_irr = annualise_monthly_rate(calculate_irr(equity_cashflows(flows)))
    project_flows = project_cashflows(flows)
    project_irr = annualise_monthly_rate(calculate_irr(project_flows))
    npv = calculate_npv(project_flows, settings.discount_rate)

    total_units = settings.total_units or sum(r.units for r in scenario.revenues)
    land_area = to_decimal(site.land_area)
    gfa = to_decimal(site.gfa)
    construction = dsum(
        f.cost_breakdown.get(CostCategory.CONSTRUCTION, ZERO) for f in flows
    )

    jv = settings.capital_stack.jv
    jv_equity = ZERO
    jv_profit = ZERO
    if jv.enabled:
        jv_equity = peak_equity * to_decimal(jv.equity_split)
        jv_profit = net_profit * to_decimal(jv.profit_share)

    metrics = ProjectMetrics(
        gross_realisation=gross_realisation,
        gst_collected=gst_collected,
        net_realisation=net_realisation,
        rental_outgoings=rental_outgoings,
        total_cost_net=total_cost_net,
        gst_input_credits=gst_input_credits,
        total_cost_gross=total_cost_gross,
        development_cost_net=development_cost_net,
        finance_cost=finance_cost,
        net_profit=net_profit,
        margin_on_cost=_ratio(net_profit, total_cost_net),
        margin_before_interest=net_profit + finance_cost,
        net_gst_payable=gst_collected - gst_input_credits,
        peak_debt=peak_debt,
        peak_debt_month=peak_debt_month,
        peak_debt_label=peak_debt_label,
        peak_equity=peak_equity,
        margin_on_equity=_ratio(net_profit, peak_equity),
        total_equity_drawn=dsum(f.equity_draw for f in flows),
        total_equity_distributed=dsum(f.equity_distribution for f in flows),
        equity_irr=equity_irr,
        project_irr=project_irr,
        npv=npv,
        funding_shortfall=dsum(f.funding_shortfall for f in flows),
        shortfall_months=sum(1 for f in flows if f.has_shortfall),
        profit_per_unit=_ratio(net_profit, Decimal(total_units)),
        land_cost_per_sqm=_ratio(to_decimal(site.acquisition.purchase_price), land_area),
        construction_cost_per_gfa=_ratio(construction, gfa),
        jv_partner_equity=jv_equity,
        jv_partner_profit=jv_profit,
    )
    logger.info(
        "Metrics: profit %s, margin on cost %s, peak debt %s (%s), equity IRR %s",
        round(net_profit, 2), round(metrics.margin_on_cost, 4),
        round(peak_debt, 2), peak_debt_label,
        "n/a" if equity_irr is None else round(equity_irr, 4),
    )
    return metrics


def reconcile(metrics: ProjectMetrics) -> Tuple[Decimal, Decimal]:
    """Reconciliation residuals, both zero for a consistent run.

    Each side comes from a different monthly series: gross cost from the
    line-by-line accumulation, input credits from the credits released
    back to the project, net cost from the category breakdown, and net
    realisation from the per-month net revenue. A month that drops a
    GST credit or mis-nets its revenue shows up as a non-zero residual.

    Returns:
        (total cost gross - input credits - total cost net,
         gross realisation - GST collected - net realisation)
    """
    cost_residual = metrics.total_cost_gross - metrics.gst_input_credits - metrics.total_cost_net
    revenue_residual = metrics.gross_realisation - metrics.gst_collected - metrics.net_realisation
    return cost_residual, revenue_residual
