"""Funding waterfall: month-by-month draws and repayments across the capital stack.

The simulation is a single sequential recurrence. Every month takes the
previous month's closing LedgerState plus that month's schedules and
returns a new LedgerState and one MonthlyFlow record. Nothing else is
carried between months.

Per month, in order:

1. Finance charges: interest on each tier's opening balance at
   rate / 12, line fee on the limit once active, establishment fee at
   activation. Capitalised tiers add charges to the balance up to the
   limit; anything else becomes cash due this month.
2. Net cashflow = net revenue + GST credits received + surplus interest
   + refinance inflow - (net cost + GST paid + cash finance charges
   + investment interest).
3. Funding need (net < 0): earmarked land draws, surplus cash,
   pari-passu equity share, mezzanine, senior, top-up equity. Anything
   left is recorded as a funding shortfall.
4. Repayment capacity (net >= 0): senior, mezzanine, the investment
   facility (terminal month only), then distribution to equity.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from ..models.capital import CapitalStack, CapitalTier
from ..models.lookups import (
    CAPITAL_WORKS_RATE,
    CostCategory,
    DebtLimitMethod,
    EquityMode,
    FeeBase,
    FundingSource,
    PLANT_RATE,
)
from ..models.project import FeasibilitySettings, Site
from .costs import CostSchedule
from .revenue import RevenueSchedule
from .timeline import Timeline
from .utils import ONE, TWELVE, ZERO, effective_monthly_rate, simple_monthly_rate, to_decimal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TierLimits:
    """Resolved facility limits. None is an unlimited facility."""

    senior: Optional[Decimal]
    mezzanine: Optional[Decimal]


@dataclass(frozen=True)
class TierFlow:
    """One tier's activity in one month."""

    draw: Decimal = ZERO
    repayment: Decimal = ZERO
    balance: Decimal = ZERO
    interest: Decimal = ZERO
    line_fee: Decimal = ZERO
    establishment_fee: Decimal = ZERO
    capitalised: Decimal = ZERO  # Charges added to the balance
    finance_cost: Decimal = ZERO  # Interest, line fee and establishment fee


@dataclass(frozen=True)
class MonthlyFlow:
    """Closing record of one month of the simulation."""

    month: int
    label: str
    cost_breakdown: Dict[CostCategory, Decimal]
    net_cost: Decimal
    gst_paid: Decimal
    gross_revenue: Decimal
    gst_on_sales: Decimal
    net_revenue: Decimal  # After GST, rental opex and vacancy
    rental_opex: Decimal
    vacancy_loss: Decimal
    terminal_value: Decimal
    gst_credit: Decimal
    surplus_interest: Decimal
    refinance_inflow: Decimal
    senior: TierFlow
    mezzanine: TierFlow
    equity_draw: Decimal
    equity_distribution: Decimal
    equity_balance: Decimal  # Drawn less distributed
    surplus_balance: Decimal
    investment_balance: Decimal
    investment_interest: Decimal
    investment_repayment: Decimal
    net_cashflow: Decimal
    cumulative_cashflow: Decimal
    asset_value: Decimal
    depreciation: Decimal
    funding_shortfall: Decimal
    gross_cost: Decimal  # As accumulated by the cost schedule
    total_debt: Decimal  # Senior plus mezzanine closing balance
    finance_cost: Decimal  # Both tiers plus investment interest

    @property
    def has_shortfall(self) -> bool:
        return self.funding_shortfall > ZERO


@dataclass(frozen=True)
class LedgerState:
    """Balances carried from one month to the next."""

    senior_balance: Decimal = ZERO
    mezzanine_balance: Decimal = ZERO
    equity_drawn: Decimal = ZERO
    equity_distributed: Decimal = ZERO
    surplus_balance: Decimal = ZERO
    investment_balance: Decimal = ZERO
    gst_in_transit: Tuple[Tuple[int, Decimal], ...] = ()  # (release month, amount)
    asset_value: Decimal = ZERO
    cumulative_cashflow: Decimal = ZERO


@dataclass(frozen=True)
class _Charges:
    interest: Decimal
    line_fee: Decimal
    establishment_fee: Decimal
    capitalised: Decimal
    cash_due: Decimal


@dataclass(frozen=True)
class _WaterfallContext:
    timeline: Timeline
    costs: CostSchedule
    revenues: RevenueSchedule
    settings: FeasibilitySettings
    limits: TierLimits
    equity_injections: Dict[int, Decimal] = field(default_factory=dict)
    deposit_funding: Optional[FundingSource] = None
    settlement_funding: Optional[FundingSource] = None
    construction_cost: Decimal = ZERO
    capital_growth: Decimal = ZERO  # Effective monthly


def _resolve_limit(
    tier: CapitalTier,
    estimated_revenue: Decimal,
    total_cost: Decimal,
) -> Optional[Decimal]:
    if tier.limit is None:
        return None
    fraction = to_decimal(tier.limit)
    if tier.limit_method == DebtLimitMethod.LVR:
        return estimated_revenue * fraction
    if tier.limit_method == DebtLimitMethod.LTC:
        return total_cost * fraction
    return fraction


def resolve_tier_limits(
    stack: CapitalStack,
    estimated_revenue: Decimal,
    total_cost: Decimal,
) -> TierLimits:
    """Resolve facility limits once from the final aggregates.

    Args:
        stack: Capital stack.
        estimated_revenue: Budgeted gross revenue (LVR base).
        total_cost: Total net development cost before finance (LTC base).

    Returns:
        TierLimits.
    """
    limits = TierLimits(
        senior=_resolve_limit(stack.senior, estimated_revenue, total_cost),
        mezzanine=_resolve_limit(stack.mezzanine, estimated_revenue, total_cost),
    )
    logger.debug("Tier limits: senior %s, mezzanine %s", limits.senior, limits.mezzanine)
    return limits


def _room(limit: Optional[Decimal], balance: Decimal) -> Optional[Decimal]:
    if limit is None:
        return None
    return max(ZERO, limit - balance)


def _capped(amount: Decimal, limit: Optional[Decimal], balance: Decimal) -> Decimal:
    """Largest part of amount that fits under the limit."""
    room = _room(limit, balance)
    return amount if room is None else min(amount, room)


def _accrue(tier: CapitalTier, limit: Optional[Decimal], balance: Decimal, month: int) -> _Charges:
    active = month >= tier.activation_month
    interest = balance * simple_monthly_rate(tier.rate_for_month(month))

    line_fee = ZERO
    if active and limit is not None:
        line_fee = limit * simple_monthly_rate(tier.line_fee)

    establishment_fee = ZERO
    if month == tier.activation_month:
        if tier.establishment_fee_base == FeeBase.PERCENT:
            if limit is not None:
                establishment_fee = limit * to_decimal(tier.establishment_fee)
        else:
            establishment_fee = to_decimal(tier.establishment_fee)

    charges = interest + line_fee + establishment_fee
    capitalised = ZERO
    if tier.is_interest_capitalised:
        capitalised = _capped(charges, limit, balance)
    return _Charges(
        interest=interest,
        line_fee=line_fee,
        establishment_fee=establishment_fee,
        capitalised=capitalised,
        cash_due=charges - capitalised,
    )


def _tier_flow(charges: _Charges, draw: Decimal, repayment: Decimal, balance: Decimal) -> TierFlow:
    return TierFlow(
        draw=draw,
        repayment=repayment,
        balance=balance,
        interest=charges.interest,
        line_fee=charges.line_fee,
        establishment_fee=charges.establishment_fee,
        capitalised=charges.capitalised,
        finance_cost=charges.interest + charges.line_fee + charges.establishment_fee,
    )


def _equity_injections(
    stack: CapitalStack,
    site: Site,
    costs: CostSchedule,
    timeline: Timeline,
) -> Dict[int, Decimal]:
    """Upfront and scheduled equity contributions by month."""
    equity = stack.equity
    injections: Dict[int, Decimal] = {}
    if equity.mode == EquityMode.SUM_OF_MONEY:
        injections[0] = to_decimal(equity.initial_contribution)
    elif equity.mode == EquityMode.PCT_LAND:
        injections[0] = to_decimal(site.acquisition.purchase_price) * to_decimal(equity.percentage)
    elif equity.mode == EquityMode.PCT_TOTAL_COST:
        total = costs.total_net + costs.total_gst
        injections[0] = total * to_decimal(equity.percentage)
    elif equity.mode == EquityMode.INSTALMENTS:
        for instalment in equity.instalments:
            if instalment.month > timeline.horizon:
                logger.warning("Equity instalment at month %d is past the horizon", instalment.month)
                continue
            injections[instalment.month] = (
                injections.get(instalment.month, ZERO) + to_decimal(instalment.amount)
            )
    return {month: amount for month, amount in injections.items() if amount > ZERO}


def _release_gst_credits(
    in_transit: Tuple[Tuple[int, Decimal], ...],
    gst_paid: Decimal,
    month: int,
    lag: int,
    is_final: bool,
) -> Tuple[Decimal, Tuple[Tuple[int, Decimal], ...]]:
    """Credits received this month and the credits still in transit."""
    queue = in_transit
    if gst_paid > ZERO:
        queue = queue + ((month + lag, gst_paid),)
    received = ZERO
    pending = []
    for release, amount in queue:
        if release <= month or is_final:
            received += amount
        else:
            pending.append((release, amount))
    return received, tuple(pending)


def _close_month(
    state: LedgerState,
    month: int,
    ctx: _WaterfallContext,
) -> Tuple[LedgerState, MonthlyFlow]:
    timeline = ctx.timeline
    settings = ctx.settings
    stack = settings.capital_stack
    hold = settings.hold_strategy
    cost = ctx.costs[month]
    revenue = ctx.revenues[month]
    is_final = month == timeline.horizon

    senior_balance = state.senior_balance
    mezzanine_balance = state.mezzanine_balance
    surplus = state.surplus_balance
    investment_balance = state.investment_balance

    # 1. Finance charges on opening balances
    senior_charges = _accrue(stack.senior, ctx.limits.senior, senior_balance, month)
    mezzanine_charges = _accrue(stack.mezzanine, ctx.limits.mezzanine, mezzanine_balance, month)
    senior_balance += senior_charges.capitalised
    mezzanine_balance += mezzanine_charges.capitalised

    investment_interest = ZERO
    if hold is not None:
        investment_interest = investment_balance * simple_monthly_rate(hold.investment_rate)
    surplus_interest = surplus * simple_monthly_rate(stack.surplus_interest_rate)

    refinance_inflow = ZERO
    refinance = ctx.revenues.refinance
    if refinance is not None and refinance.month == month:
        refinance_inflow = refinance.inflow
        investment_balance = refinance.inflow

    gst_credit, gst_in_transit = _release_gst_credits(
        state.gst_in_transit, cost.gst, month, settings.gst_credit_lag_months, is_final
    )

    # 2. Net cashflow before funding
    inflows = revenue.net + gst_credit + surplus_interest + refinance_inflow
    outflows = (
        cost.net
        + cost.gst
        + senior_charges.cash_due
        + mezzanine_charges.cash_due
        + investment_interest
    )
    net_cashflow = inflows - outflows

    equity_draw = ctx.equity_injections.get(month, ZERO)
    surplus += equity_draw
    if is_final:
        # Cash held back is released on the last month
        net_cashflow_available = net_cashflow + surplus
        surplus = ZERO
    else:
        net_cashflow_available = net_cashflow

    senior_draw = ZERO
    mezzanine_draw = ZERO
    senior_repayment = ZERO
    mezzanine_repayment = ZERO
    investment_repayment = ZERO
    equity_distribution = ZERO
    shortfall = ZERO

    senior_active = month >= stack.senior.activation_month
    mezzanine_active = month >= stack.mezzanine.activation_month

    if net_cashflow_available < ZERO:
        # 3. Funding need
        need = -net_cashflow_available

        # (a) Earmarked land payments draw their designated source
        earmarked = (
            (cost.land_deposit, ctx.deposit_funding),
            (cost.land_settlement, ctx.settlement_funding),
        )
        for amount, source in earmarked:
            if amount <= ZERO or source is None:
                continue
            if source == FundingSource.EQUITY:
                drawn = amount
                equity_draw += drawn
            elif source == FundingSource.SENIOR and senior_active:
                drawn = _capped(amount, ctx.limits.senior, senior_balance)
                senior_draw += drawn
                senior_balance += drawn
            elif source == FundingSource.MEZZANINE and mezzanine_active:
                drawn = _capped(amount, ctx.limits.mezzanine, mezzanine_balance)
                mezzanine_draw += drawn
                mezzanine_balance += drawn
            else:
                continue
            if drawn > need:
                surplus += drawn - need
                need = ZERO
            else:
                need -= drawn

        # (b) Surplus cash
        used = min(surplus, need)
        surplus -= used
        need -= used

        # Pari-passu equity share of the remaining need
        if stack.equity.mode == EquityMode.PCT_MONTHLY and need > ZERO:
            share = need * to_decimal(stack.equity.percentage)
            equity_draw += share
            need -= share

        # (c) Mezzanine
        if need > ZERO and mezzanine_active:
            drawn = _capped(need, ctx.limits.mezzanine, mezzanine_balance)
            mezzanine_draw += drawn
            mezzanine_balance += drawn
            need -= drawn

        # (d) Senior
        if need > ZERO and senior_active:
            drawn = _capped(need, ctx.limits.senior, senior_balance)
            senior_draw += drawn
            senior_balance += drawn
            need -= drawn

        # (e) Top-up equity
        if need > ZERO and stack.equity.allow_top_up:
            equity_draw += need
            need = ZERO

        if need > ZERO:
            shortfall = need
            logger.warning(
                "Funding shortfall of %s in month %d (%s)",
                shortfall, month, timeline.month_label(month),
            )
    else:
        # 4. Repayment capacity
        capacity = net_cashflow_available

        senior_repayment = min(capacity, senior_balance)
        senior_balance -= senior_repayment
        capacity -= senior_repayment

        mezzanine_repayment = min(capacity, mezzanine_balance)
        mezzanine_balance -= mezzanine_repayment
        capacity -= mezzanine_repayment

        if month == timeline.terminal_month:
            investment_repayment = min(capacity, investment_balance)
            investment_balance -= investment_repayment
            capacity -= investment_repayment

        equity_distribution = capacity

    # Asset value and depreciation
    refinance_month = timeline.refinance_month if refinance is not None else None
    if refinance_month is None or month < refinance_month:
        asset_value = state.asset_value + cost.net
    elif month == refinance_month:
        asset_value = refinance.valuation
    else:
        asset_value = state.asset_value * (ONE + ctx.capital_growth)

    depreciation = ZERO
    if hold is not None and refinance_month is not None and month > refinance_month:
        split = hold.depreciation
        annual_rate = (
            to_decimal(split.capital_works_pct) * to_decimal(CAPITAL_WORKS_RATE)
            + to_decimal(split.plant_pct) * to_decimal(PLANT_RATE)
        )
        depreciation = ctx.construction_cost * annual_rate / TWELVE

    equity_drawn = state.equity_drawn + equity_draw
    equity_distributed = state.equity_distributed + equity_distribution
    cumulative = state.cumulative_cashflow + net_cashflow

    senior_flow = _tier_flow(senior_charges, senior_draw, senior_repayment, senior_balance)
    mezzanine_flow = _tier_flow(
        mezzanine_charges, mezzanine_draw, mezzanine_repayment, mezzanine_balance
    )

    flow = MonthlyFlow(
        month=month,
        label=timeline.month_label(month),
        cost_breakdown=dict(cost.breakdown),
        net_cost=cost.net,
        gst_paid=cost.gst,
        gross_revenue=revenue.gross,
        gst_on_sales=revenue.gst_liability,
        net_revenue=revenue.net,
        rental_opex=revenue.rental_opex,
        vacancy_loss=revenue.vacancy_loss,
        terminal_value=revenue.terminal_value,
        gst_credit=gst_credit,
        surplus_interest=surplus_interest,
        refinance_inflow=refinance_inflow,
        senior=senior_flow,
        mezzanine=mezzanine_flow,
        equity_draw=equity_draw,
        equity_distribution=equity_distribution,
        equity_balance=equity_drawn - equity_distributed,
        surplus_balance=surplus,
        investment_balance=investment_balance,
        investment_interest=investment_interest,
        investment_repayment=investment_repayment,
        net_cashflow=net_cashflow,
        cumulative_cashflow=cumulative,
        asset_value=asset_value,
        depreciation=depreciation,
        funding_shortfall=shortfall,
        gross_cost=cost.gross,
        total_debt=senior_balance + mezzanine_balance,
        finance_cost=(
            senior_flow.finance_cost + mezzanine_flow.finance_cost + investment_interest
        ),
    )

    next_state = LedgerState(
        senior_balance=senior_balance,
        mezzanine_balance=mezzanine_balance,
        equity_drawn=equity_drawn,
        equity_distributed=equity_distributed,
        surplus_balance=surplus,
        investment_balance=investment_balance,
        gst_in_transit=gst_in_transit,
        asset_value=asset_value,
        cumulative_cashflow=cumulative,
    )
    return next_state, flow


def run_funding_waterfall(
    timeline: Timeline,
    costs: CostSchedule,
    revenues: RevenueSchedule,
    settings: FeasibilitySettings,
    site: Site,
    limits: TierLimits,
) -> List[MonthlyFlow]:
    """Simulate the capital stack month by month.

    Args:
        timeline: Scenario timeline.
        costs: Cost schedule.
        revenues: Revenue schedule (carries the refinance event).
        settings: Scenario settings (capital stack, hold strategy, GST lag).
        site: Site record (land price for % of land equity).
        limits: Limits from resolve_tier_limits().

    Returns:
        One MonthlyFlow per month, 0..horizon.

    Example:
        >>> flows = run_funding_waterfall(timeline, costs, revenues, settings, site, limits)
        >>> flows[-1].senior.balance
        Decimal('0')
    """
    stack = settings.capital_stack
    hold = settings.hold_strategy
    ctx = _WaterfallContext(
        timeline=timeline,
        costs=costs,
        revenues=revenues,
        settings=settings,
        limits=limits,
        equity_injections=_equity_injections(stack, site, costs, timeline),
        deposit_funding=site.acquisition.deposit_funding,
        settlement_funding=site.acquisition.settlement_funding,
        construction_cost=costs.category_total(CostCategory.CONSTRUCTION),
        capital_growth=effective_monthly_rate(hold.annual_capital_growth) if hold else ZERO,
    )

    state = LedgerState()
    flows = []
    for month in timeline.months:
        state, flow = _close_month(state, month, ctx)
        flows.append(flow)

    shortfall_months = sum(1 for f in flows if f.has_shortfall)
    if shortfall_months:
        logger.warning("Funding shortfall in %d of %d months", shortfall_months, len(flows))
    return flows
