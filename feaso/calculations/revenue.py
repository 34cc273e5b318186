"""Revenue schedule for sell and hold strategies.

Sale prices and rents are GST-inclusive, so the GST liability on a taxable
amount is amount x rate / (1 + rate).
"""

import logging
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from ..models.lookups import RevenueCalcMode, Strategy
from ..models.project import RevenueItem, Scenario, Site
from .timeline import Timeline
from .utils import ONE, TWELVE, ZERO, compound, dsum, effective_monthly_rate, to_decimal

logger = logging.getLogger(__name__)


@dataclass
class RevenuePeriod:
    """Revenue recognised in one month."""

    month: int
    gross: Decimal = ZERO  # Includes terminal value
    gst_liability: Decimal = ZERO
    commission: Decimal = ZERO
    rental_opex: Decimal = ZERO
    vacancy_loss: Decimal = ZERO
    terminal_value: Decimal = ZERO
    land_allocation: Decimal = ZERO  # Margin-scheme land cost offset

    @property
    def net(self) -> Decimal:
        """Gross less GST, rental opex and vacancy."""
        return self.gross - self.gst_liability - self.rental_opex - self.vacancy_loss


@dataclass(frozen=True)
class RefinanceEvent:
    """One-time hold-strategy refinance."""

    month: int
    valuation: Decimal
    inflow: Decimal


@dataclass
class RevenueSchedule:
    """Month-indexed revenue recognition for a scenario."""

    periods: List[RevenuePeriod]
    refinance: Optional[RefinanceEvent] = None
    estimated_total: Decimal = ZERO  # Budgeted gross, for % of revenue bases

    def __getitem__(self, month: int) -> RevenuePeriod:
        return self.periods[month]

    @property
    def total_gross(self) -> Decimal:
        return dsum(p.gross for p in self.periods)

    @property
    def total_gst(self) -> Decimal:
        return dsum(p.gst_liability for p in self.periods)

    @property
    def total_net(self) -> Decimal:
        return dsum(p.net for p in self.periods)


def estimate_total_revenue(revenues: List[RevenueItem]) -> Decimal:
    """Budgeted gross revenue: sale value for sell items, annual rent for hold."""
    return dsum(to_decimal(item.gross_value) for item in revenues)


def gst_inclusive_liability(amount: Decimal, gst_rate: Decimal) -> Decimal:
    """GST contained in a GST-inclusive amount."""
    if amount <= ZERO or gst_rate == ZERO:
        return ZERO
    return amount * gst_rate / (ONE + gst_rate)


def sell_span(item: RevenueItem) -> int:
    """Months over which a sale programme settles.

    An explicit settlement span wins; otherwise units / absorption rate.
    """
    if item.settlement_span > 0:
        return item.settlement_span
    return max(1, math.ceil(item.units / item.absorption_rate))


def _margin_scheme_share(item: RevenueItem, scenario: Scenario) -> Decimal:
    """Fraction of the land cost allocated to a sale item."""
    total_units = scenario.settings.total_units or sum(
        r.units for r in scenario.revenues if r.strategy == Strategy.SELL
    )
    if item.calc_mode == RevenueCalcMode.QUANTITY_RATE and total_units > 0:
        return Decimal(item.units) / Decimal(total_units)

    sell_gross = dsum(
        to_decimal(r.gross_value) for r in scenario.revenues if r.strategy == Strategy.SELL
    )
    if sell_gross == ZERO:
        return ZERO
    return to_decimal(item.gross_value) / sell_gross


def _apply_sale(
    periods: List[RevenuePeriod],
    item: RevenueItem,
    scenario: Scenario,
    site: Site,
    timeline: Timeline,
) -> None:
    settings = scenario.settings
    gst_rate = to_decimal(settings.gst_rate)
    span = sell_span(item)
    start = timeline.construction_end + item.offset_from_completion
    monthly_gross = to_decimal(item.gross_value) / Decimal(span)
    price_growth = effective_monthly_rate(settings.growth.sales_price_escalation)
    commission_rate = to_decimal(item.commission_rate)

    land_per_month = ZERO
    if settings.use_margin_scheme:
        land_price = to_decimal(site.acquisition.purchase_price)
        land_per_month = land_price * _margin_scheme_share(item, scenario) / Decimal(span)

    for month in range(start, start + span):
        if month > timeline.horizon:
            logger.warning(
                "Sale '%s' settles past the horizon (month %d > %d); remainder dropped",
                item.description, month, timeline.horizon,
            )
            break

        gross = monthly_gross * compound(price_growth, month)
        period = periods[month]
        period.gross += gross
        period.commission += gross * commission_rate

        if not item.is_taxable:
            continue
        if settings.use_margin_scheme:
            period.land_allocation += land_per_month
            taxable_base = max(ZERO, gross - land_per_month)
        else:
            taxable_base = gross
        period.gst_liability += gst_inclusive_liability(taxable_base, gst_rate)


def _stabilised_net_annual_rent(item: RevenueItem, growth_factor: Decimal) -> Decimal:
    annual = to_decimal(item.gross_value) * growth_factor
    return annual * (ONE - to_decimal(item.opex_rate)) * (ONE - to_decimal(item.vacancy_rate))


def _rent_growth_factor(rental_growth: Decimal, months_open: int) -> Decimal:
    """Rent steps up once per full year of operation."""
    years = max(0, months_open) // 12
    return compound(rental_growth, years)


def _apply_lease(
    periods: List[RevenuePeriod],
    item: RevenueItem,
    scenario: Scenario,
    timeline: Timeline,
) -> None:
    settings = scenario.settings
    gst_rate = to_decimal(settings.gst_rate)
    rental_growth = to_decimal(settings.growth.rental_growth)
    opening = timeline.operating_start + item.offset_from_completion
    opex_rate = to_decimal(item.opex_rate)
    vacancy_rate = to_decimal(item.vacancy_rate)
    lease_up = item.lease_up_months

    for month in range(opening, timeline.horizon + 1):
        months_open = month - opening + 1
        if lease_up > 0:
            occupancy = min(ONE, Decimal(months_open) / Decimal(lease_up))
        else:
            occupancy = ONE

        growth = _rent_growth_factor(rental_growth, month - opening)
        gross = to_decimal(item.gross_value) * growth / TWELVE * occupancy
        opex = gross * opex_rate
        vacancy = (gross - opex) * vacancy_rate

        period = periods[month]
        period.gross += gross
        period.rental_opex += opex
        period.vacancy_loss += vacancy
        if item.is_taxable:
            period.gst_liability += gst_inclusive_liability(gross, gst_rate)

    terminal = timeline.terminal_month
    hold = settings.hold_strategy
    if terminal is None or hold is None or terminal < opening or not item.is_capitalised:
        return

    cap_rate = to_decimal(hold.terminal_cap_rate)
    if cap_rate <= ZERO:
        logger.warning("Terminal cap rate is not positive; exit value of '%s' is zero", item.description)
        return
    growth = _rent_growth_factor(rental_growth, terminal - opening)
    value = _stabilised_net_annual_rent(item, growth) / cap_rate
    periods[terminal].terminal_value += value
    periods[terminal].gross += value


def _refinance_event(scenario: Scenario, timeline: Timeline) -> Optional[RefinanceEvent]:
    hold = scenario.settings.hold_strategy
    month = timeline.refinance_month
    if hold is None or month is None:
        return None
    if month > timeline.horizon:
        logger.warning("Refinance month %d is past the horizon; no refinance", month)
        return None

    rental_growth = to_decimal(scenario.settings.growth.rental_growth)
    valuation = ZERO
    for item in scenario.revenues:
        if item.strategy != Strategy.HOLD or not item.is_capitalised:
            continue
        cap_rate = to_decimal(item.cap_rate)
        if cap_rate <= ZERO:
            continue
        opening = timeline.operating_start + item.offset_from_completion
        growth = _rent_growth_factor(rental_growth, month - opening)
        valuation += _stabilised_net_annual_rent(item, growth) / cap_rate

    inflow = valuation * to_decimal(hold.refinance_lvr)
    return RefinanceEvent(month=month, valuation=valuation, inflow=inflow)


def calculate_revenue_schedule(
    scenario: Scenario,
    site: Site,
    timeline: Timeline,
) -> RevenueSchedule:
    """Month-by-month revenue recognition.

    Sell items settle linearly from construction end + offset. Hold items
    earn rent from operating start + offset, ramped by occupancy, and add
    an exit valuation at the terminal month. A hold scenario also records
    its refinance event.

    Args:
        scenario: Scenario with revenue items and settings.
        site: Site (purchase price for the margin scheme).
        timeline: Scenario timeline.

    Returns:
        RevenueSchedule with one period per month.
    """
    periods = [RevenuePeriod(month=m) for m in timeline.months]

    for item in scenario.revenues:
        if item.strategy == Strategy.SELL:
            _apply_sale(periods, item, scenario, site, timeline)
        else:
            _apply_lease(periods, item, scenario, timeline)

    refinance = None
    if scenario.strategy == Strategy.HOLD:
        refinance = _refinance_event(scenario, timeline)

    return RevenueSchedule(
        periods=periods,
        refinance=refinance,
        estimated_total=estimate_total_revenue(scenario.revenues),
    )
