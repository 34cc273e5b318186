"""Cost schedule: line items resolved, distributed and escalated per month.

Costs are entered ex-GST. A taxable item carries GST on top of its net
increment (net x gst_rate), tracked separately so that gross - credits
always reconciles back to net.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

import pandas as pd

from ..models.lookups import (
    CalculationLink,
    CostCategory,
    GstTreatment,
    InputBasis,
    TaxConfiguration,
)
from ..models.project import LineItem, Scenario, Site
from .distribution import distribute
from .revenue import RevenueSchedule, estimate_total_revenue
from .taxes import calculate_land_tax, calculate_stamp_duty
from .timeline import Timeline
from .utils import ONE, ZERO, compound, dsum, effective_monthly_rate, to_decimal

logger = logging.getLogger(__name__)

LAND_DEPOSIT = "Land Deposit"
LAND_SETTLEMENT = "Land Settlement"
SELLING_COMMISSION = "Sales Commission"


@dataclass(frozen=True)
class CostBasis:
    """Aggregates that percentage and rate bases are measured against.

    Resolved once per run, before any month is evaluated, so an item's
    total never depends on the order of the cost list.
    """

    construction_sum: Decimal
    estimated_revenue: Decimal
    total_units: int
    land_area: Decimal


@dataclass
class CostPeriod:
    """Costs falling in one month."""

    month: int
    breakdown: Dict[CostCategory, Decimal] = field(default_factory=dict)
    net: Decimal = ZERO
    gst: Decimal = ZERO
    gross: Decimal = ZERO  # Accumulated line by line, not net + gst
    land_deposit: Decimal = ZERO
    land_settlement: Decimal = ZERO

    def add(self, category: CostCategory, net: Decimal, gst: Decimal) -> None:
        self.breakdown[category] = self.breakdown.get(category, ZERO) + net
        self.net += net
        self.gst += gst
        self.gross += net + gst


@dataclass
class ItemRow:
    """Monthly net and GST series of one cost line."""

    description: str
    category: CostCategory
    code: str = ""
    net: List[Decimal] = field(default_factory=list)
    gst: List[Decimal] = field(default_factory=list)
    is_implicit: bool = False

    @property
    def total_net(self) -> Decimal:
        return dsum(self.net)

    @property
    def total_gst(self) -> Decimal:
        return dsum(self.gst)


@dataclass
class CostSchedule:
    """Month-indexed cost schedule plus per-item rows."""

    periods: List[CostPeriod]
    rows: List[ItemRow]
    basis: CostBasis

    def __getitem__(self, month: int) -> CostPeriod:
        return self.periods[month]

    @property
    def total_net(self) -> Decimal:
        return dsum(p.net for p in self.periods)

    @property
    def total_gst(self) -> Decimal:
        return dsum(p.gst for p in self.periods)

    def category_total(self, category: CostCategory) -> Decimal:
        return dsum(p.breakdown.get(category, ZERO) for p in self.periods)


@dataclass
class LineItemSummary:
    """Whole-of-project totals for one cost line."""

    description: str
    category: CostCategory
    net_amount: Decimal
    gst_amount: Decimal
    gross_amount: Decimal
    code: str = ""
    is_implicit: bool = False


def resolve_line_item_total(
    item: LineItem,
    scenario: Scenario,
    site: Site,
    basis: CostBasis,
    scales: Optional[TaxConfiguration] = None,
) -> Decimal:
    """Total monetary amount of a line item before distribution.

    Calculation links take precedence over the input basis: stamp duty is
    computed on the acquisition terms, land tax on the assessed site value
    (one annual assessment). Percentage bases are fractions.

    Args:
        item: Line item.
        scenario: Owning scenario.
        site: Site record.
        basis: Pre-resolved aggregates.
        scales: Optional tax table override.

    Returns:
        Total net amount.
    """
    if item.calculation_link == CalculationLink.AUTO_STAMP_DUTY:
        acquisition = site.acquisition
        return calculate_stamp_duty(
            acquisition.purchase_price,
            acquisition.stamp_duty_state,
            acquisition.is_foreign_buyer,
            scales,
            acquisition.stamp_duty_override,
        )
    if item.calculation_link == CalculationLink.AUTO_LAND_TAX:
        return calculate_land_tax(site.site_value, site.state, scales)

    amount = to_decimal(item.amount)
    if item.input_basis == InputBasis.PCT_CONSTRUCTION:
        return basis.construction_sum * amount
    if item.input_basis == InputBasis.PCT_REVENUE:
        return basis.estimated_revenue * amount
    if item.input_basis == InputBasis.RATE_PER_UNIT:
        return Decimal(basis.total_units) * amount
    if item.input_basis == InputBasis.RATE_PER_SQM:
        return basis.land_area * amount
    return amount


def resolve_cost_basis(
    scenario: Scenario,
    site: Site,
    scales: Optional[TaxConfiguration] = None,
) -> CostBasis:
    """Compute the final aggregates once.

    The construction sum covers construction items not themselves
    expressed as a percentage of construction.
    """
    settings = scenario.settings
    total_units = settings.total_units or sum(r.units for r in scenario.revenues)
    partial = CostBasis(
        construction_sum=ZERO,
        estimated_revenue=estimate_total_revenue(scenario.revenues),
        total_units=total_units,
        land_area=to_decimal(site.land_area),
    )
    construction_sum = dsum(
        resolve_line_item_total(item, scenario, site, partial, scales)
        for item in scenario.costs
        if item.category == CostCategory.CONSTRUCTION
        and item.input_basis != InputBasis.PCT_CONSTRUCTION
        and not item.revenue_linked
    )
    basis = CostBasis(
        construction_sum=construction_sum,
        estimated_revenue=partial.estimated_revenue,
        total_units=total_units,
        land_area=partial.land_area,
    )
    logger.debug(
        "Cost basis: construction %s, estimated revenue %s, units %d",
        basis.construction_sum, basis.estimated_revenue, basis.total_units,
    )
    return basis


def _escalation_rate(item: LineItem, scenario: Scenario) -> Decimal:
    annual = item.escalation_rate
    if annual is None:
        annual = scenario.settings.growth.default_for(item.category)
    return effective_monthly_rate(annual)


def _item_row(
    item: LineItem,
    scenario: Scenario,
    site: Site,
    timeline: Timeline,
    revenue_schedule: RevenueSchedule,
    basis: CostBasis,
    scales: Optional[TaxConfiguration],
) -> ItemRow:
    months = len(timeline.months)
    row = ItemRow(
        description=item.description,
        category=item.category,
        code=item.code,
        net=[ZERO] * months,
        gst=[ZERO] * months,
    )
    gst_rate = to_decimal(scenario.settings.gst_rate)
    taxable = item.gst_treatment == GstTreatment.TAXABLE
    start = timeline.item_start(item)

    if item.revenue_linked:
        # Base is the month's realised gross revenue; no escalation
        share = to_decimal(item.amount)
        for month in range(start, timeline.horizon + 1):
            increment = revenue_schedule[month].gross * share
            row.net[month] = increment
            if taxable:
                row.gst[month] = increment * gst_rate
        return row

    total = resolve_line_item_total(item, scenario, site, basis, scales)
    monthly_rate = _escalation_rate(item, scenario)

    for offset in range(item.span):
        month = start + offset
        if month > timeline.horizon:
            logger.warning(
                "Cost '%s' runs past the horizon (month %d > %d); remainder dropped",
                item.description, month, timeline.horizon,
            )
            break
        increment = distribute(
            total, offset, item.span, item.shape, item.milestones, item.s_curve_steepness
        )
        increment *= compound(monthly_rate, month)
        row.net[month] = increment
        if taxable:
            row.gst[month] = increment * gst_rate
    return row


def _implicit_rows(
    scenario: Scenario,
    site: Site,
    timeline: Timeline,
    revenue_schedule: RevenueSchedule,
) -> List[ItemRow]:
    """Deposit, settlement balance and sales commission rows."""
    months = len(timeline.months)
    acquisition = site.acquisition
    price = to_decimal(acquisition.purchase_price)
    deposit_pct = to_decimal(acquisition.deposit_pct)
    settlement_month = min(acquisition.settlement_month, timeline.horizon)

    deposit = ItemRow(LAND_DEPOSIT, CostCategory.LAND, net=[ZERO] * months,
                      gst=[ZERO] * months, is_implicit=True)
    deposit.net[0] = price * deposit_pct

    settlement = ItemRow(LAND_SETTLEMENT, CostCategory.LAND, net=[ZERO] * months,
                         gst=[ZERO] * months, is_implicit=True)
    settlement.net[settlement_month] = price * (ONE - deposit_pct)

    gst_rate = to_decimal(scenario.settings.gst_rate)
    commission = ItemRow(SELLING_COMMISSION, CostCategory.SELLING, is_implicit=True)
    commission.net = [revenue_schedule[m].commission for m in timeline.months]
    commission.gst = [amount * gst_rate for amount in commission.net]

    return [deposit, settlement, commission]


def calculate_cost_schedule(
    scenario: Scenario,
    site: Site,
    timeline: Timeline,
    revenue_schedule: RevenueSchedule,
    scales: Optional[TaxConfiguration] = None,
) -> CostSchedule:
    """Month-by-month cost schedule for a scenario.

    Each item is resolved against the pre-computed basis, spread by its
    distribution shape from its anchored start month, and escalated by
    (1 + monthly)^month where monthly = (1 + annual)^(1/12) - 1.
    Revenue-linked items take a share of each month's gross revenue from
    their start month to the horizon instead. The land deposit (month 0)
    and settlement balance (settlement month) are always added as GST-free
    land costs, and sales commissions from the revenue schedule appear
    under SELLING.

    Args:
        scenario: Scenario with cost items and settings.
        site: Site record.
        timeline: Scenario timeline.
        revenue_schedule: Revenue schedule for the same timeline.
        scales: Optional tax table override.

    Returns:
        CostSchedule with one period per month and one row per cost line.
    """
    basis = resolve_cost_basis(scenario, site, scales)

    rows = _implicit_rows(scenario, site, timeline, revenue_schedule)
    rows.extend(
        _item_row(item, scenario, site, timeline, revenue_schedule, basis, scales)
        for item in scenario.costs
    )

    periods = [CostPeriod(month=m) for m in timeline.months]
    for row in rows:
        for month in timeline.months:
            net = row.net[month]
            gst = row.gst[month]
            if net == ZERO and gst == ZERO:
                continue
            periods[month].add(row.category, net, gst)

    deposit_row, settlement_row = rows[0], rows[1]
    for month in timeline.months:
        periods[month].land_deposit = deposit_row.net[month]
        periods[month].land_settlement = settlement_row.net[month]

    return CostSchedule(periods=periods, rows=rows, basis=basis)


def calculate_line_item_summaries(schedule: CostSchedule) -> List[LineItemSummary]:
    """Net, GST and gross totals per cost line, implicit rows flagged."""
    summaries = []
    for row in schedule.rows:
        net = row.total_net
        gst = row.total_gst
        summaries.append(
            LineItemSummary(
                description=row.description,
                category=row.category,
                net_amount=net,
                gst_amount=gst,
                gross_amount=net + gst,
                code=row.code,
                is_implicit=row.is_implicit,
            )
        )
    return summaries


def build_itemised_cashflow(schedule: CostSchedule, timeline: Timeline) -> pd.DataFrame:
    """Itemised net cost table: one row per cost line, one column per month.

    Rows are grouped by category in CostCategory order. Values are floats
    for presentation.
    """
    labels = timeline.labels()
    order = {category: i for i, category in enumerate(CostCategory)}
    records = []
    for row in sorted(schedule.rows, key=lambda r: order[r.category]):
        record = {
            "category": row.category.value,
            "description": row.description,
            "total": float(row.total_net),
        }
        record.update({label: float(value) for label, value in zip(labels, row.net)})
        records.append(record)

    columns = ["category", "description", "total"] + labels
    return pd.DataFrame.from_records(records, columns=columns)
