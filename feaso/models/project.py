"""Scenario data model containing all inputs for a feasibility run."""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

from .capital import CapitalStack, CapitalTier
from .lookups import (
    CalculationLink,
    CostCategory,
    DebtLimitMethod,
    DistributionShape,
    EquityMode,
    FundingSource,
    GstTreatment,
    InputBasis,
    InterestRateMode,
    MilestoneLink,
    RevenueCalcMode,
    Strategy,
    TaxState,
)


class FeasibilityInputError(ValueError):
    """Raised when scenario inputs are rejected before simulation."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Invalid feasibility inputs: " + "; ".join(self.errors))


@dataclass(frozen=True)
class LineItem:
    """Single cost entry with timing, distribution and tax metadata."""

    description: str
    category: CostCategory
    amount: float
    start: int = 0  # Months after the item's anchor
    span: int = 1
    shape: DistributionShape = DistributionShape.LINEAR
    input_basis: InputBasis = InputBasis.FIXED
    escalation_rate: Optional[float] = None  # None = category default
    gst_treatment: GstTreatment = GstTreatment.TAXABLE
    code: str = ""

    s_curve_steepness: Optional[float] = None
    milestones: Dict[int, float] = field(default_factory=dict)  # relative month -> fraction
    milestone: Optional[MilestoneLink] = None  # None = category default anchor
    calculation_link: CalculationLink = CalculationLink.NONE
    revenue_linked: bool = False  # amount is a fraction of the month's gross revenue


@dataclass(frozen=True)
class RevenueItem:
    """Single income source (a sale programme or a lease)."""

    description: str
    strategy: Strategy = Strategy.SELL
    calc_mode: RevenueCalcMode = RevenueCalcMode.QUANTITY_RATE
    units: int = 0
    price_per_unit: float = 0.0  # Sale price, or annual rent per unit for hold
    commission_rate: float = 0.0
    is_taxable: bool = True

    # Sell
    offset_from_completion: int = 0
    settlement_span: int = 1
    absorption_rate: float = 0.0  # Units per month, used when settlement_span is 0

    # Hold
    opex_rate: float = 0.0
    vacancy_rate: float = 0.0
    lease_up_months: int = 0
    cap_rate: float = 0.0  # Going-in cap rate for refinance valuation
    is_capitalised: bool = True

    @property
    def gross_value(self) -> float:
        """Headline amount: total sale value, or annual rent for hold."""
        if self.calc_mode == RevenueCalcMode.LUMP_SUM:
            return self.price_per_unit
        return self.units * self.price_per_unit


@dataclass(frozen=True)
class AcquisitionTerms:
    """Commercial terms of the land purchase."""

    purchase_price: float = 0.0
    deposit_pct: float = 0.10
    settlement_month: int = 0
    stamp_duty_state: TaxState = TaxState.VIC
    is_foreign_buyer: bool = False
    stamp_duty_override: Optional[float] = None
    deposit_funding: Optional[FundingSource] = None  # None = general waterfall
    settlement_funding: Optional[FundingSource] = None


@dataclass(frozen=True)
class Site:
    """Physical and statutory attributes of the site."""

    land_area: float = 0.0  # sqm
    state: TaxState = TaxState.VIC
    site_value: float = 0.0  # Assessed unimproved value, for land tax
    gfa: float = 0.0
    nsa: float = 0.0
    acquisition: AcquisitionTerms = field(default_factory=AcquisitionTerms)


@dataclass(frozen=True)
class GrowthSettings:
    """Escalation matrix (annual rates)."""

    construction_escalation: float = 0.0
    rental_growth: float = 0.0
    land_appreciation: float = 0.0
    sales_price_escalation: float = 0.0
    cpi: float = 0.0

    def default_for(self, category: CostCategory) -> float:
        """Default escalation rate for a cost category."""
        if category == CostCategory.CONSTRUCTION:
            return self.construction_escalation
        if category in (
            CostCategory.CONSULTANTS,
            CostCategory.STATUTORY,
            CostCategory.MISCELLANEOUS,
        ):
            return self.cpi
        return 0.0


@dataclass(frozen=True)
class DepreciationSplit:
    """Share of construction cost depreciable as capital works vs plant."""

    capital_works_pct: float = 0.0
    plant_pct: float = 0.0


@dataclass(frozen=True)
class HoldStrategy:
    """Hold/lease strategy parameters."""

    refinance_month: int
    refinance_lvr: float
    investment_rate: float  # Annual rate on the post-refinance facility
    hold_period_years: int = 0
    annual_capital_growth: float = 0.0
    terminal_cap_rate: float = 0.0
    depreciation: DepreciationSplit = field(default_factory=DepreciationSplit)


@dataclass(frozen=True)
class FeasibilitySettings:
    """Project-wide settings for a scenario."""

    start_date: date
    duration_months: int
    project_name: str = ""
    construction_delay: int = 0
    growth: GrowthSettings = field(default_factory=GrowthSettings)
    hold_strategy: Optional[HoldStrategy] = None
    discount_rate: float = 0.0  # Annual
    gst_rate: float = 0.10
    gst_credit_lag_months: int = 1
    total_units: int = 0
    use_margin_scheme: bool = False
    capital_stack: CapitalStack = field(default_factory=CapitalStack)


@dataclass(frozen=True)
class Scenario:
    """A complete feasibility scenario: settings plus cost and revenue lists."""

    name: str
    settings: FeasibilitySettings
    costs: List[LineItem] = field(default_factory=list)
    revenues: List[RevenueItem] = field(default_factory=list)
    strategy: Strategy = Strategy.SELL


def _check_fraction(errors: List[str], label: str, value: float) -> None:
    if value < 0 or value > 1:
        errors.append(f"{label} must be between 0 and 1, got {value}")


def _validate_tier(errors: List[str], label: str, tier: CapitalTier) -> None:
    if tier.interest_rate < 0:
        errors.append(f"{label}: interest rate must not be negative")
    if tier.rate_mode == InterestRateMode.VARIABLE and not tier.variable_rates:
        errors.append(f"{label}: variable rate mode requires at least one dated rate")
    if tier.limit_method in (DebtLimitMethod.LVR, DebtLimitMethod.LTC):
        if tier.limit is None:
            errors.append(f"{label}: {tier.limit_method.value} limit requires a percentage")
        else:
            _check_fraction(errors, f"{label} limit", tier.limit)
    elif tier.limit is not None and tier.limit < 0:
        errors.append(f"{label}: limit must not be negative")
    if tier.activation_month < 0:
        errors.append(f"{label}: activation month must not be negative")
    if tier.establishment_fee < 0 or tier.line_fee < 0:
        errors.append(f"{label}: fees must not be negative")


def validate_line_item(item: LineItem) -> List[str]:
    """Return validation errors for a single line item."""
    errors: List[str] = []
    label = f"Cost '{item.description}'"
    if item.span < 1:
        errors.append(f"{label}: span must be at least 1 month, got {item.span}")
    if item.start < 0:
        errors.append(f"{label}: start offset must not be negative")
    if item.escalation_rate is not None and item.escalation_rate < 0:
        errors.append(f"{label}: escalation rate must not be negative")
    if item.shape == DistributionShape.MILESTONE:
        if not item.milestones:
            errors.append(f"{label}: milestone distribution requires a milestone map")
        elif any(m < 0 or m >= item.span for m in item.milestones):
            errors.append(f"{label}: milestone months must fall within the span")
    if item.s_curve_steepness is not None and item.s_curve_steepness <= 0:
        errors.append(f"{label}: S-curve steepness must be positive")
    if item.revenue_linked or item.input_basis in (
        InputBasis.PCT_REVENUE,
        InputBasis.PCT_CONSTRUCTION,
    ):
        if item.amount < 0:
            errors.append(f"{label}: percentage must not be negative")
    return errors


def validate_revenue_item(item: RevenueItem) -> List[str]:
    """Return validation errors for a single revenue item."""
    errors: List[str] = []
    label = f"Revenue '{item.description}'"
    if item.units < 0:
        errors.append(f"{label}: units must not be negative")
    if item.price_per_unit < 0:
        errors.append(f"{label}: price must not be negative")
    _check_fraction(errors, f"{label} commission rate", item.commission_rate)
    if item.strategy == Strategy.SELL:
        if item.settlement_span < 0:
            errors.append(f"{label}: settlement span must not be negative")
        if item.settlement_span == 0 and item.absorption_rate <= 0:
            errors.append(f"{label}: needs a settlement span or a positive absorption rate")
    else:
        _check_fraction(errors, f"{label} opex rate", item.opex_rate)
        _check_fraction(errors, f"{label} vacancy rate", item.vacancy_rate)
        if item.lease_up_months < 0:
            errors.append(f"{label}: lease-up months must not be negative")
        if item.cap_rate < 0:
            errors.append(f"{label}: cap rate must not be negative")
    return errors


def validate_scenario(scenario: Scenario, site: Site) -> None:
    """Validate a scenario before simulation.

    Raises:
        FeasibilityInputError: listing every problem found.
    """
    errors: List[str] = []
    settings = scenario.settings
    acquisition = site.acquisition

    if settings.duration_months < 1:
        errors.append("Duration must be at least 1 month")
    if settings.construction_delay < 0:
        errors.append("Construction delay must not be negative")
    if settings.gst_credit_lag_months < 0:
        errors.append("GST credit lag must not be negative")
    if settings.total_units < 0:
        errors.append("Total units must not be negative")
    _check_fraction(errors, "GST rate", settings.gst_rate)

    if acquisition.purchase_price < 0:
        errors.append("Purchase price must not be negative")
    _check_fraction(errors, "Deposit", acquisition.deposit_pct)
    if acquisition.settlement_month < 0:
        errors.append("Settlement month must not be negative")
    if site.land_area < 0:
        errors.append("Land area must not be negative")

    stack = settings.capital_stack
    _validate_tier(errors, "Senior", stack.senior)
    _validate_tier(errors, "Mezzanine", stack.mezzanine)
    if stack.equity.mode in (
        EquityMode.PCT_LAND,
        EquityMode.PCT_TOTAL_COST,
        EquityMode.PCT_MONTHLY,
    ):
        _check_fraction(errors, "Equity percentage", stack.equity.percentage)
    if stack.equity.mode == EquityMode.INSTALMENTS and not stack.equity.instalments:
        errors.append("Instalment equity requires at least one instalment")
    if stack.equity.initial_contribution < 0:
        errors.append("Equity contribution must not be negative")
    if stack.jv.enabled:
        _check_fraction(errors, "JV equity split", stack.jv.equity_split)
        _check_fraction(errors, "JV profit share", stack.jv.profit_share)

    hold = settings.hold_strategy
    if scenario.strategy == Strategy.HOLD and hold is None:
        errors.append("Hold scenario requires a hold strategy")
    if hold is not None:
        if hold.refinance_month < 0:
            errors.append("Refinance month must not be negative")
        _check_fraction(errors, "Refinance LVR", hold.refinance_lvr)
        if hold.hold_period_years < 0:
            errors.append("Hold period must not be negative")
        if hold.investment_rate < 0:
            errors.append("Investment rate must not be negative")

    for item in scenario.costs:
        errors.extend(validate_line_item(item))
    for revenue in scenario.revenues:
        errors.extend(validate_revenue_item(revenue))

    if errors:
        raise FeasibilityInputError(errors)
