"""Reference scenarios shared by the test suite."""

from datetime import date
from typing import List, Optional

from feaso.models import (
    AcquisitionTerms,
    CalculationLink,
    CapitalStack,
    CapitalTier,
    CostCategory,
    DepreciationSplit,
    DistributionShape,
    EquityMode,
    EquityStructure,
    FeasibilitySettings,
    GrowthSettings,
    GstTreatment,
    HoldStrategy,
    InputBasis,
    LineItem,
    RevenueItem,
    Scenario,
    Site,
    Strategy,
    TaxState,
)


def get_test_site(purchase_price: float = 2_000_000, settlement_month: int = 2) -> Site:
    """A 1,000 sqm VIC site bought on 10% deposit.

    Stamp duty on $2M is 5.5% flat = $110,000. Land tax on the $1.5M
    assessed value is $10,975.
    """
    return Site(
        land_area=1_000,
        state=TaxState.VIC,
        site_value=1_500_000,
        gfa=2_400,
        nsa=2_000,
        acquisition=AcquisitionTerms(
            purchase_price=purchase_price,
            deposit_pct=0.10,
            settlement_month=settlement_month,
            stamp_duty_state=TaxState.VIC,
        ),
    )


def get_sell_costs() -> List[LineItem]:
    """Cost plan for the sell scenario.

    Construction starts at settlement (month 2) + 1 month delay and runs
    12 months, so construction ends at month 15.
    """
    return [
        LineItem(
            "Stamp Duty", CostCategory.LAND, 0, start=2,
            gst_treatment=GstTreatment.GST_FREE,
            calculation_link=CalculationLink.AUTO_STAMP_DUTY,
        ),
        LineItem("Architect & Engineering", CostCategory.CONSULTANTS, 300_000, start=0, span=6),
        LineItem(
            "Main Build", CostCategory.CONSTRUCTION, 4_000_000, span=12,
            shape=DistributionShape.S_CURVE,
        ),
        LineItem(
            "Contingency", CostCategory.MISCELLANEOUS, 0.05, start=3, span=12,
            input_basis=InputBasis.PCT_CONSTRUCTION,
        ),
        LineItem(
            "Council Contributions", CostCategory.STATUTORY, 150_000, start=3,
            shape=DistributionShape.UPFRONT, gst_treatment=GstTreatment.GST_FREE,
        ),
    ]


def get_sell_scenario(
    equity: Optional[EquityStructure] = None,
    senior: Optional[CapitalTier] = None,
    duration_months: int = 24,
) -> Scenario:
    """20 apartments at $500k, settling over three months from completion.

    Senior debt at 7.5% (unlimited), $1.5M developer equity.
    """
    stack = CapitalStack(
        senior=senior or CapitalTier(interest_rate=0.075),
        equity=equity or EquityStructure(
            mode=EquityMode.SUM_OF_MONEY, initial_contribution=1_500_000
        ),
    )
    settings = FeasibilitySettings(
        start_date=date(2025, 1, 1),
        duration_months=duration_months,
        project_name="Elm Street Apartments",
        construction_delay=1,
        discount_rate=0.10,
        total_units=20,
        capital_stack=stack,
    )
    revenues = [
        RevenueItem(
            "Apartments", strategy=Strategy.SELL, units=20, price_per_unit=500_000,
            commission_rate=0.02, settlement_span=3,
        ),
    ]
    return Scenario(
        name="Base Case",
        settings=settings,
        costs=get_sell_costs(),
        revenues=revenues,
        strategy=Strategy.SELL,
    )


def get_hold_site() -> Site:
    """A $1M site settling in month 1."""
    return get_test_site(purchase_price=1_000_000, settlement_month=1)


def get_hold_scenario() -> Scenario:
    """12 townhouses held for rent.

    Construction runs months 1-10 (ends month 11). Rent of $30k per unit
    p.a. starts at completion with a 3 month lease-up. Refinance at
    month 17 at 60% of value, exit after two years (month 35).
    """
    hold = HoldStrategy(
        refinance_month=17,
        refinance_lvr=0.60,
        investment_rate=0.065,
        hold_period_years=2,
        annual_capital_growth=0.04,
        terminal_cap_rate=0.055,
        depreciation=DepreciationSplit(capital_works_pct=0.8, plant_pct=0.2),
    )
    settings = FeasibilitySettings(
        start_date=date(2025, 7, 1),
        duration_months=24,
        project_name="Oak Lane Townhouses",
        growth=GrowthSettings(rental_growth=0.03),
        hold_strategy=hold,
        discount_rate=0.08,
        total_units=12,
        capital_stack=CapitalStack(
            senior=CapitalTier(interest_rate=0.07),
            equity=EquityStructure(initial_contribution=800_000),
        ),
    )
    costs = [
        LineItem("Design", CostCategory.CONSULTANTS, 120_000, span=4),
        LineItem("Build", CostCategory.CONSTRUCTION, 3_000_000, span=10),
    ]
    revenues = [
        RevenueItem(
            "Townhouses", strategy=Strategy.HOLD, units=12, price_per_unit=30_000,
            is_taxable=False, opex_rate=0.25, vacancy_rate=0.04,
            lease_up_months=3, cap_rate=0.05,
        ),
    ]
    return Scenario(
        name="Build to Rent",
        settings=settings,
        costs=costs,
        revenues=revenues,
        strategy=Strategy.HOLD,
    )


def get_single_cost_scenario(
    amount: float = 100_000,
    month: int = 1,
    duration_months: int = 3,
    gst_treatment: GstTreatment = GstTreatment.GST_FREE,
    stack: Optional[CapitalStack] = None,
    gst_credit_lag_months: int = 1,
) -> Scenario:
    """One cost in one month, no land, no revenue."""
    settings = FeasibilitySettings(
        start_date=date(2025, 1, 1),
        duration_months=duration_months,
        gst_credit_lag_months=gst_credit_lag_months,
        capital_stack=stack or CapitalStack(senior=CapitalTier(interest_rate=0.12)),
    )
    costs = [
        LineItem(
            "Works", CostCategory.MISCELLANEOUS, amount, start=month,
            gst_treatment=gst_treatment,
        ),
    ]
    return Scenario(name="Single Cost", settings=settings, costs=costs)


def get_empty_site() -> Site:
    """A site with no purchase price, so no implicit land payments."""
    return Site(land_area=500, acquisition=AcquisitionTerms(purchase_price=0))
