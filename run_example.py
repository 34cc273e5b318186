#!/usr/bin/env python3
"""Example script: run a build-to-sell and a build-to-rent feasibility."""

import logging
import sys
from datetime import date
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from feaso.models import (
    AcquisitionTerms,
    CalculationLink,
    CapitalStack,
    CapitalTier,
    CostCategory,
    DebtLimitMethod,
    DistributionShape,
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
from feaso.calculations import (
    calculate_feasibility,
    generate_sensitivity_matrix,
    solve_residual_land_value,
)


def get_example_site() -> Site:
    """A 1,800 sqm Brunswick site under contract at $3.2M."""
    return Site(
        land_area=1_800,
        state=TaxState.VIC,
        site_value=2_600_000,
        gfa=4_200,
        nsa=3_500,
        acquisition=AcquisitionTerms(
            purchase_price=3_200_000,
            deposit_pct=0.10,
            settlement_month=3,
            stamp_duty_state=TaxState.VIC,
        ),
    )


def get_example_costs():
    """Cost plan shared by both strategies."""
    return [
        LineItem(
            "Stamp Duty", CostCategory.LAND, 0, start=3,
            gst_treatment=GstTreatment.GST_FREE,
            calculation_link=CalculationLink.AUTO_STAMP_DUTY,
        ),
        LineItem(
            "Land Tax", CostCategory.STATUTORY, 0, start=3, span=12,
            gst_treatment=GstTreatment.GST_FREE,
            calculation_link=CalculationLink.AUTO_LAND_TAX,
        ),
        LineItem("Design & Planning", CostCategory.CONSULTANTS, 450_000, span=9),
        LineItem(
            "Construction", CostCategory.CONSTRUCTION, 2_600, span=16,
            input_basis=InputBasis.RATE_PER_SQM, shape=DistributionShape.S_CURVE,
        ),
        LineItem(
            "Contingency", CostCategory.MISCELLANEOUS, 0.05, start=0, span=16,
            input_basis=InputBasis.PCT_CONSTRUCTION,
        ),
        LineItem(
            "Marketing", CostCategory.SELLING, 0.01, start=10, span=6,
            input_basis=InputBasis.PCT_REVENUE,
        ),
    ]


def get_capital_stack() -> CapitalStack:
    """65% LVR senior, capped mezzanine, $2.5M equity."""
    return CapitalStack(
        senior=CapitalTier(
            interest_rate=0.078,
            limit_method=DebtLimitMethod.LVR,
            limit=0.65,
            establishment_fee=45_000,
            line_fee=0.005,
        ),
        mezzanine=CapitalTier(interest_rate=0.14, limit=1_500_000),
        equity=EquityStructure(initial_contribution=2_500_000),
    )


def get_sell_scenario() -> Scenario:
    settings = FeasibilitySettings(
        start_date=date(2026, 1, 1),
        duration_months=30,
        project_name="Brunswick Apartments",
        construction_delay=2,
        growth=GrowthSettings(sales_price_escalation=0.03),
        discount_rate=0.10,
        total_units=38,
        capital_stack=get_capital_stack(),
    )
    revenues = [
        RevenueItem("Two Bedroom", units=26, price_per_unit=780_000,
                    commission_rate=0.02, settlement_span=4),
        RevenueItem("Three Bedroom", units=12, price_per_unit=1_150_000,
                    commission_rate=0.02, settlement_span=4, offset_from_completion=1),
    ]
    return Scenario("Build to Sell", settings, get_example_costs(), revenues, Strategy.SELL)


def get_hold_scenario() -> Scenario:
    hold = HoldStrategy(
        refinance_month=26,
        refinance_lvr=0.60,
        investment_rate=0.065,
        hold_period_years=5,
        annual_capital_growth=0.035,
        terminal_cap_rate=0.05,
    )
    settings = FeasibilitySettings(
        start_date=date(2026, 1, 1),
        duration_months=30,
        project_name="Brunswick Build to Rent",
        construction_delay=2,
        growth=GrowthSettings(rental_growth=0.03),
        hold_strategy=hold,
        discount_rate=0.08,
        total_units=38,
        capital_stack=CapitalStack(
            senior=CapitalTier(interest_rate=0.078),
            equity=EquityStructure(initial_contribution=4_000_000),
        ),
    )
    costs = [c for c in get_example_costs() if c.category != CostCategory.SELLING]
    revenues = [
        RevenueItem("Apartments", strategy=Strategy.HOLD, units=38, price_per_unit=36_000,
                    is_taxable=False, opex_rate=0.28, vacancy_rate=0.03,
                    lease_up_months=6, cap_rate=0.045),
    ]
    return Scenario("Build to Rent", settings, costs, revenues, Strategy.HOLD)


def _fmt_rate(value) -> str:
    return "n/a" if value is None else f"{float(value):.1%}"


def print_summary(result):
    """Print headline metrics for one run."""
    m = result.metrics
    print(f"\n{result.scenario.name} ({len(result.flows)} months)")
    print("-" * 50)
    print(f"{'Gross realisation':<28} ${float(m.gross_realisation):>16,.0f}")
    print(f"{'Total cost (net)':<28} ${float(m.total_cost_net):>16,.0f}")
    print(f"{'Finance cost':<28} ${float(m.finance_cost):>16,.0f}")
    print(f"{'Net profit':<28} ${float(m.net_profit):>16,.0f}")
    print(f"{'Margin on cost':<28} {float(m.margin_on_cost):>17.1%}")
    print(f"{'Peak debt':<28} ${float(m.peak_debt):>16,.0f}  ({m.peak_debt_label})")
    print(f"{'Peak equity':<28} ${float(m.peak_equity):>16,.0f}")
    print(f"{'Equity IRR':<28} {_fmt_rate(m.equity_irr):>17}")
    print(f"{'Project IRR':<28} {_fmt_rate(m.project_irr):>17}")
    print(f"{'NPV':<28} ${float(m.npv):>16,.0f}")
    if not m.is_fundable:
        print(f"{'Funding shortfall':<28} ${float(m.funding_shortfall):>16,.0f}"
              f"  in {m.shortfall_months} months")


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Development feasibility example")
    parser.add_argument("--sensitivity", action="store_true",
                        help="Print a construction cost vs sale price margin grid")
    parser.add_argument("--residual", action="store_true",
                        help="Solve the land price for a 20%% margin on cost")
    parser.add_argument("--verbose", action="store_true", help="Show engine logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    site = get_example_site()
    sell = calculate_feasibility(get_sell_scenario(), site)
    hold = calculate_feasibility(get_hold_scenario(), site)
    print_summary(sell)
    print_summary(hold)

    if args.sensitivity:
        print("\nMargin on cost: construction cost (rows) vs sale price (columns)")
        matrix = generate_sensitivity_matrix(get_sell_scenario(), site, steps=[-0.1, 0.0, 0.1])
        print(matrix.to_frame("margin_on_cost").round(3).to_string())

    if args.residual:
        result = solve_residual_land_value(get_sell_scenario(), site, target=0.20,
                                           upper_bound=20_000_000)
        if result.feasible:
            print(f"\nResidual land value at 20% margin: ${float(result.land_value):,.0f}")
        else:
            print("\n20% margin is not achievable even with free land.")

    print("\nDone.")


if __name__ == "__main__":
    main()
