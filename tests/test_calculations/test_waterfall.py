"""Tests for the funding waterfall."""

from decimal import Decimal

from feaso.calculations.engine import calculate_feasibility
from feaso.calculations.utils import engine_context
from feaso.calculations.waterfall import resolve_tier_limits
from feaso.models import (
    AcquisitionTerms,
    CapitalStack,
    CapitalTier,
    DatedAmount,
    DatedRate,
    DebtLimitMethod,
    EquityMode,
    EquityStructure,
    FeeBase,
    FundingSource,
    GstTreatment,
    InterestRateMode,
    Site,
)
from tests.fixtures.test_inputs import get_empty_site, get_single_cost_scenario

TOLERANCE = Decimal("0.01")


def _flows(stack=None, site=None, **kwargs):
    scenario = get_single_cost_scenario(stack=stack, **kwargs)
    return calculate_feasibility(scenario, site or get_empty_site()).flows


class TestSeniorDebt:
    """Tests for senior draws and interest."""

    def test_draw_then_capitalised_interest(self):
        """100k at month 1 on 12% senior: draw 100k, then 1k interest capitalised."""
        flows = _flows()

        assert abs(flows[1].senior.draw - Decimal("100000")) < TOLERANCE
        assert abs(flows[1].senior.balance - Decimal("100000")) < TOLERANCE
        assert abs(flows[2].senior.interest - Decimal("1000")) < TOLERANCE
        assert abs(flows[2].senior.capitalised - Decimal("1000")) < TOLERANCE
        assert abs(flows[2].senior.balance - Decimal("101000")) < TOLERANCE
        assert flows[2].senior.draw == 0

    def test_uncapitalised_interest_is_a_funding_need(self):
        """Serviced interest is funded like any other cash need."""
        stack = CapitalStack(senior=CapitalTier(interest_rate=0.12, is_interest_capitalised=False))
        flows = _flows(stack)

        assert flows[2].senior.capitalised == 0
        assert abs(flows[2].net_cashflow + Decimal("1000")) < TOLERANCE
        assert abs(flows[2].senior.draw - Decimal("1000")) < TOLERANCE
        assert abs(flows[2].senior.balance - Decimal("101000")) < TOLERANCE

    def test_variable_rate_schedule(self):
        """A dated rate applies from its month onward."""
        senior = CapitalTier(
            rate_mode=InterestRateMode.VARIABLE,
            interest_rate=0.12,
            variable_rates=[DatedRate(month=2, rate=0.24)],
        )
        flows = _flows(CapitalStack(senior=senior))
        assert abs(flows[2].senior.interest - Decimal("2000")) < TOLERANCE

    def test_fees(self):
        """Establishment fee at activation and a monthly line fee on the limit."""
        senior = CapitalTier(
            interest_rate=0.12,
            limit=200_000,
            establishment_fee=5_000,
            line_fee=0.012,
        )
        flows = _flows(CapitalStack(senior=senior))

        assert abs(flows[0].senior.establishment_fee - Decimal("5000")) < TOLERANCE
        assert abs(flows[0].senior.line_fee - Decimal("200")) < TOLERANCE
        assert abs(flows[0].senior.balance - Decimal("5200")) < TOLERANCE
        assert flows[1].senior.establishment_fee == 0

    def test_percentage_establishment_fee(self):
        """A percent fee is charged on the limit."""
        senior = CapitalTier(
            interest_rate=0.12,
            limit=200_000,
            establishment_fee_base=FeeBase.PERCENT,
            establishment_fee=0.01,
        )
        flows = _flows(CapitalStack(senior=senior))
        assert abs(flows[0].senior.establishment_fee - Decimal("2000")) < TOLERANCE

    def test_inactive_tier_is_not_drawn(self):
        """Before activation the senior tier cannot fund anything."""
        senior = CapitalTier(interest_rate=0.12, activation_month=2)
        flows = _flows(CapitalStack(senior=senior))

        assert flows[1].senior.draw == 0
        assert abs(flows[1].equity_draw - Decimal("100000")) < TOLERANCE


class TestFundingPriority:
    """Tests for the order tiers are drawn in."""

    def test_mezzanine_before_senior(self):
        """Mezzanine is drawn to its limit before senior."""
        stack = CapitalStack(
            senior=CapitalTier(interest_rate=0.08),
            mezzanine=CapitalTier(interest_rate=0.15, limit=30_000),
        )
        flows = _flows(stack)

        assert abs(flows[1].mezzanine.draw - Decimal("30000")) < TOLERANCE
        assert abs(flows[1].senior.draw - Decimal("70000")) < TOLERANCE

    def test_upfront_equity_spent_first(self):
        """A sum of money is injected at month 0 and used before debt."""
        stack = CapitalStack(
            senior=CapitalTier(interest_rate=0.12),
            equity=EquityStructure(mode=EquityMode.SUM_OF_MONEY, initial_contribution=30_000),
        )
        flows = _flows(stack)

        assert abs(flows[0].equity_draw - Decimal("30000")) < TOLERANCE
        assert abs(flows[0].surplus_balance - Decimal("30000")) < TOLERANCE
        assert abs(flows[1].senior.draw - Decimal("70000")) < TOLERANCE
        assert flows[1].surplus_balance == 0

    def test_instalments(self):
        """Instalments are injected in their months."""
        stack = CapitalStack(
            senior=CapitalTier(interest_rate=0.12),
            equity=EquityStructure(
                mode=EquityMode.INSTALMENTS,
                instalments=[DatedAmount(0, 10_000), DatedAmount(1, 15_000)],
            ),
        )
        flows = _flows(stack)

        assert abs(flows[0].equity_draw - Decimal("10000")) < TOLERANCE
        assert abs(flows[1].equity_draw - Decimal("15000")) < TOLERANCE
        assert abs(flows[1].senior.draw - Decimal("75000")) < TOLERANCE

    def test_pari_passu_equity(self):
        """Percentage-of-monthly-cost equity funds its share every month."""
        stack = CapitalStack(
            senior=CapitalTier(interest_rate=0.12),
            equity=EquityStructure(mode=EquityMode.PCT_MONTHLY, percentage=0.3),
        )
        flows = _flows(stack)

        assert abs(flows[1].equity_draw - Decimal("30000")) < TOLERANCE
        assert abs(flows[1].senior.draw - Decimal("70000")) < TOLERANCE

    def test_top_up_equity_is_last_resort(self):
        """Equity tops up what capped debt cannot fund."""
        stack = CapitalStack(
            senior=CapitalTier(interest_rate=0.12, limit=60_000),
            equity=EquityStructure(allow_top_up=True),
        )
        flows = _flows(stack)

        assert abs(flows[1].senior.draw - Decimal("60000")) < TOLERANCE
        assert abs(flows[1].equity_draw - Decimal("40000")) < TOLERANCE
        assert not any(f.has_shortfall for f in flows)

    def test_shortfall_recorded_not_raised(self, caplog):
        """With debt exhausted and no top-up the gap is a shortfall."""
        stack = CapitalStack(
            senior=CapitalTier(interest_rate=0.12, limit=60_000),
            equity=EquityStructure(allow_top_up=False),
        )
        result = calculate_feasibility(get_single_cost_scenario(stack=stack), get_empty_site())
        flows = result.flows

        assert abs(flows[1].funding_shortfall - Decimal("40000")) < TOLERANCE
        assert flows[1].has_shortfall
        assert abs(flows[1].senior.balance - Decimal("60000")) < TOLERANCE
        # Interest above the limit cannot be capitalised either
        assert flows[2].senior.capitalised == 0
        assert abs(flows[2].funding_shortfall - Decimal("600")) < TOLERANCE
        assert result.metrics.shortfall_months >= 2
        assert not result.metrics.is_fundable
        assert "shortfall" in caplog.text

    def test_zero_limit_is_zero_capacity(self):
        """A numeric limit of 0 is a closed facility, not an unlimited one."""
        stack = CapitalStack(
            senior=CapitalTier(interest_rate=0.12, limit=0.0),
            equity=EquityStructure(allow_top_up=True),
        )
        flows = _flows(stack)
        assert flows[1].senior.draw == 0
        assert abs(flows[1].equity_draw - Decimal("100000")) < TOLERANCE


class TestEarmarkedLand:
    """Tests for deposit and settlement funded by a designated source."""

    def test_deposit_and_settlement_sources(self):
        """Deposit from equity, settlement balance from senior."""
        site = Site(
            land_area=500,
            acquisition=AcquisitionTerms(
                purchase_price=500_000,
                deposit_pct=0.10,
                settlement_month=1,
                deposit_funding=FundingSource.EQUITY,
                settlement_funding=FundingSource.SENIOR,
            ),
        )
        flows = _flows(site=site)

        assert abs(flows[0].equity_draw - Decimal("50000")) < TOLERANCE
        assert flows[0].senior.draw == 0
        assert abs(flows[1].senior.draw - Decimal("550000")) < TOLERANCE


class TestGstCredits:
    """Tests for input tax credit timing."""

    def test_credit_received_after_lag(self):
        """GST paid in month 1 is credited in month 2 and repays senior."""
        flows = _flows(gst_treatment=GstTreatment.TAXABLE, duration_months=4)

        assert abs(flows[1].gst_paid - Decimal("10000")) < TOLERANCE
        assert abs(flows[1].senior.draw - Decimal("110000")) < TOLERANCE
        assert abs(flows[2].gst_credit - Decimal("10000")) < TOLERANCE
        assert abs(flows[2].senior.repayment - Decimal("10000")) < TOLERANCE

    def test_configurable_lag(self):
        """A two month lag shifts the credit to month 3."""
        flows = _flows(gst_treatment=GstTreatment.TAXABLE, duration_months=4,
                       gst_credit_lag_months=2)
        assert flows[2].gst_credit == 0
        assert abs(flows[3].gst_credit - Decimal("10000")) < TOLERANCE

    def test_credits_in_transit_released_at_horizon(self):
        """Credits not yet due are released in the final month."""
        flows = _flows(gst_treatment=GstTreatment.TAXABLE, duration_months=4,
                       gst_credit_lag_months=10)
        assert abs(flows[4].gst_credit - Decimal("10000")) < TOLERANCE
        assert abs(sum(f.gst_credit for f in flows) - sum(f.gst_paid for f in flows)) < TOLERANCE


class TestSurplusCash:
    """Tests for surplus balance handling."""

    def test_surplus_interest_and_final_release(self):
        """Surplus earns interest and is distributed in the last month."""
        stack = CapitalStack(
            senior=CapitalTier(interest_rate=0.12),
            equity=EquityStructure(initial_contribution=200_000),
            surplus_interest_rate=0.12,
        )
        flows = _flows(stack)

        assert abs(flows[1].surplus_interest - Decimal("2000")) < TOLERANCE
        assert flows[1].senior.draw == 0
        assert flows[-1].surplus_balance == 0
        assert flows[-1].equity_distribution > Decimal("100000")


class TestTierLimits:
    """Tests for limit resolution."""

    def test_limit_methods(self):
        """LVR uses revenue, LTC uses cost, None is unlimited."""
        stack = CapitalStack(
            senior=CapitalTier(limit_method=DebtLimitMethod.LVR, limit=0.6),
            mezzanine=CapitalTier(limit_method=DebtLimitMethod.LTC, limit=0.8),
        )
        limits = resolve_tier_limits(stack, Decimal("10000000"), Decimal("5000000"))
        assert abs(limits.senior - Decimal("6000000")) < TOLERANCE
        assert abs(limits.mezzanine - Decimal("4000000")) < TOLERANCE

        unlimited = resolve_tier_limits(CapitalStack(), Decimal("1"), Decimal("1"))
        assert unlimited.senior is None
        assert unlimited.mezzanine == 0

    def test_ltc_limit_in_engine(self):
        """An LTC limit is resolved once from the final net cost."""
        stack = CapitalStack(
            senior=CapitalTier(interest_rate=0.075, limit_method=DebtLimitMethod.LTC, limit=0.5),
            equity=EquityStructure(initial_contribution=500_000),
        )
        scenario = get_single_cost_scenario(stack=stack)
        result = calculate_feasibility(scenario, get_empty_site())
        assert abs(result.limits.senior - result.costs.total_net * Decimal("0.5")) < TOLERANCE


class TestScenarioLedger:
    """Tests on full sell and hold runs."""

    def test_sell_debt_repaid_and_balances_non_negative(self, sell_scenario, site):
        """Sales repay all senior debt; balances never go negative."""
        flows = calculate_feasibility(sell_scenario, site).flows

        for flow in flows:
            assert flow.senior.balance >= 0
            assert flow.mezzanine.balance >= 0
            assert flow.surplus_balance >= 0
        assert flows[-1].senior.balance == 0
        assert sum(f.equity_distribution for f in flows) > 0
        assert not any(f.has_shortfall for f in flows)

    def test_cumulative_cashflow(self, sell_scenario, site):
        """Cumulative cashflow is the running sum of net cashflow."""
        flows = calculate_feasibility(sell_scenario, site).flows
        running = Decimal("0")
        for flow in flows:
            running += flow.net_cashflow
            assert abs(flow.cumulative_cashflow - running) < TOLERANCE

    def test_month_totals_fixed_at_engine_precision(self, sell_scenario, site):
        """Combined debt, gross cost and finance cost are stored, not re-added by the caller."""
        flows = calculate_feasibility(sell_scenario, site).flows
        with engine_context():
            for flow in flows:
                assert flow.total_debt == flow.senior.balance + flow.mezzanine.balance
                assert abs(flow.gross_cost - flow.net_cost - flow.gst_paid) < TOLERANCE
                assert flow.senior.finance_cost == (
                    flow.senior.interest + flow.senior.line_fee + flow.senior.establishment_fee
                )
                assert flow.finance_cost == (
                    flow.senior.finance_cost + flow.mezzanine.finance_cost
                    + flow.investment_interest
                )

    def test_hold_refinance_and_exit(self, hold_scenario, hold_site):
        """Refinance sets the investment balance; exit repays it."""
        result = calculate_feasibility(hold_scenario, hold_site)
        flows = result.flows
        refinance = result.revenues.refinance

        assert refinance is not None and refinance.month == 17
        assert abs(flows[17].refinance_inflow - refinance.inflow) < TOLERANCE
        assert abs(flows[17].investment_balance - refinance.inflow) < TOLERANCE
        assert flows[16].investment_interest == 0
        expected_interest = refinance.inflow * Decimal("0.065") / 12
        assert abs(flows[18].investment_interest - expected_interest) < TOLERANCE

        assert flows[-1].month == 35
        assert flows[-1].terminal_value > 0
        assert flows[-1].investment_balance == 0
        assert abs(flows[-1].investment_repayment - refinance.inflow) < TOLERANCE
        assert flows[-1].senior.balance == 0

    def test_hold_asset_value_and_depreciation(self, hold_scenario, hold_site):
        """Asset value resets to the valuation, then grows; depreciation starts after."""
        result = calculate_feasibility(hold_scenario, hold_site)
        flows = result.flows
        valuation = result.revenues.refinance.valuation

        assert abs(flows[1].asset_value - flows[0].asset_value - flows[1].net_cost) < TOLERANCE
        assert abs(flows[17].asset_value - valuation) < TOLERANCE
        growth = float(flows[18].asset_value / flows[17].asset_value)
        assert abs(growth - 1.04 ** (1 / 12)) < 1e-9

        assert flows[17].depreciation == 0
        construction = result.costs.category_total(hold_scenario.costs[1].category)
        expected = construction * (Decimal("0.8") * Decimal("0.025") + Decimal("0.2") * Decimal("0.10")) / 12
        assert abs(flows[18].depreciation - expected) < TOLERANCE
