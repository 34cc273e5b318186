"""End-to-end tests for calculate_feasibility."""

from dataclasses import replace
from decimal import Decimal

import pytest

from feaso.calculations.engine import calculate_feasibility
from feaso.calculations.metrics import reconcile
from feaso.models import CostCategory, FeasibilityInputError, LineItem

TOLERANCE = Decimal("0.01")


class TestSellScenario:
    """Build-to-sell reference run."""

    @pytest.fixture
    def result(self, sell_scenario, site):
        return calculate_feasibility(sell_scenario, site)

    def test_one_flow_per_month(self, result):
        """Months 0..24 inclusive."""
        assert len(result.flows) == 25
        assert [f.month for f in result.flows] == list(range(25))
        assert result.flows[0].label == "Jan 25"

    def test_debt_cleared_and_fundable(self, result):
        """Sales clear senior debt without a shortfall."""
        assert result.flows[-1].senior.balance == 0
        assert result.metrics.is_fundable

    def test_upfront_equity_in_month_zero(self, result):
        """The sum of money is drawn at month 0."""
        assert abs(result.flows[0].equity_draw - Decimal("1500000")) < TOLERANCE

    def test_reconciles(self, result):
        """Totals reconcile to the cent."""
        cost_residual, revenue_residual = reconcile(result.metrics)
        assert abs(cost_residual) < TOLERANCE
        assert abs(revenue_residual) < TOLERANCE

    def test_cost_totals_match_schedule(self, result):
        """Flows carry the cost schedule unchanged."""
        assert abs(result.metrics.development_cost_net - result.costs.total_net) < TOLERANCE
        assert abs(result.metrics.gst_input_credits - result.costs.total_gst) < TOLERANCE
        assert abs(sum(f.gst_credit for f in result.flows) - result.costs.total_gst) < TOLERANCE

    def test_idempotent(self, sell_scenario, site, result):
        """Same inputs, same outputs."""
        again = calculate_feasibility(sell_scenario, site)
        assert again.flows == result.flows
        assert again.metrics.net_profit == result.metrics.net_profit

    def test_frames(self, result):
        """Monthly and itemised tables cover every month."""
        frame = result.to_frame()
        assert len(frame) == 25
        assert frame.index[0] == "Jan 25"
        assert abs(frame["net_cost"].sum() - float(result.costs.total_net)) < 0.01

        itemised = result.itemised_cashflow()
        assert len(itemised.columns) == 3 + 25

    def test_line_items(self, result, sell_scenario):
        """Every authored and implicit line is summarised."""
        assert len(result.line_items) == len(sell_scenario.costs) + 3


class TestHoldScenario:
    """Build-to-rent reference run."""

    def test_runs_to_exit(self, hold_scenario, hold_site):
        """Hold horizon covers the hold period and reconciles."""
        result = calculate_feasibility(hold_scenario, hold_site)
        assert len(result.flows) == 36
        assert result.metrics.rental_outgoings > 0
        cost_residual, revenue_residual = reconcile(result.metrics)
        assert abs(cost_residual) < TOLERANCE
        assert abs(revenue_residual) < TOLERANCE

    def test_gross_realisation_includes_terminal_value(self, hold_scenario, hold_site):
        """Exit value is part of gross realisation."""
        result = calculate_feasibility(hold_scenario, hold_site)
        terminal = result.flows[-1].terminal_value
        assert terminal > 0
        assert result.metrics.gross_realisation > terminal


class TestValidationGate:
    """Invalid inputs are rejected before any simulation."""

    def test_invalid_item_rejected(self, sell_scenario, site):
        """A zero span fails validation."""
        bad = LineItem("Broken", CostCategory.MISCELLANEOUS, 1_000, span=0)
        scenario = replace(sell_scenario, costs=sell_scenario.costs + [bad])
        with pytest.raises(FeasibilityInputError) as excinfo:
            calculate_feasibility(scenario, site)
        assert any("Broken" in error for error in excinfo.value.errors)
