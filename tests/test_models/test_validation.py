"""Tests for scenario input validation."""

from dataclasses import replace

import pytest

from feaso.models import (
    CapitalStack,
    CapitalTier,
    CostCategory,
    DebtLimitMethod,
    DistributionShape,
    EquityMode,
    EquityStructure,
    FeasibilityInputError,
    InterestRateMode,
    LineItem,
    RevenueItem,
    Strategy,
    validate_scenario,
)
from feaso.models.project import validate_line_item, validate_revenue_item


def _with_stack(scenario, stack):
    return replace(scenario, settings=replace(scenario.settings, capital_stack=stack))


class TestLineItemValidation:
    """Tests for single cost items."""

    def test_valid_item(self):
        """A plain item has no errors."""
        assert validate_line_item(LineItem("Fees", CostCategory.CONSULTANTS, 1_000, span=3)) == []

    @pytest.mark.parametrize("kwargs", [
        {"span": 0},
        {"start": -1},
        {"escalation_rate": -0.01},
        {"shape": DistributionShape.MILESTONE},
        {"shape": DistributionShape.MILESTONE, "span": 3, "milestones": {5: 1.0}},
        {"s_curve_steepness": 0},
    ])
    def test_invalid_item(self, kwargs):
        """Each bad field produces an error naming the item."""
        errors = validate_line_item(LineItem("Fees", CostCategory.CONSULTANTS, 1_000, **kwargs))
        assert errors
        assert all("Fees" in e for e in errors)


class TestRevenueValidation:
    """Tests for single revenue items."""

    def test_sell_needs_span_or_absorption(self):
        """A zero span with no absorption rate cannot be scheduled."""
        item = RevenueItem("Lots", units=10, price_per_unit=1, settlement_span=0)
        assert validate_revenue_item(item)

    def test_hold_rates_are_fractions(self):
        """Opex above 100% is rejected."""
        item = RevenueItem("Units", strategy=Strategy.HOLD, units=1, price_per_unit=1, opex_rate=1.5)
        assert validate_revenue_item(item)


class TestScenarioValidation:
    """Tests for whole-scenario validation."""

    def test_reference_scenarios_valid(self, sell_scenario, site, hold_scenario, hold_site):
        """Shared fixtures pass validation."""
        validate_scenario(sell_scenario, site)
        validate_scenario(hold_scenario, hold_site)

    def test_errors_are_collected(self, sell_scenario, site):
        """All problems are reported together."""
        settings = replace(sell_scenario.settings, duration_months=0, gst_credit_lag_months=-1)
        bad_site = replace(site, acquisition=replace(site.acquisition, deposit_pct=1.5))
        with pytest.raises(FeasibilityInputError) as excinfo:
            validate_scenario(replace(sell_scenario, settings=settings), bad_site)
        assert len(excinfo.value.errors) == 3

    def test_ratio_limit_requires_fraction(self, sell_scenario, site):
        """LVR and LTC tiers need a limit between 0 and 1."""
        missing = CapitalStack(senior=CapitalTier(limit_method=DebtLimitMethod.LVR))
        too_big = CapitalStack(senior=CapitalTier(limit_method=DebtLimitMethod.LTC, limit=2.0))
        for stack in (missing, too_big):
            with pytest.raises(FeasibilityInputError):
                validate_scenario(_with_stack(sell_scenario, stack), site)

    def test_variable_rate_needs_schedule(self, sell_scenario, site):
        """Variable mode without dated rates is rejected."""
        stack = CapitalStack(senior=CapitalTier(rate_mode=InterestRateMode.VARIABLE))
        with pytest.raises(FeasibilityInputError):
            validate_scenario(_with_stack(sell_scenario, stack), site)

    def test_instalments_required(self, sell_scenario, site):
        """Instalment equity needs at least one instalment."""
        stack = CapitalStack(equity=EquityStructure(mode=EquityMode.INSTALMENTS))
        with pytest.raises(FeasibilityInputError):
            validate_scenario(_with_stack(sell_scenario, stack), site)

    def test_hold_needs_strategy(self, hold_scenario, hold_site):
        """A hold scenario without hold settings is rejected."""
        settings = replace(hold_scenario.settings, hold_strategy=None)
        with pytest.raises(FeasibilityInputError):
            validate_scenario(replace(hold_scenario, settings=settings), hold_site)
